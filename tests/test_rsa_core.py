import math
import pathlib
import random
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from textbook_rsa.primes import is_probably_prime  # noqa: E402
from textbook_rsa.rsa_from_scratch import (  # noqa: E402
    PUBLIC_EXPONENT,
    RangeViolation,
    decrypt_int,
    egcd,
    encrypt_int,
    generate_key,
    generate_key_pair,
    mod_inverse,
    rsa_roundtrip,
)


@pytest.fixture(scope="module")
def key_512():
    return generate_key(512)


def test_egcd_bezout_identity():
    for a, b in [(240, 46), (65537, 3120), (17, 0), (0, 9)]:
        g, x, y = egcd(a, b)
        assert g == math.gcd(a, b)
        assert a * x + b * y == g


def test_mod_inverse_of_coprime_pairs():
    rng = random.Random(1234)
    checked = 0
    while checked < 200:
        m = rng.randint(2, 2**256)
        a = rng.randint(1, m - 1)
        if math.gcd(a, m) != 1:
            continue
        inv = mod_inverse(a, m)
        assert 0 < inv < m
        assert (a * inv) % m == 1
        checked += 1


def test_mod_inverse_sentinel_when_not_coprime():
    assert mod_inverse(4, 8) == 0
    assert mod_inverse(6, 9) == 0
    assert mod_inverse(65537, 65537 * 4) == 0


def test_mod_inverse_normalises_negative_coefficients():
    # egcd(3, 7) yields x = -2, which must come back as 5
    assert egcd(3, 7)[1] < 0
    assert mod_inverse(3, 7) == 5


def test_mod_inverse_rejects_modulus_without_sentinel_room():
    with pytest.raises(ValueError):
        mod_inverse(3, 1)
    with pytest.raises(ValueError):
        mod_inverse(3, 0)


def test_generate_key_shape(key_512):
    n, e, d = key_512
    assert e == PUBLIC_EXPONENT
    assert n.bit_length() in (511, 512)
    assert 0 < d < n


def test_key_validity_for_random_messages(key_512):
    n, e, d = key_512
    rng = random.Random(99)
    samples = [0, 1, n - 1] + [rng.randint(0, n - 1) for _ in range(100)]
    for m in samples:
        assert decrypt_int(encrypt_int(m, e, n), d, n) == m


def test_generated_key_has_two_distinct_prime_factors():
    n, e, d = generate_key(32, rng=random.Random(2024))
    # 16-bit factors: trial division is instant
    p = next(f for f in range(3, 2**16, 2) if n % f == 0)
    q = n // p
    assert p != q
    assert is_probably_prime(p) and is_probably_prime(q)
    assert p.bit_length() == q.bit_length() == 16
    assert (e * d) % ((p - 1) * (q - 1)) == 1


def test_generate_key_with_injected_rng_is_reproducible():
    assert generate_key(128, rng=random.Random(5)) == generate_key(128, rng=random.Random(5))


@pytest.mark.parametrize("bits", [0, 8, 14, 63, 513])
def test_generate_key_rejects_bad_sizes(bits):
    with pytest.raises(ValueError):
        generate_key(bits)


class _ScriptedRng(random.Random):
    """Feeds a fixed list of 64-bit words before falling back to the seeded stream."""

    def __init__(self, words, seed=0):
        super().__init__(seed)
        self._words = list(words)

    def getrandbits(self, k):
        if self._words and k == 64:
            return self._words.pop(0)
        return super().getrandbits(k)


def test_repeated_prime_is_redrawn():
    # both first candidates are the 16-bit prime 65521, so q must be redrawn
    rng = _ScriptedRng([65521, 65521])
    n, e, d = generate_key(32, rng=rng)
    assert n != 65521 * 65521
    assert n % 65521 == 0


def test_retry_when_e_not_invertible():
    # 917519 = 14*65537 + 1 is prime, so phi is a multiple of e on the first attempt
    assert is_probably_prime(917519) and (917519 - 1) % PUBLIC_EXPONENT == 0
    rng = _ScriptedRng([917519, 1000003])
    n, e, d = generate_key(40, rng=rng)
    assert n % 917519 != 0
    m = 123456
    assert decrypt_int(encrypt_int(m, e, n), d, n) == m


def test_range_violation_on_encrypt_and_decrypt(key_512):
    n, e, d = key_512
    with pytest.raises(RangeViolation):
        encrypt_int(n, e, n)
    with pytest.raises(RangeViolation):
        encrypt_int(-1, e, n)
    with pytest.raises(RangeViolation):
        decrypt_int(n + 5, d, n)
    assert issubclass(RangeViolation, ValueError)


def test_generate_key_pair_dataclasses():
    public_key, private_key = generate_key_pair(128)
    assert public_key.n == private_key.n
    assert public_key.e == PUBLIC_EXPONENT


def test_rsa_roundtrip_helper():
    n, e, d, ok = rsa_roundtrip(256)
    assert ok and all(isinstance(value, int) for value in (n, e, d))
