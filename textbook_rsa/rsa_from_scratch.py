import logging
from dataclasses import dataclass
from typing import Tuple

from textbook_rsa.primes import DEFAULT_ROUNDS, fresh_rng, generate_prime

logger = logging.getLogger(__name__)

PUBLIC_EXPONENT = 65537
DEFAULT_KEY_BITS = 512
MIN_KEY_BITS = 16


@dataclass(frozen=True)
class RsaPublicKey:
    n: int
    e: int = PUBLIC_EXPONENT


@dataclass(frozen=True)
class RsaPrivateKey:
    n: int
    d: int


class RangeViolation(ValueError):
    """Raised when a value outside ``[0, n)`` reaches an RSA exponentiation."""


def egcd(a: int, b: int):
    """Extended Euclidean algorithm without recursion.

    Returns ``(g, x, y)`` with ``a*x + b*y == g == gcd(a, b)``.  The loop form
    keeps hundreds-of-bits operands well clear of Python's recursion limit.
    """

    old_r, r = a, b
    old_s, s = 1, 0
    old_t, t = 0, 1

    while r != 0:
        q = old_r // r
        old_r, r = r, old_r - q * r
        old_s, s = s, old_s - q * s
        old_t, t = t, old_t - q * t

    return old_r, old_s, old_t


def mod_inverse(a: int, m: int) -> int:
    """Return ``a**-1 mod m`` in ``[0, m-1]``, or ``0`` when no inverse exists.

    ``0`` can only be a sentinel because a genuine inverse modulo ``m > 1`` is
    never ``0``; smaller moduli are rejected outright.
    """

    if m <= 1:
        raise ValueError("Modulus must be greater than 1")
    g, x, _ = egcd(a, m)
    if g != 1:
        return 0
    if x < 0:
        x += m
    return x % m


def generate_key(bits: int = DEFAULT_KEY_BITS, *, rounds: int = DEFAULT_ROUNDS, rng=None) -> Tuple[int, int, int]:
    """Generate an RSA modulus ``n`` together with the public/secret exponents.

    Both primes are ``bits // 2`` bits long.  A repeated prime is redrawn, and
    when ``e`` has no inverse modulo the totient the whole attempt is thrown
    away, so the caller never sees a half-formed key.
    """

    if bits < MIN_KEY_BITS or bits % 2:
        raise ValueError(f"Key size must be an even number of bits >= {MIN_KEY_BITS}")

    source = fresh_rng(rng)
    half = bits // 2
    e = PUBLIC_EXPONENT

    while True:
        p = generate_prime(half, rounds=rounds, rng=source)
        q = generate_prime(half, rounds=rounds, rng=source)
        while q == p:
            logger.debug("Drew the same prime twice; regenerating q")
            q = generate_prime(half, rounds=rounds, rng=source)

        phi = (p - 1) * (q - 1)
        d = mod_inverse(e, phi)
        if d == 0:
            logger.debug("e=%d is not invertible modulo phi; restarting key generation", e)
            continue

        n = p * q
        logger.debug("Generated %d-bit modulus", n.bit_length())
        return n, e, d


def generate_key_pair(bits: int = DEFAULT_KEY_BITS, *, rng=None) -> Tuple[RsaPublicKey, RsaPrivateKey]:
    """Generate a key pair and wrap it in the public/private dataclasses."""

    n, e, d = generate_key(bits, rng=rng)
    logger.info("Generated RSA key pair (n: %d bits, e: %d)", n.bit_length(), e)
    return RsaPublicKey(n=n, e=e), RsaPrivateKey(n=n, d=d)


def encrypt_int(m: int, e: int, n: int) -> int:
    if not (0 <= m < n):
        raise RangeViolation("Message representative out of range")
    return pow(m, e, n)


def decrypt_int(c: int, d: int, n: int) -> int:
    if not (0 <= c < n):
        raise RangeViolation("Ciphertext representative out of range")
    return pow(c, d, n)


def rsa_roundtrip(bits: int = DEFAULT_KEY_BITS) -> Tuple[int, int, int, bool]:
    """Generate a key and push a single integer through encrypt/decrypt.

    Returns the key parameters together with a boolean indicating whether the
    decrypted value matches the original.
    """

    n, e, d = generate_key(bits)
    m = fresh_rng().randint(0, n - 1)
    c = encrypt_int(m, e, n)
    return n, e, d, decrypt_int(c, d, n) == m


if __name__ == "__main__":
    print("== RSA from scratch ==")
    n, e, d, ok = rsa_roundtrip(1024)
    assert ok, "Roundtrip failed"
    print(f"n bits: {n.bit_length()}, e: {e}, ok = {ok}")
