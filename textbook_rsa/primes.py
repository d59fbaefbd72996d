"""Probable-prime generation for textbook RSA.

Every function takes an optional ``rng``: any object exposing
``getrandbits(k)`` and ``randint(a, b)``.  When it is omitted a fresh
:class:`Crypto.Random.random.StrongRandom` backed by the operating system's
entropy pool is created for the call, so no state is shared between calls.
Tests inject a seeded :class:`random.Random` for reproducibility.
"""

from __future__ import annotations

import logging
from typing import Optional

from Crypto.Random.random import StrongRandom

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 10
WORD_BITS = 64

__all__ = [
    "DEFAULT_ROUNDS",
    "WORD_BITS",
    "fresh_rng",
    "decompose",
    "is_probably_prime",
    "random_of_bit_length",
    "generate_prime",
]


def fresh_rng(rng=None):
    """Return ``rng`` unchanged, or a newly seeded strong source when it is ``None``."""

    return rng if rng is not None else StrongRandom()


def decompose(n: int) -> tuple[int, int]:
    """Write ``n - 1`` as ``d * 2**s`` with ``d`` odd and return ``(s, d)``."""

    d = n - 1
    s = 0
    while d % 2 == 0:
        d //= 2
        s += 1
    return s, d


def is_probably_prime(n: int, rounds: int = DEFAULT_ROUNDS, *, rng=None) -> bool:
    """Return ``True`` when ``n`` is probably prime using Miller–Rabin.

    A composite slips through with probability at most ``4 ** -rounds``.
    """

    if rounds < 1:
        raise ValueError("Miller-Rabin needs at least one round")

    if n <= 1 or (n % 2 == 0 and n != 2):
        return False
    if n in (2, 3):
        return True

    s, d = decompose(n)
    source = fresh_rng(rng)

    for _ in range(rounds):
        a = source.randint(2, n - 2)
        x = pow(a, d, n)
        if x == 1 or x == n - 1:
            continue
        for _ in range(s - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                break
        else:
            return False
    return True


def random_of_bit_length(bits: int, *, rng=None) -> int:
    """Return a random odd integer with exactly ``bits`` bits.

    The value is assembled from ``WORD_BITS``-wide random words, masked down
    to ``bits`` and then has its top bit (fixing the length) and bottom bit
    (making it odd) forced on.
    """

    if bits < 2:
        raise ValueError("Bit length must be at least 2")

    source = fresh_rng(rng)
    words = (bits + WORD_BITS - 1) // WORD_BITS
    value = 0
    for _ in range(words):
        value = (value << WORD_BITS) | source.getrandbits(WORD_BITS)

    value &= (1 << bits) - 1
    value |= (1 << (bits - 1)) | 1
    return value


def generate_prime(bits: int, *, rounds: int = DEFAULT_ROUNDS, rng: Optional[object] = None) -> int:
    """Draw odd ``bits``-bit candidates until one passes Miller–Rabin.

    There is no attempt cap: the loop only ends with a probable prime.
    """

    source = fresh_rng(rng)
    attempts = 0
    while True:
        attempts += 1
        candidate = random_of_bit_length(bits, rng=source)
        if is_probably_prime(candidate, rounds, rng=source):
            logger.debug("Found %d-bit probable prime after %d candidates", bits, attempts)
            return candidate
