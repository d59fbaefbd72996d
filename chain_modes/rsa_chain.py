"""Byte-granular CBC-style chaining on top of textbook RSA.

Each plaintext byte is XORed with the low byte of the previous ciphertext
block (the IV for the first byte) and then RSA-encrypted on its own, so one
message byte becomes one ciphertext integer below ``n``.  Decryption chains
on the *received* ciphertext block, mirroring encryption.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from textbook_rsa.primes import fresh_rng
from textbook_rsa.rsa_from_scratch import (
    DEFAULT_KEY_BITS,
    RsaPrivateKey,
    RsaPublicKey,
    decrypt_int,
    encrypt_int,
    generate_key_pair,
)
from utils.entropy import shannon_entropy

logger = logging.getLogger(__name__)

BYTE_MASK = 256

__all__ = [
    "rsa_cbc_encrypt",
    "rsa_cbc_decrypt",
    "rsa_ecb_encrypt",
    "sample_nonce",
    "encrypt_message",
    "decrypt_message",
    "first_difference",
    "roundtrip_demo",
    "demo_pattern_leakage",
    "demo_iv_sensitivity",
    "demo_wrong_chaining",
]


def _ensure_bytes(data: bytes | bytearray | memoryview) -> bytes:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError("plaintext must be bytes-like")
    return bytes(data)


def rsa_cbc_encrypt(plaintext: bytes, public_key: RsaPublicKey, iv: int) -> List[int]:
    blocks: List[int] = []
    prev = iv
    for m in _ensure_bytes(plaintext):
        x = m ^ (prev % BYTE_MASK)
        c = encrypt_int(x, public_key.e, public_key.n)
        blocks.append(c)
        prev = c
    return blocks


def rsa_cbc_decrypt(blocks: Iterable[int], private_key: RsaPrivateKey, iv: int) -> bytes:
    out = bytearray()
    prev = iv
    for index, c in enumerate(blocks):
        x = decrypt_int(c, private_key.d, private_key.n)
        m = x ^ (prev % BYTE_MASK)
        if m >= BYTE_MASK:
            raise ValueError(f"Block {index} does not decrypt to a byte (wrong key or IV?)")
        out.append(m)
        # chain on the ciphertext we received, not on x
        prev = c
    return bytes(out)


def rsa_ecb_encrypt(plaintext: bytes, public_key: RsaPublicKey) -> List[int]:
    """Encrypt every byte independently, with no chaining at all."""

    return [encrypt_int(m, public_key.e, public_key.n) for m in _ensure_bytes(plaintext)]


def sample_nonce(n: int, *, rng=None) -> int:
    """Uniform nonce in ``[1, n-1]`` from a freshly seeded source."""

    if n <= 2:
        raise ValueError("Modulus too small to sample a nonce")
    return fresh_rng(rng).randint(1, n - 1)


def encrypt_message(
    plaintext: bytes,
    public_key: RsaPublicKey,
    *,
    rng=None,
) -> Tuple[int, List[int]]:
    """Encrypt ``plaintext`` under a fresh nonce and return ``(encrypted_nonce, blocks)``."""

    nonce = sample_nonce(public_key.n, rng=rng)
    encrypted_nonce = encrypt_int(nonce, public_key.e, public_key.n)
    blocks = rsa_cbc_encrypt(plaintext, public_key, nonce)
    logger.debug("Encrypted message into %d block(s)", len(blocks))
    return encrypted_nonce, blocks


def decrypt_message(
    encrypted_nonce: int,
    blocks: Sequence[int],
    private_key: RsaPrivateKey,
) -> bytes:
    """Recover the IV from ``encrypted_nonce`` and chain-decrypt ``blocks``."""

    iv = decrypt_int(encrypted_nonce, private_key.d, private_key.n)
    plaintext = rsa_cbc_decrypt(blocks, private_key, iv)
    logger.debug("Decrypted %d block(s)", len(blocks))
    return plaintext


def first_difference(a: Sequence[Any], b: Sequence[Any]) -> Optional[int]:
    """Index of the first position where ``a`` and ``b`` differ, or ``None``."""

    for index, (x, y) in enumerate(zip(a, b)):
        if x != y:
            return index
    if len(a) != len(b):
        return min(len(a), len(b))
    return None


def _decrypt_chaining_on_plaintext(blocks: Iterable[int], private_key: RsaPrivateKey, iv: int) -> bytes:
    # Deliberately wrong: chains on the decrypted value instead of the ciphertext.
    out = bytearray()
    prev = iv
    for c in blocks:
        x = decrypt_int(c, private_key.d, private_key.n)
        out.append((x ^ (prev % BYTE_MASK)) % BYTE_MASK)
        prev = x
    return bytes(out)


def roundtrip_demo(bits: int = DEFAULT_KEY_BITS, message: bytes = b"Hello World!") -> Dict[str, Any]:
    """Run the full sender/receiver exchange once and report every artefact."""

    public_key, private_key = generate_key_pair(bits)
    nonce = sample_nonce(public_key.n)
    encrypted_nonce = encrypt_int(nonce, public_key.e, public_key.n)
    blocks = rsa_cbc_encrypt(message, public_key, nonce)

    recovered_iv = decrypt_int(encrypted_nonce, private_key.d, private_key.n)
    recovered = rsa_cbc_decrypt(blocks, private_key, recovered_iv)
    return {
        "public_key": public_key,
        "private_key": private_key,
        "nonce": nonce,
        "encrypted_nonce": encrypted_nonce,
        "recovered_iv": recovered_iv,
        "plaintext": message,
        "blocks": blocks,
        "recovered": recovered,
        "ok": recovered == message and recovered_iv == nonce,
    }


def demo_pattern_leakage(bits: int = DEFAULT_KEY_BITS) -> Dict[str, Any]:
    """Compare independent per-byte RSA with the chained mode on repetitive input."""

    public_key, _ = generate_key_pair(bits)
    plaintext = b"A" * 16 + b"B" * 8 + b"A" * 8
    iv = sample_nonce(public_key.n)

    ecb_blocks = rsa_ecb_encrypt(plaintext, public_key)
    cbc_blocks = rsa_cbc_encrypt(plaintext, public_key, iv)
    ecb_low = bytes(c % BYTE_MASK for c in ecb_blocks)
    cbc_low = bytes(c % BYTE_MASK for c in cbc_blocks)

    return {
        "public_key": public_key,
        "plaintext": plaintext,
        "iv": iv,
        "ecb_blocks": ecb_blocks,
        "cbc_blocks": cbc_blocks,
        "total_blocks": len(plaintext),
        "ecb_unique_blocks": len(set(ecb_blocks)),
        "cbc_unique_blocks": len(set(cbc_blocks)),
        "ecb_low_byte_entropy": shannon_entropy(ecb_low),
        "cbc_low_byte_entropy": shannon_entropy(cbc_low),
    }


def demo_iv_sensitivity(bits: int = DEFAULT_KEY_BITS) -> Dict[str, Any]:
    """Show where cipher sequences diverge when the IV or the plaintext changes."""

    public_key, private_key = generate_key_pair(bits)
    p1 = b"transfer amount=100"
    p2 = b"transfer amount=900"
    iv_a = sample_nonce(public_key.n)
    iv_b = sample_nonce(public_key.n)
    # keep the two IVs apart in the low byte so the very first block differs
    while iv_b % BYTE_MASK == iv_a % BYTE_MASK:
        iv_b = sample_nonce(public_key.n)

    same_text_a = rsa_cbc_encrypt(p1, public_key, iv_a)
    same_text_b = rsa_cbc_encrypt(p1, public_key, iv_b)
    c1 = rsa_cbc_encrypt(p1, public_key, iv_a)
    c2 = rsa_cbc_encrypt(p2, public_key, iv_a)
    split = first_difference(p1, p2)

    return {
        "public_key": public_key,
        "iv_a": iv_a,
        "iv_b": iv_b,
        "iv_divergence": first_difference(same_text_a, same_text_b),
        "plaintext_divergence": split,
        "cipher_divergence": first_difference(c1, c2),
        "prefix_shared": c1[:split] == c2[:split],
        "roundtrip_ok": rsa_cbc_decrypt(c2, private_key, iv_a) == p2,
    }


def demo_wrong_chaining(bits: int = DEFAULT_KEY_BITS, message: bytes = b"Hello World!") -> Dict[str, Any]:
    """Decrypt once chaining on ciphertext and once chaining on decrypted values."""

    public_key, private_key = generate_key_pair(bits)
    iv = sample_nonce(public_key.n)
    blocks = rsa_cbc_encrypt(message, public_key, iv)
    correct = rsa_cbc_decrypt(blocks, private_key, iv)
    wrong = _decrypt_chaining_on_plaintext(blocks, private_key, iv)
    return {
        "plaintext": message,
        "correct": correct,
        "wrong": wrong,
        "first_corrupted": first_difference(message, wrong),
    }


if __name__ == "__main__":
    result = roundtrip_demo()
    print(f"Blocks: {len(result['blocks'])}")
    print(f"Recovered: {result['recovered']!r} ok={result['ok']}")
