"""Decimal text encoding for RSA-CBC public keys and messages.

Public key:  ``"<e>|<n>"``
Message:     ``"<encrypted nonce>|<c1>,<c2>,...,<ck>"``

An empty ciphertext field encodes the empty message.  Everything else that
is not a run of ASCII digits in the expected place is a :class:`FormatError`.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Tuple

from textbook_rsa.rsa_from_scratch import RsaPublicKey

FIELD_DELIMITER = "|"
BLOCK_DELIMITER = ","

# 4300 digits is a ~14000-bit value, the default CPython int/str limit
MAX_DECIMAL_DIGITS = 4300

_DECIMAL = re.compile(r"[0-9]+")

__all__ = [
    "FormatError",
    "parse_decimal",
    "format_public_key",
    "parse_public_key",
    "format_message",
    "parse_message",
]


class FormatError(ValueError):
    """Raised when wire or numeric input is malformed."""


def parse_decimal(text: str, *, field: str = "value") -> int:
    if not text:
        raise FormatError(f"Empty {field}")
    if len(text) > MAX_DECIMAL_DIGITS:
        raise FormatError(f"Decimal {field} too long ({len(text)} digits)")
    if not _DECIMAL.fullmatch(text):
        raise FormatError(f"Invalid decimal integer for {field}: {text[:32]!r}")
    try:
        return int(text)
    except ValueError as exc:
        # interpreter's int/str digit limit set below MAX_DECIMAL_DIGITS
        raise FormatError(f"Decimal {field} too long ({len(text)} digits)") from exc


def _split_fields(text: str, what: str) -> Tuple[str, str]:
    if not isinstance(text, str):
        raise FormatError(f"{what} must be text")
    text = text.strip()
    count = text.count(FIELD_DELIMITER)
    if count == 0:
        raise FormatError(f"Missing '{FIELD_DELIMITER}' delimiter in {what}")
    if count > 1:
        raise FormatError(f"Expected exactly one '{FIELD_DELIMITER}' delimiter in {what}")
    head, tail = text.split(FIELD_DELIMITER)
    return head, tail


def format_public_key(key: RsaPublicKey) -> str:
    return f"{key.e}{FIELD_DELIMITER}{key.n}"


def parse_public_key(text: str) -> RsaPublicKey:
    e_text, n_text = _split_fields(text, "public key")
    e = parse_decimal(e_text, field="public exponent")
    n = parse_decimal(n_text, field="modulus")
    if e < 3 or e % 2 == 0:
        raise FormatError(f"Public exponent must be odd and >= 3, got {e}")
    if n <= 255:
        raise FormatError("Modulus too small to carry byte-sized blocks")
    return RsaPublicKey(n=n, e=e)


def format_message(encrypted_nonce: int, blocks: Iterable[int]) -> str:
    body = BLOCK_DELIMITER.join(str(c) for c in blocks)
    return f"{encrypted_nonce}{FIELD_DELIMITER}{body}"


def parse_message(text: str) -> Tuple[int, List[int]]:
    """Split a wire message into the encrypted nonce and its cipher blocks."""

    nonce_text, body = _split_fields(text, "message")
    encrypted_nonce = parse_decimal(nonce_text, field="encrypted nonce")
    if not body:
        return encrypted_nonce, []
    blocks = [
        parse_decimal(item, field=f"cipher block {index}")
        for index, item in enumerate(body.split(BLOCK_DELIMITER))
    ]
    return encrypted_nonce, blocks
