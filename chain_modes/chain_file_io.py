"""Helper utilities for persisting RSA-CBC messages as JSON bundles."""
from __future__ import annotations

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Tuple

from chain_modes.rsa_chain import decrypt_message, encrypt_message
from chain_modes.wire_format import (
    FormatError,
    format_message,
    format_public_key,
    parse_decimal,
    parse_message,
)
from textbook_rsa.rsa_from_scratch import (
    DEFAULT_KEY_BITS,
    MIN_KEY_BITS,
    RsaPrivateKey,
    RsaPublicKey,
    generate_key_pair,
)
from utils import console_ui

BUNDLE_ALG = "RSA-CBC"
BUNDLE_VERSION = 1
OUTPUT_DIR = Path("EncryptedFiles") / "RSA-CBC"


class MissingPrivateKeyError(ValueError):
    """Raised when the RSA private exponent is required but unavailable."""


def _ensure_bytes(data: bytes | bytearray | memoryview) -> bytes:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError("plaintext must be bytes-like")
    return bytes(data)


def encrypt_to_file(
    plaintext: bytes | bytearray | memoryview,
    out_path: str | Path,
    *,
    public_key: RsaPublicKey | None = None,
    key_bits: int = DEFAULT_KEY_BITS,
    store_private: bool = False,
) -> Tuple[RsaPublicKey, RsaPrivateKey | None]:
    """Chain-encrypt *plaintext* and persist the wire message as JSON."""

    message = _ensure_bytes(plaintext)

    if public_key is None:
        public_key, private_key = generate_key_pair(key_bits)
    else:
        private_key = None
        if store_private:
            raise ValueError("store_private=True requires a generated key pair")

    encrypted_nonce, blocks = encrypt_message(message, public_key)

    bundle: dict[str, Any] = {
        "alg": BUNDLE_ALG,
        "v": BUNDLE_VERSION,
        "n": str(public_key.n),
        "e": public_key.e,
        "block_count": len(blocks),
        "message": format_message(encrypted_nonce, blocks),
    }

    if store_private and private_key is not None:
        bundle["d"] = str(private_key.d)

    output_path = Path(out_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(bundle, indent=2) + "\n")

    return public_key, private_key


def decrypt_from_file(
    in_path: str | Path,
    *,
    private_key: RsaPrivateKey | None = None,
    private_exponent: int | None = None,
) -> bytes:
    """Decrypt a JSON RSA-CBC bundle and return the plaintext.

    The secret exponent comes from ``private_key`` (whose modulus must match
    the bundle), else from ``private_exponent`` paired with the bundle's own
    modulus, else from a ``d`` field stored in the bundle.
    """

    if private_key is not None and private_exponent is not None:
        raise ValueError("Pass either private_key or private_exponent, not both")

    path = Path(in_path)
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError as exc:
        raise FileNotFoundError(f"File not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise FormatError("Input file is not valid JSON") from exc

    if data.get("alg") != BUNDLE_ALG:
        raise FormatError("Input file does not contain RSA-CBC data")

    try:
        n = parse_decimal(str(data["n"]), field="modulus")
        block_count = int(data["block_count"])
        wire = data["message"]
    except KeyError as exc:
        raise FormatError(f"Missing required RSA-CBC field: {exc.args[0]}") from exc
    except (TypeError, ValueError) as exc:
        raise FormatError("RSA-CBC metadata contains invalid integers") from exc

    if private_key is not None:
        if private_key.n != n:
            raise ValueError("Provided private key does not match modulus in file")
    else:
        if private_exponent is None:
            stored = data.get("d")
            if stored is None:
                raise MissingPrivateKeyError(
                    "RSA private exponent required but not provided and not stored in file."
                )
            private_exponent = parse_decimal(str(stored), field="private exponent")
        private_key = RsaPrivateKey(n=n, d=private_exponent)

    encrypted_nonce, blocks = parse_message(wire)
    if len(blocks) != block_count:
        raise FormatError("Cipher block count does not match recorded block_count")

    return decrypt_message(encrypted_nonce, blocks, private_key)


def _bundle_name(label: str) -> str:
    stem = re.sub(r"[^A-Za-z0-9_-]+", "_", label).strip("_") or "message"
    return f"{stem}_{datetime.now():%Y%m%d_%H%M%S}.json"


def _ask_key_bits() -> int:
    while True:
        answer = input(f"Modulus size in bits [{DEFAULT_KEY_BITS}]: ").strip()
        if not answer:
            return DEFAULT_KEY_BITS
        if answer.isdigit() and int(answer) >= MIN_KEY_BITS and int(answer) % 2 == 0:
            return int(answer)
        console_ui.warning(f"Enter an even number of bits >= {MIN_KEY_BITS}.")


def run_encrypt_console(out_dir: str | Path = OUTPUT_DIR) -> Path | None:
    """Prompt for a message, chain-encrypt it under a new key and save the bundle.

    Returns the bundle path, or ``None`` when encryption failed.
    """

    console_ui.section("RSA-CBC: encrypt message to bundle")
    message = input("Message: ").encode("utf-8")
    bits = _ask_key_bits()
    keep_d = input("Keep the private exponent d inside the bundle? [y/N]: ").strip().lower() == "y"
    target = Path(out_dir) / _bundle_name(input("Label for the bundle (optional): ").strip())

    try:
        public_key, private_key = encrypt_to_file(message, target, key_bits=bits, store_private=keep_d)
    except (OSError, ValueError) as exc:
        console_ui.error(f"Encryption failed: {exc}")
        return None

    bundle = json.loads(target.read_text())
    console_ui.success(f"Bundle written to {target.resolve()}")
    console_ui.kv("Public key (e|n)", format_public_key(public_key))
    console_ui.kv("Cipher blocks", f"{bundle['block_count']} (one per plaintext byte)")
    if keep_d:
        console_ui.warning("d is stored in the bundle; anyone holding the file can decrypt it.")
    elif private_key is not None:
        console_ui.kv("Private exponent d", str(private_key.d))
        console_ui.info("Keep d: it is required to decrypt this bundle.")
    return target


def run_decrypt_console(out_dir: str | Path = OUTPUT_DIR) -> bytes | None:
    """Pick a bundle from ``out_dir`` (or type a path), decrypt it and print the text.

    Returns the recovered plaintext, or ``None`` when nothing was decrypted.
    """

    console_ui.section("RSA-CBC: decrypt bundle")
    folder = Path(out_dir)
    bundles = sorted(folder.glob("*.json")) if folder.is_dir() else []
    for index, path in enumerate(bundles, start=1):
        console_ui.bullet(f"{index}) {path.name}")

    answer = input("Bundle number or path (empty cancels): ").strip()
    if not answer:
        console_ui.info("Cancelled.")
        return None
    if answer.isdigit() and 1 <= int(answer) <= len(bundles):
        path = bundles[int(answer) - 1]
    else:
        path = Path(answer)

    try:
        try:
            plaintext = decrypt_from_file(path)
        except MissingPrivateKeyError:
            d_text = input("Bundle has no d; enter the private exponent (decimal): ").strip()
            plaintext = decrypt_from_file(path, private_exponent=parse_decimal(d_text, field="private exponent"))
    except (OSError, ValueError) as exc:
        console_ui.error(f"Decryption failed: {exc}")
        return None

    console_ui.kv("Recovered bytes", str(len(plaintext)))
    console_ui.kv("Plaintext", plaintext.decode("utf-8", errors="replace"))
    return plaintext
