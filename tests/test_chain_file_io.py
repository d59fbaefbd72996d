import json
import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from chain_modes.chain_file_io import (  # noqa: E402
    MissingPrivateKeyError,
    OUTPUT_DIR,
    decrypt_from_file,
    encrypt_to_file,
    run_decrypt_console,
    run_encrypt_console,
)
from chain_modes.wire_format import FormatError  # noqa: E402
from textbook_rsa.rsa_from_scratch import generate_key_pair  # noqa: E402


def test_round_trip_with_stored_private_key(tmp_path):
    out = tmp_path / "bundle.json"
    public_key, private_key = encrypt_to_file(b"Hello World!", out, key_bits=256, store_private=True)
    data = json.loads(out.read_text())
    assert data["alg"] == "RSA-CBC"
    assert data["block_count"] == 12
    assert data["n"] == str(public_key.n)
    assert data["d"] == str(private_key.d)
    assert decrypt_from_file(out) == b"Hello World!"


def test_round_trip_with_supplied_private_key(tmp_path):
    out = tmp_path / "nested" / "bundle.json"
    public_key, private_key = encrypt_to_file(bytes([0, 255, 10, 13]), out, key_bits=256)
    assert "d" not in json.loads(out.read_text())
    with pytest.raises(MissingPrivateKeyError):
        decrypt_from_file(out)
    assert decrypt_from_file(out, private_key=private_key) == bytes([0, 255, 10, 13])
    assert decrypt_from_file(out, private_exponent=private_key.d) == bytes([0, 255, 10, 13])
    with pytest.raises(ValueError, match="either"):
        decrypt_from_file(out, private_key=private_key, private_exponent=private_key.d)


def test_existing_public_key(tmp_path):
    public_key, private_key = generate_key_pair(256)
    out = tmp_path / "bundle.json"
    returned_pub, returned_priv = encrypt_to_file(b"", out, public_key=public_key)
    assert returned_pub == public_key and returned_priv is None
    assert decrypt_from_file(out, private_key=private_key) == b""
    with pytest.raises(ValueError):
        encrypt_to_file(b"x", out, public_key=public_key, store_private=True)


def test_mismatched_modulus(tmp_path):
    out = tmp_path / "bundle.json"
    encrypt_to_file(b"abc", out, key_bits=256)
    _, other = generate_key_pair(256)
    with pytest.raises(ValueError, match="does not match"):
        decrypt_from_file(out, private_key=other)


def test_corrupted_bundles(tmp_path):
    out = tmp_path / "bundle.json"
    encrypt_to_file(b"abc", out, key_bits=256, store_private=True)
    data = json.loads(out.read_text())

    bad = dict(data, block_count=7)
    out.write_text(json.dumps(bad))
    with pytest.raises(FormatError):
        decrypt_from_file(out)

    bad = dict(data, message=data["message"].replace("|", ""))
    out.write_text(json.dumps(bad))
    with pytest.raises(FormatError):
        decrypt_from_file(out)

    bad = dict(data, alg="RSA")
    out.write_text(json.dumps(bad))
    with pytest.raises(FormatError):
        decrypt_from_file(out)

    bad = {k: v for k, v in data.items() if k != "message"}
    out.write_text(json.dumps(bad))
    with pytest.raises(FormatError, match="message"):
        decrypt_from_file(out)

    out.write_text("{not json")
    with pytest.raises(FormatError):
        decrypt_from_file(out)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        decrypt_from_file(tmp_path / "nope.json")


def _answers(monkeypatch, *replies):
    feed = iter(replies)
    monkeypatch.setattr("builtins.input", lambda prompt="": next(feed))


def test_console_encrypt_then_decrypt_with_typed_exponent(tmp_path, monkeypatch, capsys):
    # message, bits (first answer rejected as odd), keep d?, label
    _answers(monkeypatch, "Hello World!", "129", "128", "n", "demo run/1")
    bundle = run_encrypt_console(tmp_path)
    assert bundle is not None and bundle.parent == tmp_path
    assert bundle.name.startswith("demo_run_1_") and bundle.suffix == ".json"

    out = capsys.readouterr().out
    assert "Cipher blocks: 12 (one per plaintext byte)" in out
    e_n = next(line for line in out.splitlines() if line.startswith("Public key (e|n): "))
    assert e_n.split(": ", 1)[1].startswith("65537|")
    d_line = next(line for line in out.splitlines() if line.startswith("Private exponent d: "))
    d_text = d_line.split(": ", 1)[1]
    assert "d" not in json.loads(bundle.read_text())

    _answers(monkeypatch, "1", d_text)
    assert run_decrypt_console(tmp_path) == b"Hello World!"
    assert "Plaintext: Hello World!" in capsys.readouterr().out


def test_console_stored_exponent_and_path_selection(tmp_path, monkeypatch, capsys):
    _answers(monkeypatch, "stored", "", "y", "")
    monkeypatch.setattr("chain_modes.chain_file_io.DEFAULT_KEY_BITS", 128)
    bundle = run_encrypt_console(tmp_path / "bundles")
    assert bundle.name.startswith("message_")
    assert "d" in json.loads(bundle.read_text())
    assert "d is stored in the bundle" in capsys.readouterr().out

    # typed path instead of a list index; no exponent prompt needed
    _answers(monkeypatch, str(bundle))
    assert run_decrypt_console(tmp_path / "elsewhere") == b"stored"


def test_console_decrypt_failures(tmp_path, monkeypatch, capsys):
    _answers(monkeypatch, "")
    assert run_decrypt_console(tmp_path) is None

    _answers(monkeypatch, str(tmp_path / "missing.json"))
    assert run_decrypt_console(tmp_path) is None
    assert "Decryption failed" in capsys.readouterr().out

    encrypt_to_file(b"abc", tmp_path / "a.json", key_bits=128)
    _answers(monkeypatch, "1", "0x1f")
    assert run_decrypt_console(tmp_path) is None
    assert "Decryption failed" in capsys.readouterr().out


def test_default_bundle_directory():
    assert OUTPUT_DIR.parts[-2:] == ("EncryptedFiles", "RSA-CBC")
