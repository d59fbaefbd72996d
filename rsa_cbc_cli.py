#!/usr/bin/env python3
"""
RSA-CBC Lab CLI – one entry point to run all demos.

Usage:
  Interactive menu:
    python rsa_cbc_cli.py

  Non-interactive:
    python rsa_cbc_cli.py --run keygen
    python rsa_cbc_cli.py --run chain --message "Hello World!"
    python rsa_cbc_cli.py --run pattern
    python rsa_cbc_cli.py --run iv
    python rsa_cbc_cli.py --run regression
    python rsa_cbc_cli.py --run network
    python rsa_cbc_cli.py --run all --bits 256
"""

from __future__ import annotations

import argparse
import logging
import os
import pathlib
import sys
import textwrap
import threading
import time

# Ensure relative repo imports work even if executed from another directory.
sys.path.insert(0, str(pathlib.Path(__file__).parent.resolve()))

from textbook_rsa.rsa_from_scratch import (
    DEFAULT_KEY_BITS,
    MIN_KEY_BITS,
    decrypt_int,
    encrypt_int,
    generate_key,
    generate_key_pair,
)
from textbook_rsa.primes import DEFAULT_ROUNDS, fresh_rng, is_probably_prime
from chain_modes.rsa_chain import (
    demo_iv_sensitivity,
    demo_pattern_leakage,
    demo_wrong_chaining,
    roundtrip_demo,
)
from chain_modes.chain_file_io import run_decrypt_console, run_encrypt_console
from chain_modes.wire_format import format_message, format_public_key
from transport.client import RsaCbcClient
from transport.server import RsaCbcServer

from utils import console_ui
from utils.plotting import HAS_MPL as _HAS_MPL

from reports import make_all_dashboards as _dashboard_module

_IN_RUN_ALL = False
_KEY_BITS = DEFAULT_KEY_BITS
_MESSAGE = "Hello World!"
_HINT = "Hint: run `pip install -e .`"


def _print_summary(threat: str, misuse: str, evidence: str, remedy: str) -> None:
    console_ui.kv("Threat model", threat)
    console_ui.kv("Misuse shown", misuse)
    console_ui.kv("Evidence", evidence)
    console_ui.kv("Remedy", remedy)


def _head(value: int, digits: int = 48) -> str:
    text = str(value)
    return text[:digits] + ("…" if len(text) > digits else "")


def clear_screen() -> None:
    """Clear the terminal screen in a cross-platform way."""
    command = "cls" if os.name == "nt" else "clear"
    os.system(command)


def line():
    console_ui.line()


def menu():
    clear_screen()
    console_ui.banner("RSA-CBC Lab")
    console_ui.bullet(f"Choose a demo/task to run (modulus size: {_KEY_BITS} bits):")
    print("  1) RSA key generation + integer round-trip")
    print("  2) RSA-CBC message demo (+ encrypt/decrypt files)")
    print("  3) Pattern leakage: unchained vs chained bytes")
    print("  4) IV and plaintext sensitivity")
    print("  5) Chaining regression (decrypt must chain on ciphertext)")
    print("  6) Loopback server/client exchange")
    print("  7) Run ALL (in order)")
    print("  8) Export dashboards (PNG)")
    print("  0) Exit")
    return input("\nEnter choice: ").strip()


def _invoke(title: str, script: str, body) -> int:
    """Run one demo body inside the standard panel/success/error framing; 1 on failure."""
    if not _IN_RUN_ALL:
        console_ui.running_panel(title, script)
    try:
        body()
    except Exception as exc:  # pragma: no cover - runtime safeguard
        if _IN_RUN_ALL:
            raise
        console_ui.error(f"Demo failed: {exc}")
        console_ui.warning(_HINT)
        return 1
    console_ui.success("Demo completed successfully.")
    return 0


def _run_keygen_demo():
    console_ui.section("RSA Key Generation")
    start = time.perf_counter()
    n, e, d = generate_key(_KEY_BITS)
    took = time.perf_counter() - start
    console_ui.kv("Modulus n size", f"{n.bit_length()} bits")
    console_ui.kv("Modulus n (head)", _head(n))
    console_ui.kv("Public exponent e", str(e))
    console_ui.kv("Private exponent d (head)", _head(d))
    console_ui.elapsed("Key generation took", took)

    rng = fresh_rng()
    samples = [rng.randint(0, n - 1) for _ in range(100)]
    ok = all(decrypt_int(encrypt_int(m, e, n), d, n) == m for m in samples)
    repeat = encrypt_int(samples[0], e, n) == encrypt_int(samples[0], e, n)
    console_ui.kv("(m^e)^d mod n == m for 100 samples", str(ok))
    console_ui.kv("Composites 4, 9, 15, 221 rejected", str(not any(is_probably_prime(c, DEFAULT_ROUNDS) for c in (4, 9, 15, 221))))
    if not ok:
        console_ui.error("RSA round-trip failed.")
    console_ui.section("Summary")
    _print_summary(
        "attacker sees raw RSA ciphertexts",
        "Textbook RSA is deterministic",
        f"encrypt(m) repeated -> same ciphertext: {repeat}",
        "Randomise every message (nonce/IV chaining here, OAEP in practice)",
    )


def _run_chain_demo():
    console_ui.section("RSA-CBC Message Round-trip")
    result = roundtrip_demo(_KEY_BITS, _MESSAGE.encode("utf-8"))
    public_key = result["public_key"]
    console_ui.kv("Public key on the wire (e|n)", _head(format_public_key(public_key), 64))
    console_ui.kv("Nonce / IV (head)", _head(result["nonce"]))
    console_ui.kv("Encrypted nonce (head)", _head(result["encrypted_nonce"]))
    console_ui.kv("Plaintext", repr(result["plaintext"]))
    console_ui.blocks("Cipher blocks", result["blocks"])
    wire = format_message(result["encrypted_nonce"], result["blocks"])
    console_ui.kv("Wire message length", f"{len(wire)} characters")
    console_ui.kv("Recovered IV matches", str(result["recovered_iv"] == result["nonce"]))
    console_ui.kv("Recovered plaintext", repr(result["recovered"]))
    console_ui.kv("Round-trip OK", str(result["ok"]))
    console_ui.section("Summary")
    _print_summary(
        "passive eavesdropper on the channel",
        "One big-integer block per plaintext byte",
        f"{len(result['plaintext'])} bytes -> {len(result['blocks'])} blocks",
        "Use hybrid encryption (RSA-wrapped symmetric key + AEAD)",
    )


def _run_pattern_demo():
    console_ui.section("Unchained vs Chained Per-byte RSA")
    data = demo_pattern_leakage(_KEY_BITS)
    console_ui.kv("Plaintext", repr(data["plaintext"]))
    console_ui.kv(
        "Unchained unique blocks",
        f"{data['ecb_unique_blocks']}/{data['total_blocks']} (lower is worse)",
    )
    console_ui.kv("Chained unique blocks", f"{data['cbc_unique_blocks']}/{data['total_blocks']}")
    console_ui.kv("Low-byte entropy unchained", f"{data['ecb_low_byte_entropy']:.2f} bits/byte")
    console_ui.kv("Low-byte entropy chained", f"{data['cbc_low_byte_entropy']:.2f} bits/byte")
    console_ui.section("Summary")
    _print_summary(
        "attacker observes ciphertext layout",
        "Per-byte RSA without chaining repeats blocks for repeated bytes",
        f"Unique blocks: {data['ecb_unique_blocks']} unchained vs {data['cbc_unique_blocks']} chained",
        "Chain on the previous ciphertext starting from a fresh random IV",
    )


def _run_iv_demo():
    console_ui.section("IV and Plaintext Sensitivity")
    data = demo_iv_sensitivity(_KEY_BITS)
    console_ui.kv("Same plaintext, different IVs: first differing block", str(data["iv_divergence"]))
    console_ui.kv("Plaintexts first differ at byte", str(data["plaintext_divergence"]))
    console_ui.kv("Cipher sequences first differ at block", str(data["cipher_divergence"]))
    console_ui.kv("Shared prefix identical under same IV", str(data["prefix_shared"]))
    console_ui.section("Summary")
    _print_summary(
        "attacker compares two messages under the same IV",
        "IV reuse reveals the length of the common plaintext prefix",
        f"Plaintext split at {data['plaintext_divergence']} -> cipher split at {data['cipher_divergence']}",
        "Sample a fresh nonce for every message",
    )


def _run_regression_demo():
    console_ui.section("Chaining Regression")
    data = demo_wrong_chaining(_KEY_BITS, _MESSAGE.encode("utf-8"))
    console_ui.kv("Plaintext", repr(data["plaintext"]))
    console_ui.kv("Chain on ciphertext", repr(data["correct"]))
    console_ui.kv("Chain on decrypted value", repr(data["wrong"]))
    console_ui.kv("First corrupted byte", str(data["first_corrupted"]))
    console_ui.section("Summary")
    _print_summary(
        "implementer mirrors the wrong value",
        "Decryption chained on x instead of the received block",
        f"Output corrupt from byte {data['first_corrupted']} onward",
        "Set prev = c (received block) after every decryption step",
    )


def _run_network_demo():
    console_ui.section("Loopback Server/Client")
    server = RsaCbcServer("127.0.0.1", 0, bits=_KEY_BITS, ipv6=False)
    host, port = server.bind()
    worker = threading.Thread(target=server.serve_forever, daemon=True)
    worker.start()
    try:
        with RsaCbcClient(host, port, timeout=30) as client:
            console_ui.kv("Server listening on", f"{host}:{port}")
            console_ui.kv("Client received e", str(client.public_key.e))
            console_ui.kv("Client received n (head)", _head(client.public_key.n))
            reply = client.send(_MESSAGE)
            console_ui.kv("Server response", reply)
            bad = client.send_raw("not-a-number|1,2")
            console_ui.kv("Malformed line response", bad)
            again = client.send(_MESSAGE)
            console_ui.kv("Connection still usable", str(again == reply))
    finally:
        server.shutdown()
        worker.join(timeout=5)
    console_ui.section("Summary")
    _print_summary(
        "network peer sends malformed input",
        "Format errors answered per message, connection kept",
        f"Reply: {reply}",
        "Authenticate messages before acting on them",
    )


def run_keygen(run_default: bool = False):
    return _invoke("RSA Key Generation", "textbook_rsa/rsa_from_scratch.py", _run_keygen_demo)


def run_chain(run_default: bool = False):
    def _invoke_demo() -> int:
        return _invoke("RSA-CBC Message Round-trip", "chain_modes/rsa_chain.py", _run_chain_demo)

    if run_default:
        return _invoke_demo()

    while True:
        line()
        console_ui.section("RSA-CBC Menu")
        print("  1) Run RSA-CBC round-trip demo")
        print("  2) Encrypt to file")
        print("  3) Decrypt from file")
        print("  0) Back")
        choice = input("Select an option: ").strip().lower()
        if choice == "1":
            _invoke_demo()
        elif choice == "2":
            run_encrypt_console()
        elif choice == "3":
            run_decrypt_console()
        elif choice == "0" or choice in {"q", "quit", "exit"}:
            line()
            break
        else:
            console_ui.warning("Invalid option. Choose 0-3.")
    return 0


def run_pattern(run_default: bool = False):
    return _invoke("Pattern Leakage", "chain_modes/rsa_chain.py", _run_pattern_demo)


def run_iv(run_default: bool = False):
    return _invoke("IV Sensitivity", "chain_modes/rsa_chain.py", _run_iv_demo)


def run_regression(run_default: bool = False):
    return _invoke("Chaining Regression", "chain_modes/rsa_chain.py", _run_regression_demo)


def run_network(run_default: bool = False):
    return _invoke("Loopback Server/Client", "transport/server.py", _run_network_demo)


def export_dashboards(*, wait_for_key: bool = True):
    console_ui.section("Export Dashboards (PNG)")

    if not _HAS_MPL:
        console_ui.warning("matplotlib is not installed; skipping dashboard export.")
        if wait_for_key:
            input("\nPress Enter to return to the main menu...")
        return []

    try:
        results = _dashboard_module.make_all_dashboards()
    except Exception as exc:  # pragma: no cover - runtime safeguard
        console_ui.error(f"Dashboard export failed: {exc}")
        if wait_for_key:
            input("\nPress Enter to return to the main menu...")
        return []

    saved = [result for result in results if result.status == "saved"]
    if saved:
        console_ui.success("Saved dashboards:")
        for result in saved:
            print(f"  {result.output.resolve()}")
    else:
        console_ui.info("No dashboards were generated.")
    for result in results:
        if result.status != "saved":
            print(f"  {result.target.resolve()} (skipped: {result.reason})")

    if wait_for_key:
        input("\nPress Enter to return to the main menu...")
    return [result.output for result in saved]


def run_all(wait_for_key: bool = False):
    steps = [
        ("RSA Key Generation", "textbook_rsa/rsa_from_scratch.py", lambda: run_keygen(run_default=True)),
        ("RSA-CBC Message Round-trip", "chain_modes/rsa_chain.py", lambda: run_chain(run_default=True)),
        ("Pattern Leakage", "chain_modes/rsa_chain.py", lambda: run_pattern(run_default=True)),
        ("IV Sensitivity", "chain_modes/rsa_chain.py", lambda: run_iv(run_default=True)),
        ("Chaining Regression", "chain_modes/rsa_chain.py", lambda: run_regression(run_default=True)),
        ("Loopback Server/Client", "transport/server.py", lambda: run_network(run_default=True)),
    ]

    total = len(steps)
    global _IN_RUN_ALL
    previous_state = _IN_RUN_ALL
    _IN_RUN_ALL = True
    failures = 0
    try:
        for index, (title, script, func) in enumerate(steps, start=1):
            console_ui.step_header(index, total, title)
            console_ui.running_panel(title, script)
            start = time.perf_counter()
            try:
                func()
            except Exception as exc:  # pragma: no cover - runtime safeguard
                failures += 1
                console_ui.error(f"Demo failed: {exc}")
                console_ui.warning(_HINT)
            finally:
                console_ui.elapsed("DONE in", time.perf_counter() - start)
                console_ui.line()
    finally:
        _IN_RUN_ALL = previous_state

    if failures:
        console_ui.warning(f"{failures} demo(s) failed.")
    else:
        console_ui.success("All demos completed.")
    if wait_for_key:
        input("\nPress Enter to return to the main menu...")
    return failures


def parse_args(argv=None):
    ap = argparse.ArgumentParser(
        description="RSA-CBC Lab CLI — run the textbook RSA chaining demos from a single entry point.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""
        Examples:
          python rsa_cbc_cli.py
          python rsa_cbc_cli.py --run chain
          python rsa_cbc_cli.py --run all --bits 256
        """),
    )
    ap.add_argument(
        "--run",
        choices=["keygen", "chain", "pattern", "iv", "regression", "network", "all"],
        help="Run a specific demo non-interactively.",
    )
    ap.add_argument(
        "--bits",
        type=int,
        default=DEFAULT_KEY_BITS,
        help=f"RSA modulus size in bits (even, >= {MIN_KEY_BITS}; default {DEFAULT_KEY_BITS}).",
    )
    ap.add_argument("--message", default=_MESSAGE, help="Plaintext used by the message demos.")
    ap.add_argument(
        "--plain",
        action="store_true",
        help="Disable colors/banners; print plain ASCII.",
    )
    ap.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging verbosity (DEBUG, INFO, WARNING, ...)",
    )
    args = ap.parse_args(argv)
    if args.bits < MIN_KEY_BITS or args.bits % 2:
        ap.error(f"--bits must be an even number >= {MIN_KEY_BITS}")
    return args


def main(argv=None) -> int:
    """Run the CLI; with --run, return the number of failed demos."""
    global _KEY_BITS, _MESSAGE
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    console_ui.init(plain=args.plain)
    _KEY_BITS = args.bits
    _MESSAGE = args.message

    if args.run:
        mapping = {
            "keygen": lambda: run_keygen(run_default=True),
            "chain": lambda: run_chain(run_default=True),
            "pattern": lambda: run_pattern(run_default=True),
            "iv": lambda: run_iv(run_default=True),
            "regression": lambda: run_regression(run_default=True),
            "network": lambda: run_network(run_default=True),
            "all": lambda: run_all(wait_for_key=False),
        }
        return mapping[args.run]()

    # interactive loop
    while True:
        choice = menu()
        if choice == "1":
            run_keygen()
        elif choice == "2":
            run_chain()
        elif choice == "3":
            run_pattern()
        elif choice == "4":
            run_iv()
        elif choice == "5":
            run_regression()
        elif choice == "6":
            run_network()
        elif choice == "7":
            run_all(wait_for_key=True)
        elif choice == "8":
            export_dashboards()
        elif choice == "0" or choice.lower() in {"q", "quit", "exit"}:
            print("Goodbye!")
            return 0
        else:
            print("Invalid choice. Please select 0–8.")


if __name__ == "__main__":
    raise SystemExit(main())
