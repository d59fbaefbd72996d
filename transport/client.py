"""RSA-CBC TCP client.

Connects to the server, receives its public key, then encrypts each line the
user types under a fresh nonce and prints the server's reply.  Entering a
single ``.`` quits.

Usage:
  python -m transport.client [host] [port]
"""

from __future__ import annotations

import argparse
import logging
import socket
from typing import Optional

from chain_modes.rsa_chain import encrypt_message
from chain_modes.wire_format import format_message, parse_public_key
from textbook_rsa.rsa_from_scratch import RsaPublicKey
from transport.framing import read_line, send_line
from transport.server import DEFAULT_PORT

logger = logging.getLogger(__name__)

DEFAULT_HOST = "::1"
QUIT_COMMAND = "."


class RsaCbcClient:
    """Sending peer: one TCP connection, one server public key."""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, *, timeout: Optional[float] = None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.public_key: Optional[RsaPublicKey] = None
        self._sock: Optional[socket.socket] = None
        self._stream = None

    def connect(self) -> RsaPublicKey:
        self._sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        self._stream = self._sock.makefile("rb")
        logger.info("Connected to %s:%d", self.host, self.port)
        line = read_line(self._stream)
        if line is None:
            self.close()
            raise ConnectionError("Server closed the connection before sending its public key")
        try:
            self.public_key = parse_public_key(line)
        except ValueError:
            self.close()
            raise
        logger.info("Received public key: e = %d, n = %d bits", self.public_key.e, self.public_key.n.bit_length())
        return self.public_key

    def send_raw(self, line: str) -> str:
        """Send an already formatted line and return the server's reply."""

        if self._sock is None or self._stream is None:
            raise RuntimeError("Client is not connected")
        send_line(self._sock, line)
        reply = read_line(self._stream)
        if reply is None:
            raise ConnectionError("Server closed the connection")
        return reply

    def send(self, plaintext: bytes | str) -> str:
        """Encrypt ``plaintext`` under a fresh nonce, send it, return the reply."""

        if self.public_key is None:
            raise RuntimeError("Client is not connected")
        if isinstance(plaintext, str):
            plaintext = plaintext.encode("utf-8")
        encrypted_nonce, blocks = encrypt_message(plaintext, self.public_key)
        return self.send_raw(format_message(encrypted_nonce, blocks))

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def __enter__(self) -> "RsaCbcClient":
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="RSA-CBC TCP client")
    ap.add_argument("host", nargs="?", default=DEFAULT_HOST, help=f"Server address (default {DEFAULT_HOST})")
    ap.add_argument("port", nargs="?", type=int, default=DEFAULT_PORT, help=f"Server port (default {DEFAULT_PORT})")
    ap.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging verbosity (DEBUG, INFO, WARNING, ...)",
    )
    return ap.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    print("\n<<<RSA-CBC TCP Client>>>")
    print(f"Connecting to {args.host}:{args.port}")
    client = RsaCbcClient(args.host, args.port)
    try:
        public_key = client.connect()
    except (OSError, ValueError) as exc:
        print(f"Could not connect: {exc}")
        return 1

    print(f"Received public key: e = {public_key.e}, n = {public_key.n}")
    try:
        while True:
            try:
                message = input("Enter message (or '.' to quit): ")
            except EOFError:
                break
            if message == QUIT_COMMAND:
                break
            try:
                reply = client.send(message)
            except OSError as exc:
                print(f"send failed: {exc}")
                break
            print("Message sent.")
            print(f"Server response: {reply}")
    finally:
        print("Shutting down...")
        client.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
