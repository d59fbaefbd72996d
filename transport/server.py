"""RSA-CBC TCP server.

Generates a key pair at startup, sends ``e|n`` to every client that connects
and then answers each encrypted line with the decrypted text.  A client that
disconnects or misbehaves only ends its own connection.

Usage:
  python -m transport.server [--port 1234] [--bits 512] [--ipv4]
"""

from __future__ import annotations

import argparse
import logging
import socket
import threading
from typing import Optional, Tuple

from chain_modes.rsa_chain import decrypt_message
from chain_modes.wire_format import format_public_key, parse_message
from textbook_rsa.rsa_from_scratch import (
    DEFAULT_KEY_BITS,
    RsaPrivateKey,
    RsaPublicKey,
    generate_key_pair,
)
from transport.framing import escape_controls, read_line, send_line

logger = logging.getLogger(__name__)

DEFAULT_PORT = 1234
REPLY_TERMINATOR = "\r\n"
ACCEPT_POLL_S = 0.5


class ClientConnection(threading.Thread):
    """Serves one accepted socket until the peer goes away."""

    def __init__(self, sock: socket.socket, addr, server: "RsaCbcServer"):
        super().__init__(daemon=True)
        self.sock, self.addr, self.server = sock, addr, server

    def run(self):
        peer = f"{self.addr[0]}:{self.addr[1]}"
        logger.info("Client connected: %s", peer)
        try:
            send_line(self.sock, format_public_key(self.server.public_key))
            with self.sock.makefile("rb") as stream:
                while True:
                    line = read_line(stream)
                    if line is None:
                        break
                    reply = self.server.handle_line(line)
                    send_line(self.sock, reply, terminator=REPLY_TERMINATOR)
        except OSError as exc:
            logger.warning("Connection with %s failed: %s", peer, exc)
        finally:
            logger.info("Client disconnected: %s", peer)
            try:
                self.sock.close()
            except OSError:
                pass


class RsaCbcServer:
    """Listening peer for the RSA-CBC exchange."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: int = DEFAULT_PORT,
        *,
        bits: int = DEFAULT_KEY_BITS,
        ipv6: bool = True,
        key_pair: Optional[Tuple[RsaPublicKey, RsaPrivateKey]] = None,
    ):
        self.host = host if host is not None else ("::" if ipv6 else "0.0.0.0")
        self.port = port
        self.ipv6 = ipv6
        if key_pair is None:
            key_pair = generate_key_pair(bits)
        self.public_key, self.private_key = key_pair
        self._listener: Optional[socket.socket] = None
        self._running = threading.Event()

    @property
    def address(self) -> Tuple[str, int]:
        if self._listener is None:
            raise RuntimeError("Server is not bound")
        sockname = self._listener.getsockname()
        return sockname[0], sockname[1]

    def handle_line(self, line: str) -> str:
        """Decrypt one wire message and build the reply line for it."""

        logger.debug("Received data: %s", line)
        try:
            encrypted_nonce, blocks = parse_message(line)
            logger.debug("Parsed %d ciphertext blocks", len(blocks))
            plaintext = decrypt_message(encrypted_nonce, blocks, self.private_key)
        except ValueError as exc:
            logger.info("Rejected message: %s", exc)
            return f"Invalid data format: {exc}"
        text = plaintext.decode("utf-8", errors="replace")
        logger.info("Decrypted message: %s", text)
        return f"Message received: {escape_controls(text)}"

    def bind(self) -> Tuple[str, int]:
        family = socket.AF_INET6 if self.ipv6 else socket.AF_INET
        self._listener = socket.create_server((self.host, self.port), family=family)
        logger.info("Server is listening on %s:%d", *self.address)
        self._running.set()
        return self.address

    def serve_forever(self) -> None:
        if self._listener is None:
            self.bind()
        # accept() wakes up periodically so shutdown() from another thread is noticed
        self._listener.settimeout(ACCEPT_POLL_S)
        while self._running.is_set():
            try:
                sock, addr = self._listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._running.is_set():
                    logger.error("accept failed: %s", exc)
                    continue
                break
            sock.settimeout(None)
            ClientConnection(sock, addr, self).start()

    def shutdown(self) -> None:
        self._running.clear()
        if self._listener is not None:
            try:
                self._listener.close()
            except OSError:
                pass


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="RSA-CBC TCP server")
    ap.add_argument("--host", default=None, help="Address to bind (default: all interfaces)")
    ap.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"TCP port (default {DEFAULT_PORT})")
    ap.add_argument("--bits", type=int, default=DEFAULT_KEY_BITS, help="RSA modulus size in bits")
    ap.add_argument("--ipv4", action="store_true", help="Listen on IPv4 instead of IPv6")
    ap.add_argument(
        "--log-level",
        default="INFO",
        help="Logging verbosity (DEBUG, INFO, WARNING, ...)",
    )
    return ap.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    print("\n<<<RSA-CBC TCP Server>>>")
    print(f"IPv6 mode: {'disabled' if args.ipv4 else 'enabled'}")
    server = RsaCbcServer(args.host, args.port, bits=args.bits, ipv6=not args.ipv4)
    print("Generated RSA keys:")
    print(f"n: {server.public_key.n}")
    print(f"e: {server.public_key.e}")
    print(f"d: {server.private_key.d}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down...")
    finally:
        server.shutdown()


if __name__ == "__main__":
    main()
