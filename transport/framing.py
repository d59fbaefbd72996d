"""Line framing shared by the RSA-CBC server and client.

Every frame is one UTF-8 line ending in ``\\n``; a trailing ``\\r`` is
tolerated on receipt.  Frames only ever carry decimal digits, delimiters and
the server's short replies, so a newline can never appear inside one.
"""

from __future__ import annotations

import socket
from typing import BinaryIO, Optional

MAX_LINE = 1 << 20
ENCODING = "utf-8"


class FrameTooLong(ConnectionError):
    """Raised when a peer sends a line longer than ``MAX_LINE`` bytes."""


def send_line(sock: socket.socket, text: str, *, terminator: str = "\n") -> None:
    sock.sendall((text + terminator).encode(ENCODING))


def read_line(stream: BinaryIO) -> Optional[str]:
    """Return the next line without its terminator, or ``None`` on EOF."""

    raw = stream.readline(MAX_LINE + 1)
    if not raw:
        return None
    if len(raw) > MAX_LINE and not raw.endswith(b"\n"):
        raise FrameTooLong(f"Line exceeds {MAX_LINE} bytes")
    return raw.decode(ENCODING, errors="replace").rstrip("\r\n")


def escape_controls(text: str) -> str:
    """Keep a reply on one line by escaping CR/LF from decrypted text."""

    return text.replace("\r", "\\r").replace("\n", "\\n")
