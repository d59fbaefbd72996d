import io
import pathlib
import socket
import sys
import threading

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from chain_modes.rsa_chain import encrypt_message  # noqa: E402
from chain_modes.wire_format import format_message, parse_public_key  # noqa: E402
from textbook_rsa.rsa_from_scratch import generate_key_pair  # noqa: E402
from transport.client import RsaCbcClient  # noqa: E402
from transport.framing import FrameTooLong, escape_controls, read_line  # noqa: E402
from transport.server import RsaCbcServer  # noqa: E402


@pytest.fixture(scope="module")
def key_pair():
    return generate_key_pair(256)


@pytest.fixture
def running_server(key_pair):
    server = RsaCbcServer("127.0.0.1", 0, ipv6=False, key_pair=key_pair)
    host, port = server.bind()
    worker = threading.Thread(target=server.serve_forever, daemon=True)
    worker.start()
    yield server, host, port
    server.shutdown()
    worker.join(timeout=5)


def test_handle_line_decrypts(key_pair):
    server = RsaCbcServer(key_pair=key_pair)
    public_key, _ = key_pair
    encrypted_nonce, blocks = encrypt_message(b"Hello World!", public_key)
    assert server.handle_line(format_message(encrypted_nonce, blocks)) == "Message received: Hello World!"


def test_handle_line_reports_format_errors(key_pair):
    server = RsaCbcServer(key_pair=key_pair)
    assert server.handle_line("garbage").startswith("Invalid data format:")
    assert server.handle_line("1|2,,3").startswith("Invalid data format:")
    too_big = key_pair[0].n + 1
    assert server.handle_line(f"{too_big}|1").startswith("Invalid data format:")


def test_handle_line_keeps_reply_on_one_line(key_pair):
    server = RsaCbcServer(key_pair=key_pair)
    encrypted_nonce, blocks = encrypt_message(b"two\nlines", key_pair[0])
    reply = server.handle_line(format_message(encrypted_nonce, blocks))
    assert reply == "Message received: two\\nlines"


def test_client_server_exchange(running_server, key_pair):
    _, host, port = running_server
    with RsaCbcClient(host, port, timeout=10) as client:
        assert client.public_key == key_pair[0]
        assert client.send("Hello World!") == "Message received: Hello World!"
        assert client.send(b"") == "Message received: "
        assert client.send("héllo") == "Message received: héllo"


def test_malformed_line_keeps_connection_open(running_server):
    _, host, port = running_server
    with RsaCbcClient(host, port, timeout=10) as client:
        assert client.send_raw("abc|1,2").startswith("Invalid data format:")
        assert client.send_raw("no delimiter").startswith("Invalid data format:")
        assert client.send("still here") == "Message received: still here"


def test_server_survives_abrupt_disconnect(running_server):
    _, host, port = running_server
    raw = socket.create_connection((host, port), timeout=10)
    stream = raw.makefile("rb")
    assert parse_public_key(read_line(stream)).e == 65537
    stream.close()
    raw.close()

    with RsaCbcClient(host, port, timeout=10) as client:
        assert client.send("after") == "Message received: after"


def test_wire_level_public_key_line(running_server, key_pair):
    _, host, port = running_server
    with socket.create_connection((host, port), timeout=10) as raw:
        with raw.makefile("rb") as stream:
            first = stream.readline()
    assert first == f"{key_pair[0].e}|{key_pair[0].n}\n".encode()


def test_concurrent_clients(running_server):
    _, host, port = running_server
    replies = {}

    def talk(name):
        with RsaCbcClient(host, port, timeout=10) as client:
            replies[name] = client.send(name)

    threads = [threading.Thread(target=talk, args=(f"client-{i}",)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    assert replies == {f"client-{i}": f"Message received: client-{i}" for i in range(4)}


def test_client_requires_connection():
    client = RsaCbcClient("127.0.0.1", 1)
    with pytest.raises(RuntimeError):
        client.send("x")


def test_read_line_framing():
    stream = io.BytesIO(b"one\r\ntwo\nthree")
    assert read_line(stream) == "one"
    assert read_line(stream) == "two"
    assert read_line(stream) == "three"
    assert read_line(stream) is None


def test_read_line_rejects_oversized_frames(monkeypatch):
    import transport.framing as framing

    monkeypatch.setattr(framing, "MAX_LINE", 8)
    with pytest.raises(FrameTooLong):
        framing.read_line(io.BytesIO(b"0123456789abcdef\n"))


def test_escape_controls():
    assert escape_controls("a\r\nb") == "a\\r\\nb"
