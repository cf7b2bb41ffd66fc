from threading import Thread
import socket
import json

import pytest

from nyarumc.server import encode_varint, decode_varint, encode_string, encode_handshake, \
    encode_packet, parse_status, ping_server, ping_server_async


def test_varint():

    assert encode_varint(0) == b"\x00"
    assert encode_varint(1) == b"\x01"
    assert encode_varint(127) == b"\x7f"
    assert encode_varint(128) == b"\x80\x01"
    assert encode_varint(255) == b"\xff\x01"
    assert encode_varint(25565) == b"\xdd\xc7\x01"
    assert encode_varint(2147483647) == b"\xff\xff\xff\xff\x07"
    assert encode_varint(-1) == b"\xff\xff\xff\xff\x0f"

    assert decode_varint(b"\x00") == (0, 1)
    assert decode_varint(b"\xdd\xc7\x01") == (25565, 3)
    assert decode_varint(b"\xff\xff\xff\xff\x0f") == (-1, 5)
    assert decode_varint(b"\xff\xff\xff\xff\x07") == (2147483647, 5)
    assert decode_varint(b"\x2a\x80\x01", 1) == (128, 3)

    for value in (0, 1, 300, 25565, 2097151, 2147483647, -1, -2147483648):
        assert decode_varint(encode_varint(value)) == (value, len(encode_varint(value)))


def test_varint_errors():

    with pytest.raises(ValueError, match="too big"):
        decode_varint(b"\xff\xff\xff\xff\xff\x01")

    with pytest.raises(ValueError, match="truncated"):
        decode_varint(b"\x80\x80")

    with pytest.raises(ValueError, match="truncated"):
        decode_varint(b"")


def test_handshake():

    assert encode_string("abc") == b"\x03abc"
    assert encode_handshake("localhost", 25565) == \
        b"\x13" + b"\x00" + b"\xff\xff\xff\xff\x0f" + b"\x09localhost" + b"\x63\xdd" + b"\x01"


def test_parse_status():

    status = parse_status({"players": {"online": 3, "max": 20}, "description": "Hello"}, 12)
    assert status.online
    assert (status.players_online, status.players_max, status.motd, status.latency_ms) == (3, 20, "Hello", 12)

    status = parse_status({"description": {"text": "Nyaru", "extra": []}}, 0)
    assert (status.players_online, status.players_max, status.motd) == (0, 0, "Nyaru")

    status = parse_status({"description": {"extra": [{"text": "x"}]}, "players": {"online": "3"}}, 0)
    assert (status.players_online, status.motd) == (0, "")

    with pytest.raises(ValueError):
        parse_status([], 0)


class StatusServer:
    """A single-connection TCP server replying to the status exchange with the given
    raw response, the received bytes are recorded.
    """

    def __init__(self, response: bytes) -> None:
        self.response = response
        self.received = b""
        self.sock = socket.socket()
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.port = self.sock.getsockname()[1]
        self.thread = Thread(target=self._run, daemon=True)
        self.thread.start()

    def _run(self) -> None:
        conn, _ = self.sock.accept()
        with conn:
            expected = len(encode_handshake("127.0.0.1", self.port)) + 2
            while len(self.received) < expected:
                chunk = conn.recv(1024)
                if not chunk:
                    break
                self.received += chunk
            conn.sendall(self.response)
        self.sock.close()


def status_response(document: bytes) -> bytes:
    return encode_packet(b"\x00" + encode_varint(len(document)) + document)


def test_ping_server():

    document = json.dumps({
        "version": {"name": "1.21.11", "protocol": 774},
        "players": {"online": 5, "max": 100},
        "description": {"text": "A Nyaru server"},
    }).encode()

    server = StatusServer(status_response(document))
    status = ping_server("127.0.0.1", server.port, timeout=5.0)
    server.thread.join(5)

    assert status.online
    assert status.players_online == 5
    assert status.players_max == 100
    assert status.motd == "A Nyaru server"
    assert status.latency_ms >= 0

    assert server.received == encode_handshake("127.0.0.1", server.port) + b"\x01\x00"


def test_ping_server_invalid_length():

    server = StatusServer(encode_varint(3) + b"\x00" + encode_varint(0))
    with pytest.raises(ValueError, match="invalid json length"):
        ping_server("127.0.0.1", server.port, timeout=5.0)

    server = StatusServer(encode_varint(3) + b"\x00" + encode_varint(70000))
    with pytest.raises(ValueError, match="invalid json length"):
        ping_server("127.0.0.1", server.port, timeout=5.0)


def test_ping_server_closed():

    server = StatusServer(encode_varint(20) + b"\x00")
    with pytest.raises(OSError):
        ping_server("127.0.0.1", server.port, timeout=5.0)


def test_ping_server_async():

    server = StatusServer(status_response(b'{"description": "async"}'))
    future = ping_server_async("127.0.0.1", server.port, timeout=5.0)
    assert future.result(10).motd == "async"

    # Nothing listens on this port anymore.
    server.thread.join(5)
    future = ping_server_async("127.0.0.1", server.port, timeout=2.0)
    with pytest.raises(OSError):
        future.result(10)


def test_ping_server_invalid_port():

    from nyarumc.server import check_port

    assert check_port(0) == 0
    assert check_port(65535) == 65535

    with pytest.raises(ValueError, match="invalid port"):
        ping_server("127.0.0.1", 70000, timeout=1.0)

    with pytest.raises(ValueError, match="invalid port"):
        ping_server("127.0.0.1", -1, timeout=1.0)

    # The future always completes, with the error.
    future = ping_server_async("127.0.0.1", 70000, timeout=1.0)
    with pytest.raises(ValueError, match="invalid port"):
        future.result(10)


def test_ping_server_async_any_error(monkeypatch):

    def failing_ping(host, port, *, timeout):
        raise RuntimeError("unexpected")

    monkeypatch.setattr("nyarumc.server.ping_server", failing_ping)

    future = ping_server_async("127.0.0.1", 25565)
    with pytest.raises(RuntimeError, match="unexpected"):
        future.result(10)
    assert future.done()
