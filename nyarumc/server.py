"""Server status prober, implementing the status exchange of the game's binary protocol
over a raw TCP stream.

Every packet is prefixed by its length encoded as a varint, a variable length integer
with 7 bits per byte and the high bit set on every byte but the last one.
"""

from concurrent.futures import Future
import threading
import socket
import struct
import time
import json

from typing import Any, Tuple


DEFAULT_PORT = 25565


class ServerStatus:
    """Status of a server as returned by `ping_server`.
    """
    __slots__ = "online", "players_online", "players_max", "motd", "latency_ms"
    def __init__(self, online: bool, players_online: int, players_max: int, motd: str, latency_ms: int) -> None:
        self.online = online
        self.players_online = players_online
        self.players_max = players_max
        self.motd = motd
        self.latency_ms = latency_ms

    def __repr__(self) -> str:
        return f"<ServerStatus {self.players_online}/{self.players_max} {self.latency_ms}ms>"


def encode_varint(value: int) -> bytes:
    """Encode an integer as a varint, negative values are encoded as their 32 bits two's
    complement and therefore always take 5 bytes.
    """
    value &= 0xFFFFFFFF
    data = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            data.append(byte | 0x80)
        else:
            data.append(byte)
            return bytes(data)


def decode_varint(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """Decode a varint from the given buffer.

    :return: A tuple with the signed 32 bits value and the offset just after it.
    :raises ValueError: If the varint is truncated or longer than 5 bytes.
    """
    pos = offset
    def read_byte() -> int:
        nonlocal pos
        if pos >= len(data):
            raise ValueError("varint: truncated")
        pos += 1
        return data[pos - 1]
    return _read_varint(read_byte), pos


def _read_varint(read_byte) -> int:

    result = 0
    shift = 0
    while True:
        byte = read_byte()
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            break
        shift += 7
        if shift >= 32:
            raise ValueError("varint: too big")

    result &= 0xFFFFFFFF
    return result - (1 << 32) if result & 0x80000000 else result


def check_port(port: int) -> int:
    """Return the port if it can be sent in a handshake, that is in 0..65535.

    :raises ValueError: If the port is out of range.
    """
    if not 0 <= port <= 65535:
        raise ValueError(f"invalid port {port}")
    return port


def encode_string(value: str) -> bytes:
    raw = value.encode()
    return encode_varint(len(raw)) + raw


def encode_packet(payload: bytes) -> bytes:
    return encode_varint(len(payload)) + payload


def encode_handshake(host: str, port: int) -> bytes:
    """Encode the length-prefixed handshake packet switching to the status state.
    """
    payload = b"\x00" + encode_varint(-1) + encode_string(host) + struct.pack(">H", port) + encode_varint(1)
    return encode_packet(payload)


def _recv_exact(sock: socket.socket, length: int) -> bytes:
    data = bytearray()
    while len(data) < length:
        chunk = sock.recv(length - len(data))
        if not chunk:
            raise ConnectionError("connection closed by the server")
        data += chunk
    return bytes(data)


def parse_status(data: Any, latency_ms: int) -> ServerStatus:
    """Parse the JSON status document returned by the server.
    """

    if not isinstance(data, dict):
        raise ValueError("status: / must be an object")

    players = data.get("players")
    players_online = 0
    players_max = 0
    if isinstance(players, dict):
        if isinstance(players.get("online"), int):
            players_online = players["online"]
        if isinstance(players.get("max"), int):
            players_max = players["max"]

    description = data.get("description")
    if isinstance(description, str):
        motd = description
    elif isinstance(description, dict) and isinstance(description.get("text"), str):
        motd = description["text"]
    else:
        motd = ""

    return ServerStatus(True, players_online, players_max, motd, latency_ms)


def ping_server(host: str, port: int = DEFAULT_PORT, *, timeout: float = 5.0) -> ServerStatus:
    """Query the status of a server, the timeout applies to the connection and to each
    read.

    :raises OSError: If the connection failed or timed out.
    :raises ValueError: If the port is out of range or the response is malformed.
    """

    check_port(port)
    start = time.monotonic()

    with socket.create_connection((host, port), timeout=timeout) as sock:

        sock.settimeout(timeout)
        sock.sendall(encode_handshake(host, port))
        sock.sendall(encode_packet(b"\x00"))

        def read_byte() -> int:
            return _recv_exact(sock, 1)[0]

        _read_varint(read_byte)  # Packet length
        _read_varint(read_byte)  # Packet id
        json_length = _read_varint(read_byte)

        if json_length <= 0 or json_length > 65535:
            raise ValueError(f"status: invalid json length {json_length}")

        raw = _recv_exact(sock, json_length)

    latency_ms = int((time.monotonic() - start) * 1000)
    return parse_status(json.loads(raw.decode()), latency_ms)


def ping_server_async(host: str, port: int = DEFAULT_PORT, *, timeout: float = 5.0) -> "Future[ServerStatus]":
    """Run `ping_server` on a dedicated thread and return a future of its result.
    """

    future: "Future[ServerStatus]" = Future()

    def run() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(ping_server(host, port, timeout=timeout))
        except BaseException as error:
            future.set_exception(error)

    threading.Thread(target=run, name="nyarumc-ping", daemon=True).start()
    return future
