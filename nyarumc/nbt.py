"""Minimal NBT encoder for the game's multiplayer server list, 'servers.dat'.
"""

from pathlib import Path
import struct


TAG_END = 0
TAG_BYTE = 1
TAG_STRING = 8
TAG_LIST = 9
TAG_COMPOUND = 10


def _encode_name(name: str) -> bytes:
    raw = name.encode()
    return struct.pack(">H", len(raw)) + raw


def _encode_string(tag_name: str, value: str) -> bytes:
    return bytes((TAG_STRING,)) + _encode_name(tag_name) + _encode_name(value)


def encode_servers_dat(name: str, address: str) -> bytes:
    """Encode a server list with a single server entry. The address is the full
    'host:port' string.

    The document is an unnamed root compound holding a list 'servers' of one compound
    with the 'name', 'ip' and 'acceptTextures' (always 1) tags.
    """

    data = bytearray()
    data.append(TAG_COMPOUND)
    data += _encode_name("")

    data.append(TAG_LIST)
    data += _encode_name("servers")
    data += struct.pack(">bi", TAG_COMPOUND, 1)

    data += _encode_string("name", name)
    data += _encode_string("ip", address)
    data.append(TAG_BYTE)
    data += _encode_name("acceptTextures")
    data.append(1)

    data.append(TAG_END)  # Server compound
    data.append(TAG_END)  # Root compound

    return bytes(data)


def write_servers_dat(file: Path, name: str, address: str) -> None:
    """Write the server list with a single entry, replacing any existing one.
    """
    file.parent.mkdir(parents=True, exist_ok=True)
    file.write_bytes(encode_servers_dat(name, address))
