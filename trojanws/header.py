"""
Handshake header parsing.

Wire layout of the first client message:

    [Token:56][CRLF:2][Cmd:1][AType:1][Addr:var][Port:2][Payload...]

AType 1 is IPv4 (4 bytes), 3 is a domain name (1 length byte + name),
4 is IPv6 (16 bytes). Everything after the port is forwarded to the target
as the first outbound bytes.
"""

import struct
from dataclasses import dataclass
from enum import IntEnum

from trojanws.errors import (
    EmptyAddress,
    HeaderTooShort,
    InvalidAddress,
    UnsupportedAddressType,
    UnsupportedCommand,
)

TOKEN_SIZE = 56
SEPARATOR_SIZE = 2
SOCKS_OFFSET = TOKEN_SIZE + SEPARATOR_SIZE
# Cmd + AType + shortest address field + Port
MIN_SOCKS_SIZE = 6
MIN_HEADER_SIZE = SOCKS_OFFSET + MIN_SOCKS_SIZE

CMD_CONNECT = 0x01


class AddressType(IntEnum):
    IPV4 = 1
    DOMAIN = 3
    IPV6 = 4


@dataclass(frozen=True)
class ProxyTarget:
    atype: AddressType
    address: str
    port: int
    payload: bytes = b""

    def __str__(self) -> str:
        if self.atype == AddressType.IPV6:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"


@dataclass(frozen=True)
class ProxyHeader:
    token: str
    target: ProxyTarget


def parse_header(buffer: bytes) -> ProxyHeader:
    """
    Decode a handshake buffer.

    Raises:
        HeaderTooShort: buffer (or a declared field) runs past the end of data
        UnsupportedCommand: command is not CONNECT
        UnsupportedAddressType: address family tag is not 1, 3 or 4
        EmptyAddress: address decoded to an empty string
        InvalidAddress: domain name is not valid UTF-8
    """
    buffer = bytes(buffer)
    if len(buffer) < MIN_HEADER_SIZE:
        raise HeaderTooShort(f"Header is {len(buffer)} bytes, need at least {MIN_HEADER_SIZE}")

    token = buffer[:TOKEN_SIZE].decode("utf-8", errors="replace").strip()

    cmd = buffer[SOCKS_OFFSET]
    if cmd != CMD_CONNECT:
        raise UnsupportedCommand(f"Unsupported command: {cmd}")

    atype = buffer[SOCKS_OFFSET + 1]
    idx = SOCKS_OFFSET + 2

    if atype == AddressType.IPV4:
        raw = _take(buffer, idx, 4)
        address = ".".join(str(b) for b in raw)
        idx += 4
    elif atype == AddressType.DOMAIN:
        length = buffer[idx]
        idx += 1
        raw = _take(buffer, idx, length)
        try:
            address = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidAddress("Domain name is not valid UTF-8")
        idx += length
    elif atype == AddressType.IPV6:
        raw = _take(buffer, idx, 16)
        groups = struct.unpack("!8H", raw)
        address = ":".join(format(g, "x") for g in groups)
        idx += 16
    else:
        raise UnsupportedAddressType(f"Invalid address type: {atype}")

    if not address:
        raise EmptyAddress()

    port = struct.unpack("!H", _take(buffer, idx, 2))[0]
    idx += 2

    target = ProxyTarget(AddressType(atype), address, port, buffer[idx:])
    return ProxyHeader(token=token, target=target)


def _take(buffer: bytes, start: int, length: int) -> bytes:
    end = start + length
    if end > len(buffer):
        raise HeaderTooShort(f"Field at offset {start} needs {length} bytes, have {len(buffer) - start}")
    return buffer[start:end]


def build_header(token: str, atype: int, address: bytes, port: int, payload: bytes = b"") -> bytes:
    """Assemble a handshake buffer (client side, used by tooling and tests)."""
    if atype == AddressType.DOMAIN:
        address = bytes([len(address)]) + address
    return (
        token.encode("ascii").ljust(TOKEN_SIZE)
        + b"\r\n"
        + bytes([CMD_CONNECT, atype])
        + address
        + struct.pack("!H", port)
        + payload
    )
