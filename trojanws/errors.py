"""
Session error taxonomy and WebSocket close codes.

Every error here is terminal for the session that raised it. The relay maps
each one onto a close code and a short reason sent back to the client.
"""

from enum import IntEnum


class CloseCode(IntEnum):
    NORMAL = 1000
    PROTOCOL_ERROR = 1002
    CAPACITY_EXCEEDED = 1008
    INTERNAL_ERROR = 1011


# RFC 6455: the close reason must fit in a 125 byte control frame
MAX_REASON_BYTES = 123


def clip_reason(reason: str) -> str:
    """Trim a close reason to what a close frame can carry."""
    raw = reason.encode("utf-8")
    if len(raw) <= MAX_REASON_BYTES:
        return reason
    return raw[:MAX_REASON_BYTES].decode("utf-8", errors="ignore")


class RelayError(Exception):
    """Base class for everything that ends a session."""
    close_code = CloseCode.INTERNAL_ERROR
    reason = "Internal error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.reason)


class HeaderError(RelayError):
    close_code = CloseCode.PROTOCOL_ERROR
    reason = "Invalid header"


class HeaderTooShort(HeaderError):
    reason = "Invalid data length"


class UnsupportedCommand(HeaderError):
    reason = "Unsupported command"


class UnsupportedAddressType(HeaderError):
    reason = "Invalid address type"


class EmptyAddress(HeaderError):
    reason = "Empty address"


class InvalidAddress(HeaderError):
    reason = "Invalid address"


class AuthError(RelayError):
    close_code = CloseCode.PROTOCOL_ERROR
    reason = "Invalid password"


class HandshakeTimeout(RelayError):
    close_code = CloseCode.PROTOCOL_ERROR
    reason = "Handshake timeout"


class NetworkError(RelayError):
    close_code = CloseCode.INTERNAL_ERROR
    reason = "Connection failed"


class CapacityExceeded(RelayError):
    close_code = CloseCode.CAPACITY_EXCEEDED
    reason = "Too many connections"
