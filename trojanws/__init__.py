"""
trojanws - a password-authenticated SOCKS5-style tunnel relay carried over WebSocket.

This package provides the relay server: handshake parsing, SHA-224 token
authentication, admission control, and the bidirectional byte relay.
"""

__version__ = "1.0.0"
__author__ = "trojanws Development Team"

# Import core components for public API
from trojanws.auth import AuthValidator
from trojanws.config import RelayConfig
from trojanws.errors import CloseCode, RelayError
from trojanws.header import ProxyTarget, parse_header
from trojanws.manager import ConnectionManager, Session, SessionState
from trojanws.relay import RelaySession
from trojanws.server import RelayServer

__all__ = [
    "AuthValidator",
    "RelayConfig",
    "CloseCode",
    "RelayError",
    "ProxyTarget",
    "parse_header",
    "ConnectionManager",
    "Session",
    "SessionState",
    "RelaySession",
    "RelayServer",
    "__version__",
]
