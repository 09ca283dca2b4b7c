"""
Relay configuration.

Values come from the environment at process start. The CLI writes its flags
into the environment before calling RelayConfig.from_env(), so both paths
end up in the same place.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

# --- [ DEFAULTS ] ---
DEFAULT_PASSWORD = "proxy"
LISTEN_HOST = "0.0.0.0"
LISTEN_PORT = 8080
MAX_CONNECTIONS = 100  # Concurrent sessions before new upgrades are refused
KEEPALIVE_INTERVAL = 30  # Seconds between heartbeat pings
CONNECTION_TIMEOUT = 60  # Seconds to wait for the outbound connect
HANDSHAKE_TIMEOUT = 10  # Seconds to wait for the first client message
BUFFER_SIZE = 65536  # 64KB read size for the relay

WS_PATH = "/?ed=2560"
HTTP_PORTS = ("80", "8080", "8880", "2052", "2082", "2086", "2095")
HTTPS_PORTS = ("443", "8443", "2053", "2083", "2087", "2096")


def split_list(value: Optional[str]) -> Tuple[str, ...]:
    """Split a comma separated env value, dropping blanks."""
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env_number(environ: Mapping[str, str], name: str, default, cast=int):
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


@dataclass(frozen=True)
class RelayConfig:
    password: str = DEFAULT_PASSWORD
    proxy_ips: Tuple[str, ...] = ()
    cdn_hosts: Tuple[str, ...] = ()
    host: str = LISTEN_HOST
    port: int = LISTEN_PORT
    max_connections: int = MAX_CONNECTIONS
    keepalive_interval: float = KEEPALIVE_INTERVAL
    connect_timeout: Optional[float] = CONNECTION_TIMEOUT
    handshake_timeout: Optional[float] = HANDSHAKE_TIMEOUT
    buffer_size: int = BUFFER_SIZE
    ws_path: str = WS_PATH

    @property
    def uses_default_password(self) -> bool:
        return self.password == DEFAULT_PASSWORD

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RelayConfig":
        env = os.environ if environ is None else environ

        # A zero timeout means "wait forever"
        connect_timeout = _env_number(env, "TROJANWS_CONNECT_TIMEOUT", CONNECTION_TIMEOUT, float)
        handshake_timeout = _env_number(env, "TROJANWS_HANDSHAKE_TIMEOUT", HANDSHAKE_TIMEOUT, float)

        return cls(
            password=env.get("PASSWORD") or DEFAULT_PASSWORD,
            proxy_ips=split_list(env.get("PROXY_IPS")),
            cdn_hosts=split_list(env.get("CDN_HOSTS")),
            host=env.get("TROJANWS_HOST") or LISTEN_HOST,
            port=_env_number(env, "TROJANWS_PORT", LISTEN_PORT),
            max_connections=_env_number(env, "TROJANWS_MAX_CONNECTIONS", MAX_CONNECTIONS),
            keepalive_interval=_env_number(env, "TROJANWS_KEEPALIVE", KEEPALIVE_INTERVAL, float),
            connect_timeout=connect_timeout or None,
            handshake_timeout=handshake_timeout or None,
        )
