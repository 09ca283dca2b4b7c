"""
Outbound endpoint selection.

When a pool of fixed relay endpoints is configured, every session goes to a
random pool entry instead of the address the client asked for.
"""

import ipaddress
import random
from typing import Optional, Sequence, Tuple

from trojanws.header import ProxyTarget

DEFAULT_PORT = 443
PROXYIP_MARKER = "/proxyip="


def parse_endpoint(entry: str, default_port: int = 0) -> Tuple[str, int]:
    """
    Split a `host[:port]` pool entry.

    `[v6]:port` is understood; a bare IPv6 literal keeps the whole entry as
    the host and uses port 443.
    """
    entry = entry.strip()
    if entry.startswith("["):
        host, _, rest = entry[1:].partition("]")
        if rest.startswith(":") and rest[1:].isdigit():
            return host, int(rest[1:])
        return host, default_port or DEFAULT_PORT

    if entry.count(":") == 1:
        host, port = entry.split(":")
        if port.isdigit():
            return host, int(port)
        return host, default_port or DEFAULT_PORT

    if ":" in entry:
        return entry, DEFAULT_PORT

    return entry, default_port or DEFAULT_PORT


def select_endpoint(
    target: ProxyTarget,
    pool: Sequence[str] = (),
    rng: Optional[random.Random] = None,
) -> Tuple[str, int]:
    """Pick where the outbound connection actually goes."""
    if not pool:
        return target.address, target.port
    entry = (rng or random).choice(list(pool))
    return parse_endpoint(entry, target.port)


def is_valid_ip(text: str) -> bool:
    if not text:
        return False
    try:
        ipaddress.ip_address(text.strip("[]"))
    except ValueError:
        return False
    return True


def pool_from_path(path: str) -> Tuple[str, ...]:
    """
    Per-session pool override from a `/proxyip=<ip>` request path.
    Returns an empty tuple when the path carries no valid address.
    """
    if PROXYIP_MARKER not in path:
        return ()
    value = path.split(PROXYIP_MARKER, 1)[1]
    value = value.split("/", 1)[0].split("?", 1)[0]
    if is_valid_ip(value):
        return (value,)
    return ()
