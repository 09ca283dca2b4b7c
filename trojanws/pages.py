"""
Plain HTTP endpoints served on the relay port for non-upgrade requests:
health check, status page and subscription links.
"""

import base64
import json
from datetime import datetime, timezone
from html import escape
from http import HTTPStatus
from typing import List, Optional, Tuple
from urllib.parse import quote

from trojanws.config import HTTP_PORTS, HTTPS_PORTS, RelayConfig

# (status, content type, body)
Page = Tuple[HTTPStatus, str, bytes]

NOT_FOUND: Page = (HTTPStatus.NOT_FOUND, "text/plain; charset=utf-8", b"Not found")


def health(active: int, now: Optional[datetime] = None) -> Page:
    now = now or datetime.now(timezone.utc)
    body = json.dumps({
        'status': 'ok',
        'connections': active,
        'timestamp': now.isoformat(),
    })
    return HTTPStatus.OK, "application/json", body.encode("utf-8")


def status_page(host: str, config: RelayConfig, active: int) -> Page:
    ws_url = escape(f"ws://{host}{config.ws_path}")
    wss_url = escape(f"wss://{host}{config.ws_path}")
    body = f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>Proxy Configuration</title>
  <style>
    body {{ font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto; padding: 20px; }}
    .config-box {{ background: #f5f5f5; padding: 15px; margin: 10px 0; border-radius: 5px; }}
  </style>
</head>
<body>
  <h1>Proxy Configuration</h1>
  <p>Current connections: {active}</p>
  <div class="config-box">
    <h3>WebSocket Configuration</h3>
    <p>Password: <code>{escape(config.password)}</code></p>
    <p>WS URL: <code>{ws_url}</code></p>
    <p>WSS URL: <code>{wss_url}</code></p>
  </div>
  <div class="config-box">
    <h3>HTTP Ports</h3>
    <p>{', '.join(HTTP_PORTS)}</p>
  </div>
  <div class="config-box">
    <h3>HTTPS Ports</h3>
    <p>{', '.join(HTTPS_PORTS)}</p>
  </div>
</body>
</html>
"""
    return HTTPStatus.OK, "text/html; charset=utf-8", body.encode("utf-8")


def _hostname(host: str) -> str:
    """Drop a `:port` suffix from a Host header value."""
    if host.startswith("["):
        return host.split("]", 1)[0] + "]"
    if host.count(":") == 1:
        return host.split(":", 1)[0]
    return host


def share_links(host: str, config: RelayConfig) -> List[str]:
    """trojan:// links for every front-end host and HTTPS port."""
    host = _hostname(host)
    fronts = config.cdn_hosts or (host,)
    password = quote(config.password, safe="")
    path = quote(config.ws_path, safe="")
    links = []
    for front in fronts:
        for port in HTTPS_PORTS:
            links.append(
                f"trojan://{password}@{front}:{port}"
                f"?security=tls&sni={host}&type=ws&host={host}&path={path}"
                f"#{quote(f'{front}-{port}', safe='')}"
            )
    return links


def subscription(kind: str, host: str, config: RelayConfig) -> Page:
    links = "\n".join(share_links(host, config))
    if kind == "trojan":
        body = links.encode("utf-8")
    elif kind == "base64":
        body = base64.b64encode(links.encode("utf-8"))
    else:
        return NOT_FOUND
    return HTTPStatus.OK, "text/plain; charset=utf-8", body


def route(path: str, host: str, config: RelayConfig, active: int) -> Page:
    """Pick the page for a request path (query string ignored)."""
    path = path.split("?", 1)[0]
    secret = "/" + quote(config.password, safe="")

    if path == "/health":
        return health(active)
    if path == secret:
        return status_page(host, config, active)
    if path.startswith(secret + "/"):
        kind = path[len(secret) + 1:].split("/", 1)[0]
        return subscription(kind, host, config)
    return NOT_FOUND
