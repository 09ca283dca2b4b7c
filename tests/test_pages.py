import base64
import json
from http import HTTPStatus

from trojanws import pages
from trojanws.config import HTTPS_PORTS, RelayConfig

CONFIG = RelayConfig(password="s3cret")


def test_health():
    status, content_type, body = pages.route("/health", "relay.example", CONFIG, 4)
    assert status == HTTPStatus.OK
    assert content_type == "application/json"
    payload = json.loads(body)
    assert payload["status"] == "ok"
    assert payload["connections"] == 4
    assert "timestamp" in payload


def test_status_page():
    status, content_type, body = pages.route("/s3cret", "relay.example", CONFIG, 2)
    assert status == HTTPStatus.OK
    assert content_type.startswith("text/html")
    html = body.decode()
    assert "Current connections: 2" in html
    assert "wss://relay.example/?ed=2560" in html
    assert "<code>s3cret</code>" in html


def test_trojan_subscription_strips_port_from_host():
    status, _, body = pages.route("/s3cret/trojan", "relay.example:8080", CONFIG, 0)
    assert status == HTTPStatus.OK
    links = body.decode().splitlines()
    assert len(links) == len(HTTPS_PORTS)
    assert links[0].startswith("trojan://s3cret@relay.example:443?")
    assert "type=ws" in links[0]
    assert "host=relay.example&" in links[0]


def test_subscription_uses_cdn_hosts():
    config = RelayConfig(password="s3cret", cdn_hosts=("a.cdn", "b.cdn"))
    links = pages.share_links("relay.example", config)
    assert len(links) == 2 * len(HTTPS_PORTS)
    assert any(link.startswith("trojan://s3cret@b.cdn:2053?") for link in links)
    assert all("sni=relay.example" in link for link in links)


def test_base64_subscription():
    _, _, plain = pages.route("/s3cret/trojan", "relay.example", CONFIG, 0)
    status, _, encoded = pages.route("/s3cret/base64", "relay.example", CONFIG, 0)
    assert status == HTTPStatus.OK
    assert base64.b64decode(encoded) == plain


def test_unknown_paths():
    assert pages.route("/s3cret/clash", "h", CONFIG, 0) == pages.NOT_FOUND
    assert pages.route("/", "h", CONFIG, 0) == pages.NOT_FOUND
    assert pages.route("/wrong", "h", CONFIG, 0) == pages.NOT_FOUND
