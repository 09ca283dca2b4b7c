import os

import pytest

from trojanws.cli import apply_overrides, build_parser

KEYS = ("TROJANWS_HOST", "TROJANWS_PORT", "PASSWORD", "PROXY_IPS", "CDN_HOSTS", "TROJANWS_MAX_CONNECTIONS")


@pytest.fixture
def clean_env(monkeypatch):
    for key in KEYS:
        monkeypatch.setenv(key, "unchanged")
    return monkeypatch


def test_flags_override_env(clean_env):
    args = build_parser().parse_args([
        "--port", "9443", "--password", "pw", "--proxy-ips", "1.1.1.1:443", "--max-connections", "5",
    ])
    apply_overrides(args)
    assert os.environ["TROJANWS_PORT"] == "9443"
    assert os.environ["PASSWORD"] == "pw"
    assert os.environ["PROXY_IPS"] == "1.1.1.1:443"
    assert os.environ["TROJANWS_MAX_CONNECTIONS"] == "5"
    assert os.environ["TROJANWS_HOST"] == "unchanged"
    assert os.environ["CDN_HOSTS"] == "unchanged"


def test_verbose_flag():
    assert build_parser().parse_args(["-v"]).verbose
    assert not build_parser().parse_args([]).verbose
