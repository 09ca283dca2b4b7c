import pytest

from trojanws.config import (
    CONNECTION_TIMEOUT,
    DEFAULT_PASSWORD,
    LISTEN_PORT,
    MAX_CONNECTIONS,
    RelayConfig,
    split_list,
)


def test_defaults_from_empty_env():
    config = RelayConfig.from_env({})
    assert config.password == DEFAULT_PASSWORD
    assert config.uses_default_password
    assert config.proxy_ips == ()
    assert config.cdn_hosts == ()
    assert config.port == LISTEN_PORT
    assert config.max_connections == MAX_CONNECTIONS
    assert config.connect_timeout == CONNECTION_TIMEOUT


def test_values_from_env():
    config = RelayConfig.from_env({
        "PASSWORD": "s3cret",
        "PROXY_IPS": "1.1.1.1:443, relay.example ,",
        "CDN_HOSTS": "cdn.example",
        "TROJANWS_HOST": "127.0.0.1",
        "TROJANWS_PORT": "9000",
        "TROJANWS_MAX_CONNECTIONS": "7",
        "TROJANWS_KEEPALIVE": "2.5",
        "TROJANWS_CONNECT_TIMEOUT": "0",
        "TROJANWS_HANDSHAKE_TIMEOUT": "3",
    })
    assert config.password == "s3cret"
    assert not config.uses_default_password
    assert config.proxy_ips == ("1.1.1.1:443", "relay.example")
    assert config.cdn_hosts == ("cdn.example",)
    assert config.host == "127.0.0.1"
    assert config.port == 9000
    assert config.max_connections == 7
    assert config.keepalive_interval == 2.5
    assert config.connect_timeout is None
    assert config.handshake_timeout == 3.0


@pytest.mark.parametrize("name, value", [
    ("TROJANWS_PORT", "eighty"),
    ("TROJANWS_MAX_CONNECTIONS", "-1"),
    ("TROJANWS_KEEPALIVE", "soon"),
])
def test_bad_numbers_name_the_variable(name, value):
    with pytest.raises(ValueError, match=name):
        RelayConfig.from_env({name: value})


def test_split_list():
    assert split_list(None) == ()
    assert split_list("") == ()
    assert split_list(" a, ,b ") == ("a", "b")
