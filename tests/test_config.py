"""
Tests for timeout config and transport construction.
"""
import socket
from datetime import timedelta

import httpx
import pytest

from fetch_builder import TimeoutConfig, TransportConfig
from fetch_builder.config import normalize_duration
from fetch_builder.transport import HttpxTransportFactory, TransportCache, keep_alive_socket_options


def test_normalize_duration():
    assert normalize_duration(5) == 5.0
    assert normalize_duration(0.25) == 0.25
    assert normalize_duration(timedelta(minutes=1)) == 60.0

    with pytest.raises(TypeError):
        normalize_duration("5s")
    with pytest.raises(TypeError):
        normalize_duration(True)
    with pytest.raises(ValueError):
        normalize_duration(-1)


def test_timeout_to_httpx():
    timeout = TimeoutConfig(timeout=60, dial=30).to_httpx()
    assert timeout.read == 60.0
    assert timeout.write == 60.0
    assert timeout.pool == 60.0
    assert timeout.connect == 30.0


def test_timeout_connect_includes_handshake():
    timeout = TimeoutConfig(timeout=60, dial=30).to_httpx(tls_handshake=10)
    assert timeout.connect == 40.0


def test_timeout_connect_bounded_by_overall():
    timeout = TimeoutConfig(timeout=5, dial=30).to_httpx(tls_handshake=10)
    assert timeout.connect == 5.0


def test_zero_timeout_means_unbounded():
    timeout = TimeoutConfig(timeout=0, dial=0).to_httpx()
    assert timeout.read is None
    assert timeout.connect is None


def test_keep_alive_socket_options():
    assert keep_alive_socket_options(0) == []
    options = keep_alive_socket_options(30)
    assert (socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1) in options


def test_transport_kwargs():
    factory = HttpxTransportFactory()
    kwargs = factory.get_transport_kwargs(TransportConfig(idle_conn_timeout=15), keep_alive=30, proxy_url="http://proxy:3128")

    assert kwargs["proxy"] == "http://proxy:3128"
    assert kwargs["limits"].keepalive_expiry == 15
    assert kwargs["retries"] == 0
    assert kwargs["socket_options"]
    assert kwargs["verify"].check_hostname is False


def test_transport_kwargs_without_tls_config():
    kwargs = HttpxTransportFactory().get_transport_kwargs(TransportConfig(tls=None), keep_alive=0)

    assert kwargs["verify"] is True
    assert "proxy" not in kwargs
    assert "socket_options" not in kwargs


def test_transport_cache():
    cache = TransportCache()
    config = TransportConfig()

    direct = cache.get(config, keep_alive=30)
    assert isinstance(direct, httpx.HTTPTransport)
    assert cache.get(config, keep_alive=30) is direct

    proxied = cache.get(config, keep_alive=30, proxy_url="http://proxy:3128")
    assert proxied is not direct
    assert len(cache) == 2

    cache.clear()
    assert len(cache) == 0
    assert cache.get(config, keep_alive=30) is not direct
    cache.clear()
