"""
Adapter building httpx transports from the builder's transport settings.
"""
import logging
import socket
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .config import TransportConfig

logger = logging.getLogger(__name__)

LOG_PREFIX = "[FetchBuilder]"

SocketOption = Tuple[int, int, int]


def keep_alive_socket_options(keep_alive: float) -> List[SocketOption]:
    """TCP keep-alive options for the given probe interval (seconds)."""
    if keep_alive <= 0:
        return []
    seconds = max(1, int(keep_alive))
    options: List[SocketOption] = [(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)]
    # Not every platform exposes the tuning knobs
    if hasattr(socket, "TCP_KEEPIDLE"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, seconds))
    if hasattr(socket, "TCP_KEEPINTVL"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, seconds))
    return options


class HttpxTransportFactory:
    """Builds httpx.HTTPTransport instances."""

    def get_transport_kwargs(
        self,
        config: TransportConfig,
        keep_alive: float,
        proxy_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build kwargs for httpx.HTTPTransport."""
        verify: Any = True
        if config.tls is not None:
            verify = config.tls.to_ssl_context()

        keepalive_expiry = config.idle_conn_timeout if config.idle_conn_timeout > 0 else None

        kwargs: Dict[str, Any] = {
            "verify": verify,
            "limits": httpx.Limits(keepalive_expiry=keepalive_expiry),
            "retries": 0,
        }

        if proxy_url:
            kwargs["proxy"] = proxy_url

        socket_options = keep_alive_socket_options(keep_alive)
        if socket_options:
            kwargs["socket_options"] = socket_options

        return kwargs

    def create_transport(
        self,
        config: TransportConfig,
        keep_alive: float,
        proxy_url: Optional[str] = None,
    ) -> httpx.HTTPTransport:
        """Create httpx.HTTPTransport."""
        kwargs = self.get_transport_kwargs(config, keep_alive, proxy_url)
        logger.debug(f"{LOG_PREFIX} Creating httpx.HTTPTransport (proxy={proxy_url}, keep_alive={keep_alive})")
        return httpx.HTTPTransport(**kwargs)


class TransportCache:
    """
    Transports owned by one builder, keyed by resolved proxy URL.
    Each transport owns a connection pool reused across requests.
    """

    def __init__(self, factory: Optional[HttpxTransportFactory] = None):
        self._factory = factory or HttpxTransportFactory()
        self._transports: Dict[Optional[str], httpx.HTTPTransport] = {}

    def __len__(self) -> int:
        return len(self._transports)

    def get(
        self,
        config: TransportConfig,
        keep_alive: float,
        proxy_url: Optional[str] = None,
    ) -> httpx.HTTPTransport:
        transport = self._transports.get(proxy_url)
        if transport is None:
            transport = self._factory.create_transport(config, keep_alive, proxy_url)
            self._transports[proxy_url] = transport
        return transport

    def clear(self) -> None:
        """Close and forget every cached transport."""
        transports, self._transports = self._transports, {}
        for transport in transports.values():
            transport.close()
