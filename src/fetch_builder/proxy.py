"""
Proxy URL resolution logic.
"""
import ipaddress
import logging
import os
from typing import Optional, Union
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = ("localhost",)


def _getenv(name: str) -> Optional[str]:
    return os.getenv(name) or os.getenv(name.lower())


def _is_loopback(host: str) -> bool:
    if host.lower() in LOOPBACK_HOSTS:
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def _host_matches_no_proxy(host: str, port: Optional[int], no_proxy: str) -> bool:
    """Match host against a NO_PROXY list (comma separated, '*' matches all)."""
    host = host.lower()
    for entry in (e.strip().lower() for e in no_proxy.split(",")):
        if not entry:
            continue
        if entry == "*":
            return True
        entry_host, entry_port = entry, ""
        if entry.count(":") == 1:
            entry_host, _, entry_port = entry.partition(":")
        if entry_port and port is not None and entry_port != str(port):
            continue
        entry_host = entry_host.lstrip("*").lstrip(".")
        if host == entry_host or host.endswith("." + entry_host):
            return True
    return False


def resolve_proxy_url(
    target_url: str,
    proxy_url_override: Optional[Union[str, bool]] = None,
) -> Optional[str]:
    """Resolve the proxy URL for a request.

    Precedence:
    1. proxy_url_override (if False, explicitly disable proxy)
    2. proxy_url_override (if string, return it)
    3. loopback targets are never proxied
    4. NO_PROXY env var excludes matching hosts
    5. HTTPS_PROXY env var (https targets)
    6. HTTP_PROXY env var (http targets)

    Environment variables are checked in upper then lower case.
    """
    logger.debug(f"Resolving proxy URL for {target_url}. Override: {proxy_url_override}")

    # 1. Explicit disable
    if proxy_url_override is False:
        logger.debug("Proxy explicitly disabled via override=False")
        return None

    # 2. Explicit override
    if isinstance(proxy_url_override, str) and proxy_url_override:
        logger.debug("Using explicit proxy URL override")
        return proxy_url_override

    parts = urlsplit(target_url)
    host = parts.hostname or ""
    try:
        port = parts.port
    except ValueError:
        port = None

    # 3. Loopback
    if not host or _is_loopback(host):
        logger.debug("Target is loopback, not proxying")
        return None

    # 4. NO_PROXY
    no_proxy = _getenv("NO_PROXY")
    if no_proxy and _host_matches_no_proxy(host, port, no_proxy):
        logger.debug("Target matches NO_PROXY")
        return None

    # 5. HTTPS_PROXY
    if parts.scheme == "https":
        https_proxy_env = _getenv("HTTPS_PROXY")
        if https_proxy_env:
            logger.debug("Using HTTPS_PROXY env var")
            return https_proxy_env

    # 6. HTTP_PROXY
    if parts.scheme == "http":
        http_proxy_env = _getenv("HTTP_PROXY")
        if http_proxy_env:
            logger.debug("Using HTTP_PROXY env var")
            return http_proxy_env

    logger.debug("No proxy URL found")
    return None
