"""
Configuration models and defaults for fetch-builder.
"""
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional, Union

import httpx
from pydantic import BaseModel

from .tls import TLSConfig

# Constants (seconds)
DEFAULT_TIMEOUT = 60.0
DEFAULT_DIAL_TIMEOUT = 30.0
DEFAULT_KEEP_ALIVE_TIMEOUT = 30.0
DEFAULT_IDLE_CONN_TIMEOUT = 90.0
DEFAULT_TLS_HANDSHAKE_TIMEOUT = 10.0
DEFAULT_EXPECT_CONTINUE_TIMEOUT = 1.0

Duration = Union[int, float, timedelta]


def normalize_duration(value: Duration) -> float:
    """Normalize a duration to seconds. Zero means no limit."""
    if isinstance(value, timedelta):
        value = value.total_seconds()
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"duration must be a number of seconds or a timedelta, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"duration must not be negative, got {value}")
    return float(value)


def _limit(seconds: float) -> Optional[float]:
    return seconds if seconds > 0 else None


class TimeoutConfig(BaseModel):
    """Per-request timeouts."""
    timeout: float = DEFAULT_TIMEOUT
    dial: float = DEFAULT_DIAL_TIMEOUT
    keep_alive: float = DEFAULT_KEEP_ALIVE_TIMEOUT

    def to_httpx(self, tls_handshake: float = 0.0) -> httpx.Timeout:
        """
        Map onto httpx.Timeout.
        httpx has no total deadline, so the overall timeout is the default
        for every read/write/pool phase and RequestBuilder.go() enforces the
        deadline itself. The connect phase covers the TCP dial and, for
        https, the TLS handshake.
        """
        overall = _limit(self.timeout)
        connect = _limit(self.dial)
        if connect is not None and tls_handshake > 0:
            connect += tls_handshake
        if overall is not None and (connect is None or connect > overall):
            connect = overall
        return httpx.Timeout(overall, connect=connect)


@dataclass
class TransportConfig:
    """Connection-level settings shared by every request of a builder."""
    idle_conn_timeout: float = DEFAULT_IDLE_CONN_TIMEOUT
    tls_handshake_timeout: float = DEFAULT_TLS_HANDSHAKE_TIMEOUT
    expect_continue_timeout: float = DEFAULT_EXPECT_CONTINUE_TIMEOUT

    # None: resolve from environment, False: never proxy, str: explicit URL
    proxy: Optional[Union[str, bool]] = None

    tls: Optional[TLSConfig] = field(default_factory=lambda: TLSConfig(insecure_skip_verify=True))
