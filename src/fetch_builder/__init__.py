"""
Fetch Builder - fluent request builder over httpx
"""

__version__ = "0.1.0"

from .client import RequestBuilder, encode_body, new
from .config import (
    DEFAULT_DIAL_TIMEOUT,
    DEFAULT_EXPECT_CONTINUE_TIMEOUT,
    DEFAULT_IDLE_CONN_TIMEOUT,
    DEFAULT_KEEP_ALIVE_TIMEOUT,
    DEFAULT_TIMEOUT,
    DEFAULT_TLS_HANDSHAKE_TIMEOUT,
    TimeoutConfig,
    TransportConfig,
)
from .errors import (
    BodyEncodeError,
    CertificateError,
    FetchBuilderError,
    InvalidHeaderError,
    InvalidURLError,
    RequestBuildError,
)
from .proxy import resolve_proxy_url
from .tls import CertPool, KeyPair, TLSConfig
from .types import (
    CONTENT_TYPE_FORM,
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_JSON_UTF8,
    CONTENT_TYPE_TEXT,
    CONTENT_TYPE_XML,
    DELETE,
    GET,
    HEAD,
    HEADER_CONTENT_TYPE,
    OPTIONS,
    PATCH,
    POST,
    PUT,
    Callback,
    FetchResult,
    HttpMethod,
)

__all__ = [
    "RequestBuilder", "new", "encode_body",
    "FetchResult", "Callback", "HttpMethod",
    "TimeoutConfig", "TransportConfig",
    "TLSConfig", "CertPool", "KeyPair",
    "resolve_proxy_url",
    "FetchBuilderError", "InvalidHeaderError", "BodyEncodeError",
    "InvalidURLError", "RequestBuildError", "CertificateError",
    "GET", "POST", "PUT", "HEAD", "DELETE", "PATCH", "OPTIONS",
    "HEADER_CONTENT_TYPE", "CONTENT_TYPE_JSON", "CONTENT_TYPE_JSON_UTF8",
    "CONTENT_TYPE_FORM", "CONTENT_TYPE_TEXT", "CONTENT_TYPE_XML",
    "DEFAULT_TIMEOUT", "DEFAULT_DIAL_TIMEOUT", "DEFAULT_KEEP_ALIVE_TIMEOUT",
    "DEFAULT_IDLE_CONN_TIMEOUT", "DEFAULT_TLS_HANDSHAKE_TIMEOUT",
    "DEFAULT_EXPECT_CONTINUE_TIMEOUT",
]
