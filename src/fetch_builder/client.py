"""
Fluent request builder on top of httpx.
"""
import json
import logging
import re
import ssl
import time
from typing import Any, Dict, Iterator, Mapping, Optional, Union

import httpx
from pydantic_core import PydanticSerializationError, to_json

from .config import Duration, TimeoutConfig, TransportConfig, normalize_duration
from .errors import BodyEncodeError, FetchBuilderError, InvalidHeaderError, InvalidURLError, RequestBuildError
from .proxy import resolve_proxy_url
from .tls import TLSMixin
from .transport import TransportCache
from .types import (
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

logger = logging.getLogger(__name__)

# Constants
LOG_PREFIX = "[FetchBuilder]"

_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def _format_body(body: Optional[bytes]) -> str:
    """
    Format body for debug output, safeguarding against binary data.
    """
    if not body:
        return "<empty>"
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        return f"<binary data: {len(body)} bytes>"
    try:
        # Try to pretty print if it looks like JSON
        if text.strip().startswith(("{", "[")):
            return json.dumps(json.loads(text), indent=2)
    except json.JSONDecodeError:
        pass
    # Truncate long strings
    if len(text) > 5000:
        return text[:5000] + "... (truncated)"
    return text


def encode_body(value: Any) -> bytes:
    """
    Encode a request body.
    Strings are sent as UTF-8, bytes verbatim, anything else as compact JSON.
    """
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    try:
        return to_json(value)
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise BodyEncodeError(value, e)


def _shrink_timeout(timeout: httpx.Timeout, deadline: Optional[float]) -> Dict[str, Optional[float]]:
    """Per-phase timeouts for the transport, none of them outliving deadline."""
    phases = timeout.as_dict()
    if deadline is None:
        return phases
    left = max(deadline - time.monotonic(), 0.0)
    return {phase: left if value is None else min(value, left) for phase, value in phases.items()}


class _DeadlineStream(httpx.SyncByteStream):
    """Response body stream that fails once the request deadline has passed."""

    def __init__(self, stream: httpx.SyncByteStream, request: httpx.Request, deadline: float):
        self._stream = stream
        self._request = request
        self._deadline = deadline

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self._stream:
            if time.monotonic() >= self._deadline:
                raise httpx.ReadTimeout("request deadline exceeded while reading the body", request=self._request)
            yield chunk

    def close(self) -> None:
        self._stream.close()


class RequestBuilder(TLSMixin):
    """
    Fluent HTTP request builder.

    Configuration calls return the builder and never raise: the first error
    is kept and returned by go(). Not safe for concurrent use.
    """

    def __init__(self, transport: Optional[httpx.BaseTransport] = None):
        self._url = ""
        self._method = GET
        self._queries: Dict[str, str] = {}
        self._headers: Dict[str, str] = {}
        self._content_type: Optional[str] = None
        self._body: bytes = b""
        self._timeouts = TimeoutConfig()
        self._transport_config = TransportConfig()
        self._custom_transport = transport
        self._transports = TransportCache()
        self._err: Optional[Exception] = None

    def __enter__(self) -> "RequestBuilder":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close pooled connections of the transports this builder created."""
        self._transports.clear()

    # -- state ---------------------------------------------------------------

    @property
    def err(self) -> Optional[Exception]:
        """The first configuration error, if any."""
        return self._err

    @property
    def timeouts(self) -> TimeoutConfig:
        return self._timeouts

    @property
    def transport_config(self) -> TransportConfig:
        return self._transport_config

    def _keep_origin_err(self, err: Optional[Exception]) -> None:
        if self._err is None:
            self._err = err

    def _invalidate_transport(self) -> None:
        self._transports.clear()

    # -- method and url ------------------------------------------------------

    def renew(self, method: Union[HttpMethod, str], url: str) -> "RequestBuilder":
        """Start a new request. Transport, TLS, timeouts and queries are kept."""
        self._url = url
        self._method = method.upper()
        self._headers = {}
        self._content_type = None
        self._body = b""
        self._err = None
        return self

    def get(self, url: str) -> "RequestBuilder":
        return self.renew(GET, url)

    def post(self, url: str) -> "RequestBuilder":
        return self.renew(POST, url)

    def put(self, url: str) -> "RequestBuilder":
        return self.renew(PUT, url)

    def head(self, url: str) -> "RequestBuilder":
        return self.renew(HEAD, url)

    def delete(self, url: str) -> "RequestBuilder":
        return self.renew(DELETE, url)

    def patch(self, url: str) -> "RequestBuilder":
        return self.renew(PATCH, url)

    def options(self, url: str) -> "RequestBuilder":
        return self.renew(OPTIONS, url)

    def append_query(self, key: str, value: str) -> "RequestBuilder":
        self._queries[key] = value
        return self

    def append_queries(self, queries: Optional[Mapping[str, str]]) -> "RequestBuilder":
        if not queries:
            return self
        self._queries.update(queries)
        return self

    # -- headers and body ----------------------------------------------------

    def header(self, key: str, value: str) -> "RequestBuilder":
        if not key or not value:
            self._keep_origin_err(InvalidHeaderError(key, value))
        else:
            self._headers[key] = value
        return self

    def headers(self, headers: Mapping[str, str]) -> "RequestBuilder":
        for key, value in headers.items():
            self.header(key, value)
        return self

    def content_type(self, content_type: str) -> "RequestBuilder":
        self._content_type = content_type
        return self

    def body(self, body: Any) -> "RequestBuilder":
        """Set the body: str, bytes, or any JSON-serializable value."""
        try:
            self._body = encode_body(body)
        except BodyEncodeError as e:
            self._body = b""
            self._keep_origin_err(e)
        return self

    # -- timeouts ------------------------------------------------------------

    def _duration(self, value: Duration) -> Optional[float]:
        try:
            return normalize_duration(value)
        except (TypeError, ValueError) as e:
            self._keep_origin_err(e)
            return None

    def timeout(self, timeout: Duration) -> "RequestBuilder":
        seconds = self._duration(timeout)
        if seconds is not None:
            self._timeouts.timeout = seconds
        return self

    def dial_timeout(self, timeout: Duration) -> "RequestBuilder":
        seconds = self._duration(timeout)
        if seconds is not None:
            self._timeouts.dial = seconds
        return self

    def keep_alive_timeout(self, timeout: Duration) -> "RequestBuilder":
        seconds = self._duration(timeout)
        if seconds is not None:
            self._timeouts.keep_alive = seconds
            self._invalidate_transport()
        return self

    def idle_conn_timeout(self, timeout: Duration) -> "RequestBuilder":
        seconds = self._duration(timeout)
        if seconds is not None:
            self._transport_config.idle_conn_timeout = seconds
            self._invalidate_transport()
        return self

    def tls_handshake_timeout(self, timeout: Duration) -> "RequestBuilder":
        seconds = self._duration(timeout)
        if seconds is not None:
            self._transport_config.tls_handshake_timeout = seconds
        return self

    def expect_continue_timeout(self, timeout: Duration) -> "RequestBuilder":
        """
        Store the expect-continue timeout on the transport config.
        It has no effect on the wire: httpx never sends Expect: 100-continue.
        """
        seconds = self._duration(timeout)
        if seconds is not None:
            self._transport_config.expect_continue_timeout = seconds
        return self

    # -- transport -----------------------------------------------------------

    def proxy(self, proxy_url: Optional[Union[str, bool]]) -> "RequestBuilder":
        """Proxy URL to use. False disables proxying, None reads the environment."""
        if proxy_url is True:
            proxy_url = None
        self._transport_config.proxy = proxy_url
        return self

    def transport(self, transport: Optional[httpx.BaseTransport]) -> "RequestBuilder":
        """Send through the given transport instead of the default one."""
        self._custom_transport = transport
        return self

    # -- execution -----------------------------------------------------------

    def _full_url(self) -> httpx.URL:
        try:
            url = httpx.URL(self._url)
            params = url.params
            for key, value in self._queries.items():
                params = params.add(key, value)
            return url.copy_with(params=params)
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            raise InvalidURLError(self._url, e)

    def debug_string(self) -> str:
        """Human readable dump of the request, for diagnostics."""
        try:
            url = str(self._full_url())
        except InvalidURLError as e:
            self._keep_origin_err(e)
            url = str(e)
        return (
            f"[url]: {url}\n"
            f"[method]: {self._method}\n"
            f"[header]: {self._headers}\n"
            f"[content type]: {self._content_type or ''}\n"
            f"[body]: {_format_body(self._body)}\n"
        )

    def build_request(self) -> httpx.Request:
        """
        Build the httpx request.
        Raises InvalidURLError for a malformed URL and RequestBuildError when
        the request cannot be constructed.
        """
        url = self._full_url()
        try:
            if not _TOKEN_RE.match(self._method):
                raise ValueError(f"invalid method {self._method!r}")
            headers = httpx.Headers()
            if self._content_type:
                headers[HEADER_CONTENT_TYPE] = self._content_type
            for key, value in self._headers.items():
                headers[key] = value
            return httpx.Request(self._method, url, headers=headers, content=self._body or None)
        except (httpx.InvalidURL, UnicodeEncodeError, TypeError, ValueError) as e:
            raise RequestBuildError(e)

    def _get_transport(self, url: httpx.URL) -> httpx.BaseTransport:
        if self._custom_transport is not None:
            return self._custom_transport
        proxy_url = resolve_proxy_url(str(url), self._transport_config.proxy)
        return self._transports.get(self._transport_config, self._timeouts.keep_alive, proxy_url)

    def _make_client(self, url: httpx.URL, timeout: httpx.Timeout) -> httpx.Client:
        return httpx.Client(
            transport=self._get_transport(url),
            timeout=timeout,
            follow_redirects=True,
            trust_env=False,
        )

    def go(self) -> FetchResult:
        """
        Send the request and wait for the response.
        Returns FetchResult(response, error); exactly one of them is set.

        The overall timeout is a deadline for the whole exchange. It is
        checked once the headers arrive and again for every body chunk, and
        each phase timeout handed to httpx is cut down to the time left.
        """
        if self._err is not None:
            return FetchResult(None, self._err)

        try:
            request = self.build_request()
        except InvalidURLError as e:
            self._keep_origin_err(e)
            return FetchResult(None, e)
        except FetchBuilderError as e:
            return FetchResult(None, e)

        handshake = self._transport_config.tls_handshake_timeout if request.url.scheme == "https" else 0.0
        timeout = self._timeouts.to_httpx(tls_handshake=handshake)
        deadline = None
        if self._timeouts.timeout > 0:
            deadline = time.monotonic() + self._timeouts.timeout
        # Client.send does not apply the client timeout to a prebuilt request.
        request.extensions["timeout"] = _shrink_timeout(timeout, deadline)

        try:
            # The client is not closed: closing it would close the shared transport.
            client = self._make_client(request.url, timeout)
        except (ssl.SSLError, OSError, ValueError) as e:
            return FetchResult(None, RequestBuildError(e))

        logger.debug(f"{LOG_PREFIX} Request: {request.method} {request.url}")
        try:
            response = client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.debug(f"{LOG_PREFIX} Request failed: {e!r}")
            return FetchResult(None, e)

        try:
            if deadline is not None:
                if time.monotonic() >= deadline:
                    raise httpx.ReadTimeout("request deadline exceeded before the response body", request=request)
                response.stream = _DeadlineStream(response.stream, request, deadline)
            response.read()
        except httpx.HTTPError as e:
            response.close()
            logger.debug(f"{LOG_PREFIX} Request failed: {e!r}")
            return FetchResult(None, e)

        logger.debug(f"{LOG_PREFIX} Response: {response.status_code} {request.method} {request.url}")
        return FetchResult(response, None)

    def do(self, callback: Optional[Callback]) -> None:
        """Run go() and hand its outcome to callback, on the calling thread."""
        if callback is None:
            return
        callback(*self.go())


def new(transport: Optional[httpx.BaseTransport] = None) -> RequestBuilder:
    """Create a builder with default timeouts and TLS settings."""
    return RequestBuilder(transport=transport)
