"""
Core type definitions for fetch-builder.
"""
from typing import Callable, Literal, NamedTuple, Optional

import httpx

from .errors import FetchBuilderError

# HTTP Methods
HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

GET = "GET"
POST = "POST"
PUT = "PUT"
HEAD = "HEAD"
DELETE = "DELETE"
PATCH = "PATCH"
OPTIONS = "OPTIONS"

# Content types
HEADER_CONTENT_TYPE = "Content-Type"
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_JSON_UTF8 = "application/json;charset=UTF-8"
CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"
CONTENT_TYPE_TEXT = "text/plain"
CONTENT_TYPE_XML = "application/xml"


class FetchResult(NamedTuple):
    """Outcome of executing a request: the raw response or the error."""
    response: Optional[httpx.Response]
    error: Optional[Exception]

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> httpx.Response:
        """Return the response, raising the error if there is one."""
        if self.error is not None:
            raise self.error
        if self.response is None:
            raise FetchBuilderError("result carries neither a response nor an error")
        return self.response


# Completion callback for RequestBuilder.do()
Callback = Callable[[Optional[httpx.Response], Optional[Exception]], None]
