from typing import Any, Optional


class FetchBuilderError(Exception):
    """Base exception for request builder errors."""
    pass


class InvalidHeaderError(FetchBuilderError):
    def __init__(self, key: str = "", value: str = ""):
        super().__init__("invalid header, key or value is empty")
        self.key = key
        self.value = value


class BodyEncodeError(FetchBuilderError):
    def __init__(self, value: Any, cause: Exception):
        msg = f"failed to encode body of type '{type(value).__name__}' as JSON: {str(cause)}"
        super().__init__(msg)
        self.value = value
        self.cause = cause


class InvalidURLError(FetchBuilderError):
    def __init__(self, url: str, cause: Exception):
        msg = f"invalid url {url!r}: {str(cause)}"
        super().__init__(msg)
        self.url = url
        self.cause = cause


class RequestBuildError(FetchBuilderError):
    def __init__(self, cause: Exception):
        msg = f"make request failed: {str(cause)!r}"
        super().__init__(msg)
        self.cause = cause


class CertificateError(FetchBuilderError):
    def __init__(self, message: str, cause: Optional[Exception] = None):
        if cause is not None:
            message = f"{message}: {str(cause)}"
        super().__init__(message)
        self.cause = cause
