"""Error taxonomy for signing and dispatching S3 requests."""

import enum


class ErrorKind(enum.Enum):
    INVALID_HOST_FORMAT = "invalid_host_format"
    UNSUPPORTED_METHOD = "unsupported_method"
    TRANSPORT = "transport"
    HTTP = "http"
    SERVICE_ERROR_IN_BODY = "service_error_in_body"


class S3SignError(Exception):
    """Base class for every error raised by s3sign.

    Attributes:
        kind: The ErrorKind tag, so callers can branch without isinstance chains.
    """

    kind = None


class InvalidHostFormat(S3SignError, ValueError):
    """The raw host string matches none of the recognized endpoint shapes."""

    kind = ErrorKind.INVALID_HOST_FORMAT

    def __init__(self, raw_host, reason: str = ""):
        message = f"Invalid host format: {raw_host!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.raw_host = raw_host
        self.reason = reason


class UnsupportedMethod(S3SignError, ValueError):
    """The HTTP verb is not one of GET, PUT, POST, DELETE or HEAD."""

    kind = ErrorKind.UNSUPPORTED_METHOD

    def __init__(self, method):
        super().__init__(f"Unsupported HTTP method: {method!r}")
        self.method = method


class TransportError(S3SignError):
    """Connection-level failure (DNS, refused connection, timeout)."""

    kind = ErrorKind.TRANSPORT

    def __init__(self, cause: BaseException):
        super().__init__(f"Transport failure: {cause}")
        self.cause = cause


class HttpError(S3SignError):
    """A response arrived with a status outside [200, 299]."""

    kind = ErrorKind.HTTP

    def __init__(self, status: int, headers: dict, body: bytes):
        super().__init__(f"HTTP error {status}")
        self.status = status
        self.headers = headers
        self.body = body


class ServiceError(S3SignError):
    """A 2xx response whose body is an XML <Error> envelope."""

    kind = ErrorKind.SERVICE_ERROR_IN_BODY

    def __init__(self, code: str, message: str):
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
