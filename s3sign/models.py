import enum
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .errors import UnsupportedMethod


class HttpMethod(enum.Enum):
    GET = "GET"
    PUT = "PUT"
    POST = "POST"
    DELETE = "DELETE"
    HEAD = "HEAD"

    @classmethod
    def coerce(cls, value) -> "HttpMethod":
        """Return the member for an enum value or a case-insensitive verb name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            member = _METHODS.get(value.upper())
            if member is not None:
                return member
        raise UnsupportedMethod(value)

    @property
    def has_body(self) -> bool:
        return self in (HttpMethod.PUT, HttpMethod.POST)


_METHODS = {m.value: m for m in HttpMethod}


class AddressingMode(enum.Enum):
    VIRTUAL_HOSTED = "virtual_hosted"
    PATH = "path"

    @classmethod
    def coerce(cls, value) -> "AddressingMode":
        if isinstance(value, cls):
            return value
        name = str(value).lower()
        if name == "vhost":
            return cls.VIRTUAL_HOSTED
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Unknown bucket addressing mode: {value!r}") from None


class AuthMethod(enum.Enum):
    V2 = "v2"
    V4 = "v4"

    @classmethod
    def coerce(cls, value) -> "AuthMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown auth method: {value!r}") from None


class RequestState(enum.Enum):
    BUILT = "built"
    SIGNED = "signed"
    SENT = "sent"
    SUCCEEDED = "succeeded"
    HTTP_FAILED = "http_failed"
    TRANSPORT_FAILED = "transport_failed"
    SERVICE_ERROR_IN_BODY = "service_error_in_body"


@dataclass(frozen=True)
class RequestOptions:
    content_type: Optional[str] = None
    amz_headers: Mapping[str, str] = field(default_factory=dict)
    subresource: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    # query parameters that are not part of the v2 canonical resource
    params: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SignedRequest:
    method: HttpMethod
    url: str
    headers: Mapping[str, str]
    body: bytes = b""
