"""Endpoint parsing and URL composition.

A raw host may arrive as ``scheme://domain:port``, ``scheme://domain``,
``domain:port`` or a bare ``domain``, and IPv6 literals may be bracketed
(``[::1]``, ``https://[::1]:9000``). ``normalize`` turns any of these into an
``Endpoint``; ``compose`` renders an endpoint back into a URL for either
bucket addressing mode, always with an explicit port so that generated URLs
stay byte-stable.
"""

import enum
import ipaddress
import logging
import re
from dataclasses import dataclass

from .errors import InvalidHostFormat
from .models import AddressingMode

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"https": 443, "http": 80}

_SCHEME_RE = re.compile(r"^([A-Za-z][A-Za-z0-9+.-]*)://(.*)$")
_BRACKETED_RE = re.compile(r"^\[([^\[\]]+)\](?::([^:]*))?$")
_DOMAIN_RE = re.compile(r"^([^:/\[\]\s@]+)(?::([^:]*))?$")
_PORT_RE = re.compile(r"^[0-9]+$")
_HOST_WITH_PORT_RE = re.compile(r"^((?:https?://)?(?:\[[^\]]*\]|[^:\[\]]+)):[0-9]+$")


class AddressFamily(enum.Enum):
    V4 = 4
    V6 = 6


@dataclass(frozen=True)
class Endpoint:
    scheme: str
    domain: str
    port: int
    address_family: AddressFamily = AddressFamily.V4
    userinfo: str = ""

    def __post_init__(self):
        if self.scheme not in DEFAULT_PORTS:
            raise ValueError(f"Unsupported scheme: {self.scheme!r}")
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ValueError(f"Port must be an integer, got {self.port!r}")
        if not 0 < self.port <= 65535:
            raise ValueError(f"Port out of range: {self.port}")
        if not self.domain:
            raise ValueError("Domain must not be empty")

    @property
    def host(self) -> str:
        """Domain as it appears in a URL; IPv6 literals are bracket-wrapped."""
        if self.address_family is AddressFamily.V6:
            return f"[{self.domain}]"
        return self.domain

    @property
    def netloc(self) -> str:
        return f"{self.host}:{self.port}"


def normalize(raw_host: str) -> Endpoint:
    """Parse a raw host specification into an Endpoint.

    Raises InvalidHostFormat for any shape other than the recognized ones.
    """
    if not isinstance(raw_host, str) or not raw_host.strip():
        raise InvalidHostFormat(raw_host, "empty host")
    rest = raw_host.strip()
    if rest.endswith("/"):
        rest = rest[:-1]

    scheme = None
    match = _SCHEME_RE.match(rest)
    if match:
        scheme = match.group(1).lower()
        if scheme not in DEFAULT_PORTS:
            raise InvalidHostFormat(raw_host, f"unsupported scheme {scheme!r}")
        rest = match.group(2)
    elif "://" in rest:
        raise InvalidHostFormat(raw_host, "malformed scheme")

    userinfo = ""
    if "@" in rest:
        userinfo, _, rest = rest.rpartition("@")
        if not userinfo:
            raise InvalidHostFormat(raw_host, "empty user info")

    if rest.startswith("["):
        match = _BRACKETED_RE.match(rest)
        if not match:
            raise InvalidHostFormat(raw_host, "unbalanced IPv6 brackets")
        domain, port_text = match.groups()
        if not _is_ipv6(domain):
            raise InvalidHostFormat(raw_host, "bracketed domain is not an IPv6 address")
        family = AddressFamily.V6
    else:
        match = _DOMAIN_RE.match(rest)
        if match:
            domain, port_text = match.groups()
            family = AddressFamily.V4
        elif not userinfo and _is_ipv6(rest):
            # bare IPv6 literal, which can never carry a port
            domain, port_text = rest, None
            family = AddressFamily.V6
        else:
            raise InvalidHostFormat(raw_host, "unrecognized host shape")

    port = _parse_port(raw_host, port_text)
    if scheme is None:
        scheme = "http" if port == 80 else "https"
    if port is None:
        port = DEFAULT_PORTS[scheme]

    endpoint = Endpoint(scheme=scheme, domain=domain, port=port,
                        address_family=family, userinfo=userinfo)
    logger.debug("Normalized host %r to %s", raw_host, url_with_port(endpoint))
    return endpoint


def _is_ipv6(value: str) -> bool:
    try:
        ipaddress.IPv6Address(value)
    except ValueError:
        return False
    return True


def _parse_port(raw_host, port_text):
    if port_text is None:
        return None
    if not _PORT_RE.match(port_text):
        raise InvalidHostFormat(raw_host, f"invalid port {port_text!r}")
    port = int(port_text)
    if not 0 < port <= 65535:
        raise InvalidHostFormat(raw_host, f"port {port} out of range")
    return port


def _authority(endpoint: Endpoint) -> str:
    userinfo = f"{endpoint.userinfo}@" if endpoint.userinfo else ""
    return f"{userinfo}{endpoint.netloc}"


def compose(endpoint: Endpoint, addressing_mode, resource_name: str = "") -> str:
    """Render the URL of ``resource_name`` (usually a bucket) on ``endpoint``.

    virtual-hosted: ``scheme://{resource}.{domain}:{port}``
    path:           ``scheme://{domain}:{port}/{resource}``
    """
    mode = AddressingMode.coerce(addressing_mode)
    if mode is AddressingMode.VIRTUAL_HOSTED:
        prefix = f"{resource_name}." if resource_name else ""
        return f"{endpoint.scheme}://{prefix}{_authority(endpoint)}"
    suffix = f"/{resource_name}" if resource_name else ""
    return f"{endpoint.scheme}://{_authority(endpoint)}{suffix}"


def url_with_port(endpoint: Endpoint) -> str:
    return compose(endpoint, AddressingMode.PATH)


def url_without_port(endpoint: Endpoint) -> str:
    userinfo = f"{endpoint.userinfo}@" if endpoint.userinfo else ""
    return f"{endpoint.scheme}://{userinfo}{endpoint.host}"


def toggle_port(host: str, endpoint: Endpoint) -> str:
    """Strip the port from ``host`` if it has one, otherwise append the endpoint's."""
    match = _HOST_WITH_PORT_RE.match(host)
    if match:
        return match.group(1)
    if _is_ipv6(host):
        host = f"[{host}]"
    return f"{host}:{endpoint.port}"
