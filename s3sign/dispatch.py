import logging
from typing import Mapping, Tuple
from xml.etree.ElementTree import Element, ParseError

import requests
from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool

from . import xmlutil
from .config import SslOptions
from .errors import HttpError, ServiceError, TransportError
from .models import HttpMethod, RequestState, SignedRequest
from .utils import META_HEADER_PREFIX

logger = logging.getLogger(__name__)


class _Http10Connection(HTTPConnection):
    _http_vsn = 10
    _http_vsn_str = 'HTTP/1.0'


class _Http10SConnection(HTTPSConnection):
    _http_vsn = 10
    _http_vsn_str = 'HTTP/1.0'


class _Http10Pool(HTTPConnectionPool):
    ConnectionCls = _Http10Connection


class _Http10SPool(HTTPSConnectionPool):
    ConnectionCls = _Http10SConnection


class Http10Adapter(HTTPAdapter):
    """Adapter whose connections speak HTTP/1.0.

    Some servers answer HEAD with chunked transfer-encoding and no chunks,
    which leaves the response parser waiting. HTTP/1.0 has no chunked framing.
    """

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            'http': _Http10Pool,
            'https': _Http10SPool,
        }


class RequestsTransport:
    """send(url, headers, method, body, ssl_options) -> (status, headers, body)"""

    def __init__(self, session: requests.Session = None, timeout=None):
        self.session = session or requests.Session()
        self.head_session = requests.Session()
        self.head_session.mount('http://', Http10Adapter())
        self.head_session.mount('https://', Http10Adapter())
        self.timeout = timeout

    def send(self, url: str, headers: Mapping[str, str], method: str, body: bytes,
             ssl_options: SslOptions) -> Tuple[int, dict, bytes]:
        session = self.head_session if method == HttpMethod.HEAD.value else self.session
        resp = session.request(
            method, url,
            headers=dict(headers),
            data=body,
            verify=ssl_options.verify,
            cert=ssl_options.cert,
            timeout=self.timeout,
            allow_redirects=False,
        )
        return resp.status_code, dict(resp.headers), resp.content


def canonicalize_headers(headers: Mapping[str, str]) -> dict:
    return {str(k).lower(): v for k, v in headers.items()}


def retrieve_header_value(name: str, headers: Mapping[str, str]) -> str:
    """Look ``name`` up in canonicalized headers; empty string when absent."""
    return headers.get(name.lower(), '')


def extract_metadata(headers: Mapping[str, str]) -> dict:
    return {k[len(META_HEADER_PREFIX):]: v for k, v in headers.items()
            if k.startswith(META_HEADER_PREFIX)}


def _log_state(signed: SignedRequest, state: RequestState, status: int = None) -> None:
    suffix = f" ({status})" if status is not None else ""
    logger.debug("%s %s: %s%s", signed.method.value, signed.url, state.value, suffix,
                 extra={"method": signed.method.value, "url": signed.url,
                        "state": state.value, "status": status})


def raise_for_error_envelope(root: Element) -> None:
    if xmlutil.local_name(root.tag) == 'Error':
        raise ServiceError(xmlutil.find_text(root, 'Code', ''),
                           xmlutil.find_text(root, 'Message', ''))


class Dispatcher:
    def __init__(self, transport=None, ssl_options: SslOptions = None):
        self.transport = transport or RequestsTransport()
        self.ssl_options = ssl_options or SslOptions()

    def dispatch(self, signed: SignedRequest) -> Tuple[dict, bytes]:
        """Send a signed request and return ``(headers, body)``.

        Header names come back lower-cased. Raises HttpError for statuses
        outside [200, 299] and TransportError when no response arrived.
        """
        method = signed.method.value
        _log_state(signed, RequestState.SENT)
        try:
            status, headers, body = self.transport.send(
                signed.url, signed.headers, method, signed.body, self.ssl_options)
        except (requests.RequestException, OSError) as exc:
            _log_state(signed, RequestState.TRANSPORT_FAILED)
            raise TransportError(exc) from exc

        headers = canonicalize_headers(headers)
        if 200 <= status <= 299:
            _log_state(signed, RequestState.SUCCEEDED, status)
            return headers, body
        _log_state(signed, RequestState.HTTP_FAILED, status)
        raise HttpError(status, headers, body)

    def xml_request(self, signed: SignedRequest) -> Element:
        """Dispatch and parse the body.

        An <Error> root, or a body that is not XML, raises ServiceError.
        """
        _, body = self.dispatch(signed)
        try:
            root = xmlutil.parse(body)
        except ParseError as exc:
            raise ServiceError('MalformedResponse', str(exc)) from exc
        self._check_envelope(signed, root)
        return root

    def simple_request(self, signed: SignedRequest) -> dict:
        """Dispatch, accepting an empty body; an <Error> root raises ServiceError."""
        headers, body = self.dispatch(signed)
        if body and body.strip():
            try:
                root = xmlutil.parse(body)
            except ParseError:
                return headers
            self._check_envelope(signed, root)
        return headers

    def _check_envelope(self, signed, root):
        try:
            raise_for_error_envelope(root)
        except ServiceError:
            _log_state(signed, RequestState.SERVICE_ERROR_IN_BODY)
            raise
