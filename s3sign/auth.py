import datetime
import logging
import time
from typing import Mapping, Optional
from urllib.parse import parse_qsl, quote, urlencode

from .config import ClientConfig
from .expiry import align
from .models import AuthMethod, HttpMethod, RequestOptions, SignedRequest
from .utils import S3Signer, filter_amz_headers, rfc1123_date, url_encode_loose

logger = logging.getLogger(__name__)


def _pop_header(headers: dict, name: str) -> str:
    """Remove every spelling of ``name`` from ``headers``; return the last non-empty value."""
    value = ''
    for key in [k for k in headers if k.lower() == name.lower()]:
        value = headers.pop(key) or value
    return value


class Authenticator:
    """Turns (method, bucket, key, options) into signed requests and presigned URLs.

    The config is only read, so one Authenticator can serve many threads.
    ``clock`` returns Unix seconds and exists so tests can pin the time.
    """

    # lifetime of the presigned URL used for ordinary requests under v4
    V4_REQUEST_LIFETIME = 900

    def __init__(self, config: ClientConfig, clock=time.time):
        self.config = config
        self.clock = clock

    def now(self) -> datetime.datetime:
        return datetime.datetime.fromtimestamp(self.clock(), tz=datetime.timezone.utc)

    def sign(self, method, bucket: str = '', key: str = '',
             options: RequestOptions = None, payload: bytes = b'') -> SignedRequest:
        method = HttpMethod.coerce(method)
        options = options or RequestOptions()
        headers = {k: v for k, v in options.headers.items() if v is not None}
        headers.update({k: v for k, v in options.amz_headers.items() if v is not None})
        amz_headers = filter_amz_headers(headers)

        content_md5 = _pop_header(headers, 'Content-MD5')
        if payload:
            content_md5 = S3Signer.content_md5(payload)
        if content_md5:
            headers['Content-MD5'] = content_md5
        supplied_type = _pop_header(headers, 'Content-Type')
        content_type = options.content_type or supplied_type
        # PUT and POST need a content type even with an empty body
        if not content_type and method.has_body:
            content_type = 'text/xml'
        if content_type:
            headers['Content-Type'] = content_type
        subresource = (options.subresource or '').lstrip('?')

        params = {k: str(v) for k, v in options.params.items() if v is not None}

        if self.config.auth_method is AuthMethod.V4:
            query = dict(parse_qsl(subresource, keep_blank_values=True))
            query.update(params)
            url = S3Signer.sign_v4_presigned(self.config, self.V4_REQUEST_LIFETIME,
                                             bucket, method, key, query, headers,
                                             self.now())
        else:
            date = rfc1123_date(self.now())
            headers['Date'] = date
            _, authorization = S3Signer.sign_v2(
                self.config, method, content_md5, content_type, date, amz_headers,
                url_encode_loose(bucket), '/' + url_encode_loose(key), subresource)
            headers['Authorization'] = authorization
            url = S3Signer.object_url(self.config, bucket, key)
            query = [subresource] if subresource else []
            if params:
                query.append(urlencode(params, quote_via=quote))
            if query:
                url += '?' + '&'.join(query)

        logger.debug("Signed %s %s", method.value, url)
        return SignedRequest(method=method, url=url, headers=headers, body=payload)

    def _window(self, ttl: int, window_size: Optional[int]):
        window_size = window_size or self.config.expiry_window
        if window_size:
            return align(self.clock(), ttl, window_size)
        return None

    def presign(self, method, bucket: str, key: str, ttl: int,
                window_size: int = None, headers: Mapping[str, str] = None,
                extra_params: Mapping[str, str] = None) -> str:
        """Presigned v4 URL valid for ``ttl`` seconds.

        With a window size (argument or config), the signing date and the
        lifetime are aligned to window boundaries so repeated calls inside
        one window return the same URL.
        """
        window = self._window(ttl, window_size)
        if window is not None:
            anchor, lifetime = window.anchor_datetime, window.lifetime
            logger.debug("Expiration window %s -> %d", window.amz_date, window.expiry)
        else:
            anchor, lifetime = self.now(), ttl
        return S3Signer.sign_v4_presigned(self.config, lifetime, bucket, method, key,
                                          extra_params, headers, anchor)

    def presign_v2(self, method, bucket: str, key: str, ttl: int,
                   window_size: int = None, subresource: str = '') -> str:
        window = self._window(ttl, window_size)
        if window is not None:
            expires = window.expiry
        else:
            expires = int(self.clock()) + ttl
        return S3Signer.presign_v2(self.config, method, bucket, key, expires, subresource)
