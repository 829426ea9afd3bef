import base64
import datetime
import hashlib
import hmac
import logging
from typing import Mapping, Optional, Tuple
from urllib.parse import quote, urlencode

from botocore.auth import S3SigV4QueryAuth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials
from botocore.exceptions import NoCredentialsError

from .endpoint import compose
from .expiry import AMZ_DATE_FORMAT
from .models import HttpMethod

logger = logging.getLogger(__name__)

RFC1123_FORMAT = '%a, %d %b %Y %H:%M:%S GMT'
AMZ_HEADER_PREFIX = 'x-amz-'
META_HEADER_PREFIX = 'x-amz-meta-'


def url_encode_loose(value: str) -> str:
    """Percent-encode everything except A-Z a-z 0-9 - _ . ~ and /."""
    return quote(value, safe='/~')


def rfc1123_date(moment: datetime.datetime) -> str:
    return moment.astimezone(datetime.timezone.utc).strftime(RFC1123_FORMAT)


def filter_amz_headers(headers: Mapping[str, str]) -> dict:
    """Keep the x-amz-* entries of ``headers`` with lower-cased names."""
    return {k.lower(): v for k, v in headers.items()
            if k.lower().startswith(AMZ_HEADER_PREFIX) and v is not None}


def canonicalize_amz_headers(amz_headers: Mapping[str, str]) -> str:
    # Names that collide once lower-cased keep the last value.
    lowered = {k.lower(): v for k, v in (amz_headers or {}).items()}
    return ''.join(f"{name}:{lowered[name]}\n" for name in sorted(lowered))


def string_to_sign(method, content_md5: str, content_type: str, date: str,
                   amz_headers: Mapping[str, str], host: str, resource_path: str,
                   subresource: str) -> str:
    method = HttpMethod.coerce(method)
    return ''.join([
        method.value, '\n',
        content_md5 or '', '\n',
        content_type or '', '\n',
        date, '\n',
        canonicalize_amz_headers(amz_headers),
        f"/{host}" if host else '',
        resource_path,
        f"?{subresource}" if subresource else '',
    ])


def make_authorization(access_key_id: str, secret_access_key: str, method,
                       content_md5: str, content_type: str, date: str,
                       amz_headers: Mapping[str, str], host: str,
                       resource_path: str, subresource: str) -> Tuple[str, str]:
    """Return ``(string_to_sign, authorization_header_value)`` for signature v2."""
    to_sign = string_to_sign(method, content_md5, content_type, date,
                             amz_headers, host, resource_path, subresource)
    signature = S3Signer.hmac_sha1(secret_access_key, to_sign)
    logger.debug("v2 string to sign: %r", to_sign)
    return to_sign, f"AWS {access_key_id}:{signature}"


class _AnchoredQueryAuth(S3SigV4QueryAuth):
    """S3 SigV4 query authentication signed at a caller-chosen timestamp."""

    def __init__(self, credentials, region_name, expires, timestamp):
        super().__init__(credentials, 's3', region_name, expires=expires)
        self._timestamp = timestamp

    def add_auth(self, request):
        if self.credentials is None:
            raise NoCredentialsError()
        request.context['timestamp'] = self._timestamp.strftime(AMZ_DATE_FORMAT)
        self._modify_request_before_signing(request)
        canonical_request = self.canonical_request(request)
        logger.debug("v4 canonical request:\n%s", canonical_request)
        to_sign = self.string_to_sign(request, canonical_request)
        signature = self.signature(to_sign, request)
        self._inject_signature_to_request(request, signature)


class S3Signer:
    @staticmethod
    def hmac_sha1(secret_key: str, message: str) -> str:
        sig = hmac.new(secret_key.encode('utf-8'),
                       message.encode('utf-8'),
                       hashlib.sha1).digest()
        return base64.b64encode(sig).decode('utf-8')

    @staticmethod
    def content_md5(payload: bytes) -> str:
        return base64.b64encode(hashlib.md5(payload).digest()).decode('utf-8')

    @staticmethod
    def sign_v2(config, method, content_md5: str, content_type: str, date: str,
                amz_headers: Mapping[str, str], host: str, resource_path: str,
                subresource: str) -> Tuple[str, str]:
        """
        AWS Signature Version 2 over the canonical string:
        METHOD, Content-MD5, Content-Type, Date, x-amz-* headers, then
        /host + resource + ?subresource.
        """
        return make_authorization(config.access_key_id, config.secret_access_key,
                                  method, content_md5, content_type, date,
                                  amz_headers, host, resource_path, subresource)

    @staticmethod
    def object_url(config, bucket: str, key: str) -> str:
        """URL of ``key`` in ``bucket``; both are loose-encoded here."""
        base = compose(config.endpoint, config.addressing_mode, url_encode_loose(bucket))
        return base + '/' + url_encode_loose(key)

    @classmethod
    def sign_v4_presigned(cls, config, lifetime_seconds: int, bucket: str, method,
                          key: str, extra_params: Optional[Mapping[str, str]] = None,
                          headers: Optional[Mapping[str, str]] = None,
                          anchor_date: Optional[datetime.datetime] = None) -> str:
        """Presign a v4 URL; the SigV4 algorithm itself is botocore's.

        ``anchor_date`` replaces the current time as X-Amz-Date, which is how
        expiration windows make URLs reproducible.
        """
        method = HttpMethod.coerce(method)
        url = cls.object_url(config, bucket, key)
        if extra_params:
            url += '?' + urlencode(extra_params, quote_via=quote)
        if anchor_date is None:
            anchor_date = datetime.datetime.now(datetime.timezone.utc)
        request = AWSRequest(method=method.value, url=url, headers=dict(headers or {}))
        credentials = Credentials(config.access_key_id, config.secret_access_key)
        _AnchoredQueryAuth(credentials, config.region, int(lifetime_seconds),
                           anchor_date).add_auth(request)
        return request.url

    @classmethod
    def presign_v2(cls, config, method, bucket: str, key: str, expires: int,
                   subresource: str = '') -> str:
        """Legacy query-string authentication; ``expires`` is a Unix epoch."""
        resource = '/' + url_encode_loose(key)
        to_sign = string_to_sign(method, '', '', str(expires), {},
                                 url_encode_loose(bucket), resource, subresource)
        query = urlencode({
            'AWSAccessKeyId': config.access_key_id,
            'Expires': str(expires),
            'Signature': cls.hmac_sha1(config.secret_access_key, to_sign),
        })
        url = cls.object_url(config, bucket, key)
        if subresource:
            return f"{url}?{subresource}&{query}"
        return f"{url}?{query}"
