import logging

from . import xmlutil
from .bucket import encode_acl, extract_acl
from .dispatch import extract_metadata, retrieve_header_value
from .models import RequestOptions
from .utils import META_HEADER_PREFIX, url_encode_loose

logger = logging.getLogger(__name__)


def _object_info(headers: dict) -> dict:
    return {
        'content_type': retrieve_header_value('Content-Type', headers),
        'content_length': retrieve_header_value('Content-Length', headers),
        'etag': retrieve_header_value('ETag', headers),
        'last_modified': retrieve_header_value('Last-Modified', headers),
        'version_id': retrieve_header_value('x-amz-version-id', headers),
        'delete_marker': retrieve_header_value('x-amz-delete-marker', headers) == 'true',
        'metadata': extract_metadata(headers),
    }


def _version_options(version_id) -> RequestOptions:
    if version_id:
        return RequestOptions(subresource=f"versionId={version_id}")
    return RequestOptions()


class ObjectManager:
    def __init__(self, auth, dispatcher):
        self.auth = auth
        self.dispatcher = dispatcher

    def put_object(self, bucket_name: str, key: str, data: bytes,
                   content_type: str = None, metadata: dict = None,
                   acl: str = None) -> dict:
        amz_headers = {META_HEADER_PREFIX + k: v for k, v in (metadata or {}).items()}
        if acl:
            amz_headers['x-amz-acl'] = encode_acl(acl)
        options = RequestOptions(content_type=content_type or 'application/octet-stream',
                                 amz_headers=amz_headers)
        headers = self.dispatcher.simple_request(
            self.auth.sign('PUT', bucket=bucket_name, key=key, options=options, payload=data))
        logger.info("Stored %s/%s (%d bytes)", bucket_name, key, len(data))
        return {
            'etag': retrieve_header_value('ETag', headers),
            'version_id': retrieve_header_value('x-amz-version-id', headers),
        }

    def get_object(self, bucket_name: str, key: str, version_id: str = None) -> dict:
        headers, body = self.dispatcher.dispatch(
            self.auth.sign('GET', bucket=bucket_name, key=key,
                           options=_version_options(version_id)))
        info = _object_info(headers)
        info['content'] = body
        return info

    def get_object_metadata(self, bucket_name: str, key: str, version_id: str = None) -> dict:
        headers, _ = self.dispatcher.dispatch(
            self.auth.sign('HEAD', bucket=bucket_name, key=key,
                           options=_version_options(version_id)))
        return _object_info(headers)

    def delete_object(self, bucket_name: str, key: str) -> dict:
        headers = self.dispatcher.simple_request(
            self.auth.sign('DELETE', bucket=bucket_name, key=key))
        return {
            'delete_marker': retrieve_header_value('x-amz-delete-marker', headers) == 'true',
            'version_id': retrieve_header_value('x-amz-version-id', headers),
        }

    def delete_object_version(self, bucket_name: str, key: str, version_id: str) -> dict:
        headers = self.dispatcher.simple_request(
            self.auth.sign('DELETE', bucket=bucket_name, key=key,
                           options=_version_options(version_id)))
        return {
            'delete_marker': retrieve_header_value('x-amz-delete-marker', headers) == 'true',
            'version_id': retrieve_header_value('x-amz-version-id', headers) or version_id,
        }

    def copy_object(self, dest_bucket: str, dest_key: str, src_bucket: str, src_key: str,
                    metadata_directive: str = None) -> dict:
        """Server-side copy; a 200 response may still carry an <Error> body."""
        amz_headers = {
            'x-amz-copy-source': url_encode_loose(f"/{src_bucket}/{src_key}"),
            'x-amz-metadata-directive': metadata_directive,
        }
        root = self.dispatcher.xml_request(
            self.auth.sign('PUT', bucket=dest_bucket, key=dest_key,
                           options=RequestOptions(amz_headers=amz_headers)))
        return {
            'etag': xmlutil.find_text(root, 'ETag'),
            'last_modified': xmlutil.find_text(root, 'LastModified'),
        }

    def get_object_acl(self, bucket_name: str, key: str, version_id: str = None) -> dict:
        subresource = f"acl&versionId={version_id}" if version_id else 'acl'
        root = self.dispatcher.xml_request(
            self.auth.sign('GET', bucket=bucket_name, key=key,
                           options=RequestOptions(subresource=subresource)))
        return extract_acl(root)

    def set_object_acl(self, bucket_name: str, key: str, acl: str,
                       version_id: str = None) -> dict:
        subresource = f"acl&versionId={version_id}" if version_id else 'acl'
        options = RequestOptions(subresource=subresource,
                                 amz_headers={'x-amz-acl': encode_acl(acl)})
        self.dispatcher.simple_request(
            self.auth.sign('PUT', bucket=bucket_name, key=key, options=options))
        logger.info("Set ACL %s on %s/%s", acl, bucket_name, key)
        return {'success': True, 'acl': encode_acl(acl)}
