import logging
from urllib.parse import unquote

from . import xmlutil
from .models import RequestOptions

logger = logging.getLogger(__name__)

CANNED_ACLS = {
    'private': 'private',
    'public_read': 'public-read',
    'public_read_write': 'public-read-write',
    'authenticated_read': 'authenticated-read',
    'bucket_owner_read': 'bucket-owner-read',
    'bucket_owner_full_control': 'bucket-owner-full-control',
}

PERMISSIONS = {
    'FULL_CONTROL': 'full_control',
    'WRITE': 'write',
    'WRITE_ACP': 'write_acp',
    'READ': 'read',
    'READ_ACP': 'read_acp',
}

BUCKET_ATTRIBUTES = {
    'acl': 'acl',
    'location': 'location',
    'logging': 'logging',
    'request_payment': 'requestPayment',
    'versioning': 'versioning',
}


def encode_acl(acl):
    """Map ``public_read`` (or ``public-read``) to the x-amz-acl header value."""
    if acl is None:
        return None
    name = acl.replace('-', '_')
    if name not in CANNED_ACLS:
        raise ValueError(f"Unknown canned ACL: {acl!r}")
    return CANNED_ACLS[name]


def decode_permission(permission: str) -> str:
    return PERMISSIONS[permission]


def extract_user(node) -> dict:
    return {
        'id': xmlutil.find_text(node, 'ID'),
        'display_name': xmlutil.find_text(node, 'DisplayName'),
    }


def extract_acl(root) -> dict:
    grants = []
    acl = xmlutil.child(root, 'AccessControlList')
    for grant in (xmlutil.children(acl, 'Grant') if acl is not None else []):
        grants.append({
            'grantee': extract_user(xmlutil.child(grant, 'Grantee')),
            'permission': decode_permission(xmlutil.find_text(grant, 'Permission')),
        })
    return {
        'owner': extract_user(xmlutil.child(root, 'Owner')),
        'access_control_list': grants,
    }


def extract_contents(node) -> dict:
    owner = xmlutil.child(node, 'Owner')
    return {
        'key': xmlutil.find_text(node, 'Key'),
        'last_modified': xmlutil.find_text(node, 'LastModified'),
        'etag': xmlutil.find_text(node, 'ETag'),
        'size': int(xmlutil.find_text(node, 'Size', '0')),
        'storage_class': xmlutil.find_text(node, 'StorageClass'),
        'owner': extract_user(owner) if owner is not None else None,
    }


def extract_version(node) -> dict:
    owner = xmlutil.child(node, 'Owner')
    return {
        'key': xmlutil.find_text(node, 'Key'),
        'version_id': xmlutil.find_text(node, 'VersionId'),
        'is_latest': xmlutil.find_text(node, 'IsLatest', 'false') == 'true',
        'last_modified': xmlutil.find_text(node, 'LastModified'),
        'etag': xmlutil.find_text(node, 'ETag'),
        'size': int(xmlutil.find_text(node, 'Size', '0')),
        'storage_class': xmlutil.find_text(node, 'StorageClass'),
        'owner': extract_user(owner) if owner is not None else None,
    }


def extract_delete_marker(node) -> dict:
    owner = xmlutil.child(node, 'Owner')
    return {
        'key': xmlutil.find_text(node, 'Key'),
        'version_id': xmlutil.find_text(node, 'VersionId'),
        'is_latest': xmlutil.find_text(node, 'IsLatest', 'false') == 'true',
        'last_modified': xmlutil.find_text(node, 'LastModified'),
        'owner': extract_user(owner) if owner is not None else None,
    }


class BucketManager:
    def __init__(self, auth, dispatcher):
        self.auth = auth
        self.dispatcher = dispatcher

    def list_buckets(self) -> list:
        root = self.dispatcher.xml_request(self.auth.sign('GET'))
        buckets = xmlutil.find(root, 'Buckets')
        if buckets is None:
            return []
        return [{'name': xmlutil.find_text(b, 'Name'),
                 'creation_date': xmlutil.find_text(b, 'CreationDate')}
                for b in xmlutil.children(buckets, 'Bucket')]

    def create_bucket(self, bucket_name: str, acl: str = 'private',
                      location_constraint: str = None) -> dict:
        payload = b''
        if location_constraint and location_constraint != 'none':
            payload = xmlutil.build('CreateBucketConfiguration',
                                    {'LocationConstraint': location_constraint})
        options = RequestOptions(
            content_type='application/xml' if payload else None,
            amz_headers={'x-amz-acl': encode_acl(acl)},
        )
        self.dispatcher.simple_request(
            self.auth.sign('PUT', bucket=bucket_name, options=options, payload=payload))
        logger.info("Created bucket %s", bucket_name)
        return {'success': True}

    def delete_bucket(self, bucket_name: str) -> dict:
        self.dispatcher.simple_request(self.auth.sign('DELETE', bucket=bucket_name))
        logger.info("Deleted bucket %s", bucket_name)
        return {'success': True}

    def list_objects(self, bucket_name: str, prefix: str = None, marker: str = None,
                     max_keys: int = None, delimiter: str = None) -> dict:
        options = RequestOptions(params={
            'prefix': prefix,
            'marker': marker,
            'max-keys': max_keys,
            'delimiter': delimiter,
        })
        root = self.dispatcher.xml_request(
            self.auth.sign('GET', bucket=bucket_name, options=options))
        return {
            'name': unquote(xmlutil.find_text(root, 'Name', bucket_name)),
            'prefix': xmlutil.find_text(root, 'Prefix', ''),
            'marker': xmlutil.find_text(root, 'Marker', ''),
            'is_truncated': xmlutil.find_text(root, 'IsTruncated', 'false') == 'true',
            'contents': [extract_contents(n) for n in xmlutil.children(root, 'Contents')],
            'common_prefixes': [xmlutil.find_text(n, 'Prefix')
                                for n in xmlutil.children(root, 'CommonPrefixes')],
        }

    def list_object_versions(self, bucket_name: str, prefix: str = None,
                             key_marker: str = None, version_id_marker: str = None,
                             max_keys: int = None, delimiter: str = None) -> dict:
        """List object versions and delete markers, in server order."""
        options = RequestOptions(subresource='versions', params={
            'prefix': prefix,
            'key-marker': key_marker,
            'version-id-marker': version_id_marker,
            'max-keys': max_keys,
            'delimiter': delimiter,
        })
        root = self.dispatcher.xml_request(
            self.auth.sign('GET', bucket=bucket_name, options=options))
        return {
            'name': unquote(xmlutil.find_text(root, 'Name', bucket_name)),
            'prefix': xmlutil.find_text(root, 'Prefix', ''),
            'key_marker': xmlutil.find_text(root, 'KeyMarker', ''),
            'version_id_marker': xmlutil.find_text(root, 'VersionIdMarker', ''),
            'next_key_marker': xmlutil.find_text(root, 'NextKeyMarker', ''),
            'next_version_id_marker': xmlutil.find_text(root, 'NextVersionIdMarker', ''),
            'is_truncated': xmlutil.find_text(root, 'IsTruncated', 'false') == 'true',
            'versions': [extract_version(n) for n in xmlutil.children(root, 'Version')],
            'delete_markers': [extract_delete_marker(n)
                               for n in xmlutil.children(root, 'DeleteMarker')],
            'common_prefixes': [xmlutil.find_text(n, 'Prefix')
                                for n in xmlutil.children(root, 'CommonPrefixes')],
        }

    def get_bucket_attribute(self, bucket_name: str, attribute: str):
        if attribute not in BUCKET_ATTRIBUTES:
            raise ValueError(f"Unknown bucket attribute: {attribute!r}")
        options = RequestOptions(subresource=BUCKET_ATTRIBUTES[attribute])
        root = self.dispatcher.xml_request(
            self.auth.sign('GET', bucket=bucket_name, options=options))

        if attribute == 'acl':
            return extract_acl(root)
        if attribute == 'location':
            return root.text or 'none'
        if attribute == 'logging':
            enabled = xmlutil.child(root, 'LoggingEnabled')
            if enabled is None:
                return {'enabled': False}
            return {
                'enabled': True,
                'target_bucket': xmlutil.find_text(enabled, 'TargetBucket'),
                'target_prefix': xmlutil.find_text(enabled, 'TargetPrefix'),
            }
        if attribute == 'request_payment':
            payer = xmlutil.find_text(root, 'Payer')
            return 'requester' if payer == 'Requester' else 'bucket_owner'
        status = xmlutil.find_text(root, 'Status')
        return {
            'status': status.lower() if status else 'disabled',
            'mfa_delete': (xmlutil.find_text(root, 'MfaDelete') or 'disabled').lower(),
        }

    def set_bucket_attribute(self, bucket_name: str, attribute: str, value) -> dict:
        if attribute == 'acl':
            options = RequestOptions(subresource='acl',
                                     amz_headers={'x-amz-acl': encode_acl(value)})
            payload = b''
        elif attribute == 'request_payment':
            payer = {'requester': 'Requester', 'bucket_owner': 'BucketOwner'}[value]
            options = RequestOptions(subresource='requestPayment',
                                     content_type='application/xml')
            payload = xmlutil.build('RequestPaymentConfiguration', {'Payer': payer})
        elif attribute == 'versioning':
            status = {'enabled': 'Enabled', 'suspended': 'Suspended'}[value]
            options = RequestOptions(subresource='versioning',
                                     content_type='application/xml')
            payload = xmlutil.build('VersioningConfiguration', {'Status': status})
        else:
            raise ValueError(f"Bucket attribute {attribute!r} cannot be set")
        self.dispatcher.simple_request(
            self.auth.sign('PUT', bucket=bucket_name, options=options, payload=payload))
        return {'success': True, attribute: value}
