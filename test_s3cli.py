import json

import pytest
import yaml
from click.testing import CliRunner

from conftest import FIXED_NOW, FakeTransport
from s3signcli import cli

PROFILE = 'bookshelf'


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.safe_dump({
        PROFILE: {
            'endpoint': 'https://s3.example.com',
            'access_key': 'AKID',
            'secret_key': 'secret',
            'addressing': 'vhost',
        },
        'broken': {
            'endpoint': 'https://s3.example.com:1:2',
            'access_key': 'AKID',
            'secret_key': 'secret',
        },
    }))
    return str(path)


def run(config_file, *args, transport=None):
    obj = {'clock': lambda: FIXED_NOW}
    if transport is not None:
        obj['transport'] = transport
    return CliRunner().invoke(cli, ['--profile', PROFILE, '--config', config_file, *args], obj=obj)


def test_endpoint(config_file):
    result = run(config_file, 'endpoint', 'mybucket')
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data['url'] == 'https://mybucket.s3.example.com:443'
    assert data['port'] == 443
    assert data['addressing_mode'] == 'virtual_hosted'


def test_unknown_profile(config_file):
    result = CliRunner().invoke(cli, ['--profile', 'nope', '--config', config_file, 'endpoint'])
    assert result.exit_code == 1
    assert "Profile 'nope' not found" in result.output


def test_invalid_endpoint_in_profile(config_file):
    result = CliRunner().invoke(cli, ['--profile', 'broken', '--config', config_file, 'endpoint'])
    assert result.exit_code == 1
    assert 'Invalid host format' in result.output


def test_presign_with_window_is_stable(config_file):
    first = run(config_file, 'presign', 'get', 'mybucket', 'key', '--ttl', '0', '--window', '60')
    second = run(config_file, 'presign', 'GET', 'mybucket', 'key', '--ttl', '0', '--window', '60')
    assert first.exit_code == 0, first.output
    assert first.output == second.output
    assert first.output.startswith('https://mybucket.s3.example.com:443/key?')
    assert 'X-Amz-Expires=60' in first.output


def test_sign_v2(config_file):
    result = run(config_file, 'sign-v2', 'GET', '/bucket/key',
                 '--date', 'Tue, 27 Mar 2024 12:00:00 GMT')
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data['string_to_sign'] == 'GET\n\n\nTue, 27 Mar 2024 12:00:00 GMT\n/bucket/key'
    assert data['authorization'] == 'AWS AKID:VtYnciUKOSY7ASayIrBAD5xMFNo='


def test_sign_v2_unsupported_method(config_file):
    result = run(config_file, 'sign-v2', 'PATCH', '/bucket/key')
    assert result.exit_code == 1
    assert 'Unsupported HTTP method' in result.output


def test_bucket_list_table(config_file):
    body = (b'<ListAllMyBucketsResult><Buckets><Bucket><Name>alpha</Name>'
            b'<CreationDate>2024-01-01T00:00:00.000Z</CreationDate></Bucket></Buckets>'
            b'</ListAllMyBucketsResult>')
    transport = FakeTransport((200, {}, body))
    result = run(config_file, '--format', 'table', 'bucket', 'list', transport=transport)
    assert result.exit_code == 0, result.output
    assert 'alpha' in result.output
    assert transport.calls[0]['url'] == 'https://s3.example.com:443/'


def test_object_head_http_error(config_file):
    transport = FakeTransport((404, {}, b''))
    result = run(config_file, 'object', 'head', 'mybucket', 'missing', transport=transport)
    assert result.exit_code == 1
    assert 'HTTP 404' in result.output
    assert transport.calls[0]['url'] == 'https://mybucket.s3.example.com:443/missing'


def test_object_put_and_get(config_file, tmp_path):
    source = tmp_path / 'in.txt'
    source.write_bytes(b'hello')
    transport = FakeTransport((200, {'ETag': '"e"'}, b''), (200, {}, b'hello'))
    put = run(config_file, 'object', 'put', 'mybucket', 'k', str(source),
              '--meta', 'owner=ops', transport=transport)
    assert put.exit_code == 0, put.output
    assert json.loads(put.output)['etag'] == '"e"'
    assert transport.calls[0]['headers']['x-amz-meta-owner'] == 'ops'

    target = tmp_path / 'out.txt'
    get = run(config_file, 'object', 'get', 'mybucket', 'k', '-o', str(target), transport=transport)
    assert get.exit_code == 0, get.output
    assert target.read_bytes() == b'hello'


def test_bucket_versions_table(config_file):
    body = (b'<ListVersionsResult><Name>mybucket</Name>'
            b'<Version><Key>k</Key><VersionId>v2</VersionId><IsLatest>true</IsLatest>'
            b'<ETag>"e"</ETag><Size>1</Size></Version>'
            b'<DeleteMarker><Key>k</Key><VersionId>v1</VersionId><IsLatest>false</IsLatest>'
            b'</DeleteMarker></ListVersionsResult>')
    transport = FakeTransport((200, {}, body))
    result = run(config_file, '--format', 'table', 'bucket', 'versions', 'mybucket',
                 transport=transport)
    assert result.exit_code == 0, result.output
    assert 'v2' in result.output and 'v1' in result.output
    assert transport.calls[0]['url'] == 'https://mybucket.s3.example.com:443/?versions'


def test_object_set_acl(config_file):
    transport = FakeTransport((200, {}, b''))
    result = run(config_file, 'object', 'set-acl', 'mybucket', 'k', 'public_read',
                 transport=transport)
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {'success': True, 'acl': 'public-read'}
    assert transport.calls[0]['headers']['x-amz-acl'] == 'public-read'
