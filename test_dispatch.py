import io
import json
import logging

import pytest
import requests

from conftest import FakeTransport, make_dispatcher
from s3sign.config import SslOptions
from s3sign.dispatch import (
    Dispatcher,
    Http10Adapter,
    RequestsTransport,
    canonicalize_headers,
    extract_metadata,
    retrieve_header_value,
)
from s3sign.errors import ErrorKind, HttpError, ServiceError, TransportError
from s3sign.logging_config import configure_logging
from s3sign.models import HttpMethod, SignedRequest

ERROR_BODY = (b'<?xml version="1.0" encoding="UTF-8"?>\n'
              b'<Error><Code>InternalError</Code>'
              b'<Message>We encountered an internal error.</Message></Error>')


def signed(method=HttpMethod.GET, body=b''):
    return SignedRequest(method=method, url='https://s3.example.com:443/b/k',
                         headers={'Authorization': 'AWS AKID:sig'}, body=body)


def test_success_returns_lower_cased_headers_and_body():
    dispatcher, transport = make_dispatcher(
        (200, {'Content-Type': 'text/plain', 'ETag': '"abc"'}, b'payload'))
    headers, body = dispatcher.dispatch(signed())
    assert headers == {'content-type': 'text/plain', 'etag': '"abc"'}
    assert body == b'payload'
    assert transport.calls[0]['method'] == 'GET'
    assert transport.calls[0]['headers'] == {'Authorization': 'AWS AKID:sig'}


@pytest.mark.parametrize('status', [200, 204, 206, 299])
def test_2xx_is_success(status):
    dispatcher, _ = make_dispatcher((status, {}, b''))
    assert dispatcher.dispatch(signed()) == ({}, b'')


@pytest.mark.parametrize('status', [199, 301, 304, 400, 403, 404, 500, 503])
def test_non_2xx_raises_http_error(status):
    dispatcher, _ = make_dispatcher((status, {'X-Amz-Request-Id': 'r1'}, b'<Error/>'))
    with pytest.raises(HttpError) as excinfo:
        dispatcher.dispatch(signed())
    assert excinfo.value.status == status
    assert excinfo.value.headers == {'x-amz-request-id': 'r1'}
    assert excinfo.value.kind is ErrorKind.HTTP


def test_404_keeps_the_original_body():
    body = b'<Error><Code>NoSuchKey</Code><Message>gone</Message></Error>'
    dispatcher, _ = make_dispatcher((404, {}, body))
    with pytest.raises(HttpError) as excinfo:
        dispatcher.dispatch(signed())
    assert excinfo.value.status == 404
    assert excinfo.value.body == body


@pytest.mark.parametrize('exc', [
    requests.ConnectionError('refused'),
    requests.Timeout('slow'),
    OSError('dns'),
])
def test_connection_failures_raise_transport_error(exc):
    dispatcher, _ = make_dispatcher(exc)
    with pytest.raises(TransportError) as excinfo:
        dispatcher.dispatch(signed())
    assert excinfo.value.cause is exc
    assert excinfo.value.kind is ErrorKind.TRANSPORT


def test_ssl_options_reach_the_transport():
    transport = FakeTransport((200, {}, b''))
    ssl = SslOptions(verify='/etc/ca.pem')
    Dispatcher(transport, ssl_options=ssl).dispatch(signed())
    assert transport.calls[0]['ssl_options'] is ssl


def test_error_envelope_with_200_raises_service_error():
    dispatcher, _ = make_dispatcher((200, {}, ERROR_BODY))
    with pytest.raises(ServiceError) as excinfo:
        dispatcher.xml_request(signed(HttpMethod.PUT))
    assert excinfo.value.code == 'InternalError'
    assert excinfo.value.message == 'We encountered an internal error.'
    assert excinfo.value.kind is ErrorKind.SERVICE_ERROR_IN_BODY


def test_simple_request_detects_error_envelope():
    dispatcher, _ = make_dispatcher((200, {}, ERROR_BODY))
    with pytest.raises(ServiceError):
        dispatcher.simple_request(signed(HttpMethod.PUT))


def test_simple_request_accepts_empty_and_non_error_bodies():
    dispatcher, _ = make_dispatcher(
        (200, {'ETag': '"e"'}, b''),
        (200, {}, b'<CopyObjectResult><ETag>"e"</ETag></CopyObjectResult>'),
        (200, {}, b'not xml at all'),
    )
    assert dispatcher.simple_request(signed(HttpMethod.PUT)) == {'etag': '"e"'}
    assert dispatcher.simple_request(signed(HttpMethod.PUT)) == {}
    assert dispatcher.simple_request(signed(HttpMethod.PUT)) == {}


def test_xml_request_returns_root():
    body = (b'<ListAllMyBucketsResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">'
            b'<Buckets/></ListAllMyBucketsResult>')
    dispatcher, _ = make_dispatcher((200, {}, body))
    root = dispatcher.xml_request(signed())
    assert root.tag.endswith('ListAllMyBucketsResult')


def test_header_helpers():
    headers = canonicalize_headers({'X-Amz-Meta-Owner': 'ops', 'Content-Length': '3'})
    assert retrieve_header_value('Content-Length', headers) == '3'
    assert retrieve_header_value('ETag', headers) == ''
    assert extract_metadata(headers) == {'owner': 'ops'}


class RecordingSession:
    def __init__(self):
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        resp = requests.Response()
        resp.status_code = 200
        resp.headers['ETag'] = '"e"'
        resp._content = b'ok'
        return resp


def test_requests_transport_maps_ssl_options():
    session = RecordingSession()
    transport = RequestsTransport(session=session, timeout=5)
    status, headers, body = transport.send('https://s3.example.com:443/b/k', {'A': '1'}, 'PUT',
                                           b'data', SslOptions(verify=False, cert='/c.pem'))
    assert (status, headers['ETag'], body) == (200, '"e"', b'ok')
    method, url, kwargs = session.calls[0]
    assert method == 'PUT'
    assert kwargs['verify'] is False
    assert kwargs['cert'] == '/c.pem'
    assert kwargs['data'] == b'data'
    assert kwargs['timeout'] == 5


def test_head_requests_use_http10_session():
    session = RecordingSession()
    transport = RequestsTransport(session=session)
    transport.head_session = RecordingSession()
    transport.send('https://s3.example.com:443/b/k', {}, 'HEAD', b'', SslOptions())
    assert session.calls == []
    assert transport.head_session.calls[0][0] == 'HEAD'


def test_http10_adapter_installs_http10_pools():
    adapter = Http10Adapter()
    pool_cls = adapter.poolmanager.pool_classes_by_scheme['https']
    assert pool_cls.ConnectionCls._http_vsn_str == 'HTTP/1.0'


def test_xml_request_rejects_non_xml_body():
    dispatcher, _ = make_dispatcher((200, {}, b'<html>proxy page'))
    with pytest.raises(ServiceError) as excinfo:
        dispatcher.xml_request(signed())
    assert excinfo.value.code == 'MalformedResponse'
    assert excinfo.value.kind is ErrorKind.SERVICE_ERROR_IN_BODY


def test_state_changes_are_logged_with_request_fields(caplog):
    caplog.set_level(logging.DEBUG, logger='s3sign.dispatch')
    dispatcher, _ = make_dispatcher((404, {}, b''))
    with pytest.raises(HttpError):
        dispatcher.dispatch(signed())
    records = [r for r in caplog.records if r.name == 's3sign.dispatch']
    assert [r.state for r in records] == ['sent', 'http_failed']
    assert records[1].status == 404
    assert records[1].url == 'https://s3.example.com:443/b/k'


def test_json_log_format_lifts_request_fields():
    stream = io.StringIO()
    handler = configure_logging('DEBUG', 'json', stream=stream)
    try:
        dispatcher, _ = make_dispatcher((200, {}, b''))
        dispatcher.dispatch(signed())
    finally:
        logging.getLogger('s3sign').removeHandler(handler)
        logging.getLogger('s3sign').setLevel(logging.NOTSET)
    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert [line['state'] for line in lines] == ['sent', 'succeeded']
    assert lines[1]['status'] == 200
    assert lines[1]['method'] == 'GET'
    assert 'status' not in lines[0]
