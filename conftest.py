import pytest

from s3sign.auth import Authenticator
from s3sign.config import new_config
from s3sign.dispatch import Dispatcher

# Wed, 27 Mar 2024 12:00:00 GMT
FIXED_NOW = 1711540800


class FakeTransport:
    """Replays canned (status, headers, body) tuples, or raises queued exceptions."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def send(self, url, headers, method, body, ssl_options):
        self.calls.append({
            'url': url,
            'headers': dict(headers),
            'method': method,
            'body': body,
            'ssl_options': ssl_options,
        })
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def config():
    return new_config('AKID', 'secret', 'https://s3.example.com:443')


@pytest.fixture
def auth(config):
    return Authenticator(config, clock=lambda: FIXED_NOW)


def make_dispatcher(*responses):
    transport = FakeTransport(*responses)
    return Dispatcher(transport), transport
