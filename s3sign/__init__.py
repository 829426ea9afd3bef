from .auth import Authenticator
from .bucket import BucketManager
from .config import ClientConfig, SslOptions, load_config, new_config
from .dispatch import Dispatcher, RequestsTransport
from .endpoint import Endpoint, compose, normalize
from .errors import (
    HttpError,
    InvalidHostFormat,
    S3SignError,
    ServiceError,
    TransportError,
    UnsupportedMethod,
)
from .expiry import ExpirationWindow, align
from .models import AddressingMode, AuthMethod, HttpMethod, RequestOptions, SignedRequest
from .objects import ObjectManager
from .utils import S3Signer

__version__ = "0.1.0"
