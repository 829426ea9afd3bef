import dataclasses
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

import yaml

from .endpoint import Endpoint, normalize
from .models import AddressingMode, AuthMethod

DEFAULT_REGION = "us-east-1"


@dataclass(frozen=True)
class SslOptions:
    verify: Union[bool, str] = True
    cert: Optional[Union[str, Tuple[str, str]]] = None


@dataclass(frozen=True)
class ClientConfig:
    """Credentials and endpoint shared, read-only, by every operation."""

    access_key_id: str
    secret_access_key: str
    endpoint: Endpoint
    addressing_mode: AddressingMode = AddressingMode.PATH
    ssl_options: SslOptions = field(default_factory=SslOptions)
    region: str = DEFAULT_REGION
    auth_method: AuthMethod = AuthMethod.V2
    expiry_window: Optional[int] = None

    def with_addressing_mode(self, mode) -> "ClientConfig":
        return dataclasses.replace(self, addressing_mode=AddressingMode.coerce(mode))

    def with_ssl_options(self, ssl_options: SslOptions) -> "ClientConfig":
        return dataclasses.replace(self, ssl_options=ssl_options)


def new_config(access_key_id: str, secret_access_key: str, host: str,
               addressing_mode=AddressingMode.PATH, ssl_options: SslOptions = None,
               region: str = DEFAULT_REGION, auth_method=AuthMethod.V2,
               expiry_window: int = None) -> ClientConfig:
    """Build a ClientConfig, normalizing ``host`` once; raises InvalidHostFormat."""
    if expiry_window is not None and expiry_window <= 0:
        raise ValueError(f"expiry_window must be positive, got {expiry_window}")
    return ClientConfig(
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        endpoint=normalize(host),
        addressing_mode=AddressingMode.coerce(addressing_mode),
        ssl_options=ssl_options or SslOptions(),
        region=region or DEFAULT_REGION,
        auth_method=AuthMethod.coerce(auth_method),
        expiry_window=expiry_window,
    )


REQUIRED_KEYS = ("endpoint", "access_key", "secret_key")


def load_config(profile: str, config_file: str = ".config.yaml") -> ClientConfig:
    """Load the configuration for a named profile from the YAML file."""
    with open(config_file, "r") as f:
        full_config = yaml.safe_load(f) or {}

    if profile not in full_config:
        raise ValueError(f"Profile '{profile}' not found in {config_file}")

    conf = full_config[profile] or {}
    for key in REQUIRED_KEYS:
        if not conf.get(key):
            raise ValueError(f"Missing '{key}' in config for profile '{profile}'")

    verify = conf.get("ca_bundle") or conf.get("verify_ssl", True)
    return new_config(
        conf["access_key"],
        conf["secret_key"],
        conf["endpoint"],
        addressing_mode=conf.get("addressing", "path"),
        ssl_options=SslOptions(verify=verify, cert=conf.get("client_cert")),
        region=conf.get("region", DEFAULT_REGION),
        auth_method=conf.get("auth_method", "v2"),
        expiry_window=conf.get("expiry_window"),
    )
