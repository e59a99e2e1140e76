"""Authenticated session against one OIC environment."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import httpx
from pydantic import BaseModel, ConfigDict

from oicmig.api.client import ResourceClient, build_http_client
from oicmig.core.settings import EnvironmentSettings, HttpSettings
from oicmig.crypto.assertion import AssertionBuilder
from oicmig.crypto.keys import load_signing_identity
from oicmig.oauth.token_exchange import TokenExchanger
from oicmig.oauth.types import AccessToken

logger = logging.getLogger(__name__)


class EnvironmentSession(BaseModel):
    """Access token plus resource client bound to one environment."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    token: AccessToken
    client: ResourceClient


def authenticate(
    settings: EnvironmentSettings,
    http: httpx.Client,
    builder: AssertionBuilder | None = None,
) -> AccessToken:
    """Sign a fresh assertion for the configured user and exchange it."""
    identity = load_signing_identity(
        settings.private_key_path,
        key_id=settings.key_alias,
        issuer=settings.client_id,
    )
    assertion = (builder or AssertionBuilder()).build(
        identity,
        subject=settings.username,
        audience=settings.audience,
        validity_seconds=settings.assertion_ttl,
    )
    return TokenExchanger(http).exchange(
        settings.token_endpoint,
        settings.client_id,
        settings.client_secret,
        assertion,
        settings.scope,
    )


@contextmanager
def open_session(
    name: str,
    settings: EnvironmentSettings,
    http_settings: HttpSettings,
    transport: httpx.BaseTransport | None = None,
) -> Iterator[EnvironmentSession]:
    """Authenticate against ``name`` and yield a session; clients close on exit."""
    logger.info("Opening session for environment %s", name)
    with build_http_client(http_settings, transport=transport) as identity_http:
        token = authenticate(settings, identity_http)
    with build_http_client(
        http_settings, base_url=settings.api_base_url, transport=transport
    ) as api_http:
        client = ResourceClient(api_http)
        yield EnvironmentSession(name=name, token=token, client=client)
