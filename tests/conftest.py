"""Shared test fixtures for oicmig."""

import os
from collections.abc import Iterator
from pathlib import Path

import httpx
import pytest
from fakes import CLIENT_ID, FakeServer, api_base, set_environment

from oicmig.api.client import ResourceClient
from oicmig.core.settings import EnvironmentSettings, HttpSettings, load_environment
from oicmig.crypto.keys import generate_rsa_keypair
from oicmig.crypto.types import SigningIdentity, SigningKeyData
from oicmig.oauth.types import AccessToken

KEY_ALIAS = "oic-jwt-dev"
API_BASE = api_base("dev")


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer OIC_* variables out of the tests."""
    for name in list(os.environ):
        if name.startswith("OIC_"):
            monkeypatch.delenv(name)


@pytest.fixture(scope="session")
def keypair() -> SigningKeyData:
    """One RSA keypair shared across the test session."""
    return generate_rsa_keypair()


@pytest.fixture
def key_file(tmp_path: Path, keypair: SigningKeyData) -> Path:
    path = tmp_path / "private-key.pem"
    path.write_text(keypair.private_key_pem)
    return path


@pytest.fixture
def identity(keypair: SigningKeyData) -> SigningIdentity:
    return SigningIdentity(
        private_key_pem=keypair.private_key_pem, key_id=KEY_ALIAS, issuer=CLIENT_ID
    )


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def token() -> AccessToken:
    return AccessToken(value="tok-123", token_type="Bearer", expires_in=3600)


@pytest.fixture
def resource_client(fake_server: FakeServer) -> Iterator[ResourceClient]:
    """ResourceClient talking to the fake API of the dev instance."""
    with httpx.Client(base_url=API_BASE, transport=fake_server.transport) as http:
        yield ResourceClient(http)


@pytest.fixture
def http_settings() -> HttpSettings:
    return HttpSettings(connect_timeout=1.0, read_timeout=1.0)


@pytest.fixture
def dev_settings(
    monkeypatch: pytest.MonkeyPatch, key_file: Path
) -> EnvironmentSettings:
    set_environment(monkeypatch, "dev", key_file)
    return load_environment("dev")
