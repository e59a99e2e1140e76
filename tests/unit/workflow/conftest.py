"""Fixtures for workflow tests: one fake API per environment."""

from collections.abc import Iterator

import httpx
import pytest
from fakes import FakeServer, api_base

from oicmig.api.client import ResourceClient
from oicmig.core import retry as retry_module
from oicmig.core.settings import RetrySettings
from oicmig.oauth.types import AccessToken
from oicmig.workflow.session import EnvironmentSession


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(retry_module.time, "sleep", lambda _delay: None)


@pytest.fixture
def retry_policy() -> RetrySettings:
    return RetrySettings(max_attempts=3, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def source_server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def target_server() -> FakeServer:
    return FakeServer()


def _session(name: str, server: FakeServer) -> Iterator[EnvironmentSession]:
    with httpx.Client(base_url=api_base(name), transport=server.transport) as http:
        yield EnvironmentSession(
            name=name,
            token=AccessToken(value=f"{name}-token"),
            client=ResourceClient(http),
        )


@pytest.fixture
def source(source_server: FakeServer) -> Iterator[EnvironmentSession]:
    yield from _session("dev", source_server)


@pytest.fixture
def target(target_server: FakeServer) -> Iterator[EnvironmentSession]:
    yield from _session("test", target_server)
