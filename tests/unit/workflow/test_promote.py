"""Tests for the promotion workflow."""

from pathlib import Path

import httpx
import pytest
from fakes import API_PATH, FakeServer

from oicmig.core.plan import IntegrationRef, MigrationPlan, PropertyOverride
from oicmig.core.settings import RetrySettings
from oicmig.workflow.artifacts import ArtifactStore
from oicmig.workflow.promote import Step, promote
from oicmig.workflow.session import EnvironmentSession

HELLO = "HELLO|01.00.0000"
ORDERS = "ORDERS|01.00.0000"
IMPORT = f"{API_PATH}/integrations/archive"


def _archive(ident: str) -> str:
    return f"{API_PATH}/integrations/{ident}/archive"


def _activate(ident: str) -> str:
    return f"{API_PATH}/integrations/{ident}/activate"


def _connection(conn: str) -> str:
    return f"{API_PATH}/connections/{conn}"


def _plan(*refs: IntegrationRef, overrides: dict | None = None) -> MigrationPlan:
    return MigrationPlan(
        integrations=list(refs), connections={"test": overrides or {}}
    )


HELLO_REF = IntegrationRef(code="HELLO", version="01.00.0000", connections=["REST"])
TARGET_URL = PropertyOverride(name="targetURL", type="URL", value="https://test/api")


@pytest.fixture
def happy_target(target_server: FakeServer) -> FakeServer:
    target_server.route("POST", IMPORT, httpx.Response(200, json={"status": "ok"}))
    target_server.route("PATCH", _connection("REST"), httpx.Response(200))
    target_server.route("POST", _connection("REST") + "/test", httpx.Response(200))
    target_server.route("POST", _activate(HELLO), httpx.Response(200))
    return target_server


class TestPromote:
    """Tests for the full per-integration sequence."""

    def test_happy_path_order(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        happy_target: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"iar"))
        plan = _plan(HELLO_REF, overrides={"REST": [TARGET_URL]})

        report = promote(plan, source, target, retry=retry_policy)

        assert report.succeeded
        assert [o.step for o in report.outcomes] == [
            Step.EXPORT,
            Step.IMPORT,
            Step.PATCH,
            Step.TEST,
            Step.ACTIVATE,
        ]
        assert [(r.method, r.url.path) for r in happy_target.requests] == [
            ("POST", IMPORT),
            ("PATCH", _connection("REST")),
            ("POST", _connection("REST") + "/test"),
            ("POST", _activate(HELLO)),
        ]
        assert happy_target.requests[0].content == b"iar"
        assert happy_target.requests[0].headers["authorization"] == "Bearer test-token"
        assert source_server.requests[0].headers["authorization"] == "Bearer dev-token"

    def test_missing_artifact_does_not_stop_the_run(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        target_server: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(404))
        source_server.route("GET", _archive(ORDERS), httpx.Response(200, content=b"x"))
        target_server.route("POST", IMPORT, httpx.Response(200))
        target_server.route("POST", _activate(ORDERS), httpx.Response(200))
        plan = _plan(HELLO_REF, IntegrationRef(code="ORDERS", version="01.00.0000"))

        report = promote(plan, source, target, retry=retry_policy)

        assert report.failed_integrations == [HELLO]
        (hello,) = report.for_integration(HELLO)
        assert hello.step == Step.EXPORT
        assert not hello.ok
        assert [o.ok for o in report.for_integration(ORDERS)] == [True, True, True]
        assert not report.succeeded

    def test_odd_import_reply_does_not_stop_the_run(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        target_server: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"a"))
        source_server.route("GET", _archive(ORDERS), httpx.Response(200, content=b"b"))
        target_server.route(
            "POST", IMPORT, httpx.Response(200, json={"id": 42, "status": ["ok"]})
        )
        plan = _plan(
            IntegrationRef(code="HELLO", version="01.00.0000", activate=False),
            IntegrationRef(code="ORDERS", version="01.00.0000", activate=False),
        )

        report = promote(plan, source, target, retry=retry_policy)

        assert report.succeeded
        assert [(o.integration, o.step) for o in report.outcomes] == [
            (HELLO, Step.EXPORT),
            (HELLO, Step.IMPORT),
            (ORDERS, Step.EXPORT),
            (ORDERS, Step.IMPORT),
        ]
        assert len(target_server.calls("POST", IMPORT)) == 2

    def test_export_retried_on_network_error(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        happy_target: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route(
            "GET",
            _archive(HELLO),
            httpx.ConnectError("reset"),
            httpx.Response(200, content=b"iar"),
        )
        report = promote(_plan(HELLO_REF), source, target, retry=retry_policy)
        assert report.succeeded
        assert len(source_server.requests) == 2

    def test_conflict_replaces(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        happy_target: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"iar"))
        happy_target.route("POST", IMPORT, httpx.Response(409, text="exists"))
        happy_target.route("PUT", IMPORT, httpx.Response(200))

        report = promote(_plan(HELLO_REF), source, target, retry=retry_policy)

        imported = report.for_integration(HELLO)[1]
        assert imported.step == Step.IMPORT
        assert imported.ok
        assert imported.detail.startswith("replaced")
        assert len(happy_target.calls("PUT", IMPORT)) == 1

    def test_import_rejection_is_not_retried(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        target_server: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"iar"))
        target_server.route("POST", IMPORT, httpx.Response(400, text="corrupt"))

        report = promote(_plan(HELLO_REF), source, target, retry=retry_policy)

        assert report.outcomes[-1].step == Step.IMPORT
        assert not report.outcomes[-1].ok
        assert len(target_server.requests) == 1

    def test_import_network_error_is_not_retried(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        target_server: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"iar"))
        target_server.route("POST", IMPORT, httpx.ReadTimeout("slow"))

        report = promote(_plan(HELLO_REF), source, target, retry=retry_policy)

        assert not report.succeeded
        assert len(target_server.requests) == 1

    def test_failed_connection_test_still_activates(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        happy_target: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"iar"))
        happy_target.route("POST", _connection("REST") + "/test", httpx.Response(412))

        report = promote(_plan(HELLO_REF), source, target, retry=retry_policy)

        test_step = next(o for o in report.outcomes if o.step == Step.TEST)
        assert not test_step.ok
        assert test_step.subject == "REST"
        assert report.outcomes[-1].step == Step.ACTIVATE
        assert report.outcomes[-1].ok

    def test_activation_skipped_when_disabled(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        happy_target: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"iar"))
        ref = HELLO_REF.model_copy(update={"activate": False})

        report = promote(_plan(ref), source, target, retry=retry_policy)

        assert Step.ACTIVATE not in [o.step for o in report.outcomes]
        assert happy_target.calls("POST", _activate(HELLO)) == []

    def test_activation_failure_recorded(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        happy_target: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"iar"))
        happy_target.route("POST", _activate(HELLO), httpx.Response(500))

        report = promote(_plan(HELLO_REF), source, target, retry=retry_policy)

        assert report.outcomes[-1].step == Step.ACTIVATE
        assert not report.outcomes[-1].ok
        assert len(happy_target.calls("POST", _activate(HELLO))) == 1


class TestPatching:
    """Tests for connection property overrides."""

    def test_shared_connection_patched_once(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        happy_target: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        second = IntegrationRef(code="ORDERS", version="01.00.0000", activate=False)
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"a"))
        source_server.route("GET", _archive(ORDERS), httpx.Response(200, content=b"b"))
        happy_target.route("POST", _connection("REST") + "/test", httpx.Response(200))
        plan = _plan(HELLO_REF, second, overrides={"REST": [TARGET_URL]})

        promote(plan, source, target, retry=retry_policy)

        assert len(happy_target.calls("PATCH", _connection("REST"))) == 1

    def test_patch_failure_continues_by_default(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        happy_target: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"iar"))
        happy_target.route("PATCH", _connection("REST"), httpx.Response(400))
        plan = _plan(HELLO_REF, overrides={"REST": [TARGET_URL]})

        report = promote(plan, source, target, retry=retry_policy)

        patch = next(o for o in report.outcomes if o.step == Step.PATCH)
        assert not patch.ok
        assert report.outcomes[-1].step == Step.ACTIVATE

    def test_patch_failure_halts_when_requested(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        happy_target: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"iar"))
        happy_target.route("PATCH", _connection("REST"), httpx.Response(400))
        plan = _plan(HELLO_REF, overrides={"REST": [TARGET_URL]})

        report = promote(
            plan, source, target, retry=retry_policy, halt_on_patch_failure=True
        )

        assert report.outcomes[-1].step == Step.PATCH
        assert happy_target.calls("POST", _activate(HELLO)) == []

    def test_overrides_for_other_environment_ignored(
        self,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        happy_target: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"iar"))
        plan = MigrationPlan(
            integrations=[HELLO_REF], connections={"prod": {"REST": [TARGET_URL]}}
        )

        promote(plan, source, target, retry=retry_policy)

        assert happy_target.calls("PATCH", _connection("REST")) == []


class TestArtifactStorage:
    """Tests for keeping exported archives."""

    def test_archive_stored_before_import(
        self,
        tmp_path: Path,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        happy_target: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"iar"))
        store = ArtifactStore(tmp_path / "archives")

        report = promote(_plan(HELLO_REF), source, target, retry_policy, store)

        assert report.outcomes[1].step == Step.STORE
        assert store.load_latest(HELLO_REF) == b"iar"

    def test_store_failure_skips_import(
        self,
        tmp_path: Path,
        source: EnvironmentSession,
        target: EnvironmentSession,
        source_server: FakeServer,
        happy_target: FakeServer,
        retry_policy: RetrySettings,
    ) -> None:
        source_server.route("GET", _archive(HELLO), httpx.Response(200, content=b"iar"))
        blocker = tmp_path / "archives"
        blocker.write_text("not a directory")

        report = promote(
            _plan(HELLO_REF), source, target, retry_policy, ArtifactStore(blocker)
        )

        assert report.outcomes[-1].step == Step.STORE
        assert not report.outcomes[-1].ok
        assert happy_target.requests == []
