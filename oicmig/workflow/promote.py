"""Promote integrations from a source environment to a target environment.

Per integration the order is fixed: export, store, import, patch connection
properties, test connections, activate. A failed export, store, import or
activation ends that integration; the next one still runs.
"""

import logging
from enum import StrEnum

from pydantic import BaseModel

from oicmig.core.errors import ImportRejected, OICMigrationError
from oicmig.core.plan import IntegrationRef, MigrationPlan, PropertyOverride
from oicmig.core.retry import call_with_retry
from oicmig.core.settings import RetrySettings, load_retry_settings
from oicmig.workflow.artifacts import ArtifactStore
from oicmig.workflow.session import EnvironmentSession

logger = logging.getLogger(__name__)

HTTP_CONFLICT = 409


class Step(StrEnum):
    """Stage of a single integration promotion."""

    EXPORT = "export"
    STORE = "store"
    IMPORT = "import"
    PATCH = "patch"
    TEST = "test"
    ACTIVATE = "activate"


class StepOutcome(BaseModel):
    """Result of one step for one integration."""

    integration: str
    step: Step
    ok: bool
    subject: str | None = None
    detail: str = ""


class PromotionReport(BaseModel):
    """Every step taken during a promotion run."""

    source: str
    target: str
    outcomes: list[StepOutcome] = []

    def record(
        self,
        integration: str,
        step: Step,
        ok: bool,
        detail: str = "",
        subject: str | None = None,
    ) -> StepOutcome:
        """Append an outcome and log it."""
        outcome = StepOutcome(
            integration=integration, step=step, ok=ok, subject=subject, detail=detail
        )
        self.outcomes.append(outcome)
        where = f"{integration} {step.value}" + (f" [{subject}]" if subject else "")
        if ok:
            logger.info("%s ok %s", where, detail)
        else:
            logger.warning("%s FAILED: %s", where, detail)
        return outcome

    def for_integration(self, integration: str) -> list[StepOutcome]:
        """Outcomes of one integration, in order."""
        return [o for o in self.outcomes if o.integration == integration]

    @property
    def failed_integrations(self) -> list[str]:
        """Integrations with at least one failed step."""
        failed = [o.integration for o in self.outcomes if not o.ok]
        return list(dict.fromkeys(failed))

    @property
    def succeeded(self) -> bool:
        """True when every recorded step succeeded."""
        return all(o.ok for o in self.outcomes)


class _Promotion:
    """State of one promotion run: report and already patched properties."""

    def __init__(
        self,
        plan: MigrationPlan,
        source: EnvironmentSession,
        target: EnvironmentSession,
        policy: RetrySettings,
        store: ArtifactStore | None,
        halt_on_patch_failure: bool,
    ) -> None:
        self.plan = plan
        self.source = source
        self.target = target
        self.policy = policy
        self.store = store
        self.halt_on_patch_failure = halt_on_patch_failure
        self.report = PromotionReport(source=source.name, target=target.name)
        self._patched: set[tuple[str, str, str]] = set()

    def run(self) -> PromotionReport:
        """Promote each plan entry in order."""
        for ref in self.plan.integrations:
            self._promote(ref)
        return self.report

    def _promote(self, ref: IntegrationRef) -> None:
        """Run every step for one integration, stopping at a fatal failure."""
        ident = ref.identifier
        try:
            archive = call_with_retry(
                lambda: self.source.client.export_artifact(self.source.token, ident),
                self.policy,
                label=f"export {ident}",
            )
        except OICMigrationError as exc:
            self.report.record(ident, Step.EXPORT, False, str(exc))
            return
        self.report.record(ident, Step.EXPORT, True, f"{len(archive)} bytes")

        if self.store is not None:
            try:
                path = self.store.save(ref, archive)
            except OSError as exc:
                self.report.record(ident, Step.STORE, False, str(exc))
                return
            self.report.record(ident, Step.STORE, True, str(path))

        try:
            detail = self._import(archive)
        except OICMigrationError as exc:
            self.report.record(ident, Step.IMPORT, False, str(exc))
            return
        self.report.record(ident, Step.IMPORT, True, detail)

        overrides = self.plan.overrides_for_integration(self.target.name, ref)
        if not self._patch(ident, overrides) and self.halt_on_patch_failure:
            return

        for connection_id in ref.connections or list(overrides):
            try:
                ok = call_with_retry(
                    lambda: self.target.client.test_connection(
                        self.target.token, connection_id
                    ),
                    self.policy,
                    label=f"test {connection_id}",
                )
                detail = "" if ok else "connection test did not return HTTP 200"
            except OICMigrationError as exc:
                ok, detail = False, str(exc)
            self.report.record(ident, Step.TEST, ok, detail, subject=connection_id)

        if ref.activate:
            try:
                call_with_retry(
                    lambda: self.target.client.activate_integration(
                        self.target.token, ident
                    ),
                    self.policy,
                    label=f"activate {ident}",
                )
            except OICMigrationError as exc:
                self.report.record(ident, Step.ACTIVATE, False, str(exc))
                return
            self.report.record(ident, Step.ACTIVATE, True)

    def _import(self, archive: bytes) -> str:
        """Import into the target, replacing on conflict."""
        # Imports are not idempotent, so they are never retried.
        client, token = self.target.client, self.target.token
        try:
            result = client.import_artifact(token, archive)
        except ImportRejected as exc:
            if exc.status_code != HTTP_CONFLICT:
                raise
            logger.info("Integration exists on %s, replacing", self.target.name)
            result = client.import_artifact(token, archive, replace=True)
            return f"replaced (HTTP {result.status_code})"
        return f"imported (HTTP {result.status_code})"

    def _patch(
        self, ident: str, overrides: dict[str, list[PropertyOverride]]
    ) -> bool:
        """Apply overrides once per run; False when any patch failed."""
        all_ok = True
        for connection_id, properties in overrides.items():
            for prop in properties:
                key = (connection_id, prop.group, prop.name)
                if key in self._patched:
                    continue
                try:
                    call_with_retry(
                        lambda: self.target.client.patch_connection_property(
                            self.target.token,
                            connection_id,
                            prop.group,
                            prop.name,
                            prop.type,
                            prop.value,
                        ),
                        self.policy,
                        label=f"patch {connection_id}.{prop.name}",
                    )
                except OICMigrationError as exc:
                    self.report.record(
                        ident, Step.PATCH, False, str(exc), subject=connection_id
                    )
                    all_ok = False
                    if self.halt_on_patch_failure:
                        return False
                    continue
                self._patched.add(key)
                self.report.record(
                    ident, Step.PATCH, True, prop.name, subject=connection_id
                )
        return all_ok


def promote(
    plan: MigrationPlan,
    source: EnvironmentSession,
    target: EnvironmentSession,
    retry: RetrySettings | None = None,
    store: ArtifactStore | None = None,
    halt_on_patch_failure: bool = False,
) -> PromotionReport:
    """Move every integration of ``plan`` from ``source`` to ``target``."""
    logger.info(
        "Promoting %d integration(s) from %s to %s",
        len(plan.integrations),
        source.name,
        target.name,
    )
    policy = retry or load_retry_settings()
    return _Promotion(
        plan, source, target, policy, store, halt_on_patch_failure
    ).run()
