"""Post-deployment smoke tests: integration status plus connection pings."""

import logging
from collections.abc import Iterable
from enum import StrEnum

from pydantic import BaseModel

from oicmig.api.types import ACTIVATED
from oicmig.core.errors import OICMigrationError
from oicmig.workflow.session import EnvironmentSession

logger = logging.getLogger(__name__)


class SmokeResult(StrEnum):
    """Outcome of one integration smoke test."""

    PASS = "PASS"
    WARNING = "WARNING"
    NOT_FOUND = "NOT_FOUND"
    FAIL = "FAIL"


class ConnectionCheck(BaseModel):
    """Result of pinging one connection."""

    connection_id: str
    ok: bool


class IntegrationCheck(BaseModel):
    """Smoke test outcome for one integration code."""

    code: str
    result: SmokeResult
    version: str | None = None
    status: str | None = None
    notes: str = ""
    connections: list[ConnectionCheck] = []


class SmokeReport(BaseModel):
    """Smoke test results for one environment."""

    environment: str
    results: list[IntegrationCheck] = []

    @property
    def total(self) -> int:
        """Number of integration codes checked."""
        return len(self.results)

    @property
    def passed(self) -> int:
        """Codes that passed every check."""
        return sum(1 for r in self.results if r.result == SmokeResult.PASS)

    @property
    def warnings(self) -> int:
        """Codes found but not fully healthy."""
        return sum(1 for r in self.results if r.result == SmokeResult.WARNING)

    @property
    def failed(self) -> int:
        """FAIL and NOT_FOUND results together."""
        return sum(
            1
            for r in self.results
            if r.result in (SmokeResult.FAIL, SmokeResult.NOT_FOUND)
        )

    @property
    def succeeded(self) -> bool:
        """True when no code failed or went missing."""
        return self.failed == 0


def check_integration(session: EnvironmentSession, code: str) -> IntegrationCheck:
    """Look up ``code`` and ping each connection it depends on."""
    try:
        summary = session.client.find_integration(session.token, code)
    except OICMigrationError as exc:
        return IntegrationCheck(code=code, result=SmokeResult.FAIL, notes=str(exc))
    if summary is None:
        return IntegrationCheck(
            code=code, result=SmokeResult.NOT_FOUND, notes="Integration not found"
        )

    checks = []
    for conn in summary.connections:
        try:
            ok = session.client.test_connection(session.token, conn)
        except OICMigrationError as exc:
            logger.warning("Connection test for %s raised %s", conn, exc)
            ok = False
        checks.append(ConnectionCheck(connection_id=conn, ok=ok))
    broken = [c.connection_id for c in checks if not c.ok]

    if broken:
        result, notes = SmokeResult.FAIL, "Connection test failed: " + ", ".join(broken)
    elif summary.status == ACTIVATED:
        result, notes = SmokeResult.PASS, "Active and deployed"
    else:
        result, notes = SmokeResult.WARNING, "Not activated"
    return IntegrationCheck(
        code=code,
        result=result,
        version=summary.version or None,
        status=summary.status,
        notes=notes,
        connections=checks,
    )


def run_smoke_tests(
    session: EnvironmentSession, codes: Iterable[str]
) -> SmokeReport:
    """Check every code in order; one failure never stops the rest."""
    report = SmokeReport(environment=session.name)
    for code in codes:
        logger.info("Smoke testing %s on %s", code, session.name)
        check = check_integration(session, code)
        logger.info("%s: %s (%s)", code, check.result.value, check.notes)
        report.results.append(check)
    return report
