"""Inventory of the integrations and connections present in an environment."""

from pydantic import BaseModel

from oicmig.api.types import ACTIVATED, ConnectionSummary, IntegrationSummary
from oicmig.workflow.session import EnvironmentSession


class Inventory(BaseModel):
    """Integrations and connections listed from one environment."""

    environment: str
    integrations: list[IntegrationSummary] = []
    connections: list[ConnectionSummary] = []

    @property
    def active_count(self) -> int:
        """Integrations in ACTIVATED state."""
        return sum(1 for i in self.integrations if i.status == ACTIVATED)


def discover(session: EnvironmentSession) -> Inventory:
    """List everything the session can see."""
    return Inventory(
        environment=session.name,
        integrations=session.client.list_integrations(session.token),
        connections=session.client.list_connections(session.token),
    )
