"""Migration plan: which integrations move and which connection properties change."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from oicmig.core.errors import ConfigurationError


class IntegrationRef(BaseModel):
    """An integration identified by code and version."""

    code: str = Field(min_length=1)
    version: str = Field(min_length=1)
    activate: bool = True
    connections: list[str] = []

    @property
    def identifier(self) -> str:
        """OIC integration id in ``CODE|VERSION`` form."""
        return f"{self.code}|{self.version}"


class PropertyOverride(BaseModel):
    """One connection property value to set in a target environment."""

    group: str = "CONNECTION_PROPS"
    name: str
    type: str
    value: str


class MigrationPlan(BaseModel):
    """Integrations to migrate plus per-environment connection overrides."""

    integrations: list[IntegrationRef] = Field(min_length=1)
    connections: dict[str, dict[str, list[PropertyOverride]]] = {}

    def overrides_for(self, environment: str) -> dict[str, list[PropertyOverride]]:
        """Connection overrides keyed by connection id for ``environment``."""
        return self.connections.get(environment.lower(), {})

    def overrides_for_integration(
        self, environment: str, ref: IntegrationRef
    ) -> dict[str, list[PropertyOverride]]:
        """Overrides restricted to the connections ``ref`` lists, if it lists any."""
        overrides = self.overrides_for(environment)
        if not ref.connections:
            return overrides
        return {conn: overrides[conn] for conn in ref.connections if conn in overrides}

    @property
    def codes(self) -> list[str]:
        """Integration codes in plan order, without duplicates."""
        return list(dict.fromkeys(ref.code for ref in self.integrations))


def load_plan(path: str | Path) -> MigrationPlan:
    """Read and validate a YAML migration plan."""
    plan_path = Path(path)
    try:
        raw = yaml.safe_load(plan_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Cannot read plan {plan_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {plan_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Plan {plan_path} must be a mapping")

    raw_connections = raw.get("connections") or {}
    if isinstance(raw_connections, dict):
        raw["connections"] = {
            str(env).lower(): conns or {} for env, conns in raw_connections.items()
        }
    try:
        return MigrationPlan.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid plan {plan_path}: {exc}") from exc
