"""Type definitions for the OIC integration REST API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

ACTIVATED = "ACTIVATED"


class ImportReport(BaseModel):
    """Best-effort view of an archive import response."""

    status_code: int
    status: str | None = None
    id: str | None = None
    message: str | None = None
    raw: dict[str, Any] = {}


class PropertyPatch(BaseModel):
    """PATCH body for a single connection property."""

    model_config = ConfigDict(populate_by_name=True)

    property_group: str = Field(alias="propertyGroup")
    property_name: str = Field(alias="propertyName")
    property_type: str = Field(alias="propertyType")
    property_value: str = Field(alias="propertyValue")


class IntegrationSummary(BaseModel):
    """An integration as listed by ``GET integrations``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = ""
    code: str
    version: str = ""
    name: str | None = None
    status: str = "UNKNOWN"
    created_time: str | None = Field(default=None, alias="createdTime")
    last_updated_time: str | None = Field(default=None, alias="lastUpdatedTime")
    connections: list[str] = []

    @field_validator("id", "version", "status", mode="before")
    @classmethod
    def _null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        """Explicit nulls fall back to the field default."""
        if value is None:
            return "UNKNOWN" if info.field_name == "status" else ""
        return value

    @field_validator("connections", mode="before")
    @classmethod
    def _connection_ids(cls, value: Any) -> list[str]:
        """Accept plain ids or ``{"id": ...}`` objects."""
        if not isinstance(value, list):
            return []
        ids = []
        for item in value:
            if isinstance(item, dict):
                item = item.get("id")
            if item:
                ids.append(str(item))
        return ids

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "IntegrationSummary":
        """Flatten ``dependencies.connections`` into ``connections``."""
        data = dict(item)
        dependencies = data.get("dependencies")
        if not isinstance(dependencies, dict):
            dependencies = {}
        data["connections"] = dependencies.get("connections") or []
        return cls.model_validate(data)


class ConnectionSummary(BaseModel):
    """A connection as listed by ``GET connections``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    name: str | None = None
    status: str = "UNKNOWN"
    adapter_type: str | None = Field(default=None, alias="adapterType")

    @field_validator("status", mode="before")
    @classmethod
    def _null_status(cls, value: Any) -> Any:
        """A null status reads as UNKNOWN."""
        return "UNKNOWN" if value is None else value

    @field_validator("adapter_type", mode="before")
    @classmethod
    def _adapter_name(cls, value: Any) -> Any:
        """Adapter objects are reduced to their name."""
        if isinstance(value, dict):
            return value.get("name") or value.get("displayName")
        return value
