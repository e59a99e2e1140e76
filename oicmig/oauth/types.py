"""Type definitions for OAuth token exchange."""

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, Field

ACCESS_TOKEN_DEFAULT_TTL = 3600
DEFAULT_TOKEN_TYPE = "Bearer"


class AccessToken(BaseModel):
    """Bearer token issued by the identity domain."""

    value: str = Field(repr=False)
    token_type: str = DEFAULT_TOKEN_TYPE
    expires_in: int = ACCESS_TOKEN_DEFAULT_TTL
    obtained_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def expires_at(self) -> datetime:
        """Instant the identity domain stops accepting the token."""
        return self.obtained_at + timedelta(seconds=self.expires_in)

    def is_expired(self, margin_seconds: int = 60) -> bool:
        """True once the token is within ``margin_seconds`` of expiry."""
        return datetime.now(UTC) >= self.expires_at - timedelta(seconds=margin_seconds)

    @property
    def authorization(self) -> str:
        """Value for the ``Authorization`` header."""
        return f"Bearer {self.value}"


class TokenErrorBody(BaseModel):
    """RFC 6749 error response."""

    error: str | None = None
    error_description: str | None = None
