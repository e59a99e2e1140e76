"""Exception hierarchy for assertion signing, token exchange and OIC calls."""

import httpx

BODY_PREVIEW_LIMIT = 2048


def _preview(body: str) -> str:
    """Truncate a response body for inclusion in an exception."""
    if len(body) <= BODY_PREVIEW_LIMIT:
        return body
    return body[:BODY_PREVIEW_LIMIT] + "...[truncated]"


class OICMigrationError(Exception):
    """Base class for every error raised by oicmig."""


class ConfigurationError(OICMigrationError):
    """Settings, plan file or signing identity are incomplete or invalid."""


class InvalidKeyMaterial(OICMigrationError):
    """The private key cannot be read or parsed as an RSA private key."""


class SigningFailure(OICMigrationError):
    """The RS256 signature operation failed."""


class NetworkError(OICMigrationError):
    """The request never produced an HTTP response (connect error, timeout)."""

    def __init__(self, message: str, *, url: str = "") -> None:
        super().__init__(message)
        self.url = url

    @classmethod
    def from_transport(cls, exc: httpx.TransportError) -> "NetworkError":
        """Wrap an httpx transport error, keeping the target URL."""
        url = ""
        try:
            url = str(exc.request.url)
        except RuntimeError:
            pass
        return cls(f"{type(exc).__name__}: {exc}", url=url)


class HttpError(OICMigrationError):
    """A remote call returned an unexpected HTTP response."""

    def __init__(self, message: str, *, status_code: int, body: str = "") -> None:
        super().__init__(f"{message} (HTTP {status_code})")
        self.status_code = status_code
        self.body = _preview(body)

    @classmethod
    def from_response(cls, message: str, response: httpx.Response) -> "HttpError":
        """Build the error from an httpx response."""
        return cls(message, status_code=response.status_code, body=response.text)


class AuthenticationRejected(HttpError):
    """The identity domain refused the assertion or returned no usable token."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: str = "",
        error: str | None = None,
        error_description: str | None = None,
    ) -> None:
        detail = message
        if error:
            detail = f"{detail}: {error}"
        if error_description:
            detail = f"{detail} - {error_description}"
        super().__init__(detail, status_code=status_code, body=body)
        self.error = error
        self.error_description = error_description


class ArtifactNotFound(HttpError):
    """The integration archive does not exist on the source instance."""


class ExportFailed(HttpError):
    """Exporting an integration archive failed."""


class EmptyArtifact(HttpError):
    """The export call succeeded but returned a zero-length archive."""


class ImportRejected(HttpError):
    """The target instance refused the integration archive."""


class PropertyUpdateFailed(HttpError):
    """Patching a connection property failed."""


class ActivationFailed(HttpError):
    """Activating an integration failed."""


class QueryFailed(HttpError):
    """Listing or looking up integrations or connections failed."""
