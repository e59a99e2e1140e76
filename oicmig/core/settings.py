"""Per-environment OIC settings loaded from environment variables."""

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from oicmig.core.errors import ConfigurationError

DEFAULT_SCOPE = "urn:opc:resource:consumer::all"
DEFAULT_AUDIENCE = "https://identity.oraclecloud.com/"
ASSERTION_TTL_DEFAULT = 300
CONNECT_TIMEOUT_DEFAULT = 30.0
READ_TIMEOUT_DEFAULT = 60.0
RETRY_ATTEMPTS_DEFAULT = 3
RETRY_BASE_DELAY_DEFAULT = 1.0
RETRY_MAX_DELAY_DEFAULT = 30.0

API_ROOT = "ic/api/integration/v1/"
TOKEN_PATH = "oauth2/v1/token"


class EnvironmentSettings(BaseSettings):
    """Credentials and endpoints of one OIC environment (dev, test, prod)."""

    model_config = SettingsConfigDict(env_prefix="OIC_", extra="ignore")

    instance_url: str
    idcs_url: str
    client_id: str
    client_secret: str = Field(repr=False)
    username: str
    private_key_path: str
    key_alias: str
    scope: str = DEFAULT_SCOPE
    audience: str = DEFAULT_AUDIENCE
    assertion_ttl: int = ASSERTION_TTL_DEFAULT

    @property
    def token_endpoint(self) -> str:
        """OAuth token endpoint of the identity domain."""
        return f"{self.idcs_url.rstrip('/')}/{TOKEN_PATH}"

    @property
    def api_base_url(self) -> str:
        """Root of the integration REST API, with trailing slash."""
        return f"{self.instance_url.rstrip('/')}/{API_ROOT}"


class HttpSettings(BaseSettings):
    """Timeouts and TLS options shared by every HTTP client."""

    model_config = SettingsConfigDict(env_prefix="OIC_HTTP_")

    connect_timeout: float = CONNECT_TIMEOUT_DEFAULT
    read_timeout: float = READ_TIMEOUT_DEFAULT
    verify_tls: bool = True


class RetrySettings(BaseSettings):
    """Caller-side retry policy for transient network failures."""

    model_config = SettingsConfigDict(env_prefix="OIC_RETRY_")

    max_attempts: int = RETRY_ATTEMPTS_DEFAULT
    base_delay: float = RETRY_BASE_DELAY_DEFAULT
    max_delay: float = RETRY_MAX_DELAY_DEFAULT


def env_prefix(name: str) -> str:
    """Variable prefix for an environment, e.g. ``OIC_TEST_``."""
    return f"OIC_{name.strip().upper()}_"


def _invalid_fields(prefix: str, exc: ValidationError) -> str:
    """Variable names behind a settings validation error."""
    return ", ".join(
        f"{prefix}{str(err['loc'][0]).upper()}"
        for err in exc.errors()
        if err["loc"]
    )


def load_http_settings() -> HttpSettings:
    """Load ``OIC_HTTP_*`` settings or raise ConfigurationError."""
    try:
        return HttpSettings()
    except ValidationError as exc:
        fields = _invalid_fields("OIC_HTTP_", exc)
        raise ConfigurationError(f"Invalid HTTP settings: {fields}") from exc


def load_retry_settings() -> RetrySettings:
    """Load ``OIC_RETRY_*`` settings or raise ConfigurationError."""
    try:
        return RetrySettings()
    except ValidationError as exc:
        fields = _invalid_fields("OIC_RETRY_", exc)
        raise ConfigurationError(f"Invalid retry settings: {fields}") from exc


def load_environment(name: str) -> EnvironmentSettings:
    """Load settings for ``name`` or raise ConfigurationError."""
    if not name.strip():
        raise ConfigurationError("Environment name must not be empty")
    prefix = env_prefix(name)
    try:
        settings = EnvironmentSettings(_env_prefix=prefix)
    except ValidationError as exc:
        fields = _invalid_fields(prefix, exc)
        raise ConfigurationError(
            f"Incomplete settings for environment '{name}': {fields}"
        ) from exc
    if not settings.key_alias.strip():
        raise ConfigurationError(
            f"{prefix}KEY_ALIAS is empty; the JWT kid must match a certificate "
            "alias registered with the identity domain"
        )
    if not 0 < settings.assertion_ttl <= ASSERTION_TTL_DEFAULT:
        raise ConfigurationError(
            f"{prefix}ASSERTION_TTL must be between 1 and {ASSERTION_TTL_DEFAULT}"
        )
    return settings
