"""Bridge configuration using pydantic-settings.

All environment variables are prefixed with BRIDGE_ (e.g. BRIDGE_GITLAB_TOKEN).
The callback URL registered on GitLab is derived from ``server_base_url``.
"""

from urllib.parse import urljoin, urlparse

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gitlab_ci_bridge.common.errors import ConfigurationError

# Relative path of the webhook listener, resolved against server_base_url
EVENTS_PATH = "events"

# Body returned by GET on the events endpoint while the listener is up
LISTENING_SENTINEL = "Listening to GitLab events!!!"


def callback_url(server_base_url: str) -> str:
    """Resolve the events endpoint against the configured base URL.

    Resolution follows RFC 3986 relative references, so a base of
    ``https://ci.example.com/bridge/`` yields
    ``https://ci.example.com/bridge/events`` while ``.../bridge`` (no
    trailing slash) yields ``https://ci.example.com/events``.

    Raises:
        ConfigurationError: If the base URL has no http(s) scheme or no host.
    """
    parsed = urlparse(server_base_url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(f"Malformed server base URL: {server_base_url!r}")
    return urljoin(server_base_url, EVENTS_PATH)


class BridgeSettings(BaseSettings):
    """Bridge configuration from environment variables.

    Required fields:
    - gitlab_token: Personal or project access token for the GitLab API
    - server_base_url: Externally reachable base URL of this service
    """

    model_config = SettingsConfigDict(
        env_prefix="BRIDGE_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # GitLab Configuration
    # -------------------------------------------------------------------------
    gitlab_url: str = "https://gitlab.com"

    gitlab_token: str

    # Seconds before a single GitLab request times out
    request_timeout_seconds: float = 30.0

    # Retry attempts for transient failures (408, 429, 5xx, network errors)
    max_retries: int = 3

    # Page size for paginated listings (GitLab caps this at 100)
    per_page: int = 100

    # -------------------------------------------------------------------------
    # Callback Configuration
    # -------------------------------------------------------------------------
    server_base_url: str

    # Delay between readiness and the liveness probe of the callback URL
    probe_delay_seconds: float = 2.0

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"

    port: int = 8080

    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("gitlab_token")
    @classmethod
    def validate_gitlab_token(cls, v: str) -> str:
        """Validate that the GitLab token is not empty."""
        if not v or not v.strip():
            raise ValueError("gitlab_token cannot be empty")
        return v

    @field_validator("gitlab_url", "server_base_url")
    @classmethod
    def validate_http_url(cls, v: str) -> str:
        """Validate that URLs use http:// or https://."""
        if not v or not v.strip():
            raise ValueError("URL cannot be empty")
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries cannot be negative")
        return v

    @field_validator("per_page")
    @classmethod
    def validate_per_page(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError("per_page must be between 1 and 100")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @property
    def callback_url(self) -> str:
        """Webhook target URL derived from ``server_base_url``."""
        return callback_url(self.server_base_url)


def get_settings() -> BridgeSettings:
    """Create and return a BridgeSettings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return BridgeSettings()
