"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Email channels that are not configured stay inert
(their senders report unavailable or fail), so nothing here is required
at load time except well-formed values.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Channel identifiers recorded in email_delivery_log.sent_via.
KNOWN_CHANNELS = ("smtp", "outlook", "sendgrid", "gmail_connector")
DEFAULT_CHANNEL_PRIORITY = "smtp,outlook,sendgrid,gmail_connector"


class Settings(BaseSettings):
    """Application settings loaded from environment and .env.

    Secrets use SecretStr so they never show up in reprs or logs.
    """

    # App
    app_name: str = "mailcascade"
    app_version: str = "1.0.0"
    debug: bool = False

    # Database (postgresql+asyncpg://... in production)
    database_url: str = "sqlite+aiosqlite:///./mailcascade.db"
    database_echo: bool = False
    # Schema is managed by alembic (alembic upgrade head); create_all only for throwaway DBs.
    database_auto_create: bool = False

    # Credential vault: base64 of a 32-byte AES key. Empty = passthrough (cleartext).
    email_encryption_key: SecretStr | None = None

    # OAuth state tokens
    oauth_state_secret: SecretStr | None = None
    oauth_state_ttl_seconds: int = 600
    oauth_state_backend: str = "memory"

    # Redis (only used when oauth_state_backend == "redis")
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: SecretStr | None = None

    # Microsoft / Outlook (per-user OAuth)
    microsoft_client_id: str | None = None
    microsoft_client_secret: SecretStr | None = None
    microsoft_tenant: str = "common"
    app_url: str = "http://localhost:5000"
    oauth_success_redirect: str = "/settings?tab=integrations&outlook=connected"
    oauth_error_redirect: str = "/settings?tab=integrations&outlook=error"

    # SendGrid (platform fallback)
    sendgrid_api_key: SecretStr | None = None
    platform_from_email: str = "mail@example.com"
    platform_from_name: str = "mailcascade"
    platform_reply_to_email: str | None = None

    # Managed Gmail connector (connection broker)
    replit_connectors_hostname: str | None = None
    repl_identity: SecretStr | None = None
    web_repl_renewal: SecretStr | None = None

    # Delivery cascade
    email_channel_priority: str = DEFAULT_CHANNEL_PRIORITY
    email_send_timeout_seconds: float = 30.0
    token_refresh_max_attempts: int = 3
    token_refresh_buffer_seconds: int = 600

    # Request / middleware
    user_header_name: str = "X-User-ID"
    request_id_header: str = "X-Request-ID"
    allowed_origins: str = "http://localhost:3000,http://localhost:5000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_channels_and_backends(self) -> "Settings":
        """Reject unknown channel names and state backends early."""
        unknown = [c for c in self.channel_priority if c not in KNOWN_CHANNELS]
        if unknown:
            raise ValueError(
                f"EMAIL_CHANNEL_PRIORITY contains unknown channels: {unknown}. "
                f"Known: {', '.join(KNOWN_CHANNELS)}"
            )
        if self.oauth_state_backend not in ("memory", "redis"):
            raise ValueError(
                f"oauth_state_backend must be 'memory' or 'redis', got: {self.oauth_state_backend!r}"
            )
        if self.token_refresh_max_attempts < 1:
            raise ValueError("TOKEN_REFRESH_MAX_ATTEMPTS must be at least 1")
        return self

    @property
    def channel_priority(self) -> list[str]:
        """Ordered channel names parsed from email_channel_priority."""
        return [
            c.strip().lower()
            for c in self.email_channel_priority.split(",")
            if c.strip()
        ]

    @property
    def microsoft_authority(self) -> str:
        return f"https://login.microsoftonline.com/{self.microsoft_tenant}"

    @property
    def outlook_redirect_uri(self) -> str:
        """Callback URL registered with Microsoft (APP_URL + callback route)."""
        base = self.app_url if self.app_url.startswith("http") else f"https://{self.app_url}"
        return f"{base.rstrip('/')}/api/v1/email-integrations/outlook/callback"


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    In tests, call get_settings.cache_clear() after changing env vars so the
    next get_settings() picks up the new values.
    """
    return Settings()
