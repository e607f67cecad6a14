from functools import lru_cache
from urllib.parse import urlparse

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PLACEHOLDER_SECRETS = {"change-this-to-a-secure-random-string", "changeme"}
_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Process configuration, read from the environment and an optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Care Team Security"
    app_env: str = "development"  # development, testing, production
    debug: bool = False
    enable_openapi: bool = True
    allowed_app_url_domains: list[str] = ["localhost", "127.0.0.1"]
    app_url: str = "http://localhost:3000"  # Frontend that renders the join page
    cors_origins: list[str] = ["http://localhost:3000"]
    log_user_emails: bool = False  # Patient-adjacent data; opaque user IDs only by default

    # Database
    database_url: str
    database_pool_size: int = Field(default=5, ge=1)
    database_max_overflow: int = Field(default=10, ge=0)
    database_pool_timeout: int = Field(default=30, ge=1)
    database_ssl_mode: str = "prefer"  # disable, prefer, require, verify-ca, verify-full

    # Bearer tokens are minted by the identity provider and only verified here
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(default=30, ge=1)

    # Care team invitations
    invite_expire_days: int = Field(default=7, ge=1, le=30)
    invitation_email_binding: bool = True
    default_max_team_size: int = Field(default=10, ge=1)
    invitation_sweep_schedule: str | None = None  # Cron, e.g. "*/15 * * * *"

    # MFA
    mfa_encryption_key: str
    mfa_issuer: str = "Care Team"
    totp_valid_window: int = Field(default=2, ge=0, le=4)  # 30s steps either side
    backup_code_count: int = Field(default=10, ge=1, le=20)
    mfa_max_failed_attempts: int = Field(default=5, ge=1)
    mfa_failure_window_minutes: int = Field(default=15, ge=1)
    mfa_lockout_minutes: int = Field(default=30, ge=1)
    sms_default_country_code: str = Field(default="+61", pattern=r"^\+\d{1,3}$")

    # Temporal
    temporal_host: str = "localhost:7233"
    temporal_namespace: str = "default"
    temporal_task_queue: str = "careteam.jobs"

    # Outbound email (Resend); logged instead of sent when no key is configured
    resend_api_key: str | None = None
    email_from: str = "noreply@example.com"
    email_send_timeout_seconds: int = Field(default=10, ge=1)

    # Operations
    metrics_api_key: str | None = None  # Protects /metrics when set
    rate_limit_storage_uri: str | None = None  # slowapi backend; in-memory when unset

    @field_validator("jwt_secret_key", "mfa_encryption_key")
    @classmethod
    def reject_weak_secrets(cls, v: str, info: ValidationInfo) -> str:
        env_name = info.field_name.upper()
        if v in _PLACEHOLDER_SECRETS:
            raise ValueError(f"{env_name} is still the placeholder value")
        if len(v) < _MIN_SECRET_LENGTH:
            raise ValueError(
                f"{env_name} must be at least {_MIN_SECRET_LENGTH} characters. "
                "Generate one with: openssl rand -hex 32"
            )
        return v

    @field_validator("cors_origins")
    @classmethod
    def reject_wildcard_origin(cls, v: list[str]) -> list[str]:
        # Credentials are allowed on CORS requests, which browsers refuse with "*"
        if "*" in v:
            raise ValueError("CORS_ORIGINS cannot contain '*'; list explicit origins")
        return v

    @field_validator("app_url")
    @classmethod
    def app_url_on_allowed_domain(cls, v: str, info: ValidationInfo) -> str:
        """Join links are built from APP_URL, so it must point at a domain we own."""
        allowed = info.data.get("allowed_app_url_domains", ["localhost", "127.0.0.1"])
        hostname = urlparse(v).hostname or ""
        if not any(hostname == d or hostname.endswith(f".{d}") for d in allowed):
            raise ValueError(
                f"APP_URL host '{hostname}' is not in ALLOWED_APP_URL_DOMAINS ({allowed})"
            )
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
