"""
Application configuration models and helpers.

Centralizes settings so the HTTP routes, the callback reconciler and the
reminder loop read one consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file into the environment."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        os.environ[key] = value.strip().strip('"').strip("'")


_load_env_file()


class SupabaseSettings(BaseSettings):
    """Connection details for the Supabase Auth project."""

    url: AnyHttpUrl = Field(..., validation_alias="SUPABASE_URL")
    anon_key: str = Field(..., validation_alias="SUPABASE_ANON_KEY")

    @property
    def auth_base_url(self) -> str:
        return f"{str(self.url).rstrip('/')}/auth/v1"


class AuthCallbackSettings(BaseSettings):
    """Tunables for the OAuth callback reconciliation flow."""

    model_config = SettingsConfigDict(enable_decoding=False)

    default_next: str = Field("/home", validation_alias="AUTH_DEFAULT_NEXT")
    error_page_path: str = Field("/login", validation_alias="AUTH_ERROR_PAGE_PATH")
    exchange_timeout_seconds: float = Field(
        15.0,
        validation_alias="AUTH_EXCHANGE_TIMEOUT",
        description="Deadline for the code exchange before reporting a timeout.",
    )
    claim_ttl_seconds: int = Field(
        300,
        validation_alias="AUTH_CLAIM_TTL",
        description="Lifetime of the per-code exchange claim shared by both callback paths.",
    )
    claim_poll_interval_seconds: float = Field(
        0.25, validation_alias="AUTH_CLAIM_POLL_INTERVAL"
    )
    consumed_markers: tuple[str, ...] = Field(
        ("already", "expired"),
        validation_alias="AUTH_CONSUMED_MARKERS",
        description=(
            "Substrings of provider error text meaning the code was already exchanged."
        ),
    )
    verifier_ttl_seconds: int = Field(900, validation_alias="AUTH_VERIFIER_TTL")
    session_cookie_name: str = Field(
        "fittrack-session", validation_alias="AUTH_SESSION_COOKIE"
    )
    verifier_cookie_name: str = Field(
        "fittrack-code-verifier", validation_alias="AUTH_VERIFIER_COOKIE"
    )

    @field_validator("consumed_markers", mode="before")
    @classmethod
    def _split_markers(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing markers as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(marker.strip() for marker in value.split(",") if marker.strip())


class ReminderSettings(BaseSettings):
    """Settings for the background reminder loop."""

    check_interval_seconds: float = Field(60.0, validation_alias="REMINDERS_CHECK_INTERVAL")
    autostart: bool = Field(
        True,
        validation_alias="REMINDERS_AUTOSTART",
        description="Start the reminder loop together with the application.",
    )
    outbox_ttl_seconds: float = Field(
        10800,
        validation_alias="REMINDERS_OUTBOX_TTL",
        description="Age after which an undelivered notification is dropped.",
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description="Secret used to derive the key encrypting stored session tokens.",
    )
    state_signing_secret: Optional[str] = Field(
        None,
        validation_alias="STATE_SIGNING_SECRET",
        description="Secret used to sign the PKCE verifier cookie.",
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    public_base_url: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="PUBLIC_BASE_URL",
        description="Public origin used to build the OAuth callback URL.",
    )
    database_path: str = Field("data/fittrack.db", validation_alias="FITTRACK_DB_PATH")
    supabase: SupabaseSettings = Field(default_factory=SupabaseSettings)
    auth: AuthCallbackSettings = Field(default_factory=AuthCallbackSettings)
    reminders: ReminderSettings = Field(default_factory=ReminderSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "AuthCallbackSettings",
    "ReminderSettings",
    "SecuritySettings",
    "SupabaseSettings",
    "get_settings",
]
