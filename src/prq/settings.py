"""
Central configuration for the Project Review Queue.

All settings are read from environment variables with the ``PRQ_`` prefix
(e.g. ``PRQ_ENV=prod``, ``PRQ_BACKEND_URL=...``).  Pydantic validates and
casts values on startup.

Usage::

    from prq.settings import get_settings
    settings = get_settings()
    print(settings.env, settings.backend_url)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from ``PRQ_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PRQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Environment ──────────────────────────────────────────────────
    env: Literal["local", "dev", "prod"] = "local"

    # ── Backend ──────────────────────────────────────────────────────
    # Single invoke endpoint; every call is an {"action", "payload"} envelope.
    backend_url: str = "http://localhost:8080/invoke"
    request_timeout_seconds: float = 30.0

    # Identity sent with reviewer calls (auth itself is handled upstream).
    reviewer_email: str = "teacher@example.org"

    # ── Review UI ────────────────────────────────────────────────────
    # Success/error banners clear themselves after this many seconds.
    message_ttl_seconds: float = 7.0

    # ── Observability ────────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"

    # ── Startup validation ───────────────────────────────────────────

    @model_validator(mode="after")
    def _validate_config(self) -> Settings:
        """
        Fail fast if settings are missing or misconfigured.

        All errors are collected before raising so a single startup failure
        reveals every problem at once rather than one at a time.
        """
        errors: list[str] = []

        if self.request_timeout_seconds <= 0:
            errors.append("PRQ_REQUEST_TIMEOUT_SECONDS must be positive")

        if self.message_ttl_seconds <= 0:
            errors.append("PRQ_MESSAGE_TTL_SECONDS must be positive")

        # ── Any deployed environment (dev or prod, not local) ────────
        if self.env != "local":
            if "localhost" in self.backend_url or "127.0.0.1" in self.backend_url:
                errors.append(
                    f"PRQ_BACKEND_URL must not point to localhost (env={self.env!r})"
                )

        # ── Production only ───────────────────────────────────────────
        if self.env == "prod":
            if not self.backend_url.startswith("https://"):
                errors.append("PRQ_BACKEND_URL must use https in prod")

            if self.debug:
                errors.append("PRQ_DEBUG must be false in prod")

        if errors:
            raise ValueError(
                f"[PRQ env={self.env!r}] Configuration errors, fix before deploying:\n  - "
                + "\n  - ".join(errors)
            )

        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton."""
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (for testing)."""
    get_settings.cache_clear()
