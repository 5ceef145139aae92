"""Service configuration loaded from ASKBRIDGE_* environment variables."""

from __future__ import annotations

import secrets
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AskBridgeSettings(BaseSettings):
    """askbridge service settings.

    All fields are read from environment variables with the ``ASKBRIDGE_``
    prefix.  For example, ``ASKBRIDGE_LOG_LEVEL=DEBUG`` maps to ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="ASKBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"
    log_file: str | None = None
    """Optional path of a rotating log file, in addition to stderr."""

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3580
    graceful_shutdown_timeout: int = 10
    """Seconds uvicorn waits for open connections after the broker has drained."""

    # -- Auth ------------------------------------------------------------------
    access_code: str | None = None
    """Numeric code remote clients enter to join.  Generated at startup if empty."""

    auth_token: str | None = None
    """Bearer token for the local HTTP API.  Auto-generated at startup if empty."""

    # -- History ---------------------------------------------------------------
    data_root: str = "./data"
    """Root directory for the local history file."""

    data_prefix: str | None = None
    """Optional namespace inserted under the data root: ``{data_root}/{data_prefix}/history.json``."""

    history_store: Literal["memory", "local"] = "memory"
    history_limit: int = 100
    """Maximum number of history entries kept in memory and on disk."""

    # -- Broker ----------------------------------------------------------------
    processing_timeout: float | None = 30.0
    """Seconds before the "processing" indicator auto-clears.  Cosmetic only."""

    request_timeout: float | None = None
    """Cancel a pending request after this many seconds.  ``None`` waits forever."""

    # -- Queue -----------------------------------------------------------------
    queue_enabled: bool = True
    queue_paused: bool = False

    # -- Remote connections ----------------------------------------------------
    outbox_size: int = 256
    """Per-connection buffered frames before the backlog is replaced by a snapshot."""

    @field_validator("access_code")
    @classmethod
    def _validate_access_code(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        if not value.isdigit() or not 4 <= len(value) <= 8:
            msg = "access_code must be 4 to 8 digits"
            raise ValueError(msg)
        return value

    # -- Helpers ---------------------------------------------------------------

    def resolve_access_code(self) -> str:
        """Return the configured access code or generate a random 4-digit one."""
        if self.access_code:
            return self.access_code
        return f"{secrets.randbelow(10_000):04d}"

    def resolve_auth_token(self) -> str:
        """Return the configured token or generate a random one."""
        if self.auth_token:
            return self.auth_token
        return secrets.token_urlsafe(32)


def get_settings() -> AskBridgeSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``_get_settings_cached.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return _get_settings_cached()


def _get_settings_cached() -> AskBridgeSettings:
    """Inner function wrapped by lru_cache (allows type-safe cache_clear)."""
    return AskBridgeSettings()


# Apply lru_cache at runtime so the function is only called once.
from functools import lru_cache  # noqa: E402

_get_settings_cached = lru_cache(maxsize=1)(_get_settings_cached)
