"""Environment-driven defaults for machina.

``MachinaSettings`` holds the process-wide cache defaults that a machine
falls back to when neither its definition nor the caller set a value,
plus logging and CLI settings. Every field can be set through a
``MACHINA_*`` environment variable or a ``.env`` file.

Examples:
    >>> import os
    >>> os.environ["MACHINA_CACHE_TTL_SECONDS"] = "60"
    >>> get_settings(_force_reload=True).cache_ttl
    datetime.timedelta(seconds=60)

Tags:
    settings, configuration, pydantic, environment, machina
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MachinaSettings(BaseSettings):
    """Process-wide defaults.

    Fields
    ──────
    cache_ttl_seconds            : Max age of a usable cache entry (3 hours)
    cache_max_old_entries_buffer : Stale entries kept per hash before GC deletes
    cache_exit                   : Exit whose value is memoized
    cache_database_url           : SQL store used by the ``machina cache`` CLI
    log_level                    : Structlog log level
    log_format                   : ``json`` or ``console``
    """

    model_config = SettingsConfigDict(
        env_prefix="MACHINA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Cache defaults ───────────────────────────────────────────
    cache_ttl_seconds: float = Field(default=3 * 60 * 60, ge=0)
    cache_max_old_entries_buffer: int = Field(default=0, ge=0)
    cache_exit: str = Field(default="success", min_length=1)
    cache_database_url: str = Field(default="sqlite:///machina_cache.db")

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        if value not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return value

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.cache_ttl_seconds)


_settings: MachinaSettings | None = None


def get_settings(*, _force_reload: bool = False) -> MachinaSettings:
    """Load and cache a :class:`MachinaSettings` instance."""
    global _settings
    if _settings is None or _force_reload:
        _settings = MachinaSettings()
    return _settings


__all__ = ["MachinaSettings", "get_settings"]
