"""
Configuration loader for the gated counter.

- Reads environment variables (optionally from `.env`) via pydantic-settings.
- Exposes a cached `get_settings()` accessor.

Environment variables (prefix GATED_COUNTER_):
    OWNER           (hex, optional)         owner identity for the HTTP service
    STATE_PATH      (path)                  snapshot file used by CLI and service
    PERSIST         (bool, default False)   service saves a snapshot after each mutation
    LOG_LEVEL       (str, default "INFO")
    LOG_FORMAT      (str, default "console") "json" or "console"
    HOST / PORT     (default 127.0.0.1 / 8080)
    CALLER_HEADER   (str, default "X-Caller")
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import InvalidIdentity
from .identity import derive_identity, to_hex, to_identity

DEV_OWNER_TAG = "gated-counter/dev-owner"


class Settings(BaseSettings):
    owner: Optional[str] = Field(None, description="Owner identity (hex) for the HTTP service")
    state_path: Path = Field(Path("./.gated-counter/state.json"), description="Snapshot file")
    persist: bool = Field(False, description="Save a snapshot after every successful mutation")

    log_level: str = Field("INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_format: str = Field("console", description='"json" or "console"')

    host: str = "127.0.0.1"
    port: int = Field(8080, ge=1, le=65535)
    caller_header: str = "X-Caller"

    model_config = SettingsConfigDict(
        env_prefix="GATED_COUNTER_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    @field_validator("owner", mode="before")
    @classmethod
    def _normalize_owner(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        try:
            return to_hex(to_identity(v))
        except InvalidIdentity as e:
            raise ValueError(e.message) from e

    @field_validator("log_level", mode="before")
    @classmethod
    def _check_level(cls, v):
        s = str(v).strip().upper()
        if s not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ValueError("LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return s

    @field_validator("log_format", mode="before")
    @classmethod
    def _check_format(cls, v):
        s = str(v).strip().lower()
        if s not in ("json", "console"):
            raise ValueError('LOG_FORMAT must be "json" or "console"')
        return s

    def owner_identity(self) -> bytes:
        """Configured owner, or a stable dev identity when unset."""
        if self.owner:
            return to_identity(self.owner)
        return derive_identity(DEV_OWNER_TAG)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings", "DEV_OWNER_TAG"]
