"""Central configuration for the capture service client."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging_config import DEFAULT_LOG_DIR

USER_DIR = Path("~/.vfcapture")
DEFAULT_ENV_FILE = Path(".env")
DEFAULT_API_BASE_URL = "http://localhost:1357/api"


# ============================================================
# Nested Configuration Classes
# ============================================================

class PollingSettings(BaseModel):
    """Dashboard status polling configuration."""
    interval_ms: int = Field(2500, description="Delay between status fetches (ms)")
    single_flight: bool = Field(True, description="Skip a tick while the previous fetch is still running")


class StorageSettings(BaseModel):
    """Credential persistence configuration."""
    backend: Literal["file", "memory"] = Field("file", description="Where the auth token is persisted")
    path: Path = Field(USER_DIR / "credentials.json", description="Credential file (file backend, ~ expanded)")
    key: str = Field("vfcapture.auth", description="Storage key holding the auth token")


class Settings(BaseSettings):
    """Environment-driven settings for the capture client."""

    # Capture service
    api_base_url: str = Field(DEFAULT_API_BASE_URL, description="Capture service API root")
    request_timeout_seconds: Optional[float] = Field(None, description="Transport deadline; None never times out")
    strict_auth: bool = Field(False, description="Refuse to send requests when no token is stored")

    # Local bridge server
    bridge_host: str = Field("127.0.0.1", description="Host interface for local FastAPI bridge")
    bridge_port: int = Field(5050, description="Port for local FastAPI bridge")
    ui_event_queue_size: int = Field(8, description="Max buffered status events per UI subscriber")

    # Logging
    log_level: str = Field("INFO", description="Logging level")
    log_directory: Path = Field(DEFAULT_LOG_DIR, description="Log directory path (~ expanded)")
    log_retention_days: int = Field(14, description="Number of log files to retain")

    # Nested Configuration Objects
    polling: PollingSettings = Field(default_factory=PollingSettings, description="Status polling settings")
    storage: StorageSettings = Field(default_factory=StorageSettings, description="Credential storage settings")

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("VFCAPTURE_API_BASE_URL must not be empty")
        return value.rstrip("/")

    @field_validator("request_timeout_seconds", mode="before")
    @classmethod
    def _parse_timeout(cls, value: object) -> object:
        if isinstance(value, str) and value.strip().lower() in ("", "none", "0"):
            return None
        return value

    model_config = SettingsConfigDict(
        env_file=str(DEFAULT_ENV_FILE),
        env_file_encoding="utf-8",
        env_prefix="VFCAPTURE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings(override_env_file: Optional[Path] = None) -> Settings:
    """Cached Settings instance; accepts optional env override for tests."""

    if override_env_file:
        return Settings(_env_file=str(override_env_file))
    return Settings()
