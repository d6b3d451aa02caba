# logmonitor/core/config.py
"""
Runtime configuration.

All knobs live on one `settings` object read from the process environment and,
when present, a `.env` file next to the working directory. Import it, do not
re-read the environment elsewhere.

    from logmonitor.core.config import settings
    settings.WS_SEND_QUEUE_SIZE
"""

from __future__ import annotations

import logging
from typing import Annotated, List, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_ENVIRONMENTS = ("dev", "test", "prod")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # -----------------------
    # Process
    # -----------------------
    ENV: str = Field(default="dev", description="dev|test|prod; 'dev' exposes error details in 500s")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level name")

    # -----------------------
    # HTTP
    # -----------------------
    CORS_ALLOW_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:5000"],
        description="Browser origins allowed to call the API (comma-separated in the environment)",
    )
    MAX_UPLOAD_MB: int = Field(default=25, ge=1, le=500, description="Largest accepted upload")

    @property
    def MAX_UPLOAD_BYTES(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024

    # -----------------------
    # Reads / export
    # -----------------------
    DEFAULT_PAGE_LIMIT: int = Field(default=1000, ge=1, description="Page size when a read names no limit")
    EXPORT_LIMIT: int = Field(default=0, ge=0, description="Max records per export, 0 for no cap")

    # -----------------------
    # Live feed / filters
    # -----------------------
    WS_SEND_QUEUE_SIZE: int = Field(
        default=1000,
        ge=1,
        description="Pending messages per WebSocket before the connection is dropped",
    )
    DEFAULT_USER_ID: str = Field(default="default", description="Filter settings owner when none is given")

    @field_validator("ENV")
    @classmethod
    def _check_env(cls, v: str) -> str:
        env = (v or "dev").strip().lower()
        if env not in _ENVIRONMENTS:
            raise ValueError(f"ENV must be one of {', '.join(_ENVIRONMENTS)}")
        return env

    @field_validator("LOG_LEVEL")
    @classmethod
    def _check_log_level(cls, v: str) -> str:
        level = (v or "INFO").strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level {v!r}")
        return level

    @field_validator("CORS_ALLOW_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, v: Union[str, List[str], None]) -> List[str]:
        if isinstance(v, str):
            v = v.strip().strip("[]").replace('"', "").split(",")
        return [o.strip() for o in v or [] if o and o.strip()]

    @field_validator("DEFAULT_USER_ID")
    @classmethod
    def _default_user(cls, v: str) -> str:
        return (v or "").strip() or "default"


settings = Settings()
