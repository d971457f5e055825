"""Configuration for oauthbridge using Pydantic Settings.

Settings are read from ``OAUTHBRIDGE_*`` environment variables (or a ``.env``
file) and then passed explicitly to each component. Nothing here is mutated
after startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/oauth/callback"


class Settings(BaseSettings):
    """Server configuration."""

    model_config = SettingsConfigDict(
        env_prefix="OAUTHBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Server
    # ========================================
    base_url: str = Field(
        default="http://localhost:3000",
        description="Public URL of this server, used to build the upstream callback URL",
    )
    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========================================
    # Upstream connector
    # ========================================
    connector: str = Field(default="github", description="Catalog name of the upstream connector")
    client_id: str = Field(default="", description="Client id registered with the connector")
    client_secret: str = Field(default="", description="Client secret registered with the connector")

    # ========================================
    # Internal authorization server
    # ========================================
    token_expiration_time: int = Field(
        default=3600,
        gt=0,
        description="Lifetime of issued access tokens, in seconds",
    )
    state_secret: str = Field(
        default="",
        description="HMAC key for the redirect state envelope (random per process if empty)",
    )
    storage_path: Path | None = Field(
        default=None,
        description="JSON file for persisted clients and credentials (in-memory if unset)",
    )

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def callback_url(self) -> str:
        return f"{self.base_url}{CALLBACK_PATH}"

    @classmethod
    def load(cls) -> Settings:
        return cls()


@lru_cache
def get_settings() -> Settings:
    return Settings.load()
