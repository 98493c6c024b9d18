"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Oshilist", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    store_backend: Literal["sql", "rest"] = Field(default="sql", alias="STORE_BACKEND")
    store_url: HttpUrl | None = Field(default=None, alias="STORE_URL")
    store_anon_key: str | None = Field(default=None, alias="STORE_ANON_KEY")
    store_toggle_rpc: str | None = Field(default=None, alias="STORE_TOGGLE_RPC")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./oshilist.db", alias="DATABASE_URL"
    )

    history_suppress_window_ms: int = Field(
        default=400, alias="HISTORY_SUPPRESS_WINDOW_MS", ge=0, le=10_000
    )
    history_page_limit: int = Field(
        default=30, alias="HISTORY_PAGE_LIMIT", ge=1, le=100
    )
    summary_item_count: int = Field(
        default=3, alias="SUMMARY_ITEM_COUNT", ge=0, le=20
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("store_anon_key", "store_toggle_rpc", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _require_remote_store(self) -> "Settings":
        """The REST backend cannot start without an endpoint and key."""

        if self.store_backend == "rest":
            if self.store_url is None or not self.store_anon_key:
                raise ValueError(
                    "STORE_URL and STORE_ANON_KEY are required for the rest backend"
                )
        return self

    @property
    def store_base_url(self) -> str | None:
        """Return the store URL without a trailing slash."""

        if self.store_url is None:
            return None
        return str(self.store_url).rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
