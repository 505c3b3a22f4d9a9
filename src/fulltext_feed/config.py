"""Configuration helpers for the feed relay."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from `FULLTEXT_FEED_*` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FULLTEXT_FEED_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ip: str = Field("0.0.0.0", description="Address the HTTP service listens on.")
    port: int = Field(8080, description="Port the HTTP service listens on.")
    items_cap: int = Field(
        10,
        ge=1,
        description="Default number of items enriched per feed when items_cap is not given.",
    )
    max_items_cap: int = Field(
        100,
        ge=1,
        description="Hard ceiling for items_cap; larger requested values are rejected.",
    )
    from_days_ago: int = Field(
        30,
        ge=0,
        description="Default lower time bound for enrichment, in days before the request.",
    )
    http_timeout: float = Field(
        30.0,
        gt=0,
        description="Timeout in seconds for each feed or page download.",
    )
    fetch_concurrency: int = Field(
        8,
        ge=1,
        description="Maximum number of page downloads running at once within a request.",
    )
    max_document_bytes: int = Field(
        10 * 1024 * 1024,
        ge=1,
        description="Largest feed or page body accepted, in bytes.",
    )
    title_suffix: str = Field(
        "",
        description="Optional text appended to the title of every relayed feed.",
    )
    log_level: str = Field("INFO", description="Minimum level of emitted log events.")
    log_json: bool = Field(False, description="Render log events as JSON lines.")


def get_settings() -> Settings:
    """Return a settings instance built from the current environment."""
    return Settings()
