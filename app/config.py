# app/config.py - Pydantic settings (env vars)

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Base URL the aggregator uses to reach the provider endpoints. Falls back
    # to the incoming request's base URL when unset.
    provider_base_url: str | None = None
    provider_call_timeout_seconds: float = 600.0

    # Provider keys. A provider is only invoked when its key is configured.
    apollo_api_key: str | None = None
    hunter_api_key: str | None = None
    apify_api_key: str | None = None
    google_api_key: str | None = None

    gemini_model: str = "gemini-2.0-flash"
    apify_apollo_scraper_wait_seconds: int = 180
    apify_google_search_wait_seconds: int = 60

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @field_validator("apollo_api_key", "hunter_api_key", "apify_api_key", "google_api_key")
    @classmethod
    def _blank_key_is_unset(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @field_validator("provider_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        if not value:
            return None
        return value.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    return Settings()
