from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, PositiveFloat, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from sifter.exceptions import ConfigError


class AppConfig(BaseModel):
    """Application-level configuration values."""

    log_level: str = "INFO"
    # Render log events as JSON lines instead of the console renderer
    log_json: bool = False


class ServerConfig(BaseModel):
    """Connection settings for the search service."""

    host: str = "http://127.0.0.1:7700"
    api_key: Optional[str] = None  # Sent as X-Meili-API-Key
    timeout: PositiveFloat = 10.0  # seconds, per HTTP request
    verify_ssl: bool = True


class UpdatesConfig(BaseModel):
    """Defaults used when waiting for asynchronous updates."""

    poll_interval: PositiveFloat = 0.05  # seconds between status fetches
    timeout: Optional[PositiveFloat] = None  # None waits until a terminal status


class Settings(BaseSettings):
    """Top-level settings loaded from environment variables and .env only."""

    model_config = SettingsConfigDict(
        env_prefix="SIFTER_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app: AppConfig = AppConfig()
    server: ServerConfig = ServerConfig()
    updates: UpdatesConfig = UpdatesConfig()


def load_settings() -> Settings:
    """Load settings from environment variables and .env only.

    Raises `ConfigError` when a value fails validation.
    """
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
