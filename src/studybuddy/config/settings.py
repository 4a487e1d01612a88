"""Environment-based configuration using pydantic-settings.

Example:
    >>> from studybuddy.config import get_settings
    >>> settings = get_settings()
    >>> settings.orchestrator.step_budget
    5

    # Or with environment variables:
    # STUDYBUDDY_MODEL_BASE_URL=https://openrouter.ai/api/v1
    # STUDYBUDDY_ORCHESTRATOR_STEP_BUDGET=8
    # STUDYBUDDY_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, PositiveFloat, PositiveInt, SecretStr, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ModelSettings(BaseSettings):
    """Language model provider configuration (OpenAI-compatible endpoint)."""

    model_config = SettingsConfigDict(env_prefix="STUDYBUDDY_MODEL_", extra="ignore")

    base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI-compatible API root")
    api_key: SecretStr | None = None
    chat_model: str = Field(default="gpt-4o-mini", description="Orchestrating model")
    reasoning_model: str = Field(default="gpt-4o-mini", description="Model for tool-free reasoning mode")
    artifact_model: str = Field(default="gpt-4o-mini", description="Model for structured artifact generation")
    timeout: PositiveFloat = 60.0
    temperature: Annotated[float, Field(ge=0.0, le=2.0)] = 0.7


class OrchestratorSettings(BaseSettings):
    """Turn loop limits."""

    model_config = SettingsConfigDict(env_prefix="STUDYBUDDY_ORCHESTRATOR_", extra="ignore")

    step_budget: PositiveInt = Field(default=5, description="Max capability-invocation rounds per turn")
    invocation_timeout: PositiveFloat = Field(default=120.0, description="Per-invocation timeout in seconds")
    concurrent_invocations: bool = Field(default=True, description="Run invocations of one step concurrently")


class StoreSettings(BaseSettings):
    """Artifact store backend."""

    model_config = SettingsConfigDict(env_prefix="STUDYBUDDY_STORE_", extra="ignore")

    redis_url: SecretStr | None = Field(default=None, description="Redis URL for durable artifact versions")
    prefix: str = "studybuddy:artifact:"

    @computed_field
    @property
    def backend(self) -> Literal["memory", "redis"]:
        return "redis" if self.redis_url else "memory"


class WeatherSettings(BaseSettings):
    """Open-Meteo endpoints (no API key needed)."""

    model_config = SettingsConfigDict(env_prefix="STUDYBUDDY_WEATHER_", extra="ignore")

    geocoding_url: str = "https://geocoding-api.open-meteo.com/v1/search"
    forecast_url: str = "https://api.open-meteo.com/v1/forecast"
    timeout: PositiveFloat = 10.0


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="STUDYBUDDY_LOG_", extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"


class ServerSettings(BaseSettings):
    """HTTP server binding."""

    model_config = SettingsConfigDict(env_prefix="STUDYBUDDY_SERVER_", extra="ignore")

    host: str = "127.0.0.1"
    port: Annotated[int, Field(ge=1, le=65535)] = 8000
    finish_timeout: PositiveFloat = Field(
        default=90.0, description="Seconds a client waits for an artifact Finish before marking it stuck",
    )


class StudyBuddySettings(BaseSettings):
    """Root settings. Loads STUDYBUDDY_* environment variables and .env files."""

    model_config = SettingsConfigDict(
        env_prefix="STUDYBUDDY_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"

    model: ModelSettings = Field(default_factory=ModelSettings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    weather: WeatherSettings = Field(default_factory=WeatherSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_env(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v

    @computed_field
    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> StudyBuddySettings:
    """Get the global settings instance (cached)."""
    return StudyBuddySettings()


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() rereads the environment."""
    get_settings.cache_clear()
