"""Configuration management using pydantic-settings."""

from .settings import (
    LoggingSettings,
    ModelSettings,
    OrchestratorSettings,
    ServerSettings,
    StoreSettings,
    StudyBuddySettings,
    WeatherSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "LoggingSettings",
    "ModelSettings",
    "OrchestratorSettings",
    "ServerSettings",
    "StoreSettings",
    "StudyBuddySettings",
    "WeatherSettings",
    "clear_settings_cache",
    "get_settings",
]
