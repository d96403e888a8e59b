"""Configuration package."""

from smartbill.config.settings import (
    DEFAULT_API_URL,
    AppSettings,
    LLMSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DEFAULT_API_URL",
    "AppSettings",
    "LLMSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
