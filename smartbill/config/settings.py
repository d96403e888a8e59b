"""
Configuration Management for SmartBill

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: Deployment configuration lives here (endpoint, model,
limits). Per-user values that the user edits inside the app (monthly
budget, API key) live in the key/value store instead, see
`smartbill.config.preferences`.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_API_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions"


class LLMSettings(BaseSettings):
    """Chat-completions endpoint configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SMARTBILL_LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_url: str = Field(
        default=DEFAULT_API_URL,
        description="OpenAI-compatible chat completions URL"
    )
    model_name: str = Field(
        default="qwen-vl-plus",
        description="Model to request (must accept images for photo input)"
    )
    api_key: Optional[str] = Field(
        default=None,
        description="Fallback API key when the user has not stored one in the app"
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        le=600,
        description="HTTP timeout for a single model request"
    )
    json_response_format: bool = Field(
        default=True,
        description="Ask the provider for a JSON object response"
    )

    @field_validator('api_key')
    @classmethod
    def blank_key_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="SMARTBILL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Budget
    default_monthly_budget: int = Field(
        default=3000,
        gt=0,
        description="Monthly budget used until the user sets one"
    )
    max_monthly_budget: int = Field(
        default=20000,
        gt=0,
        description="Upper bound accepted by the budget setter"
    )

    # Model context
    history_window: int = Field(
        default=20,
        ge=1,
        le=50,
        description="Prior conversation turns sent with each request"
    )
    recent_transactions_limit: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Recent ledger lines included in the grounding context"
    )
    top_expense_categories: int = Field(
        default=5,
        ge=1,
        description="Expense categories listed in the grounding context"
    )
    top_income_categories: int = Field(
        default=3,
        ge=1,
        description="Income categories listed in the grounding context"
    )
    persona_prompt_path: Optional[str] = Field(
        default=None,
        description="Optional file overriding the assistant persona text"
    )

    # Storage
    storage_path: str = Field(
        default="~/.smartbill/store.json",
        description="Location of the local key/value store"
    )
    seed_demo_data: bool = Field(
        default=True,
        description="Seed two pending demo transactions on first run"
    )
    audit_log_limit: int = Field(
        default=500,
        ge=10,
        description="Maximum audit events kept in the local store"
    )

    # Capture
    max_image_dimension: int = Field(
        default=1600,
        ge=256,
        le=8192,
        description="Longest side of an image sent to the model"
    )
    jpeg_quality: int = Field(
        default=85,
        ge=30,
        le=95,
        description="JPEG quality used when re-encoding images"
    )
    capture_countdown_seconds: float = Field(
        default=2.0,
        gt=0,
        le=30,
        description="Delay before the live camera auto-captures"
    )

    @property
    def storage_file(self) -> Path:
        """Storage path with the user directory expanded."""
        return Path(self.storage_path).expanduser()

    def load_persona_text(self) -> Optional[str]:
        """Read the persona override file, if one is configured and present."""
        if not self.persona_prompt_path:
            return None
        path = Path(self.persona_prompt_path).expanduser()
        if not path.exists():
            return None
        text = path.read_text(encoding="utf-8").strip()
        return text or None


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def llm(self) -> LLMSettings:
        return LLMSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus `<name>_error`
    entries describing any failure. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.llm
        results["llm"] = True
    except Exception as e:
        results["llm"] = False
        results["llm_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
