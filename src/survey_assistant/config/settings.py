"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "survey-assistant"
    app_env: str = "dev"
    app_debug: bool = False
    app_base_url: str = "http://localhost:3000"
    database_url: str = ""
    llm_provider: str = "anthropic"
    llm_model: str = "claude-sonnet-4-5-20250929"
    llm_base_url: str = "https://api.anthropic.com/v1"
    llm_timeout_s: float = Field(default=30.0, ge=0.5)
    llm_max_tokens: int = Field(default=2048, ge=1)
    llm_confirmation_max_tokens: int = Field(default=1024, ge=1)
    anthropic_api_key: str = ""
    max_tool_rounds: int = Field(default=8, ge=1)
    history_limit: int = Field(default=20, ge=0)
    turn_timeout_s: float = Field(default=60.0, ge=1.0)
    survey_seed_path: str = ""

    model_config = SettingsConfigDict(
        env_prefix="SURVEY_ASSISTANT_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("DATABASE_URL", "")

    def resolved_anthropic_api_key(self) -> str:
        return self.anthropic_api_key or os.getenv("ANTHROPIC_API_KEY", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
