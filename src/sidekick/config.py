"""Configuration management for sidekick."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ApiKeyNotConfiguredError


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SIDEKICK_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Model
    model: str = Field(default="gpt-4o-mini", description="Model used by the delegate loop")
    api_key: str | None = Field(default=None, description="API key for the model provider")
    api_base: str | None = Field(default=None, description="Optional API base URL")
    max_tokens: int = Field(default=4096, description="Maximum tokens per model response")
    model_timeout_seconds: int | None = Field(default=120, description="Timeout for one model call")

    # Tools
    command_timeout_seconds: int = Field(default=60, description="Timeout for one terminal command")
    workspace_path: Path | None = Field(default=None, description="Directory commands run in")

    # Prompt sizing
    prompt_max_chars: int = Field(default=120_000, description="Character budget for one rendered prompt")
    tool_result_max_chars: int = Field(default=16_000, description="Character cap for one tool result")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")

    @property
    def resolved_api_key(self) -> str:
        key = self.api_key or os.getenv("OPENAI_API_KEY")
        if not key:
            raise ApiKeyNotConfiguredError("Set SIDEKICK_API_KEY or OPENAI_API_KEY to call the model.")
        return key

    def resolve_workspace(self) -> Path:
        return (self.workspace_path or Path.cwd()).resolve()


def get_settings(**overrides: object) -> Settings:
    """Get application settings.

    Args:
        overrides: Explicit values that win over environment and .env entries.
            ``None`` values are ignored so CLI options can be passed through as-is.

    Returns:
        Settings instance
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    return Settings(**values)  # type: ignore[arg-type]
