"""
Configuration management for context-keeper.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Application
    app_name: str = Field(default="context-keeper")
    environment: str = Field(default="development")

    # Database
    database_url: str = Field(default="sqlite:///./context_keeper.db")
    database_busy_timeout_seconds: float = Field(
        default=30.0,
        description="How long a SQLite writer waits for the write lock before failing.",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or console")

    # Reasoning model
    anthropic_api_key: Optional[str] = Field(default=None)
    anthropic_model: str = Field(default="claude-3-5-sonnet-20241022")
    anthropic_base_url: str = Field(default="https://api.anthropic.com")
    anthropic_timeout_seconds: float = Field(default=30.0)

    # Workers
    worker_poll_interval: float = Field(default=1.0)
    job_max_attempts: int = Field(default=3, ge=1)

    # Strategy switches (only effective when an API key is configured)
    learning_use_reasoning: bool = Field(default=True)
    deep_validation_use_reasoning: bool = Field(default=True)

    @property
    def reasoning_available(self) -> bool:
        return bool(self.anthropic_api_key)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
