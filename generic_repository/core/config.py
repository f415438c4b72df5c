"""
Centralized configuration management using Pydantic Settings.

Settings are loaded from environment variables and an optional .env file.
Connection settings are intentionally absent: the caller owns the engine
and the session it injects into a repository.
"""

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Repository settings loaded from environment variables.

    All settings can be overridden via environment variables
    (e.g. ``LOG_LEVEL=DEBUG``).
    """

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_json: bool = Field(
        default=True,
        description="Emit single-line JSON logs (False for plain text)"
    )
    log_soft_failures: bool = Field(
        default=True,
        description="Log insert/update/remove failures that are reported as False"
    )

    # Persistence behaviour
    rollback_on_save_failure: bool = Field(
        default=True,
        description="Roll the session back when committing staged changes fails"
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Normalize log_level to upper case and reject unknown level names.
        """
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(
                f"LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL. "
                f"Got: {v!r}"
            )
        return level


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings
