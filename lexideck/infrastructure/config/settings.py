"""Application settings and configuration management."""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Prefer the project root .env, fall back to the working directory
_env_file = Path(__file__).parent.parent.parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    load_dotenv(".env", verbose=False)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Database Configuration
    database_path: str = Field(
        default="data/lexideck.db", alias="LEXIDECK_DATABASE_PATH"
    )

    # Review Configuration
    max_reviews_per_session: int = Field(
        default=20, gt=0, alias="LEXIDECK_MAX_REVIEWS_PER_SESSION"
    )
    due_card_limit: int = Field(default=20, gt=0, alias="LEXIDECK_DUE_CARD_LIMIT")
    mastery_repetitions: int = Field(
        default=5, gt=0, alias="LEXIDECK_MASTERY_REPETITIONS"
    )
    default_user_id: int = Field(default=1, alias="LEXIDECK_USER_ID")

    # Logging Configuration
    log_level: str = Field(default="INFO", alias="LEXIDECK_LOG_LEVEL")
    log_file: str = Field(default="", alias="LEXIDECK_LOG_FILE")

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()
