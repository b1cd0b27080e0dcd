"""
Runtime settings

Values come from environment variables prefixed with ``CHATSYNC_``.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the chat sync service."""

    app_name: str = "Chat Sync API"

    mongo_url: str = "mongodb://localhost:27017"
    mongo_db_name: str = "chatapp"
    redis_url: Optional[str] = None

    log_level: str = "INFO"

    # shown when a chat has no entry for the other participant
    unknown_user_name: str = "unknown"
    delete_concurrency: int = Field(16, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="CHATSYNC_",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()
