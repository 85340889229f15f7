"""Configuration management for the email client core.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the EMAIL_CLIENT_ prefix (e.g., EMAIL_CLIENT_API_BASE_URL).
    """

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_CLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Mail backend
    api_base_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the mail REST backend",
    )
    api_token: str | None = Field(
        default=None,
        description="Bearer token sent to the mail backend",
    )
    api_timeout: int = Field(
        default=30,
        description="Timeout for backend requests in seconds",
    )
    messages_per_page: int = Field(
        default=50,
        description="Number of messages requested per folder listing",
    )

    # Polling
    settle_delay: float = Field(
        default=4.0,
        description="Delay in seconds before the first refresh after a folder opens",
    )
    hot_poll_interval: float = Field(
        default=12.0,
        description="Refresh interval in seconds for inbox/sent/outbox folders",
    )
    cold_poll_interval: float = Field(
        default=20.0,
        description="Refresh interval in seconds for all other folders",
    )
    hidden_poll_interval: float = Field(
        default=60.0,
        description="Refresh interval in seconds while the page is not visible",
    )
    post_send_refresh_offsets: list[float] = Field(
        default_factory=lambda: [3.5, 12.0],
        description="Offsets in seconds of the one-shot refreshes fired after a send",
    )
    fetch_retry_delay: float = Field(
        default=1.2,
        description="Delay in seconds before retrying a failed folder fetch",
    )
    fetch_max_retries: int = Field(
        default=1,
        description="Number of retries for a failed folder fetch",
    )

    # Pending placeholders
    pending_ttl_seconds: int = Field(
        default=86400,
        ge=0,
        description=(
            "Maximum age of an unmatched sent placeholder before it is dropped. "
            "0 keeps placeholders until a remote counterpart appears."
        ),
    )

    # Contacts
    contacts_key_prefix: str = Field(
        default="email_contacts_",
        description="Key prefix under which the contact directory is persisted",
    )
    kv_db_path: Path = Field(
        default=Path("email_client.sqlite3"),
        description="Path to the local SQLite key/value store",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
