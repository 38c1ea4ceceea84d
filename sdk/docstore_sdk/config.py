"""
Configuration for DocStore clients.

Uses pydantic-settings for environment variable loading.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Client configuration loaded from environment."""

    # Storage backend
    backend: str = Field(default="sqlite", description="Storage backend (sqlite, memory)")
    data_dir: str = Field(default="~/.docstore", description="Directory for SQLite databases")

    # Project used when the caller does not name one
    default_project: str = Field(default="default", description="Default project ID")

    # SQLite tuning
    sqlite_wal_mode: bool = Field(default=True, description="Enable SQLite WAL journal")
    sqlite_busy_timeout_ms: int = Field(default=5000, description="SQLite busy timeout")

    # Logging
    log_level: str = Field(default="WARNING", description="Logging level")

    model_config = {"env_prefix": "DOCSTORE_"}
