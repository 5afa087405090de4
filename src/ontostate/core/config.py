"""Configuration management.

Uses pydantic-settings for type-safe configuration from environment variables.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Prefix: ONTOSTATE_
    """

    model_config = SettingsConfigDict(
        env_prefix="ONTOSTATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database (SQLAlchemy)
    # SQLite for local dev, PostgreSQL for production
    database_url: str = Field(
        default="sqlite+aiosqlite:///./ontostate.db",
        description="SQLAlchemy database URL. Use postgresql+asyncpg://... for production",
    )
    echo_sql: bool = Field(default=False, description="Echo SQL statements")
    pool_size: int = Field(default=5, description="Connection pool size (PostgreSQL only)")
    max_overflow: int = Field(default=10, description="Connections allowed beyond pool_size")
    sqlite_timeout: float = Field(default=30.0, description="SQLite busy timeout in seconds")

    # Question queue
    default_question_limit: int = Field(
        default=50,
        description="Maximum questions returned by list operations when no limit is given",
    )
    default_change_limit: int = Field(
        default=100,
        description="Maximum pending changes returned by list operations when no limit is given",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")  # 'json' or 'console'


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
