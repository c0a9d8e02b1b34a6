"""TaskLedger configuration management."""

from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from taskledger.models.enums import TaskPriority


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """TaskLedger configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="TASKLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # General
    env: Environment = Environment.DEVELOPMENT
    log_level: str = "INFO"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./taskledger.db"

    # Store retry policy (transient storage failures only)
    store_retry_attempts: int = Field(
        default=3, description="Attempts for a store operation before giving up"
    )
    store_retry_backoff_ms: int = Field(default=50, description="Base retry backoff")
    store_retry_max_backoff_ms: int = Field(default=1000, description="Max retry backoff")

    # Tasks
    default_priority: TaskPriority = Field(
        default=TaskPriority.MEDIUM, description="Priority used when none is given"
    )

    # Dashboard
    urgent_window_hours: int = Field(
        default=24, description="Tasks due within this window are URGENT"
    )

    # Validators
    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str, info) -> str:
        """Validate the database URL uses a supported async driver."""
        if not v.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError(
                "database_url must use postgresql+asyncpg:// or sqlite+aiosqlite://"
            )

        # SQLite serializes every writer; shared environments need PostgreSQL
        env = info.data.get("env")
        if env in [Environment.PRODUCTION, Environment.STAGING] and v.startswith("sqlite"):
            raise ValueError(f"database_url must be PostgreSQL in {env.value} environment")
        return v

    @field_validator("urgent_window_hours", "store_retry_attempts")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be at least 1, got {v}")
        return v

    @field_validator("store_retry_backoff_ms", "store_retry_max_backoff_ms")
    @classmethod
    def validate_backoff(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Backoff must not be negative, got {v}")
        return v


settings = Settings()
