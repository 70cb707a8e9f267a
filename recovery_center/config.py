from typing import Final

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_PORT


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env files."""

    # Server configuration
    debug: bool = Field(default=True, description="Enable debug mode")
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535, description="Server port")

    # Database configuration
    database_url: str = Field(
        default="sqlite:///./recovery_center.db",
        description="Database connection URL",
    )

    # Application configuration
    app_name: str = Field(default="Recovery Center", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")

    # Authentication boundary
    admin_user_header: str = Field(
        default="X-Admin-User",
        description="Header carrying the administrator id resolved by the "
        "upstream session service",
    )

    # Schema names the recovery engine depends on
    archive_users_table: str = Field(
        default="archived_users", description="Shared archive table for accounts"
    )
    live_users_table: str = Field(
        default="users", description="Live account table used for re-insertion"
    )
    role_table: str = Field(
        default="role", description="Role lookup table for role_id schemas"
    )

    @field_validator("archive_users_table", "live_users_table", "role_table")
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        """Table names end up as SQL identifiers, keep them plain."""
        cleaned = v.strip()
        if not cleaned or not cleaned.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {v!r}")
        return cleaned

    # Logging configuration
    log_to_file: bool = Field(
        default=False, description="Force logging to file even in debug mode"
    )
    log_level: str | None = Field(
        default=None, description="Explicit log level; derived from debug when unset"
    )
    log_sql: bool = Field(default=False, description="Echo generated SQL at INFO")

    # Telemetry
    enable_telemetry: bool = Field(
        default=False, description="Enable OpenTelemetry tracing and metrics"
    )

    # Pydantic Settings configuration
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )


# Global settings instance
settings: Final = Settings()
