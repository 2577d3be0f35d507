"""Application configuration."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="NOTEWRIGHT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Notewright", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(default="development", description="Environment")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Log level")

    # Templates
    default_author: str = Field(default="user", description="Author stamped on new templates")
    initial_version: str = Field(default="1.0.0", description="Version of newly created templates")
    usage_history_limit: int = Field(
        default=100, ge=1, description="Template uses kept per template for analytics"
    )
    load_defaults: bool = Field(
        default=True, description="Seed built-in templates and workflows in build_registry"
    )

    # Execution
    max_loop_iterations: int = Field(
        default=1000, ge=1, description="Max items a loop step may iterate over"
    )

    # Snapshots
    export_indent: int = Field(default=2, ge=0, description="JSON indentation for exports")
    snapshot_path: Optional[str] = Field(
        default=None, description="Default snapshot file used by the CLI"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() in ("development", "dev")

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment.lower() in ("production", "prod")

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment.lower() in ("testing", "test")


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return Settings()

