"""Application configuration settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    # Application
    app_name: str = "storefront"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Selects the framework mode and the log format"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="DEBUG", description="The log level to use"
    )

    # Server
    host: str = Field(default="localhost", description="The host to bind the server to")
    port: int = Field(default=3002, description="The port to bind the server to")

    # Process faults
    manual_sig_handle: bool = Field(
        default=False,
        description="Leave SIGINT/SIGTERM to an external supervisor instead of exiting with 0",
    )
    exit_on_uncaught: bool = Field(
        default=False,
        description="Exit with status 1 after logging an uncaught exception or unhandled task error",
    )

    # Logging interception
    framework_loggers: list[str] = Field(
        default_factory=lambda: ["uvicorn.error", "fastapi"],
        description="Framework logger objects whose methods are routed through the normalizer",
    )
    framework_log_levels: list[str] = Field(
        default_factory=lambda: ["debug", "info", "warning", "warn", "error", "exception", "critical"],
    )
    console_log_levels: list[str] = Field(
        default_factory=lambda: ["debug", "info", "warn", "warning", "error", "exception", "critical"],
        description="Module-level logging functions routed through the normalizer",
    )

    # Telemetry (New Relic); disabled when the key is empty
    new_relic_license_key: SecretStr = Field(default=SecretStr(""))

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
