"""
Configuration settings for the bynger scheduling core.

Centralized configuration using Pydantic Settings for type-safe environment
variable handling. All settings can be overridden via environment variables
with the BYNGER_ prefix.

Example:
    export BYNGER_LOG_LEVEL=INFO
    export BYNGER_DB_PATH=/var/lib/bynger/schedule.db
    python -m bynger.main day 2024-01-01
"""

import logging
from pathlib import Path
from typing import Any
from typing import Dict
from typing import Optional

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be overridden via environment variables with the
    BYNGER_ prefix (e.g., BYNGER_LOG_LEVEL=DEBUG).
    """

    model_config = SettingsConfigDict(
        env_prefix="BYNGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core application settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging and JSON console output"
    )

    log_dir: Path = Field(
        default=Path("logs"),
        description="Directory for the rotating log file"
    )

    # Event store settings
    db_path: Path = Field(
        default=Path("data/bynger.db"),
        description="Path to the SQLite file backing the event store"
    )

    schedule_key: str = Field(
        default="BYNGER_SCHEDULE_ENTRIES",
        min_length=1,
        description="Store key holding the full collection of scheduled events"
    )

    api_key_key: str = Field(
        default="BYNGER_TMDB_API_KEY",
        min_length=1,
        description="Store key holding the catalog API credential"
    )

    # Scheduling settings
    default_runtime: int = Field(
        default=60,
        ge=1,
        le=1440,
        description="Runtime in minutes used when neither episode nor show declares one"
    )

    # Export settings
    export_dir: Path = Field(
        default=Path("exports"),
        description="Directory where exported calendar files are written"
    )

    calendar_name: str = Field(
        default="Bynger Watch Schedule",
        description="Display name for exported ICS calendars"
    )

    # Catalog (TMDB) settings
    tmdb_api_key: Optional[str] = Field(
        default=None,
        description="TMDB API key; falls back to the key saved in the event store"
    )

    tmdb_base_url: str = Field(
        default="https://api.themoviedb.org/3",
        description="Base URL for the TMDB v3 API"
    )

    tmdb_image_base: str = Field(
        default="https://image.tmdb.org/t/p/w500",
        description="Base URL for TMDB poster and still images"
    )

    request_timeout: float = Field(
        default=15.0,
        ge=1.0,
        le=120.0,
        description="HTTP request timeout in seconds"
    )

    max_concurrent_requests: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum number of concurrent catalog requests"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}, got {v}")
        return upper_v

    @field_validator("db_path")
    @classmethod
    def validate_db_path(cls, v: Path) -> Path:
        """Ensure database directory exists."""
        v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("tmdb_base_url", "tmdb_image_base")
    @classmethod
    def validate_urls(cls, v: str) -> str:
        """Require HTTP(S) URLs without a trailing slash."""
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError(f"URL must be HTTP/HTTPS: {v}")
        return v.rstrip("/")

    @property
    def logging_config(self) -> Dict[str, Any]:
        """Get logging configuration dict."""
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "structured": {
                    "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                    "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": self.log_level,
                    "formatter": "structured" if self.debug_mode else "standard",
                    "stream": "ext://sys.stderr",
                },
                "file": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "level": "INFO",
                    "formatter": "structured",
                    "filename": str(self.log_dir / "bynger.log"),
                    "maxBytes": 10485760,  # 10MB
                    "backupCount": 5,
                },
            },
            "loggers": {
                "bynger": {
                    "level": self.log_level,
                    "handlers": ["console", "file"],
                    "propagate": False,
                },
                "aiohttp.client": {
                    "level": "WARNING",
                    "handlers": ["console"],
                    "propagate": False,
                },
            },
            "root": {
                "level": "WARNING",
                "handlers": ["console"],
            },
        }

    def setup_logging(self) -> None:
        """Configure application logging based on current settings."""
        import logging.config

        self.log_dir.mkdir(parents=True, exist_ok=True)

        logging.config.dictConfig(self.logging_config)

        # Structured logging for non-interactive runs
        if not self.debug_mode:
            import structlog

            structlog.configure(
                processors=[
                    structlog.stdlib.filter_by_level,
                    structlog.stdlib.add_logger_name,
                    structlog.stdlib.add_log_level,
                    structlog.stdlib.PositionalArgumentsFormatter(),
                    structlog.processors.TimeStamper(fmt="iso"),
                    structlog.processors.StackInfoRenderer(),
                    structlog.processors.format_exc_info,
                    structlog.processors.UnicodeDecoder(),
                    structlog.processors.JSONRenderer(),
                ],
                context_class=dict,
                logger_factory=structlog.stdlib.LoggerFactory(),
                wrapper_class=structlog.stdlib.BoundLogger,
                cache_logger_on_first_use=True,
            )

        logging.getLogger(__name__).debug(f"Logging configured at level {self.log_level}")


# Global settings instance
settings = Settings()

# Convenience function for external usage
def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings
