"""Configuration settings for imagewriter.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from imagewriter.units import MIB


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the IMAGEWRITER_
    prefix. CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="IMAGEWRITER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: Path | None = Field(
        default=None,
        description="Log file for interactive sessions (no logging if not set)",
    )

    # Image discovery
    scan_max_depth: int = Field(
        default=5,
        ge=0,
        le=32,
        description="Maximum directory depth below each scan root",
    )
    min_image_size: int = Field(
        default=100 * MIB,
        ge=0,
        description="Smallest image file (bytes) listed by a scan",
    )
    image_extensions: list[str] = Field(
        default_factory=lambda: ["iso", "img", "raw"],
        description="File extensions treated as disk images",
    )

    # Write / verify
    block_size: int = Field(
        default=4 * MIB,
        ge=4096,
        description="Chunk size for write and verify I/O",
    )
    verify_after_write: bool = Field(
        default=False,
        description="Verify the device against the image after writing",
    )

    # Interactive session
    tick_interval: float = Field(
        default=0.25,
        gt=0,
        le=10,
        description="Event loop tick interval in seconds",
    )
    elevation_command: str = Field(
        default="sudo",
        description="Program used to re-run imagewriter with root privileges",
    )


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
