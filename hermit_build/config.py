"""Configuration settings for hermit_build.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.

These are settings of the orchestrator itself. The values describing the
invoking build (target, profile, features) come from Cargo and are read once
by hermit_build.context.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Released kernel version used by the download fallback
DEFAULT_KERNEL_VERSION = "0.6.7"

# Base URL of the kernel release tarballs
DEFAULT_DOWNLOAD_BASE = "https://github.com/hermitcore/kernel/archive/refs/tags"


class Settings(BaseSettings):
    """Orchestrator settings.

    Settings are loaded from environment variables with the HERMIT_BUILD_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="HERMIT_BUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Kernel source
    kernel_version: str = Field(
        default=DEFAULT_KERNEL_VERSION,
        description="Kernel release fetched when no local source tree exists",
    )
    download_base_url: str = Field(
        default=DEFAULT_DOWNLOAD_BASE,
        description="Base URL of the kernel release archives",
    )
    kernel_dir_name: str = Field(
        default="kernel",
        description="Name of the sibling directory holding the kernel source",
    )
    kernel_src_dir: Path | None = Field(
        default=None,
        description="Local kernel checkout used when no sibling directory exists",
    )
    kernel_archive_sha256: str | None = Field(
        default=None,
        description="Expected SHA-256 of the downloaded kernel archive",
    )

    # Operational modes
    offline: bool = Field(
        default=False,
        description="Offline mode - never download kernel sources",
    )
    supported_target_os: str = Field(
        default="hermit",
        description="Target OS for which the kernel is built",
    )
    lib_name: str = Field(
        default="hermit",
        description="Name of the static library produced by the kernel build",
    )
    dependency_listing: Literal["tree", "metadata"] = Field(
        default="tree",
        description="How path dependencies are listed: `cargo tree` or `cargo metadata`",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level",
    )

    # Timeouts (in seconds)
    download_timeout: int = Field(
        default=600,
        ge=10,
        description="Timeout for the kernel archive download",
    )


def get_settings() -> Settings:
    """Get the application settings.

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


__all__ = [
    "DEFAULT_DOWNLOAD_BASE",
    "DEFAULT_KERNEL_VERSION",
    "Settings",
    "get_settings",
    "print_settings_json",
]
