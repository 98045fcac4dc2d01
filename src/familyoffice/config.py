"""Configuration management for FamilyOffice."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from familyoffice.logging_utils import configure_logging

DEFAULT_HOME = Path.home() / ".familyoffice"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="FAMILYOFFICE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Agent runtime
    model: str | None = Field(default=None, description="Model passed to the agent runtime; empty uses its default")
    codex_binary: str = Field(default="codex", description="Agent runtime executable")
    codex_api_key: str | None = Field(default=None, description="API key exported to the runtime process")
    sandbox_mode: str = Field(default="danger-full-access", description="Runtime sandbox mode")
    skip_git_repo_check: bool = Field(default=True, description="Allow running outside a git repository")

    # Filesystem
    temp_dir: Path = Field(default=DEFAULT_HOME / "temp", description="Root for per-session working directories")
    prompts_dir: Path | None = Field(default=None, description="Directory searched for templates before built-ins")

    # Market data
    alpha_vantage_api_key: str | None = Field(default=None, description="Alpha Vantage API key")
    market_data_timeout_seconds: float = Field(default=15.0, description="Quote request timeout")

    # Output
    verbose: bool = Field(default=False, description="Emit debug-only progress lines")
    log_level: str = Field(default="INFO", description="Log level")


def get_settings(**overrides: object) -> Settings:
    """Get application settings.

    Args:
        overrides: Explicit field values taking precedence over the environment

    Returns:
        Settings instance
    """
    settings = Settings(**overrides)  # type: ignore[arg-type]
    configure_logging(level=settings.log_level)
    return settings
