"""
Centralized configuration for headercore.

Uses Pydantic BaseSettings for environment variable integration
and validation.

Configuration sources (in order of precedence):
1. Explicit constructor arguments
2. Environment variables (HEADERCORE_*)
3. .env file
4. Default values

Example:
    from headercore.config import get_config

    config = get_config()
    print(config.window_lines)  # From HEADERCORE_WINDOW_LINES or default

    # Override at runtime
    config = get_config(window_lines=50)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from headercore.header.checksum import SUPPORTED_ALGORITHMS
from headercore.header.parser import DEFAULT_WINDOW_LINES, MAX_WINDOW_LINES, MIN_WINDOW_LINES


class HeaderCoreConfig(BaseSettings):
    """
    Central configuration for headercore.

    All settings can be overridden via environment variables
    prefixed with HEADERCORE_.

    Example:
        export HEADERCORE_WINDOW_LINES=50
        export HEADERCORE_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="HEADERCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Parsing
    window_lines: int = Field(
        default=DEFAULT_WINDOW_LINES,
        ge=MIN_WINDOW_LINES,
        le=MAX_WINDOW_LINES,
        description="Leading lines searched for a header block",
    )
    conventions_file: Optional[str] = Field(
        default=None,
        description="YAML file replacing the built-in comment convention table",
    )

    # Generation
    max_description_length: int = Field(
        default=200,
        ge=20,
        description="Upper bound on generated Description length",
    )
    checksum_algorithm: str = Field(
        default="sha256",
        description="hashlib algorithm for body checksums",
    )

    # Batch processing
    max_workers: int = Field(
        default=4,
        ge=1,
        description="Threads used for per-artifact processing in batch runs",
    )

    # Confidence propagation
    unresolved_tier_penalty: int = Field(
        default=1,
        ge=0,
        description="Confidence tiers lost by a node with unresolved references",
    )
    penalty_per_missing: bool = Field(
        default=False,
        description="Apply the tier penalty once per unresolved reference",
    )

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="warning",
        description="Logging level for headercore",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format",
    )

    @field_validator("conventions_file")
    @classmethod
    def expand_path(cls, v: Optional[str]) -> Optional[str]:
        """Expand ~ and environment variables in paths."""
        if v is None:
            return v
        return os.path.expanduser(os.path.expandvars(v))

    @field_validator("checksum_algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported checksum algorithm '{v}'")
        return v

    def get_conventions_path(self) -> Optional[Path]:
        return Path(self.conventions_file) if self.conventions_file else None


# Global singleton
_config: Optional[HeaderCoreConfig] = None


def get_config(**overrides) -> HeaderCoreConfig:
    """
    Get the global configuration instance.

    Creates a singleton on first call. Subsequent calls return
    the same instance unless overrides are provided.

    Args:
        **overrides: Override any config values

    Returns:
        HeaderCoreConfig instance
    """
    global _config

    if overrides or _config is None:
        _config = HeaderCoreConfig(**overrides)

    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
