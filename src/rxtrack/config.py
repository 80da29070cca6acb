"""Configuration management with pydantic-settings."""

import re
from collections.abc import Callable

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RxTrackSettings(BaseSettings):
    """rxtrack settings loaded from environment variables.

    All settings use the RXTRACK_ prefix for environment variables.
    """

    # Logging configuration
    log_level: str = Field(default="WARNING", description="Logging level")
    log_format: str = Field(default="console", description="Log format: console or json")

    # Tracking configuration
    capture_stacks: bool = Field(
        default=False,
        description="Capture the call-site stack for every tracked subscription",
    )

    # Report configuration
    settle_delay: float = Field(
        default=0.0,
        description="Seconds to wait for pending teardowns before reporting",
    )
    include_nested: bool = Field(
        default=False,
        description="Report every subscription of a chain, not only its first",
    )
    trace_pattern: str | None = Field(
        default=None,
        description="Regex selecting which stack lines appear in reports",
    )

    model_config = SettingsConfigDict(
        env_prefix="RXTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("settle_delay")
    @classmethod
    def _non_negative_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("settle_delay must be >= 0")
        return value

    @field_validator("trace_pattern")
    @classmethod
    def _compilable_pattern(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"Invalid trace_pattern: {exc}") from exc
        return value

    def get_trace_filter(self) -> Callable[[str], bool] | None:
        """Build a stack-line predicate from ``trace_pattern``.

        Returns:
            A predicate matching lines against the pattern, or None when unset.
        """
        if not self.trace_pattern:
            return None
        pattern = re.compile(self.trace_pattern)
        return lambda line: pattern.search(line) is not None


# Global settings instance
_settings: RxTrackSettings | None = None


def get_settings() -> RxTrackSettings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = RxTrackSettings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance (useful for testing)."""
    global _settings
    _settings = None
