"""Configuration models for Fermata.

Defines Pydantic models for retry, settlement, and logging behavior, and a
top-level ResilienceConfig that can be loaded from YAML.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fermata.core.constants import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_BASE_DELAY_SECONDS,
    DEFAULT_JITTER_SECONDS,
    DEFAULT_MAX_DELAY_SECONDS,
    DEFAULT_MAX_RETRIES,
)
from fermata.core.errors import ClassifiedError, ErrorKind
from fermata.core.logging import configure_logging

RetryCondition = Callable[[ClassifiedError], bool]


class RetryOptions(BaseModel):
    """Configuration for a single orchestrated call.

    Invalid values (for example ``max_retries=0``) fail at construction
    with a pydantic ValidationError.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES,
        ge=1,
        description="Maximum attempts, including the first",
    )
    base_delay: float = Field(
        default=DEFAULT_BASE_DELAY_SECONDS,
        gt=0,
        description="Base delay in seconds, scaled per error kind",
    )
    max_delay: float = Field(
        default=DEFAULT_MAX_DELAY_SECONDS,
        gt=0,
        description="Cap on the exponential part of the delay (seconds)",
    )
    backoff_multiplier: float = Field(
        default=DEFAULT_BACKOFF_MULTIPLIER,
        ge=1,
        description="Growth factor between successive delays",
    )
    jitter: float = Field(
        default=DEFAULT_JITTER_SECONDS,
        ge=0,
        description="Ceiling of the uniform random jitter added to each delay (seconds)",
    )
    timeout: float | None = Field(
        default=None,
        gt=0,
        description="Overall deadline for the call including waits (seconds)",
    )
    retry_condition: RetryCondition | None = Field(
        default=None,
        exclude=True,
        description="Predicate deciding whether a classified error is retried",
    )

    @model_validator(mode="after")
    def _validate_delay_range(self) -> RetryOptions:
        if self.base_delay > self.max_delay:
            raise ValueError(
                f"base_delay ({self.base_delay}) must not exceed "
                f"max_delay ({self.max_delay})"
            )
        return self


class SettleOptions(BaseModel):
    """Configuration for a settlement batch."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    retry: RetryOptions = Field(
        default_factory=RetryOptions,
        description="Retry options applied uniformly to every member",
    )
    max_concurrent: int | None = Field(
        default=None,
        ge=1,
        description="Maximum members running at once (None = unbounded)",
    )


class LogConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level to capture",
    )
    format: Literal["json", "console"] = Field(
        default="console",
        description="Output format: json for structured, console for human-readable",
    )
    include_timestamps: bool = Field(
        default=True,
        description="Include ISO8601 UTC timestamps in log entries",
    )
    include_context: bool = Field(
        default=True,
        description="Include bound operation context in log entries",
    )


class ResilienceConfig(BaseModel):
    """Top-level configuration, typically loaded from YAML.

    Example:
        retry:
          max_retries: 5
          max_delay: 30
        settle:
          max_concurrent: 4
        backoff_factors:
          rate_limit: 10
        log:
          level: DEBUG
    """

    retry: RetryOptions = Field(default_factory=RetryOptions)
    settle: SettleOptions = Field(default_factory=SettleOptions)
    log: LogConfig = Field(default_factory=LogConfig)
    backoff_factors: dict[ErrorKind, float] = Field(
        default_factory=dict,
        description="Per-kind overrides of the base-delay multiplier",
    )

    @field_validator("backoff_factors")
    @classmethod
    def _check_backoff_factors(cls, v: dict[ErrorKind, float]) -> dict[ErrorKind, float]:
        for kind, factor in v.items():
            if kind.never_retryable:
                raise ValueError(f"{kind.value} errors are never retried; no backoff applies")
            if factor <= 0:
                raise ValueError(f"backoff factor for {kind.value} must be positive")
        return v

    def configure_logging(self) -> None:
        """Apply the ``log`` section through configure_logging()."""
        configure_logging(
            level=self.log.level,
            format=self.log.format,
            include_timestamps=self.log.include_timestamps,
            include_context=self.log.include_context,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> ResilienceConfig:
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> ResilienceConfig:
        """Load configuration from a YAML string."""
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(data or {})
