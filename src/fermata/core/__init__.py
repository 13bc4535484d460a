"""Core error taxonomy, configuration, and logging."""

from fermata.core.config import LogConfig, ResilienceConfig, RetryOptions, SettleOptions
from fermata.core.errors import (
    ClassifiedError,
    ErrorClassifier,
    ErrorKind,
    OperationCancelledError,
    Severity,
)

__all__ = [
    "ClassifiedError",
    "ErrorClassifier",
    "ErrorKind",
    "LogConfig",
    "OperationCancelledError",
    "ResilienceConfig",
    "RetryOptions",
    "SettleOptions",
    "Severity",
]
