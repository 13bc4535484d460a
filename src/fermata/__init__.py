"""Fermata: classified errors, retries with backoff, and settled batches."""

from fermata.core.config import LogConfig, ResilienceConfig, RetryOptions, SettleOptions
from fermata.core.errors import (
    ClassifiedError,
    ErrorClassifier,
    ErrorKind,
    OperationCancelledError,
    Severity,
    classify,
    get_user_message,
    handle_error,
    recovery_suggestions,
    should_redirect,
)
from fermata.core.logging import configure_logging, get_logger
from fermata.execution import (
    BackoffPolicy,
    SettlementBatch,
    SettlementResult,
    retryable_operation,
    settle_named,
    with_retry,
    with_settled,
)

__version__ = "0.1.0"

__all__ = [
    "BackoffPolicy",
    "ClassifiedError",
    "ErrorClassifier",
    "ErrorKind",
    "LogConfig",
    "OperationCancelledError",
    "ResilienceConfig",
    "RetryOptions",
    "SettleOptions",
    "SettlementBatch",
    "SettlementResult",
    "Severity",
    "classify",
    "configure_logging",
    "get_logger",
    "get_user_message",
    "handle_error",
    "recovery_suggestions",
    "retryable_operation",
    "settle_named",
    "should_redirect",
    "with_retry",
    "with_settled",
]
