"""Execution layer for Fermata.

Contains the backoff policy, the single-operation retry orchestrator, and
the settlement aggregator for batches of independent operations.
"""

from fermata.execution.backoff import BackoffPolicy, next_delay
from fermata.execution.retry import (
    RetryAttemptRecord,
    default_retry_condition,
    retryable_operation,
    with_retry,
)
from fermata.execution.settlement import (
    SettlementBatch,
    SettlementResult,
    settle_named,
    with_settled,
)

__all__ = [
    "BackoffPolicy",
    "RetryAttemptRecord",
    "SettlementBatch",
    "SettlementResult",
    "default_retry_condition",
    "next_delay",
    "retryable_operation",
    "settle_named",
    "with_retry",
    "with_settled",
]
