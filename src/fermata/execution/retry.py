"""Retry orchestration for a single operation.

Drives one operation through bounded, strictly sequential attempts. Each
failure is classified; retryable failures wait out a backoff delay (the only
suspension point besides the operation itself) and try again. The caller
only ever sees the operation's value or a ClassifiedError.

Example usage:
    from fermata.execution.retry import with_retry

    income = await with_retry(lambda: client.fetch_income(user_id))

    # With options and cancellation
    stop = asyncio.Event()
    rows = await with_retry(
        load_rows,
        RetryOptions(max_retries=5, timeout=20.0),
        cancel_event=stop,
        context={"operation": "load_rows"},
    )
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from fermata.core.config import RetryCondition, RetryOptions
from fermata.core.errors import (
    ClassifiedError,
    ErrorClassifier,
    ErrorKind,
    OperationCancelledError,
    classify,
    log_classified_error,
)
from fermata.core.logging import FermataLogger, get_logger
from fermata.execution.backoff import BackoffPolicy

T = TypeVar("T")

Operation = Callable[[], "Awaitable[T] | T"]

_logger = get_logger("retry")


class SleepFunc(Protocol):
    """Protocol for injectable sleep function."""

    async def __call__(self, seconds: float) -> None: ...


@dataclass(frozen=True)
class RetryAttemptRecord:
    """Record of one failed attempt within an orchestrated call.

    Lives only for the duration of the call.

    Attributes:
        attempt: 1-based attempt number.
        error: The classified failure of this attempt.
        delay_seconds: Backoff before the next attempt, None if terminal.
    """

    attempt: int
    error: ClassifiedError
    delay_seconds: float | None = None

    @property
    def terminal(self) -> bool:
        return self.delay_seconds is None

    def to_dict(self) -> dict[str, object]:
        return {
            "attempt": self.attempt,
            "kind": self.error.kind.value,
            "retryable": self.error.retryable,
            "delay_seconds": (
                round(self.delay_seconds, 3) if self.delay_seconds is not None else None
            ),
        }


def default_retry_condition(error: ClassifiedError) -> bool:
    """Retry exactly the errors classified as retryable."""
    return error.retryable


def _should_retry(error: ClassifiedError, condition: RetryCondition) -> bool:
    # Never-retryable kinds override any custom condition.
    if error.kind.never_retryable or isinstance(error, OperationCancelledError):
        return False
    return bool(condition(error))


async def _call(operation: Operation[T]) -> T:
    result = operation()
    if inspect.isawaitable(result):
        return await result
    return result


async def _wait(
    delay: float,
    sleep: SleepFunc | None,
    cancel_event: asyncio.Event | None,
) -> bool:
    """Wait out a backoff delay; return True if cancelled during the wait."""
    if sleep is not None:
        await sleep(delay)
        return cancel_event is not None and cancel_event.is_set()
    if cancel_event is None:
        await asyncio.sleep(delay)
        return False
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except TimeoutError:
        return False
    return True


def _resolve_options(options: RetryOptions | None, overrides: dict[str, Any]) -> RetryOptions:
    if options is None:
        return RetryOptions(**overrides)
    if overrides:
        # model_copy skips validation; rebuild so overrides are checked.
        merged = {
            **options.model_dump(),
            "retry_condition": options.retry_condition,
            **overrides,
        }
        return RetryOptions(**merged)
    return options


async def with_retry(
    operation: Operation[T],
    options: RetryOptions | None = None,
    *,
    context: Mapping[str, Any] | None = None,
    cancel_event: asyncio.Event | None = None,
    classifier: ErrorClassifier | None = None,
    backoff: BackoffPolicy | None = None,
    sleep: SleepFunc | None = None,
    logger: FermataLogger | None = None,
    on_attempt: Callable[[RetryAttemptRecord], None] | None = None,
    **overrides: Any,
) -> T:
    """Run an operation with bounded retries, exponential backoff and jitter.

    Args:
        operation: Zero-argument callable returning a value or an awaitable.
        options: Retry options; keyword ``overrides`` (e.g. ``max_retries=5``)
            are validated the same way.
        context: Diagnostic tags attached to every classified error.
        cancel_event: When set, aborts the backoff wait immediately.
        classifier: Custom classifier (default module classifier).
        backoff: Custom backoff policy (default built from ``options``).
        sleep: Injectable sleep function for time control in tests.
        logger: Injectable logger (default module logger).
        on_attempt: Hook called with each failed attempt's record.

    Returns:
        The operation's result from the first successful attempt.

    Raises:
        ClassifiedError: The last attempt's error once retries are exhausted,
            or immediately for a non-retryable error.
        OperationCancelledError: If cancelled or the overall timeout expires.
        pydantic.ValidationError: If the options are invalid (e.g.
            ``max_retries <= 0``), before any attempt runs.
    """
    opts = _resolve_options(options, overrides)
    condition = opts.retry_condition or default_retry_condition
    policy = backoff or BackoffPolicy.from_options(opts)
    log = logger or _logger
    tags = dict(context or {})

    def _classify(raw: BaseException, attempt: int) -> ClassifiedError:
        tagged = {**tags, "attempt": attempt}
        if classifier is not None:
            return classifier.classify(raw, tagged)
        return classify(raw, tagged)

    # Outlives _run so the timeout path can report the last failure.
    last_error: ClassifiedError | None = None

    async def _run() -> T:
        nonlocal last_error
        for attempt in range(1, opts.max_retries + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise _cancelled(last_error, tags, "Operation cancelled before attempt")
            try:
                return await _call(operation)
            except Exception as raw:
                error = _classify(raw, attempt)
                last_error = error

            retry_allowed = _should_retry(error, condition)
            if attempt == opts.max_retries or not retry_allowed:
                record = RetryAttemptRecord(attempt=attempt, error=error)
                if on_attempt is not None:
                    on_attempt(record)
                log_classified_error(
                    error,
                    "retry.exhausted" if retry_allowed else "retry.not_retryable",
                    log,
                    attempts=attempt,
                    max_retries=opts.max_retries,
                )
                raise error

            delay = policy.next_delay(error.kind, attempt)
            record = RetryAttemptRecord(attempt=attempt, error=error, delay_seconds=delay)
            if on_attempt is not None:
                on_attempt(record)
            log.info(
                "retry.scheduled",
                attempt=attempt,
                max_retries=opts.max_retries,
                kind=error.kind.value,
                delay_seconds=round(delay, 3),
            )
            if await _wait(delay, sleep, cancel_event):
                raise _cancelled(error, tags, "Operation cancelled during backoff")

        # Unreachable: max_retries >= 1 and the last attempt always raises.
        raise last_error or ClassifiedError(
            ErrorKind.UNKNOWN, "Operation failed after all retries", context=tags
        )

    if opts.timeout is None:
        return await _run()
    try:
        async with asyncio.timeout(opts.timeout):
            return await _run()
    except TimeoutError as e:
        error = _cancelled(
            last_error, tags, f"Operation exceeded timeout of {opts.timeout}s"
        )
        log_classified_error(error, "retry.timeout", log)
        raise error from e


def _cancelled(
    last_error: ClassifiedError | None,
    context: Mapping[str, Any],
    message: str,
) -> OperationCancelledError:
    kind = last_error.kind if last_error is not None else ErrorKind.UNKNOWN
    return OperationCancelledError(
        kind,
        message,
        last_error.user_message if last_error is not None else None,
        context={**context, "cancelled": True},
        original_error=last_error,
    )


def retryable_operation(
    operation: Operation[T],
    options: RetryOptions | None = None,
    **kwargs: Any,
) -> Callable[[], Awaitable[T]]:
    """Wrap an operation so every call runs it through with_retry.

    Example:
        load = retryable_operation(fetch_categories, RetryOptions(max_retries=2))
        categories = await load()
    """

    async def _wrapped() -> T:
        return await with_retry(operation, options, **kwargs)

    return _wrapped
