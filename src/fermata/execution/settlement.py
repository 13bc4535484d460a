"""Settlement of independent operations.

Runs several unrelated operations concurrently, each through with_retry,
and waits for every one of them to reach a terminal state. One member's
failure never cancels or blocks the others; all outcomes come back
together, in input order.

Example usage:
    batch = await with_settled([fetch_income, fetch_categories])
    income, categories = batch.values()

    batch = await settle_named({
        "income": fetch_income,
        "categories": fetch_categories,
    })
    if batch.has_errors:
        for name, error in batch.errors.items():
            show(name, error.user_message)
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from fermata.core.config import RetryOptions, SettleOptions
from fermata.core.constants import SETTLEMENT_KEY_PREFIX
from fermata.core.errors import ClassifiedError, ErrorClassifier, classify
from fermata.core.logging import (
    FermataLogger,
    OperationContext,
    get_current_context,
    get_logger,
    with_context,
)
from fermata.execution.backoff import BackoffPolicy
from fermata.execution.retry import Operation, SleepFunc, with_retry

T = TypeVar("T")

_logger = get_logger("settlement")


@dataclass(frozen=True)
class SettlementResult(Generic[T]):
    """Outcome of one member of a settlement batch.

    Exactly one of ``data`` (on success) or ``error`` (on failure) is
    meaningful.
    """

    success: bool
    data: T | None = None
    error: ClassifiedError | None = None

    @classmethod
    def ok(cls, data: T) -> SettlementResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error: ClassifiedError) -> SettlementResult[T]:
        return cls(success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        if self.success or self.error is None:
            return {"success": self.success}
        return {"success": False, "error": self.error.to_log_dict()}


def _default_key(index: int) -> str:
    return f"{SETTLEMENT_KEY_PREFIX}{index}"


def _member_context(parent: OperationContext | None, key: str) -> OperationContext:
    """Context for one member: a child of the caller's context, if any."""
    if parent is None:
        return OperationContext(operation=key, component="settlement")
    return parent.as_child(key)


@dataclass(frozen=True)
class SettlementBatch(Generic[T]):
    """Ordered outcomes of a settlement batch.

    Attributes:
        results: One SettlementResult per input operation, in input order.
        keys: Caller-assigned name per position; defaults to ``operation_<i>``.
    """

    results: tuple[SettlementResult[T], ...]
    keys: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if not self.keys:
            object.__setattr__(
                self, "keys", tuple(_default_key(i) for i in range(len(self.results)))
            )
        elif len(self.keys) != len(self.results):
            raise ValueError(
                f"Got {len(self.keys)} keys for {len(self.results)} results"
            )
        elif len(set(self.keys)) != len(self.keys):
            raise ValueError("Settlement keys must be unique")

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[SettlementResult[T]]:
        return iter(self.results)

    def __getitem__(self, index: int) -> SettlementResult[T]:
        return self.results[index]

    @property
    def has_errors(self) -> bool:
        return any(not r.success for r in self.results)

    @property
    def errors(self) -> dict[str, ClassifiedError]:
        """Errors of the failed members, keyed by name. Successes have no entry."""
        return {
            key: result.error
            for key, result in zip(self.keys, self.results, strict=True)
            if not result.success and result.error is not None
        }

    @property
    def retryable(self) -> bool:
        """Whether retrying the batch could recover any failed member."""
        return any(error.retryable for error in self.errors.values())

    @property
    def succeeded(self) -> list[int]:
        return [i for i, r in enumerate(self.results) if r.success]

    @property
    def failed(self) -> list[int]:
        return [i for i, r in enumerate(self.results) if not r.success]

    def values(self) -> list[T | None]:
        """Successful values in input order; None at failed positions."""
        return [r.data if r.success else None for r in self.results]

    def keyed(self, keys: Sequence[str]) -> SettlementBatch[T]:
        """Return a copy whose error map uses the given per-position names."""
        return SettlementBatch(results=self.results, keys=tuple(keys))

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging. Includes technical error detail."""
        return {
            "total": len(self.results),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "has_errors": self.has_errors,
            "retryable": self.retryable,
            "errors": {key: error.to_log_dict() for key, error in self.errors.items()},
        }


async def with_settled(
    operations: Sequence[Operation[T]],
    options: SettleOptions | RetryOptions | None = None,
    *,
    classifier: ErrorClassifier | None = None,
    backoff: BackoffPolicy | None = None,
    sleep: SleepFunc | None = None,
    logger: FermataLogger | None = None,
    cancel_event: asyncio.Event | None = None,
    keys: Sequence[str] | None = None,
) -> SettlementBatch[T]:
    """Run independent operations concurrently and collect every outcome.

    Each member runs through with_retry with the same retry options. The
    batch waits for all members to settle and never raises a member's
    failure; failures are captured in the returned batch. Each member runs
    inside its own OperationContext, a child of the caller's active context
    when there is one, named after the member's key.

    Args:
        operations: Zero-argument callables, sync or async.
        options: SettleOptions, or bare RetryOptions applied to every member.
        classifier: Custom classifier passed to every member.
        backoff: Custom backoff policy passed to every member.
        sleep: Injectable sleep function for time control in tests.
        logger: Injectable logger (default module logger).
        cancel_event: Shared cancel event; cancelled members settle as failures.
        keys: Optional per-position names for the error map.

    Returns:
        SettlementBatch with one result per operation, in input order.
    """
    if isinstance(options, RetryOptions):
        settle = SettleOptions(retry=options)
    else:
        settle = options or SettleOptions()
    log = logger or _logger
    operations = list(operations)
    if keys is not None and len(keys) != len(operations):
        raise ValueError(f"Got {len(keys)} keys for {len(operations)} operations")
    member_keys = list(keys) if keys is not None else [
        _default_key(i) for i in range(len(operations))
    ]
    parent = get_current_context()
    results: list[SettlementResult[T] | None] = [None] * len(operations)
    semaphore = (
        asyncio.Semaphore(settle.max_concurrent)
        if settle.max_concurrent is not None
        else None
    )

    async def _settle_one(index: int, operation: Operation[T]) -> None:
        # Each task has its own copy of the context, so siblings stay apart.
        with with_context(_member_context(parent, member_keys[index])):
            try:
                if semaphore is None:
                    value = await _run_member(index, operation)
                else:
                    async with semaphore:
                        value = await _run_member(index, operation)
            except ClassifiedError as e:
                results[index] = SettlementResult.failed(e)
            except Exception as e:
                # A raising retry_condition, sleep or backoff must not cancel siblings.
                classify_raw = classifier.classify if classifier is not None else classify
                results[index] = SettlementResult.failed(
                    classify_raw(e, {"operation_index": index})
                )
            else:
                results[index] = SettlementResult.ok(value)

    async def _run_member(index: int, operation: Operation[T]) -> T:
        return await with_retry(
            operation,
            settle.retry,
            context={"operation_index": index},
            cancel_event=cancel_event,
            classifier=classifier,
            backoff=backoff,
            sleep=sleep,
            logger=log,
        )

    log.debug(
        "settlement.started",
        total=len(operations),
        max_concurrent=settle.max_concurrent,
    )

    # Members capture every Exception themselves, so the group never
    # cancels siblings on a member failure.
    async with asyncio.TaskGroup() as tg:
        for index, operation in enumerate(operations):
            tg.create_task(_settle_one(index, operation), name=f"settle-{index}")

    # TaskGroup has awaited every member, so every slot is filled.
    batch = SettlementBatch(
        results=tuple(r for r in results if r is not None),
        keys=tuple(member_keys),
    )
    if batch.has_errors:
        log.warning(
            "settlement.partial_failure",
            total=len(batch),
            failed=len(batch.failed),
            failed_keys=list(batch.errors),
            retryable=batch.retryable,
        )
    else:
        log.debug("settlement.completed", total=len(batch))
    return batch


async def settle_named(
    operations: Mapping[str, Operation[T]],
    options: SettleOptions | RetryOptions | None = None,
    **kwargs: Any,
) -> SettlementBatch[T]:
    """Settle a name -> operation mapping; errors are keyed by those names.

    Example:
        batch = await settle_named({"income": fetch_income, "budget": fetch_budget})
        batch.errors.get("budget")
    """
    names = list(operations)
    return await with_settled(
        [operations[name] for name in names],
        options,
        keys=names,
        **kwargs,
    )
