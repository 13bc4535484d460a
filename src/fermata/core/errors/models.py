"""Data models for error classification.

This module provides:
- ClassifiedError: A raw failure narrowed to a kind, with safe/unsafe messages
- OperationCancelledError: Terminal failure for cancelled or timed-out calls

ClassifiedError is an exception so the retry layer can raise it directly;
callers only ever handle this one error shape.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from fermata.core.constants import TRUNCATE_ERROR_MESSAGE_CHARS

from .codes import ErrorKind, Severity
from .recovery import recovery_suggestions


class ClassifiedError(Exception):
    """An error with its classification and metadata.

    Instances are immutable once created. ``message``, ``context`` and
    ``original_error`` are technical details for logs; only
    ``user_message`` is safe to display.

    Attributes:
        kind: The error kind.
        message: Technical detail, never shown to users.
        user_message: Human-readable message, safe to display.
        retryable: Whether re-executing the operation could succeed.
            Always False for authentication, permission and not-found kinds.
        timestamp: When the error was classified (UTC).
        context: Caller-supplied diagnostic tags, read-only.
        original_error: The raw underlying failure, for logging only.
    """

    kind: ErrorKind
    message: str
    user_message: str
    retryable: bool
    timestamp: datetime
    context: Mapping[str, Any]
    original_error: Any

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        user_message: str | None = None,
        retryable: bool | None = None,
        *,
        timestamp: datetime | None = None,
        context: Mapping[str, Any] | None = None,
        original_error: Any = None,
    ) -> None:
        super().__init__(message)
        if retryable is None:
            retryable = kind.default_retryable
        if kind.never_retryable:
            retryable = False
        values = {
            "kind": kind,
            "message": message,
            "user_message": user_message if user_message is not None else kind.user_message,
            "retryable": retryable,
            "timestamp": timestamp or datetime.now(UTC),
            "context": MappingProxyType(dict(context or {})),
            "original_error": original_error,
        }
        for name, value in values.items():
            object.__setattr__(self, name, value)

    def __setattr__(self, name: str, value: Any) -> None:
        # The interpreter still needs to attach __traceback__, __cause__, etc.
        if name.startswith("__") and name.endswith("__"):
            super().__setattr__(name, value)
            return
        raise AttributeError(f"{type(self).__name__} is immutable; cannot set {name!r}")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable; cannot delete {name!r}")

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"message={self.message!r}, retryable={self.retryable})"
        )

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"

    def __reduce__(self) -> tuple[Any, ...]:
        return (
            _rebuild,
            (
                type(self),
                self.kind,
                self.message,
                self.user_message,
                self.retryable,
                self.timestamp,
                dict(self.context),
            ),
        )

    @property
    def severity(self) -> Severity:
        """Get the severity level for this error."""
        return self.kind.severity

    @property
    def is_rate_limit(self) -> bool:
        return self.kind == ErrorKind.RATE_LIMIT

    def with_context(self, **context: Any) -> ClassifiedError:
        """Create a copy with additional context tags merged in.

        Existing tags win over new ones: the first classifier to see a
        failure owns its context.
        """
        return type(self)(
            self.kind,
            self.message,
            self.user_message,
            self.retryable,
            timestamp=self.timestamp,
            context={**context, **self.context},
            original_error=self.original_error,
        )

    def to_log_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for structured logging.

        Includes technical detail; never send this to a user-facing surface.
        """
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message[:TRUNCATE_ERROR_MESSAGE_CHARS],
            "retryable": self.retryable,
            "severity": self.severity.name,
            "timestamp": self.timestamp.isoformat(),
            "context": dict(self.context),
        }
        if self.original_error is not None:
            result["original_error_type"] = type(self.original_error).__name__
        return result

    def to_user_dict(self) -> dict[str, Any]:
        """Convert to the display-safe representation shown to end users."""
        return {
            "kind": self.kind.value,
            "user_message": self.user_message,
            "retryable": self.retryable,
            "suggestions": recovery_suggestions(self.kind),
        }


class OperationCancelledError(ClassifiedError):
    """Raised when an orchestrated call is cancelled or exceeds its deadline.

    Carries the kind of the last failed attempt (UNKNOWN if none failed)
    but is never retryable: a cancelled call is done.
    """

    def __init__(
        self,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        message: str = "Operation cancelled",
        user_message: str | None = None,
        retryable: bool | None = None,
        *,
        timestamp: datetime | None = None,
        context: Mapping[str, Any] | None = None,
        original_error: Any = None,
    ) -> None:
        super().__init__(
            kind,
            message,
            user_message,
            False,
            timestamp=timestamp,
            context=context,
            original_error=original_error,
        )


def _rebuild(
    cls: type[ClassifiedError],
    kind: ErrorKind,
    message: str,
    user_message: str,
    retryable: bool,
    timestamp: datetime,
    context: dict[str, Any],
) -> ClassifiedError:
    return cls(kind, message, user_message, retryable, timestamp=timestamp, context=context)
