"""Error kinds, severity levels, and per-kind behavior.

Contains the closed classification enums used throughout Fermata.

This module provides:
- DatabaseErrorCode: Backend error codes recognized by the classifier
- AuthErrorCode: Auth service error codes recognized by the classifier
- Severity: Severity levels used for log routing
- KindBehavior: Retry and presentation defaults per error kind
- ErrorKind: The eight stable error kinds

Error Kind Taxonomy
===================

Every raw failure is narrowed to exactly one kind. Each kind carries a
retryability default, a severity, a fixed user-facing message, and a
backoff factor applied to the configured base delay.

    | Kind           | Retryable | Severity | Backoff factor |
    |----------------|-----------|----------|----------------|
    | network        | Yes       | WARNING  | 1.0            |
    | authentication | Never     | WARNING  | N/A            |
    | validation     | No*       | INFO     | 1.0            |
    | server         | Yes       | ERROR    | 2.0            |
    | permission     | Never     | WARNING  | N/A            |
    | not_found      | Never     | INFO     | N/A            |
    | rate_limit     | Yes       | WARNING  | 5.0            |
    | unknown        | Yes       | ERROR    | 1.5            |

    *Foreign-key violations are classified as retryable validation errors,
    since the missing referent may reappear after a refresh.

Usage
-----

Example::

    err = classify(raw)
    if err.kind.severity <= Severity.ERROR:
        alert(err)
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import NamedTuple

# =============================================================================
# Backend Error Codes
# =============================================================================


class DatabaseErrorCode:
    """Structured error codes emitted by the managed Postgres backend.

    PostgreSQL SQLSTATE values for constraint violations, plus the PostgREST
    code returned when a single-row query matches nothing.
    """

    UNIQUE_VIOLATION: str = "23505"
    FOREIGN_KEY_VIOLATION: str = "23503"
    NOT_NULL_VIOLATION: str = "23502"
    CHECK_VIOLATION: str = "23514"
    ROW_NOT_FOUND: str = "PGRST116"
    UNDEFINED_TABLE: str = "42P01"


class AuthErrorCode:
    """Structured error codes emitted by the hosted auth service."""

    INVALID_CREDENTIALS: str = "invalid_credentials"
    SESSION_NOT_FOUND: str = "session_not_found"
    EMAIL_NOT_CONFIRMED: str = "email_not_confirmed"
    USER_ALREADY_REGISTERED: str = "user_already_registered"
    TOO_MANY_REQUESTS: str = "too_many_requests"


# =============================================================================
# Severity Levels
# =============================================================================


class Severity(IntEnum):
    """Severity levels for error classification.

    Lower numeric value = higher severity, so `severity <= Severity.ERROR`
    selects the failures that must be logged at error level.
    """

    CRITICAL = 1
    ERROR = 2
    WARNING = 3
    INFO = 4


# =============================================================================
# Kind Behavior
# =============================================================================


class KindBehavior(NamedTuple):
    """Defaults attached to an error kind.

    Attributes:
        retryable: Whether errors of this kind are retryable by default.
        severity: Severity used to pick the log level.
        user_message: Fixed, display-safe message for end users.
        backoff_factor: Multiplier on the base delay, None if never retried.
    """

    retryable: bool
    severity: Severity
    user_message: str
    backoff_factor: float | None


# =============================================================================
# Error Kinds
# =============================================================================


class ErrorKind(str, Enum):
    """The closed set of error kinds produced by classification."""

    NETWORK = "network"
    """Connectivity failure between caller and backend."""

    AUTHENTICATION = "authentication"
    """Missing, invalid, or expired credentials/session."""

    VALIDATION = "validation"
    """The backend rejected the data (constraint violation, bad input)."""

    SERVER = "server"
    """The backend failed while handling a valid request (5xx)."""

    PERMISSION = "permission"
    """Authenticated, but not allowed to perform the action."""

    NOT_FOUND = "not_found"
    """The requested resource does not exist."""

    RATE_LIMIT = "rate_limit"
    """The backend is throttling the caller."""

    UNKNOWN = "unknown"
    """Unclassified failure."""

    def get_behavior(self) -> KindBehavior:
        """Get the retry and presentation defaults for this kind."""
        return _BEHAVIORS[self]

    @property
    def default_retryable(self) -> bool:
        return self.get_behavior().retryable

    @property
    def severity(self) -> Severity:
        return self.get_behavior().severity

    @property
    def user_message(self) -> str:
        return self.get_behavior().user_message

    @property
    def never_retryable(self) -> bool:
        """True for kinds where retrying cannot change the outcome."""
        return self in NEVER_RETRYABLE_KINDS


NEVER_RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset({
    ErrorKind.AUTHENTICATION,
    ErrorKind.PERMISSION,
    ErrorKind.NOT_FOUND,
})

_BEHAVIORS: dict[ErrorKind, KindBehavior] = {
    ErrorKind.NETWORK: KindBehavior(
        retryable=True,
        severity=Severity.WARNING,
        user_message="Unable to connect to the server. Please check your internet connection.",
        backoff_factor=1.0,
    ),
    ErrorKind.AUTHENTICATION: KindBehavior(
        retryable=False,
        severity=Severity.WARNING,
        user_message="Your session has expired. Please log in again.",
        backoff_factor=None,
    ),
    ErrorKind.VALIDATION: KindBehavior(
        retryable=False,
        severity=Severity.INFO,
        user_message="Please check your input and try again.",
        backoff_factor=1.0,
    ),
    ErrorKind.SERVER: KindBehavior(
        retryable=True,
        severity=Severity.ERROR,
        user_message="Something went wrong on our end. Please try again later.",
        backoff_factor=2.0,
    ),
    ErrorKind.PERMISSION: KindBehavior(
        retryable=False,
        severity=Severity.WARNING,
        user_message="You don't have permission to perform this action.",
        backoff_factor=None,
    ),
    ErrorKind.NOT_FOUND: KindBehavior(
        retryable=False,
        severity=Severity.INFO,
        user_message="The requested information could not be found.",
        backoff_factor=None,
    ),
    ErrorKind.RATE_LIMIT: KindBehavior(
        retryable=True,
        severity=Severity.WARNING,
        user_message="Too many requests. Please wait a moment and try again.",
        backoff_factor=5.0,
    ),
    # Optimistic: most unclassified failures are transient noise.
    ErrorKind.UNKNOWN: KindBehavior(
        retryable=True,
        severity=Severity.ERROR,
        user_message="Something went wrong. Please try again.",
        backoff_factor=1.5,
    ),
}


def get_user_message(kind: ErrorKind) -> str:
    """Get the fixed user-facing message for an error kind."""
    return kind.user_message
