"""Error classification and recovery guidance.

Re-exports all public symbols.
"""

from fermata.core.errors.codes import (
    NEVER_RETRYABLE_KINDS,
    AuthErrorCode,
    DatabaseErrorCode,
    ErrorKind,
    KindBehavior,
    Severity,
    get_user_message,
)
from fermata.core.errors.models import (
    ClassifiedError,
    OperationCancelledError,
)
from fermata.core.errors.recovery import (
    RedirectHint,
    recovery_suggestions,
    should_redirect,
)
from fermata.core.errors.classifier import (
    ErrorClassifier,
    classify,
    handle_error,
    log_classified_error,
)

__all__ = [
    "NEVER_RETRYABLE_KINDS",
    "AuthErrorCode",
    "DatabaseErrorCode",
    "ErrorKind",
    "KindBehavior",
    "Severity",
    "get_user_message",
    "ClassifiedError",
    "OperationCancelledError",
    "RedirectHint",
    "recovery_suggestions",
    "should_redirect",
    "ErrorClassifier",
    "classify",
    "handle_error",
    "log_classified_error",
]
