"""ErrorClassifier implementation for raw failure classification.

Narrows an untyped raw failure (exception, mapping, response-like object,
string, or None) into a ClassifiedError with one of the eight ErrorKinds.
Classification is total: it never raises and always returns a value.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any

from fermata.core.constants import TRUNCATE_ERROR_MESSAGE_CHARS
from fermata.core.logging import FermataLogger, get_logger

from .codes import AuthErrorCode, DatabaseErrorCode, ErrorKind, Severity
from .models import ClassifiedError

_logger = get_logger("errors")

_Factory = Callable[..., ClassifiedError]


# =============================================================================
# Default pattern strings for ErrorClassifier.
# Kept at module scope so the patterns are reviewable/testable as data.
# =============================================================================

_DEFAULT_AUTH_PATTERNS: list[str] = [
    r"\bjwt\b",
    r"session",
    r"unauthori[sz]ed",
    r"not authenticated",
    r"invalid.?(api.?key|credentials|token)",
]

_DEFAULT_NETWORK_PATTERNS: list[str] = [
    r"network.?error",
    r"fetch failed",
    r"failed to fetch",
    r"timed?.?out",
    r"connection.?(refused|reset|aborted|closed)",
    r"ECONNREFUSED",
    r"ECONNRESET",
    r"ETIMEDOUT",
    r"ENOTFOUND",
]

_DEFAULT_RATE_LIMIT_PATTERNS: list[str] = [
    r"rate.?limit",
    r"too many requests",
    r"\b429\b",
]

_DEFAULT_DUPLICATE_PATTERNS: list[str] = [
    r"duplicate",
    r"unique constraint",
    r"already exists",
]

_DEFAULT_FOREIGN_KEY_PATTERNS: list[str] = [
    r"foreign.?key",
]

_DEFAULT_PERMISSION_PATTERNS: list[str] = [
    r"permission.?denied",
    r"forbidden",
    r"not allowed",
    r"row.?level security",
]

_DEFAULT_NOT_FOUND_PATTERNS: list[str] = [
    r"not found",
    r"no rows",
]

_DUPLICATE_USER_MESSAGE = "This item already exists. Please check your data."
_REFERENCE_USER_MESSAGE = (
    "The selected item is no longer available. Please refresh and try again."
)
_CREDENTIALS_USER_MESSAGE = (
    "Invalid email or password. Please check your credentials and try again."
)
_UNCONFIRMED_USER_MESSAGE = (
    "Please check your email and click the confirmation link before signing in."
)
_REGISTERED_USER_MESSAGE = (
    "An account with this email already exists. Please sign in instead."
)

# (kind, default message, user message override, retryable override)
_Rule = tuple[ErrorKind, str, str | None, bool | None]

_CODE_RULES: dict[str, _Rule] = {
    DatabaseErrorCode.UNIQUE_VIOLATION: (
        ErrorKind.VALIDATION, "Duplicate entry", _DUPLICATE_USER_MESSAGE, False,
    ),
    DatabaseErrorCode.FOREIGN_KEY_VIOLATION: (
        ErrorKind.VALIDATION, "Invalid reference", _REFERENCE_USER_MESSAGE, True,
    ),
    DatabaseErrorCode.NOT_NULL_VIOLATION: (
        ErrorKind.VALIDATION, "Constraint violation", None, None,
    ),
    DatabaseErrorCode.CHECK_VIOLATION: (
        ErrorKind.VALIDATION, "Constraint violation", None, None,
    ),
    DatabaseErrorCode.ROW_NOT_FOUND: (
        ErrorKind.NOT_FOUND, "Resource not found", None, None,
    ),
    # A missing table does not come back by waiting
    DatabaseErrorCode.UNDEFINED_TABLE: (
        ErrorKind.SERVER, "Undefined table", None, False,
    ),
    AuthErrorCode.INVALID_CREDENTIALS: (
        ErrorKind.AUTHENTICATION, "Invalid credentials", _CREDENTIALS_USER_MESSAGE, None,
    ),
    AuthErrorCode.SESSION_NOT_FOUND: (
        ErrorKind.AUTHENTICATION, "Session not found", None, None,
    ),
    AuthErrorCode.EMAIL_NOT_CONFIRMED: (
        ErrorKind.AUTHENTICATION, "Email not confirmed", _UNCONFIRMED_USER_MESSAGE, None,
    ),
    AuthErrorCode.USER_ALREADY_REGISTERED: (
        ErrorKind.VALIDATION, "User already registered", _REGISTERED_USER_MESSAGE, False,
    ),
    AuthErrorCode.TOO_MANY_REQUESTS: (
        ErrorKind.RATE_LIMIT, "Too many requests", None, None,
    ),
}

# Exact phrases from the auth service, checked before the generic patterns
_DEFAULT_AUTH_PHRASE_RULES: list[tuple[str, _Rule]] = [
    (r"invalid login credentials", (
        ErrorKind.AUTHENTICATION, "Invalid credentials", _CREDENTIALS_USER_MESSAGE, None,
    )),
    (r"email not confirmed", (
        ErrorKind.AUTHENTICATION, "Email not confirmed", _UNCONFIRMED_USER_MESSAGE, None,
    )),
    (r"user already registered", (
        ErrorKind.VALIDATION, "User already registered", _REGISTERED_USER_MESSAGE, False,
    )),
]

_VALIDATION_STATUSES: frozenset[int] = frozenset({400, 409, 422})

_CODE_ATTRIBUTES = ("code", "pgcode", "sqlstate")
_STATUS_ATTRIBUTES = ("status", "status_code", "statusCode")


def _compile_patterns(strings: list[str]) -> list[re.Pattern[str]]:
    """Compile a list of regex strings into case-insensitive Pattern objects."""
    return [re.compile(p, re.IGNORECASE) for p in strings]


def _lookup(raw: Any, name: str) -> Any:
    """Read a field from a mapping or an attribute from an object."""
    if isinstance(raw, Mapping):
        return raw.get(name)
    return getattr(raw, name, None)


def _extract_code(raw: Any) -> str | None:
    for name in _CODE_ATTRIBUTES:
        value = _lookup(raw, name)
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return str(value)
    return None


def _coerce_status(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _extract_status(raw: Any) -> int | None:
    for name in _STATUS_ATTRIBUTES:
        status = _coerce_status(_lookup(raw, name))
        if status is not None:
            return status
    # Response-carrying errors (httpx.HTTPStatusError, requests.HTTPError)
    response = _lookup(raw, "response")
    if response is not None and response is not raw:
        for name in _STATUS_ATTRIBUTES:
            status = _coerce_status(_lookup(response, name))
            if status is not None:
                return status
    return None


def _extract_message(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    message = _lookup(raw, "message")
    if isinstance(message, str) and message:
        return message
    if isinstance(raw, BaseException):
        return str(raw) or type(raw).__name__
    if isinstance(raw, Mapping):
        return ""
    return str(raw)


# =============================================================================
# Error Classifier
# =============================================================================


class ErrorClassifier:
    """Classifies raw failures into ClassifiedError values.

    Classification order (first match wins):
    1. Structured database and auth service codes
    2. Message patterns (auth service phrases, auth/session, network, rate
       limit, then the duplicate/foreign-key/permission/not-found fallbacks)
    3. Python connection/timeout exception types
    4. HTTP-style status thresholds
    5. Unknown fallback (retryable)

    User messages are fixed per branch; raw error text only ever goes into
    ``message`` and ``original_error``.
    """

    def __init__(
        self,
        auth_patterns: list[str] | None = None,
        network_patterns: list[str] | None = None,
        rate_limit_patterns: list[str] | None = None,
    ):
        """Initialize classifier with detection patterns.

        Args:
            auth_patterns: Regex patterns indicating auth/session failures
            network_patterns: Regex patterns indicating network issues
            rate_limit_patterns: Regex patterns indicating rate limiting
        """
        self.auth_patterns = _compile_patterns(auth_patterns or _DEFAULT_AUTH_PATTERNS)
        self.network_patterns = _compile_patterns(network_patterns or _DEFAULT_NETWORK_PATTERNS)
        self.rate_limit_patterns = _compile_patterns(
            rate_limit_patterns or _DEFAULT_RATE_LIMIT_PATTERNS
        )
        self.duplicate_patterns = _compile_patterns(_DEFAULT_DUPLICATE_PATTERNS)
        self.foreign_key_patterns = _compile_patterns(_DEFAULT_FOREIGN_KEY_PATTERNS)
        self.permission_patterns = _compile_patterns(_DEFAULT_PERMISSION_PATTERNS)
        self.not_found_patterns = _compile_patterns(_DEFAULT_NOT_FOUND_PATTERNS)

        # Checked in order; first match wins
        self._pattern_checks: list[tuple[list[re.Pattern[str]], _Rule]] = [
            (_compile_patterns([phrase]), rule)
            for phrase, rule in _DEFAULT_AUTH_PHRASE_RULES
        ]
        self._pattern_checks += [
            (self.auth_patterns,
             (ErrorKind.AUTHENTICATION, "Authentication failed", None, None)),
            (self.network_patterns,
             (ErrorKind.NETWORK, "Network error", None, None)),
            (self.rate_limit_patterns,
             (ErrorKind.RATE_LIMIT, "Rate limit exceeded", None, None)),
            (self.duplicate_patterns,
             (ErrorKind.VALIDATION, "Duplicate entry", _DUPLICATE_USER_MESSAGE, False)),
            (self.foreign_key_patterns,
             (ErrorKind.VALIDATION, "Invalid reference", _REFERENCE_USER_MESSAGE, True)),
            (self.permission_patterns,
             (ErrorKind.PERMISSION, "Permission denied", None, None)),
            (self.not_found_patterns,
             (ErrorKind.NOT_FOUND, "Resource not found", None, None)),
        ]

    def classify(
        self,
        raw: Any,
        context: Mapping[str, Any] | None = None,
    ) -> ClassifiedError:
        """Classify a raw failure.

        Never raises. A raw value that is already a ClassifiedError is
        returned as-is, with any new context tags merged in.

        Args:
            raw: The raw failure; any shape, including None.
            context: Optional diagnostic tags to attach.

        Returns:
            ClassifiedError with kind, messages, and retryability.
        """
        try:
            tags = dict(context) if context else {}
        except Exception:
            tags = {}

        if isinstance(raw, ClassifiedError):
            return raw.with_context(**tags) if tags else raw

        try:
            result = self._classify(raw, tags)
        except Exception as e:
            # Hostile inputs (properties that raise, broken __str__) still classify.
            result = ClassifiedError(
                ErrorKind.UNKNOWN,
                f"Unclassifiable failure ({type(e).__name__} while inspecting raw error)",
                context=tags,
                original_error=raw,
            )

        _logger.debug(
            "error_classified",
            kind=result.kind.value,
            retryable=result.retryable,
            message=result.message[:TRUNCATE_ERROR_MESSAGE_CHARS],
        )
        return result

    def _classify(
        self,
        raw: Any,
        context: dict[str, Any],
    ) -> ClassifiedError:
        message = _extract_message(raw)
        code = _extract_code(raw)
        status = _extract_status(raw)

        def make(
            kind: ErrorKind,
            default_message: str,
            user_message: str | None = None,
            retryable: bool | None = None,
        ) -> ClassifiedError:
            return ClassifiedError(
                kind,
                message or default_message,
                user_message,
                retryable,
                context=context,
                original_error=raw,
            )

        # 1. Structured backend codes
        code_result = self._classify_by_code(code, make)
        if code_result is not None:
            return code_result

        # 2. Message patterns
        pattern_result = self._classify_by_pattern(message, make)
        if pattern_result is not None:
            return pattern_result

        # 3. Python exception types
        if isinstance(raw, (ConnectionError, TimeoutError)):
            return make(ErrorKind.NETWORK, "Network error")

        # 4. Status thresholds
        status_result = self._classify_by_status(status, make)
        if status_result is not None:
            return status_result

        # 5. Unknown fallback
        return make(ErrorKind.UNKNOWN, "An unexpected error occurred")

    def _classify_by_code(self, code: str | None, make: _Factory) -> ClassifiedError | None:
        rule = _CODE_RULES.get(code) if code is not None else None
        if rule is None:
            return None
        return make(*rule)

    def _classify_by_pattern(self, message: str, make: _Factory) -> ClassifiedError | None:
        """Classify by matching the raw message against known phrases.

        Checks the auth service's exact phrases first, then patterns in
        priority order: auth, network, rate limit, duplicate, foreign key,
        permission, not found.
        """
        if not message:
            return None
        for patterns, rule in self._pattern_checks:
            if self._matches_any(message, patterns):
                return make(*rule)
        return None

    def _classify_by_status(self, status: int | None, make: _Factory) -> ClassifiedError | None:
        if status is None:
            return None
        if status >= 500:
            return make(ErrorKind.SERVER, "Server error")
        if status == 429:
            return make(ErrorKind.RATE_LIMIT, "Rate limit exceeded")
        if status == 404:
            return make(ErrorKind.NOT_FOUND, "Resource not found")
        if status == 403:
            return make(ErrorKind.PERMISSION, "Permission denied")
        if status == 401:
            return make(ErrorKind.AUTHENTICATION, "Authentication failed")
        if status in _VALIDATION_STATUSES:
            return make(ErrorKind.VALIDATION, "Invalid request")
        return None

    @staticmethod
    def _matches_any(text: str, patterns: list[re.Pattern[str]]) -> bool:
        return any(p.search(text) for p in patterns)


_default_classifier = ErrorClassifier()


def classify(raw: Any, context: Mapping[str, Any] | None = None) -> ClassifiedError:
    """Classify a raw failure with the default classifier."""
    return _default_classifier.classify(raw, context)


def log_classified_error(
    error: ClassifiedError,
    event: str = "operation.failed",
    logger: FermataLogger | None = None,
    **kw: Any,
) -> None:
    """Log a classified error at the level its severity calls for.

    CRITICAL/ERROR severities log at error level, WARNING at warning,
    and INFO (expected user mistakes) only at debug.
    """
    log = logger or _logger
    fields = {**error.to_log_dict(), **kw}
    if error.severity <= Severity.ERROR:
        log.error(event, **fields)
    elif error.severity == Severity.WARNING:
        log.warning(event, **fields)
    else:
        log.debug(event, **fields)


def handle_error(
    raw: Any,
    context: Mapping[str, Any] | None = None,
    *,
    log: bool = True,
    logger: FermataLogger | None = None,
) -> ClassifiedError:
    """Classify a failure the caller caught itself, and log it.

    Args:
        raw: The raw failure.
        context: Optional diagnostic tags.
        log: Set False to classify without logging.
        logger: Optional logger; defaults to the module logger.

    Returns:
        The ClassifiedError.
    """
    error = classify(raw, context)
    if log:
        log_classified_error(error, "error.handled", logger)
    return error
