"""Global constants for Fermata.

Centralizes the default timings and limits used by the retry and
settlement layers, making them discoverable and easy to modify.
"""

# =============================================================================
# Retry Defaults
# =============================================================================

DEFAULT_MAX_RETRIES = 3
"""Default number of attempts (including the first) per orchestrated call."""

DEFAULT_BASE_DELAY_SECONDS = 1.0
"""Default base delay before the first retry."""

DEFAULT_MAX_DELAY_SECONDS = 10.0
"""Cap applied to the exponential part of the backoff."""

DEFAULT_BACKOFF_MULTIPLIER = 2.0
"""Growth factor between successive backoff delays."""

DEFAULT_JITTER_SECONDS = 1.0
"""Upper bound of the uniform random jitter added to each delay."""

# =============================================================================
# Redirect Targets
# =============================================================================

LOGIN_PATH = "/auth/login"
"""Where authentication failures send the user."""

SAFE_DEFAULT_PATH = "/dashboard"
"""Where permission failures send the user."""

# =============================================================================
# Settlement
# =============================================================================

SETTLEMENT_KEY_PREFIX = "operation_"
"""Prefix of the positional keys used for failed members of a batch."""

TRUNCATE_ERROR_MESSAGE_CHARS = 200
"""Maximum characters of raw error text carried into log entries."""
