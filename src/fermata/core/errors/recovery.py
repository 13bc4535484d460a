"""User-facing recovery guidance per error kind.

Pure lookup tables consulted after a terminal failure by the presentation
layer. No computation, no side effects.
"""

from __future__ import annotations

from typing import NamedTuple

from fermata.core.constants import LOGIN_PATH, SAFE_DEFAULT_PATH

from .codes import ErrorKind


class RedirectHint(NamedTuple):
    """Whether the user should be sent elsewhere after a failure."""

    redirect: bool
    path: str | None = None


_SUGGESTIONS: dict[ErrorKind, tuple[str, ...]] = {
    ErrorKind.NETWORK: (
        "Check your internet connection",
        "Try refreshing the page",
        "Contact support if the problem persists",
    ),
    ErrorKind.AUTHENTICATION: (
        "Log out and log back in",
        "Clear your browser cache",
        "Contact support if the problem persists",
    ),
    ErrorKind.VALIDATION: (
        "Check your input data",
        "Try a different approach",
        "Contact support if the problem persists",
    ),
    ErrorKind.SERVER: (
        "Try again in a few minutes",
        "Check our status page",
        "Contact support if the problem persists",
    ),
    ErrorKind.PERMISSION: (
        "Contact your administrator",
        "Check your account permissions",
        "Contact support if you believe this is an error",
    ),
    ErrorKind.NOT_FOUND: (
        "Check the URL or search terms",
        "Navigate back to the main page",
        "Contact support if you believe this is an error",
    ),
    ErrorKind.RATE_LIMIT: (
        "Wait a few minutes before trying again",
        "Reduce the frequency of your requests",
        "Contact support if you need higher limits",
    ),
    ErrorKind.UNKNOWN: (
        "Try refreshing the page",
        "Clear your browser cache",
        "Contact support if the problem persists",
    ),
}

_REDIRECTS: dict[ErrorKind, RedirectHint] = {
    ErrorKind.AUTHENTICATION: RedirectHint(redirect=True, path=LOGIN_PATH),
    ErrorKind.PERMISSION: RedirectHint(redirect=True, path=SAFE_DEFAULT_PATH),
}

_NO_REDIRECT = RedirectHint(redirect=False)


def recovery_suggestions(kind: ErrorKind) -> list[str]:
    """Get the ordered recovery suggestions for an error kind."""
    return list(_SUGGESTIONS[kind])


def should_redirect(kind: ErrorKind) -> RedirectHint:
    """Get the redirect hint for an error kind.

    Only authentication (login page) and permission (safe default page)
    failures redirect.
    """
    return _REDIRECTS.get(kind, _NO_REDIRECT)
