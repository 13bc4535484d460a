"""Tests for recovery suggestions and redirect hints."""

import pytest

from fermata.core.errors import ErrorKind, RedirectHint, recovery_suggestions, should_redirect


class TestRecoverySuggestions:
    """Tests for recovery_suggestions."""

    def test_every_kind_has_suggestions(self) -> None:
        for kind in ErrorKind:
            suggestions = recovery_suggestions(kind)
            assert suggestions
            assert all(isinstance(s, str) and s for s in suggestions)

    def test_network_suggestions_ordered(self) -> None:
        assert recovery_suggestions(ErrorKind.NETWORK)[0] == "Check your internet connection"

    def test_returns_fresh_list(self) -> None:
        first = recovery_suggestions(ErrorKind.SERVER)
        first.clear()
        assert recovery_suggestions(ErrorKind.SERVER)


class TestShouldRedirect:
    """Tests for should_redirect."""

    def test_authentication_redirects_to_login(self) -> None:
        assert should_redirect(ErrorKind.AUTHENTICATION) == RedirectHint(True, "/auth/login")

    def test_permission_redirects_to_dashboard(self) -> None:
        hint = should_redirect(ErrorKind.PERMISSION)
        assert hint.redirect is True
        assert hint.path == "/dashboard"

    @pytest.mark.parametrize(
        "kind",
        [
            ErrorKind.NETWORK,
            ErrorKind.VALIDATION,
            ErrorKind.SERVER,
            ErrorKind.NOT_FOUND,
            ErrorKind.RATE_LIMIT,
            ErrorKind.UNKNOWN,
        ],
    )
    def test_other_kinds_do_not_redirect(self, kind: ErrorKind) -> None:
        hint = should_redirect(kind)
        assert hint.redirect is False
        assert hint.path is None
