"""Tests for ClassifiedError and OperationCancelledError."""

import pickle
from datetime import UTC, datetime

import pytest

from fermata.core.errors import (
    ClassifiedError,
    ErrorKind,
    OperationCancelledError,
    Severity,
)


class TestClassifiedErrorConstruction:
    """Tests for defaults and invariants applied at construction."""

    def test_defaults_from_kind(self) -> None:
        err = ClassifiedError(ErrorKind.SERVER, "HTTP 503 from upstream")

        assert err.kind == ErrorKind.SERVER
        assert err.message == "HTTP 503 from upstream"
        assert err.user_message == ErrorKind.SERVER.user_message
        assert err.retryable is True
        assert err.severity == Severity.ERROR
        assert err.timestamp.tzinfo is not None
        assert dict(err.context) == {}
        assert err.original_error is None

    def test_explicit_retryable_respected(self) -> None:
        err = ClassifiedError(ErrorKind.VALIDATION, "fk violation", retryable=True)
        assert err.retryable is True

    @pytest.mark.parametrize(
        "kind",
        [ErrorKind.AUTHENTICATION, ErrorKind.PERMISSION, ErrorKind.NOT_FOUND],
    )
    def test_never_retryable_kinds_forced_false(self, kind: ErrorKind) -> None:
        err = ClassifiedError(kind, "nope", retryable=True)
        assert err.retryable is False

    def test_custom_user_message(self) -> None:
        err = ClassifiedError(ErrorKind.VALIDATION, "dup", "This item already exists.")
        assert err.user_message == "This item already exists."

    def test_explicit_timestamp(self) -> None:
        ts = datetime(2024, 1, 1, tzinfo=UTC)
        err = ClassifiedError(ErrorKind.NETWORK, "down", timestamp=ts)
        assert err.timestamp == ts

    def test_is_exception(self) -> None:
        with pytest.raises(ClassifiedError) as exc_info:
            raise ClassifiedError(ErrorKind.NETWORK, "connection reset")
        assert exc_info.value.kind == ErrorKind.NETWORK

    def test_str_and_repr(self) -> None:
        err = ClassifiedError(ErrorKind.RATE_LIMIT, "429 Too Many Requests")
        assert str(err) == "[rate_limit] 429 Too Many Requests"
        assert "rate_limit" in repr(err)
        assert "retryable=True" in repr(err)


class TestClassifiedErrorImmutability:
    """ClassifiedError is immutable after creation."""

    def test_cannot_set_attribute(self) -> None:
        err = ClassifiedError(ErrorKind.SERVER, "boom")
        with pytest.raises(AttributeError):
            err.retryable = False  # type: ignore[misc]

    def test_cannot_delete_attribute(self) -> None:
        err = ClassifiedError(ErrorKind.SERVER, "boom")
        with pytest.raises(AttributeError):
            del err.message

    def test_context_is_read_only(self) -> None:
        err = ClassifiedError(ErrorKind.SERVER, "boom", context={"user_id": 7})
        with pytest.raises(TypeError):
            err.context["user_id"] = 8  # type: ignore[index]

    def test_context_copied_from_caller(self) -> None:
        tags = {"operation": "income"}
        err = ClassifiedError(ErrorKind.SERVER, "boom", context=tags)
        tags["operation"] = "changed"
        assert err.context["operation"] == "income"

    def test_can_still_be_raised_with_cause(self) -> None:
        """The interpreter can still attach __cause__ and __traceback__."""
        try:
            try:
                raise ValueError("inner")
            except ValueError as inner:
                raise ClassifiedError(ErrorKind.UNKNOWN, "outer") from inner
        except ClassifiedError as err:
            assert isinstance(err.__cause__, ValueError)
            assert err.__traceback__ is not None

    def test_pickle_round_trip(self) -> None:
        err = ClassifiedError(ErrorKind.NETWORK, "reset", context={"attempt": 2})
        restored = pickle.loads(pickle.dumps(err))
        assert restored.kind == err.kind
        assert restored.message == err.message
        assert restored.timestamp == err.timestamp
        assert dict(restored.context) == {"attempt": 2}


class TestWithContext:
    """Tests for ClassifiedError.with_context."""

    def test_merges_new_tags(self) -> None:
        err = ClassifiedError(ErrorKind.SERVER, "boom", context={"a": 1})
        merged = err.with_context(b=2)
        assert dict(merged.context) == {"a": 1, "b": 2}
        assert dict(err.context) == {"a": 1}

    def test_existing_tags_win(self) -> None:
        err = ClassifiedError(ErrorKind.SERVER, "boom", context={"attempt": 1})
        merged = err.with_context(attempt=5)
        assert merged.context["attempt"] == 1

    def test_preserves_identity_fields(self) -> None:
        raw = RuntimeError("x")
        err = ClassifiedError(ErrorKind.UNKNOWN, "x", retryable=False, original_error=raw)
        merged = err.with_context(k="v")
        assert merged.kind == err.kind
        assert merged.retryable is False
        assert merged.timestamp == err.timestamp
        assert merged.original_error is raw


class TestSerialization:
    """Tests for the log and user representations."""

    def test_to_log_dict(self) -> None:
        raw = ConnectionResetError("peer reset")
        err = ClassifiedError(
            ErrorKind.NETWORK, "peer reset", context={"op": "income"}, original_error=raw
        )
        data = err.to_log_dict()
        assert data["kind"] == "network"
        assert data["message"] == "peer reset"
        assert data["retryable"] is True
        assert data["severity"] == "WARNING"
        assert data["context"] == {"op": "income"}
        assert data["original_error_type"] == "ConnectionResetError"

    def test_to_log_dict_truncates_message(self) -> None:
        err = ClassifiedError(ErrorKind.SERVER, "x" * 1000)
        assert len(err.to_log_dict()["message"]) == 200

    def test_to_user_dict_excludes_technical_detail(self) -> None:
        err = ClassifiedError(
            ErrorKind.SERVER,
            "SELECT * FROM secrets failed",
            context={"sql": "SELECT * FROM secrets"},
            original_error=RuntimeError("stack"),
        )
        data = err.to_user_dict()
        assert set(data) == {"kind", "user_message", "retryable", "suggestions"}
        assert "secrets" not in str(data)
        assert data["suggestions"]


class TestOperationCancelledError:
    """Tests for OperationCancelledError."""

    def test_defaults(self) -> None:
        err = OperationCancelledError()
        assert err.kind == ErrorKind.UNKNOWN
        assert err.message == "Operation cancelled"
        assert err.retryable is False

    def test_never_retryable_even_for_retryable_kind(self) -> None:
        err = OperationCancelledError(ErrorKind.NETWORK, "cancelled", retryable=True)
        assert err.retryable is False

    def test_is_classified_error(self) -> None:
        assert isinstance(OperationCancelledError(), ClassifiedError)

    def test_with_context_keeps_type(self) -> None:
        err = OperationCancelledError(ErrorKind.SERVER).with_context(op="x")
        assert isinstance(err, OperationCancelledError)
        assert err.retryable is False
