"""Pytest fixtures for Fermata tests."""

import logging
import random
from collections.abc import Generator
from typing import Any

import pytest
import structlog

from fermata.core.logging import FermataLogger


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging state before and after each test.

    This ensures test isolation for logging configuration.
    """
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


class RecordingLogger(FermataLogger):
    """FermataLogger that records calls instead of emitting them."""

    def __init__(self) -> None:
        super().__init__("test")
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def _record(self, level: str, event: str, kw: dict[str, Any]) -> None:
        self.records.append((level, event, kw))

    def debug(self, event: str, **kw: Any) -> None:
        self._record("debug", event, kw)

    def info(self, event: str, **kw: Any) -> None:
        self._record("info", event, kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._record("warning", event, kw)

    def error(self, event: str, **kw: Any) -> None:
        self._record("error", event, kw)

    def critical(self, event: str, **kw: Any) -> None:
        self._record("critical", event, kw)

    def events(self, level: str | None = None) -> list[str]:
        return [e for lvl, e, _ in self.records if level is None or lvl == level]


class FakeSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def recording_logger() -> RecordingLogger:
    """Logger that captures (level, event, fields) tuples."""
    return RecordingLogger()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    """Sleep function that returns immediately and records delays."""
    return FakeSleep()


@pytest.fixture
def seeded_rng() -> random.Random:
    """Deterministic random source for jitter."""
    return random.Random(42)
