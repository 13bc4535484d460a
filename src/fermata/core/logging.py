"""Structured logging for Fermata.

Thin layer over structlog. Every Fermata log line carries the component that
emitted it (``classifier``, ``retry``, ``settlement``) and, when a caller has
entered an OperationContext, the operation name and run id, so the attempts
of one settlement member can be told apart from those of its siblings.

Fermata never configures logging on import. Applications that already set
up structlog get Fermata's events through their own pipeline; others call
configure_logging() once.

Example usage:
    from fermata.core.logging import OperationContext, configure_logging, get_logger, with_context

    configure_logging(level="DEBUG", format="json")
    logger = get_logger("dashboard")

    with with_context(OperationContext(operation="load_dashboard")):
        logger.info("dashboard.loading", user_id=42)
"""

from __future__ import annotations

import dataclasses
import logging
import sys
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]

REDACTED = "[REDACTED]"

# Substrings of field names whose values are never written out
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "api-key",
    "token",
    "secret",
    "password",
    "credential",
    "bearer",
    "authorization",
    "cookie",
})


@dataclasses.dataclass(frozen=True)
class OperationContext:
    """Correlation fields attached to every log line inside with_context().

    Attributes:
        operation: Caller-facing operation name (e.g. "load_dashboard").
        run_id: Unique id of this invocation.
        component: Component currently doing the work.
        parent_run_id: run_id of the enclosing operation, for batch members.
    """

    operation: str
    run_id: str = dataclasses.field(default_factory=lambda: uuid.uuid4().hex)
    component: str = "unknown"
    parent_run_id: str | None = None

    def with_component(self, component: str) -> OperationContext:
        return dataclasses.replace(self, component=component)

    def as_child(self, operation: str | None = None) -> OperationContext:
        """Derive the context of a nested operation with a fresh run_id."""
        return OperationContext(
            operation=operation or self.operation,
            component=self.component,
            parent_run_id=self.run_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            name: value
            for name, value in dataclasses.asdict(self).items()
            if value is not None
        }


# Each asyncio task inherits a copy, so concurrent members never clobber each other
_active_context: ContextVar[OperationContext | None] = ContextVar(
    "fermata_operation_context", default=None
)


def get_current_context() -> OperationContext | None:
    return _active_context.get()


@contextmanager
def with_context(ctx: OperationContext) -> Iterator[OperationContext]:
    """Make ``ctx`` the active OperationContext for the enclosed block."""
    token = _active_context.set(ctx)
    try:
        yield ctx
    finally:
        _active_context.reset(token)


# =============================================================================
# Processors
# =============================================================================


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(pattern in lowered for pattern in SENSITIVE_PATTERNS)


def _redact(key: str, value: Any) -> Any:
    """Redact ``value`` if ``key`` is sensitive; recurse into mappings."""
    if _is_sensitive(key):
        return REDACTED
    if isinstance(value, Mapping):
        return {str(k): _redact(str(k), v) for k, v in value.items()}
    return value


def redact_sensitive_fields(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor replacing secret-looking values with a marker.

    Applies at any depth, since an error's diagnostic context is a nested map.
    """
    return {key: _redact(key, value) for key, value in event_dict.items()}


def add_utc_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict.setdefault("timestamp", datetime.now(UTC).isoformat())
    return event_dict


def add_operation_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor merging the active OperationContext.

    Fields bound explicitly on the logger take precedence.
    """
    ctx = get_current_context()
    if ctx is None:
        return event_dict
    for key, value in ctx.to_dict().items():
        event_dict.setdefault(key, value)
    return event_dict


def build_processors(
    format: LogFormat = "console",  # noqa: A002
    include_timestamps: bool = True,
    include_context: bool = True,
) -> list[Processor]:
    """Assemble the processor chain configure_logging() installs."""
    chain: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        redact_sensitive_fields,
    ]
    if include_context:
        chain.append(add_operation_context)
    if include_timestamps:
        chain.append(add_utc_timestamp)
    chain += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    chain.append(renderer)
    return chain


# =============================================================================
# Logger
# =============================================================================


class FermataLogger:
    """Component-scoped logger.

    Resolves the structlog logger on every call rather than caching it, so
    module-level loggers honor configure_logging() calls made after import.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    @classmethod
    def _from_context(cls, component: str, context: dict[str, Any]) -> FermataLogger:
        clone = cls.__new__(cls)
        clone._component = component
        clone._context = context
        return clone

    @property
    def component(self) -> str:
        return self._component

    def bind(self, **context: Any) -> FermataLogger:
        """Return a logger with extra fields bound; this one is unchanged."""
        return self._from_context(self._component, {**self._context, **context})

    def unbind(self, *keys: str) -> FermataLogger:
        kept = {k: v for k, v in self._context.items() if k not in keys}
        return self._from_context(self._component, kept)

    def _emit(self, method: str, event: str, fields: dict[str, Any]) -> None:
        bound = structlog.get_logger("fermata").bind(**self._context)
        getattr(bound, method)(event, **fields)

    def debug(self, event: str, **kw: Any) -> None:
        self._emit("debug", event, kw)

    def info(self, event: str, **kw: Any) -> None:
        self._emit("info", event, kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._emit("warning", event, kw)

    def error(self, event: str, **kw: Any) -> None:
        self._emit("error", event, kw)

    def critical(self, event: str, **kw: Any) -> None:
        self._emit("critical", event, kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log at error level with the active exception's traceback."""
        self._emit("exception", event, kw)


def configure_logging(
    level: LogLevel = "INFO",
    format: LogFormat = "console",  # noqa: A002
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Route Fermata's structlog events through stdlib logging.

    JSON goes to stdout for log shippers; console output goes to stderr.
    Replaces any handlers already installed on the root logger.

    Args:
        level: Minimum level to emit.
        format: "json" or "console".
        include_timestamps: Add an ISO8601 UTC ``timestamp`` field.
        include_context: Merge the active OperationContext into each event.
    """
    stream = sys.stdout if format == "json" else sys.stderr
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(message)s",
        handlers=[logging.StreamHandler(stream)],
        force=True,
    )
    structlog.configure(
        processors=build_processors(format, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> FermataLogger:
    """Get a logger bound to ``component`` and any extra fields."""
    return FermataLogger(component, **initial_context)


__all__ = [
    "FermataLogger",
    "LogFormat",
    "LogLevel",
    "OperationContext",
    "REDACTED",
    "SENSITIVE_PATTERNS",
    "add_operation_context",
    "add_utc_timestamp",
    "build_processors",
    "configure_logging",
    "get_current_context",
    "get_logger",
    "redact_sensitive_fields",
    "with_context",
]
