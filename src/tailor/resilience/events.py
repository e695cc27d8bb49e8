from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Protocol

EventKind = Literal[
    "attempt_started",
    "connected",
    "first_fragment",
    "first_fragment_timeout",
    "heartbeat_warning",
    "retry_scheduled",
    "completed",
    "failed",
    "cancelled",
]


@dataclass(frozen=True)
class ClientEvent:
    kind: EventKind
    attempt: int                      # 1-based attempt number
    data: Dict[str, Any] = field(default_factory=dict)


class EventSink(Protocol):
    def emit(self, event: ClientEvent) -> None: ...


class NullEventSink:
    def emit(self, event: ClientEvent) -> None:
        pass


_LEVELS = {
    "attempt_started": logging.DEBUG,
    "connected": logging.DEBUG,
    "first_fragment": logging.INFO,
    "first_fragment_timeout": logging.WARNING,
    "heartbeat_warning": logging.WARNING,
    "retry_scheduled": logging.WARNING,
    "completed": logging.INFO,
    "failed": logging.ERROR,
    "cancelled": logging.INFO,
}


class LoggingEventSink:
    """Default sink: one log record per event, level chosen by kind."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("tailor.resilience")

    def emit(self, event: ClientEvent) -> None:
        level = _LEVELS.get(event.kind, logging.INFO)
        if not self.logger.isEnabledFor(level):
            return
        details = " ".join(f"{k}={_fmt(v)}" for k, v in event.data.items())
        self.logger.log(level, "%s attempt=%d %s", event.kind, event.attempt, details)


def _fmt(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.3f}"
    return str(value)
