"""Backtest event stream.

Events are fire-and-forget notifications (progress, trades, risk triggers)
delivered to an injected sink. The engine never depends on a sink's
behaviour; the default sink forwards everything to the module logger.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Event types emitted during a backtest."""

    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"
    RUN_ERROR = "run_error"
    STEP_PROGRESS = "step_progress"
    TRADE_EXECUTED = "trade_executed"
    TRADE_CLOSED = "trade_closed"
    RISK_LIMIT_TRIGGERED = "risk_limit_triggered"
    WALK_FORWARD_WINDOW_COMPLETE = "walk_forward_window_complete"
    MONTE_CARLO_PROGRESS = "monte_carlo_progress"


_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


@dataclass(frozen=True)
class BacktestEvent:
    """A single emitted event."""

    event_type: EventType
    level: str = "INFO"
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.event_type.value,
            "level": self.level,
            "payload": self.payload,
        }


class EventSink(Protocol):
    """Anything that accepts backtest events."""

    def emit(self, event: BacktestEvent) -> None:
        ...


class LoggingEventSink:
    """Forward events to the standard logger at the event's level."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def emit(self, event: BacktestEvent) -> None:
        self._log.log(
            _LOG_LEVELS.get(event.level, logging.INFO),
            "%s %s",
            event.event_type.value,
            event.payload,
        )


class RecordingEventSink:
    """Keep every event in memory, in emission order."""

    def __init__(self) -> None:
        self.events: list[BacktestEvent] = []

    def emit(self, event: BacktestEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> list[BacktestEvent]:
        """Events of a single type, in emission order."""
        return [e for e in self.events if e.event_type is event_type]

    def clear(self) -> None:
        self.events.clear()


class CallbackEventSink:
    """Adapt a plain callable into an event sink."""

    def __init__(self, callback: Callable[[BacktestEvent], None]) -> None:
        self._callback = callback

    def emit(self, event: BacktestEvent) -> None:
        self._callback(event)


def emit_event(
    sink: EventSink,
    event_type: EventType,
    payload: dict[str, Any],
    level: str = "INFO",
) -> None:
    """Build and deliver an event to ``sink``."""
    sink.emit(BacktestEvent(event_type=event_type, level=level, payload=payload))
