"""Event stream for backtest progress, trades, and risk triggers."""

from .events import (
    BacktestEvent,
    CallbackEventSink,
    EventSink,
    EventType,
    LoggingEventSink,
    RecordingEventSink,
    emit_event,
)

__all__ = [
    "BacktestEvent",
    "CallbackEventSink",
    "EventSink",
    "EventType",
    "LoggingEventSink",
    "RecordingEventSink",
    "emit_event",
]
