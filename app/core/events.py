"""
Pipeline instrumentation.

Every pipeline stage reports what it did through an injected EventSink
instead of calling the logger directly, so tests can assert on the events
and deployments can route them elsewhere.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol


class EventSink(Protocol):
    """Structured event receiver."""

    def emit(self, event: str, level: int = logging.INFO, **fields: Any) -> None:
        ...


def _format_value(value: Any) -> str:
    if isinstance(value, str) and (" " in value or not value):
        return repr(value)
    return str(value)


class LoggingEventSink:
    """Writes events as `event key=value ...` lines through stdlib logging."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("app.events")

    def emit(self, event: str, level: int = logging.INFO, **fields: Any) -> None:
        if not self.logger.isEnabledFor(level):
            return
        if fields:
            rendered = " ".join(f"{k}={_format_value(v)}" for k, v in fields.items())
            self.logger.log(level, "%s %s", event, rendered)
        else:
            self.logger.log(level, "%s", event)


@dataclass
class RecordedEvent:
    name: str
    level: int
    fields: Dict[str, Any] = field(default_factory=dict)


class MemoryEventSink:
    """Keeps events in memory. Used by tests and request debugging."""

    def __init__(self):
        self.events: List[RecordedEvent] = []

    def emit(self, event: str, level: int = logging.INFO, **fields: Any) -> None:
        self.events.append(RecordedEvent(name=event, level=level, fields=dict(fields)))

    def names(self) -> List[str]:
        return [e.name for e in self.events]

    def find(self, name: str) -> List[RecordedEvent]:
        return [e for e in self.events if e.name == name]


def default_sink(logger_name: str) -> EventSink:
    """Logging sink bound to a module logger."""
    return LoggingEventSink(logging.getLogger(logger_name))
