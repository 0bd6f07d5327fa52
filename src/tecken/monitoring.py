"""Monitoring for the practice engine: Prometheus metrics and decision events."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Session metrics
sessions_started = Counter(
    "tecken_sessions_started_total",
    "Total number of practice sessions started",
    ["mode"],
)

sessions_unavailable = Counter(
    "tecken_sessions_unavailable_total",
    "Total number of practice sessions refused for lack of items",
    ["mode"],
)

session_size = Histogram(
    "tecken_session_size_items",
    "Number of items selected for a practice session",
    buckets=[0, 1, 2, 5, 8, 10, 20],
)

# Learning metrics
answers_recorded = Counter(
    "tecken_answers_recorded_total",
    "Total number of answers recorded",
    ["outcome"],
)

items_learned = Counter(
    "tecken_items_learned_total",
    "Total number of items that reached the Learned level",
)

bulk_operations = Counter(
    "tecken_bulk_operations_total",
    "Total number of bulk level changes",
    ["operation"],
)

# Persistence metrics
persistence_failures = Counter(
    "tecken_persistence_failures_total",
    "Total number of failed progress writes",
    ["error_type"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)


class EventSink(Protocol):
    """Receiver for structured decision events."""

    def emit(self, name: str, **data: Any) -> None:
        ...


@dataclass
class SelectionEvent:
    """One decision event emitted by the selector, ranker or engine."""
    name: str
    data: Dict[str, Any] = field(default_factory=dict)


class LoggingEventSink:
    """Event sink that writes every event to the debug log."""

    def __init__(self, logger_name: str = "tecken.events"):
        self.logger = logging.getLogger(logger_name)

    def emit(self, name: str, **data: Any) -> None:
        self.logger.debug(f"{name}: {data}")


class RecordingEventSink:
    """Event sink that keeps events in memory, in emission order."""

    def __init__(self):
        self.events: List[SelectionEvent] = []

    def emit(self, name: str, **data: Any) -> None:
        self.events.append(SelectionEvent(name=name, data=dict(data)))

    def names(self) -> List[str]:
        """Names of all recorded events."""
        return [event.name for event in self.events]

    def of(self, name: str) -> List[SelectionEvent]:
        """All recorded events with the given name."""
        return [event for event in self.events if event.name == name]

    def clear(self) -> None:
        self.events.clear()


class NullEventSink:
    """Event sink that drops everything."""

    def emit(self, name: str, **data: Any) -> None:
        pass
