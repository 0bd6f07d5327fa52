"""Tests for metrics and decision events."""
import logging

from tecken import monitoring
from tecken.monitoring import LoggingEventSink, NullEventSink, RecordingEventSink
from tecken.services.scoring import ScoringEngine


def test_recording_sink_keeps_order() -> None:
    sink = RecordingEventSink()
    sink.emit("a", x=1)
    sink.emit("b")
    sink.emit("a", x=2)

    assert sink.names() == ["a", "b", "a"]
    assert [event.data["x"] for event in sink.of("a")] == [1, 2]

    sink.clear()
    assert sink.events == []


def test_logging_sink_writes_debug(caplog) -> None:
    """Test that events end up in the debug log."""
    with caplog.at_level(logging.DEBUG, logger="tecken.events"):
        LoggingEventSink().emit("session_selected", mode="mixed")

    assert "session_selected" in caplog.text
    assert "mixed" in caplog.text


def test_null_sink_accepts_events(store, practice_settings, clock) -> None:
    engine = ScoringEngine(store, practice_settings, events=NullEventSink(), clock=clock)
    assert engine.record_answer("w1", True).points == 1


def test_answer_counter_increments(store, practice_settings, clock) -> None:
    """Test the answers counter by outcome."""
    counter = monitoring.answers_recorded.labels(outcome="incorrect")
    before = counter._value.get()

    ScoringEngine(store, practice_settings, clock=clock).record_answer("w1", False)

    assert counter._value.get() == before + 1
