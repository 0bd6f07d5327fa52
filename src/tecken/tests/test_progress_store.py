"""Tests for the progress store."""
from typing import Generator
from unittest.mock import Mock

import pytest
from faker import Faker
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from tecken.models.base import init_db
from tecken.models.models import WordProgress
from tecken.models.progress import Level, ProgressRecord, ProgressStats
from tecken.services.errors import PersistenceError
from tecken.services.progress_store import InMemoryBackend, ProgressStore, SqlProgressBackend

from conftest import learned_record, learning_record

fake = Faker()


@pytest.fixture
def session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """Create a session factory bound to a fresh SQLite file."""
    engine = create_engine(f"sqlite:///{tmp_path / 'progress.db'}")
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def test_get_missing_returns_default(store: ProgressStore) -> None:
    """Test that an untouched item reads as the default record."""
    record = store.get(fake.uuid4())
    assert record.level == Level.UNMARKED
    assert record.points == 0
    assert record.stats == ProgressStats(correct=0, incorrect=0, last_practiced="", difficulty=50)
    assert len(store) == 0


def test_set_deep_merges_and_persists(store: ProgressStore, backend: InMemoryBackend) -> None:
    """Test that a partial update keeps untouched fields."""
    store.set("w1", {"level": 1, "stats": {"correct": 2}})
    store.set("w1", {"points": 3, "stats": {"incorrect": 1}})

    record = store.get("w1")
    assert record.level == Level.LEARNING
    assert record.points == 3
    assert record.stats.correct == 2
    assert record.stats.incorrect == 1
    assert record.stats.difficulty == 50
    assert backend.records["w1"] == record
    assert backend.save_count == 2


def test_bulk_set_is_one_write_and_keeps_history(store: ProgressStore, backend: InMemoryBackend) -> None:
    """Test bulk level changes as a single transaction."""
    store.put("w1", ProgressRecord(level=Level.LEARNING, points=2, stats=ProgressStats(correct=4, incorrect=3)))
    saves_before = backend.save_count

    store.bulk_set(["w1", "w2", "w3", "w2"], Level.LEARNED, 5)

    assert backend.save_count == saves_before + 1
    for item_id in ("w1", "w2", "w3"):
        assert store.get(item_id).level == Level.LEARNED
        assert store.get(item_id).points == 5
    assert store.get("w1").stats.correct == 4
    assert store.get("w1").stats.incorrect == 3


def test_bulk_set_without_points_keeps_points(store: ProgressStore) -> None:
    """Test that points stay when none are given."""
    store.put("w1", learning_record(points=3))
    store.bulk_set(["w1"], Level.UNMARKED)
    assert store.get("w1").level == Level.UNMARKED
    assert store.get("w1").points == 3


def test_failed_write_keeps_memory_state(store: ProgressStore, backend: InMemoryBackend, events) -> None:
    """Test that a persistence failure becomes a warning, not an error."""
    backend.save = Mock(side_effect=PersistenceError("disk full"))

    store.set("w1", {"level": 2, "points": 5})

    assert store.get("w1").level == Level.LEARNED
    assert store.last_warning is not None
    assert store.last_warning.operation == "set"
    assert "disk full" in store.last_warning.error
    assert "persistence_failed" in events.names()


def test_successful_write_clears_warning(store: ProgressStore, backend: InMemoryBackend) -> None:
    """Test that the warning is reset by the next good write."""
    original_save = backend.save
    backend.save = Mock(side_effect=PersistenceError("locked"))
    store.set("w1", {"level": 1})
    backend.save = original_save

    store.set("w2", {"level": 1})

    assert store.last_warning is None
    assert set(backend.records) == {"w1", "w2"}


def test_failed_load_starts_empty(practice_settings, events) -> None:
    """Test that an unreadable backend does not block the user."""
    backend = Mock()
    backend.load.side_effect = PersistenceError("corrupt")

    store = ProgressStore(backend, practice_settings, events=events)

    assert len(store) == 0
    assert store.last_warning.operation == "load"


class FlakyLoadBackend(InMemoryBackend):
    """In-memory backend whose first loads fail."""

    def __init__(self, records, failures: int = 1):
        super().__init__(records)
        self.failures = failures

    def load(self):
        if self.failures:
            self.failures -= 1
            raise PersistenceError("database locked")
        return super().load()


def test_write_after_failed_load_keeps_stored_records(practice_settings, events) -> None:
    """Test that the first write after a load failure does not drop stored history."""
    stored = {f"s{i:02d}": learned_record() for i in range(50)}
    backend = FlakyLoadBackend(stored)
    store = ProgressStore(backend, practice_settings, events=events)
    assert len(store) == 0

    store.set("new", {"level": 1})

    assert len(backend.records) == 51
    assert backend.records["s07"] == learned_record()
    assert backend.records["new"].level == Level.LEARNING
    assert store.learned_ids() == set(stored)
    assert store.last_warning is None


def test_write_skipped_while_stored_records_unreadable(practice_settings, events) -> None:
    """Test that nothing is saved until the stored records are read back."""
    stored = {f"s{i:02d}": learned_record() for i in range(50)}
    backend = FlakyLoadBackend(stored, failures=2)
    store = ProgressStore(backend, practice_settings, events=events)

    store.set("new", {"level": 1})

    assert backend.save_count == 0
    assert backend.records == stored
    assert store.get("new").level == Level.LEARNING
    assert store.last_warning.operation == "set"

    store.put("other", learning_record(points=2))

    assert len(backend.records) == 52
    assert backend.records["new"].level == Level.LEARNING
    assert backend.records["other"].points == 2
    assert store.last_warning is None


def test_items_at_and_learned_ids(store_factory) -> None:
    """Test level queries over the snapshot."""
    store = store_factory({
        "a": learning_record(),
        "b": learned_record(),
        "c": learned_record(),
    })
    assert store.items_at(Level.LEARNING) == ["a"]
    assert store.learned_ids() == {"b", "c"}


def test_export_import_round_trip(store: ProgressStore) -> None:
    """Test the serialised shape used for import and export."""
    store.set("w1", {"level": 1, "points": 2, "stats": {"lastPracticed": "2024-01-01T00:00:00+00:00"}})
    exported = store.export()

    assert exported["w1"] == {
        "level": 1,
        "points": 2,
        "stats": {"correct": 0, "incorrect": 0, "lastPracticed": "2024-01-01T00:00:00+00:00", "difficulty": 50},
    }

    store.import_records({"w9": {"level": 2, "points": 5}})
    assert store.has("w9")
    assert not store.has("w1")
    assert store.get("w9").stats.difficulty == 50


def test_sql_backend_round_trip(session_factory, practice_settings) -> None:
    """Test that records survive a reload through SQLAlchemy."""
    store = ProgressStore(SqlProgressBackend(session_factory), practice_settings)
    store.set("w1", {"level": 1, "points": 4, "stats": {"correct": 4, "lastPracticed": "2024-02-02T10:00:00+00:00"}})
    store.bulk_set(["w2", "w3"], Level.LEARNED, 5)

    reloaded = ProgressStore(SqlProgressBackend(session_factory), practice_settings)

    assert reloaded.snapshot() == store.snapshot()
    db = session_factory()
    try:
        assert db.query(WordProgress).count() == 3
    finally:
        db.close()


def test_sql_backend_replaces_rows(session_factory, practice_settings) -> None:
    """Test that save replaces the stored set instead of appending."""
    backend = SqlProgressBackend(session_factory)
    backend.save({"a": learning_record(), "b": learning_record()})
    backend.save({"b": learned_record()})

    loaded = backend.load()
    assert set(loaded) == {"b"}
    assert loaded["b"].level == Level.LEARNED


def test_sql_backend_updates_rows_in_place(session_factory) -> None:
    """Test that saving keeps existing rows and their creation time."""
    backend = SqlProgressBackend(session_factory)
    backend.save({"a": learning_record()})
    db = session_factory()
    try:
        created_at = db.get(WordProgress, "a").created_at
    finally:
        db.close()

    backend.save({"a": learned_record(), "b": learning_record()})

    db = session_factory()
    try:
        row = db.get(WordProgress, "a")
        assert row.created_at == created_at
        assert row.level == int(Level.LEARNED)
        assert db.query(WordProgress).count() == 2
    finally:
        db.close()


@pytest.fixture
def failing_db() -> Mock:
    """Session whose commit fails."""
    db = Mock()
    db.query.return_value.all.return_value = []
    db.commit.side_effect = SQLAlchemyError("database is locked")
    return db


def test_sql_backend_rolls_back_failed_save(failing_db) -> None:
    """Test that a failed commit is rolled back and re-raised."""
    backend = SqlProgressBackend(Mock(return_value=failing_db))

    with pytest.raises(PersistenceError, match="database is locked"):
        backend.save({"a": learning_record()})

    failing_db.rollback.assert_called_once()
    failing_db.close.assert_called_once()


def test_sql_backend_load_error(practice_settings, events) -> None:
    db = Mock()
    db.query.side_effect = SQLAlchemyError("no such table")

    store = ProgressStore(SqlProgressBackend(Mock(return_value=db)), practice_settings, events=events)

    assert len(store) == 0
    assert "no such table" in store.last_warning.error
    db.close.assert_called_once()


def test_store_keeps_memory_when_sql_commit_fails(failing_db, practice_settings, events) -> None:
    """Test that a database error surfaces as a warning, not an exception."""
    store = ProgressStore(SqlProgressBackend(Mock(return_value=failing_db)), practice_settings, events=events)

    store.set("w1", {"level": 1, "points": 2})

    assert store.get("w1").points == 2
    assert store.last_warning.operation == "set"
    assert "database is locked" in store.last_warning.error
    failing_db.rollback.assert_called_once()
    assert "persistence_failed" in events.names()
