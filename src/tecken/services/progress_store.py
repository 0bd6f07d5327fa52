"""Progress store: one progress record per item, persisted on every mutation."""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tecken import monitoring
from tecken.config import PracticeSettings, settings
from tecken.models.models import WordProgress
from tecken.models.progress import Level, ProgressRecord
from tecken.monitoring import EventSink, LoggingEventSink
from tecken.services.errors import PersistenceError, PersistenceWarning

logger = logging.getLogger(__name__)


class ProgressBackend(Protocol):
    """Key-value persistence for progress records."""

    def load(self) -> Dict[str, ProgressRecord]:
        ...

    def save(self, records: Dict[str, ProgressRecord]) -> None:
        ...


class InMemoryBackend:
    """Backend that keeps the last saved snapshot in memory."""

    def __init__(self, records: Optional[Dict[str, ProgressRecord]] = None):
        self.records: Dict[str, ProgressRecord] = dict(records or {})
        self.save_count = 0

    def load(self) -> Dict[str, ProgressRecord]:
        return dict(self.records)

    def save(self, records: Dict[str, ProgressRecord]) -> None:
        self.records = dict(records)
        self.save_count += 1


class SqlProgressBackend:
    """Backend storing progress rows through SQLAlchemy."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def load(self) -> Dict[str, ProgressRecord]:
        db = self.session_factory()
        try:
            rows = db.query(WordProgress).all()
            return {row.item_id: row.to_record() for row in rows}
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load progress: {e}") from e
        finally:
            db.close()

    def save(self, records: Dict[str, ProgressRecord]) -> None:
        """Make the stored rows match ``records`` in a single transaction.

        Existing rows are updated in place, new ids are inserted and rows for
        ids no longer present are deleted.
        """
        db = self.session_factory()
        try:
            existing = {row.item_id: row for row in db.query(WordProgress).all()}
            for item_id, record in records.items():
                row = existing.pop(item_id, None)
                if row is None:
                    db.add(WordProgress.from_record(item_id, record))
                else:
                    row.apply_record(record)
            for row in existing.values():
                db.delete(row)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Could not save progress: {e}") from e
        finally:
            db.close()


class ProgressStore:
    """Single owner of per-item progress.

    Absent items read as the default record; callers never build defaults
    themselves. Every mutation builds a new snapshot, swaps it in and then
    persists the whole store, so readers never observe a partially applied
    batch. A failed write leaves the in-memory snapshot authoritative and is
    reported through ``last_warning``. After a failed load nothing is saved
    until the stored records have been read back.
    """

    def __init__(
        self,
        backend: ProgressBackend,
        practice_settings: Optional[PracticeSettings] = None,
        events: Optional[EventSink] = None,
    ):
        self.backend = backend
        self.settings = practice_settings or settings.practice
        self.events = events or LoggingEventSink()
        self.last_warning: Optional[PersistenceWarning] = None
        self._records: Dict[str, ProgressRecord] = {}
        self._loaded = False
        self.reload()

    def reload(self) -> None:
        """Replace the in-memory snapshot with the backend contents."""
        try:
            self._records = dict(self.backend.load())
        except PersistenceError as e:
            logger.error(f"Loading progress failed, starting empty: {e}")
            self._records = {}
            self._loaded = False
            self._warn("load", e)
        else:
            self._loaded = True
        logger.debug(f"Loaded progress for {len(self._records)} items")

    def _ensure_loaded(self) -> bool:
        """Retry a failed load, laying changes made since on top of the stored records."""
        if self._loaded:
            return True
        try:
            stored = self.backend.load()
        except PersistenceError as e:
            logger.warning(f"Stored progress still unavailable: {e}")
            return False
        self._records = {**stored, **self._records}
        self._loaded = True
        logger.info(f"Loaded progress for {len(stored)} items after an earlier failure")
        return True

    def default_record(self) -> ProgressRecord:
        return ProgressRecord.default(self.settings.default_difficulty)

    def get(self, item_id: str) -> ProgressRecord:
        """Record for an item, or the default record if it was never touched."""
        record = self._records.get(item_id)
        return record if record is not None else self.default_record()

    def has(self, item_id: str) -> bool:
        return item_id in self._records

    def set(self, item_id: str, update: Dict[str, Any]) -> None:
        """Deep-merge a partial update into an item's record and persist."""
        self._ensure_loaded()
        records = dict(self._records)
        records[item_id] = self.get(item_id).merged(update)
        self._commit(records, "set")

    def put(self, item_id: str, record: ProgressRecord) -> None:
        """Replace an item's record and persist."""
        self._ensure_loaded()
        records = dict(self._records)
        records[item_id] = record
        self._commit(records, "put")

    def bulk_set(self, item_ids: Iterable[str], level: Level, points: Optional[int] = None) -> None:
        """Apply the same level (and points) to every id as one transaction.

        Answer history is left untouched.
        """
        self._ensure_loaded()
        update: Dict[str, Any] = {"level": int(level)}
        if points is not None:
            update["points"] = points
        records = dict(self._records)
        count = 0
        for item_id in dict.fromkeys(item_ids):
            records[item_id] = self.get(item_id).merged(update)
            count += 1
        logger.info(f"Bulk set {count} items to level {Level(level).name}")
        self._commit(records, "bulk_set")

    def bulk_put(self, records_by_id: Dict[str, ProgressRecord]) -> None:
        """Replace several records as one transaction."""
        self._ensure_loaded()
        records = dict(self._records)
        records.update(records_by_id)
        self._commit(records, "bulk_put")

    def items_at(self, level: Level) -> List[str]:
        """Ids of all items currently at a level, in insertion order."""
        return [item_id for item_id, record in self._records.items() if record.level == level]

    def learned_ids(self) -> Set[str]:
        return set(self.items_at(Level.LEARNED))

    def snapshot(self) -> Dict[str, ProgressRecord]:
        """A copy of all stored records."""
        return dict(self._records)

    def export(self) -> Dict[str, Dict[str, Any]]:
        """All records in their serialisable shape."""
        return {item_id: record.to_dict() for item_id, record in self._records.items()}

    def import_records(self, data: Dict[str, Dict[str, Any]]) -> None:
        """Replace the whole store with serialised records.

        This is a full reset, so it is saved even if the stored records could
        not be loaded.
        """
        records = {
            item_id: ProgressRecord.from_dict(raw, self.settings.default_difficulty)
            for item_id, raw in data.items()
        }
        self._loaded = True
        self._commit(records, "import")

    def __len__(self) -> int:
        return len(self._records)

    def _commit(self, records: Dict[str, ProgressRecord], operation: str) -> None:
        self._records = records
        if not self._loaded:
            # save() replaces every stored record
            logger.warning(f"Not saving progress during {operation}: stored records were never loaded")
            self._warn(operation, PersistenceError("Stored progress not loaded, save skipped"))
            return
        try:
            self.backend.save(records)
        except PersistenceError as e:
            logger.warning(f"Persisting progress failed during {operation}: {e}")
            self._warn(operation, e)
        else:
            self.last_warning = None

    def _warn(self, operation: str, exc: Exception) -> None:
        self.last_warning = PersistenceWarning.from_exception(operation, exc)
        monitoring.persistence_failures.labels(error_type=type(exc).__name__).inc()
        self.events.emit("persistence_failed", operation=operation, error=str(exc))
