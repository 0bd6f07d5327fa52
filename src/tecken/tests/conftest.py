"""Test configuration."""
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import pytest
from dotenv import load_dotenv

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from tecken.config import PracticeSettings, RankerSettings
from tecken.models.catalog import Catalog, Item, Phrase
from tecken.models.progress import Level, ProgressRecord, ProgressStats
from tecken.monitoring import RecordingEventSink
from tecken.services.progress_store import InMemoryBackend, ProgressStore

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Controllable clock for the scoring engine."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_items(count: int, prefix: str = "w", topics: Iterable[str] = ()) -> List[Item]:
    """Items with distinct texts and zero-padded ids."""
    return [Item(id=f"{prefix}{i:03d}", text=f"{prefix}-word-{i}", topics=tuple(topics)) for i in range(count)]


def learning_record(points: int = 0, last_practiced: str = "") -> ProgressRecord:
    return ProgressRecord(
        level=Level.LEARNING,
        points=points,
        stats=ProgressStats(last_practiced=last_practiced),
    )


def learned_record(last_practiced: str = "") -> ProgressRecord:
    return ProgressRecord(
        level=Level.LEARNED,
        points=5,
        stats=ProgressStats(correct=5, last_practiced=last_practiced),
    )


@pytest.fixture
def events() -> RecordingEventSink:
    """Create an event sink that records decisions."""
    return RecordingEventSink()


@pytest.fixture
def practice_settings() -> PracticeSettings:
    """Practice settings with the documented defaults."""
    return PracticeSettings(
        session_size=10,
        review_count=2,
        max_points=5,
        default_difficulty=50,
        multiple_choice_min_items=10,
        incorrect_point_delta=1,
    )


@pytest.fixture
def ranker_settings() -> RankerSettings:
    return RankerSettings(top_candidates=3, level_tags=["beginner", "intermediate", "advanced"])


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def store_factory(practice_settings, events) -> Callable[..., ProgressStore]:
    """Build a store pre-filled with records."""

    def factory(records: Optional[Dict[str, ProgressRecord]] = None) -> ProgressStore:
        return ProgressStore(InMemoryBackend(records), practice_settings, events=events)

    return factory


@pytest.fixture
def store(backend, practice_settings, events) -> ProgressStore:
    """Create an empty progress store."""
    return ProgressStore(backend, practice_settings, events=events)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog() -> Catalog:
    """A small catalog with phrases referencing its items."""
    items = make_items(30)
    phrases = [
        Phrase(id="p1", text="w0 w2", level_tag="beginner", item_ids=("w000", "w002")),
        Phrase(id="p2", text="w1 w2", level_tag="beginner", item_ids=("w001", "w002")),
        Phrase(id="p3", text="w0 w3", level_tag="intermediate", item_ids=("w000", "w003")),
    ]
    return Catalog(items={item.id: item for item in items}, phrases={phrase.id: phrase for phrase in phrases})
