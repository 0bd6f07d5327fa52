"""Per-item learning progress records."""
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any, Dict, Optional

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class Level(IntEnum):
    """Mastery state of an item."""
    UNMARKED = 0  # Not marked by the user
    LEARNING = 1  # User wants to learn the item
    LEARNED = 2  # Item is learned


@dataclass(frozen=True)
class ProgressStats:
    """Answer history of one item."""
    correct: int = 0
    incorrect: int = 0
    last_practiced: str = ""  # ISO-8601, empty when never practiced
    difficulty: float = 50

    @property
    def attempts(self) -> int:
        return self.correct + self.incorrect

    def last_practiced_at(self) -> datetime:
        """Parse last_practiced; never-practiced items sort as the epoch."""
        return parse_timestamp(self.last_practiced)


@dataclass(frozen=True)
class ProgressRecord:
    """Progress of one item: level, points towards Learned and stats."""
    level: Level = Level.UNMARKED
    points: int = 0
    stats: ProgressStats = field(default_factory=ProgressStats)

    @classmethod
    def default(cls, difficulty: float = 50) -> "ProgressRecord":
        """The implicit record of an item that has never been touched."""
        return cls(stats=ProgressStats(difficulty=difficulty))

    def merged(self, update: Dict[str, Any]) -> "ProgressRecord":
        """Return a copy with a partial update deep-merged in.

        ``update`` uses the serialised shape, e.g.
        ``{"level": 2, "stats": {"correct": 3}}``. Keys that are absent keep
        their current value.
        """
        level = Level(update["level"]) if update.get("level") is not None else self.level
        points = int(update["points"]) if update.get("points") is not None else self.points
        stats = self.stats
        stats_update = update.get("stats") or {}
        if stats_update:
            stats = replace(
                stats,
                correct=int(stats_update.get("correct", stats.correct)),
                incorrect=int(stats_update.get("incorrect", stats.incorrect)),
                last_practiced=stats_update.get("lastPracticed", stats.last_practiced) or "",
                difficulty=stats_update.get("difficulty", stats.difficulty),
            )
        return ProgressRecord(level=level, points=points, stats=stats)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the serialisable nested shape."""
        return {
            "level": int(self.level),
            "points": self.points,
            "stats": {
                "correct": self.stats.correct,
                "incorrect": self.stats.incorrect,
                "lastPracticed": self.stats.last_practiced,
                "difficulty": self.stats.difficulty,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], difficulty: float = 50) -> "ProgressRecord":
        """Create a record from its serialised shape, filling gaps with defaults."""
        return cls.default(difficulty).merged(data)


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 timestamp into an aware datetime.

    Empty or unparsable values map to the epoch so that they sort as the
    earliest possible time.
    """
    if not value:
        return EPOCH
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as ISO-8601."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()
