"""Apply answers and explicit level changes to progress records."""
import logging
from dataclasses import replace
from datetime import UTC, datetime
from enum import Enum
from typing import Callable, Dict, Iterable, Optional

from tecken import monitoring
from tecken.config import PracticeSettings, settings
from tecken.models.progress import Level, ProgressRecord, ProgressStats, format_timestamp
from tecken.monitoring import EventSink, LoggingEventSink
from tecken.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)


class PlacementAnswer(Enum):
    """Answer to "do you know this list?" in the placement guide."""
    YES = "yes"
    PARTLY = "partly"
    NO = "no"


# Level and points given to every item of a list for each placement answer
PLACEMENT_LEVELS = {
    PlacementAnswer.YES: (Level.LEARNED, None),  # None = max points
    PlacementAnswer.PARTLY: (Level.LEARNING, 2),
    PlacementAnswer.NO: (Level.LEARNING, 0),
}


def compute_difficulty(
    correct: int,
    incorrect: int,
    days_since_last_practice: float,
    default: float = 50,
) -> float:
    """Difficulty 0-100, higher is harder.

    Error rate in percent plus a forgetting factor of five per day since the
    last practice, capped at 50. Items without attempts keep the default.
    """
    total = correct + incorrect
    if total == 0:
        return default
    error_rate = incorrect / total
    forgetting = min(50.0, max(0.0, days_since_last_practice) * 5)
    return round(min(100.0, max(0.0, error_rate * 100 + forgetting)))


class ScoringEngine:
    """State machine Unmarked -> Learning -> Learned driven by answers.

    Incorrect answers take ``incorrect_point_delta`` points away (never below
    zero). Learned items are never demoted; answers on them only update stats.
    """

    def __init__(
        self,
        store: ProgressStore,
        practice_settings: Optional[PracticeSettings] = None,
        events: Optional[EventSink] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.settings = practice_settings or settings.practice
        self.events = events or LoggingEventSink()
        self.clock = clock or (lambda: datetime.now(UTC))

    def _updated_stats(self, stats: ProgressStats, correct: bool, now: datetime) -> ProgressStats:
        new_correct = stats.correct + (1 if correct else 0)
        new_incorrect = stats.incorrect + (0 if correct else 1)
        days = 0.0
        if stats.last_practiced:
            days = (now - stats.last_practiced_at()).total_seconds() / 86400
        return ProgressStats(
            correct=new_correct,
            incorrect=new_incorrect,
            last_practiced=format_timestamp(now),
            difficulty=compute_difficulty(new_correct, new_incorrect, days, self.settings.default_difficulty),
        )

    def record_answer(self, item_id: str, correct: bool) -> ProgressRecord:
        """Apply one answer to an item and return its updated record."""
        now = self.clock()
        current = self.store.get(item_id)
        stats = self._updated_stats(current.stats, correct, now)
        max_points = self.settings.max_points

        if current.level == Level.LEARNED:
            updated = replace(current, stats=stats)
        else:
            if correct:
                points = current.points + 1
            else:
                points = max(0, current.points - self.settings.incorrect_point_delta)
            level = Level.LEARNING
            if points >= max_points:
                level = Level.LEARNED
                points = max_points
            updated = ProgressRecord(level=level, points=points, stats=stats)

        self.store.put(item_id, updated)
        monitoring.answers_recorded.labels(outcome="correct" if correct else "incorrect").inc()
        self.events.emit(
            "answer_recorded",
            item_id=item_id,
            correct=correct,
            level=int(updated.level),
            points=updated.points,
        )
        if current.level != Level.LEARNED and updated.level == Level.LEARNED:
            self._learned(item_id, "answers")
        return updated

    def force_to_learned(self, item_id: str) -> ProgressRecord:
        """Mark an item Learned in one step, recording a correct answer."""
        current = self.store.get(item_id)
        stats = self._updated_stats(current.stats, True, self.clock())
        updated = ProgressRecord(level=Level.LEARNED, points=self.settings.max_points, stats=stats)
        self.store.put(item_id, updated)
        monitoring.answers_recorded.labels(outcome="forced").inc()
        if current.level != Level.LEARNED:
            self._learned(item_id, "forced")
        return updated

    def set_level(self, item_id: str, level: Level) -> ProgressRecord:
        """Set an item's level by hand; Learned also fills the points."""
        current = self.store.get(item_id)
        points = self.settings.max_points if level == Level.LEARNED else current.points
        updated = ProgressRecord(
            level=Level(level),
            points=points,
            stats=replace(current.stats, last_practiced=format_timestamp(self.clock())),
        )
        self.store.put(item_id, updated)
        logger.debug(f"Set level of {item_id} to {Level(level).name}")
        return updated

    def bulk_tag(self, item_ids: Iterable[str], level: Level, points: Optional[int] = None) -> None:
        """Give every listed item the same level (and points), keeping history."""
        if points is None and level == Level.LEARNED:
            points = self.settings.max_points
        self.store.bulk_set(list(item_ids), level, points)
        monitoring.bulk_operations.labels(operation="bulk_tag").inc()

    def mark_for_learning(self, item_ids: Iterable[str]) -> int:
        """Move listed items to Learning, skipping ones already Learned.

        Returns the number of items added.
        """
        now = format_timestamp(self.clock())
        updates: Dict[str, ProgressRecord] = {}
        for item_id in dict.fromkeys(item_ids):
            current = self.store.get(item_id)
            if current.level == Level.LEARNED:
                continue
            updates[item_id] = replace(
                current,
                level=Level.LEARNING,
                stats=replace(current.stats, last_practiced=now),
            )
        if updates:
            self.store.bulk_put(updates)
        monitoring.bulk_operations.labels(operation="mark_for_learning").inc()
        logger.info(f"Added {len(updates)} items to learning")
        return len(updates)

    def apply_placement_answer(self, item_ids: Iterable[str], answer: PlacementAnswer) -> None:
        """Tag a whole list according to a placement-guide answer."""
        level, points = PLACEMENT_LEVELS[PlacementAnswer(answer)]
        self.bulk_tag(item_ids, level, points)

    def _learned(self, item_id: str, reason: str) -> None:
        logger.info(f"Item {item_id} is now learned ({reason})")
        monitoring.items_learned.inc()
        self.events.emit("item_learned", item_id=item_id, reason=reason)
