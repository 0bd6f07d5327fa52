"""Database models for stored progress."""
from sqlalchemy import Column, Float, Integer, String

from tecken.models.base import Base, TimestampMixin
from tecken.models.progress import Level, ProgressRecord, ProgressStats


class WordProgress(Base, TimestampMixin):
    """Stored progress of one item."""

    __tablename__ = "word_progress"

    item_id = Column(String, primary_key=True)
    level = Column(Integer, nullable=False, default=0)  # 0 unmarked, 1 learning, 2 learned
    points = Column(Integer, nullable=False, default=0)  # 0-5
    correct = Column(Integer, nullable=False, default=0)
    incorrect = Column(Integer, nullable=False, default=0)
    last_practiced = Column(String, nullable=False, default="")  # ISO-8601 or empty
    difficulty = Column(Float, nullable=False, default=50)

    def to_record(self) -> ProgressRecord:
        """Convert the row to an in-memory progress record."""
        return ProgressRecord(
            level=Level(self.level),
            points=self.points,
            stats=ProgressStats(
                correct=self.correct,
                incorrect=self.incorrect,
                last_practiced=self.last_practiced or "",
                difficulty=self.difficulty,
            ),
        )

    def apply_record(self, record: ProgressRecord) -> None:
        """Copy an in-memory progress record onto this row."""
        self.level = int(record.level)
        self.points = record.points
        self.correct = record.stats.correct
        self.incorrect = record.stats.incorrect
        self.last_practiced = record.stats.last_practiced
        self.difficulty = record.stats.difficulty

    @classmethod
    def from_record(cls, item_id: str, record: ProgressRecord) -> "WordProgress":
        """Create a row from an in-memory progress record."""
        row = cls(item_id=item_id)
        row.apply_record(record)
        return row
