"""Service the UI layer calls to run practice sessions and query recommendations."""
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional, Union

from tecken import monitoring
from tecken.config import Settings, settings as default_settings
from tecken.models.catalog import Catalog, Item, PhraseIndex, PriorityTable
from tecken.models.progress import Level, ProgressRecord
from tecken.monitoring import EventSink, LoggingEventSink
from tecken.services.errors import InsufficientItems
from tecken.services.meaning_groups import MeaningGroupResolver, VariantIndex
from tecken.services.practice_selector import PracticeSelector
from tecken.services.progress_store import ProgressStore
from tecken.services.scoring import PlacementAnswer, ScoringEngine
from tecken.services.sentence_ranker import Candidate, Coverage, NearCompletePhrase, SentenceRanker
from tecken.services.word_lists import WordList, items_by_topic, merge_lists

logger = logging.getLogger(__name__)


class SessionMode(Enum):
    """Kinds of practice session."""
    REINFORCEMENT_MIXED = "mixed"
    MULTIPLE_CHOICE = "multiple_choice"
    CUSTOM_LIST = "custom_list"


@dataclass
class SessionFilters:
    """Restricts a session to part of the catalog."""
    item_ids: Optional[List[str]] = None
    word_lists: Optional[List[WordList]] = None
    topic: Optional[str] = None


@dataclass(frozen=True)
class AnswerLogEntry:
    """One answer given during a session."""
    item_id: str
    was_correct: bool
    timestamp: datetime


@dataclass
class Session:
    """One practice run: the chosen entries and the answers given so far.

    Entries are always catalog items. Phrases are only used for
    recommendations, so no session is built from phrases and every answer
    refers to an item id.
    """
    mode: SessionMode
    entries: List[Item]
    seed: int
    started_at: datetime
    answers: List[AnswerLogEntry] = field(default_factory=list)
    current_index: int = 0

    @property
    def current(self) -> Optional[Item]:
        if self.current_index < len(self.entries):
            return self.entries[self.current_index]
        return None

    @property
    def finished(self) -> bool:
        return self.current_index >= len(self.entries)

    @property
    def correct_count(self) -> int:
        return sum(1 for answer in self.answers if answer.was_correct)

    def __len__(self) -> int:
        return len(self.entries)


class PracticeService:
    """Wires the progress store, selector, scoring engine and ranker together."""

    def __init__(
        self,
        catalog: Catalog,
        store: ProgressStore,
        priorities: Optional[PriorityTable] = None,
        variant_index: Optional[VariantIndex] = None,
        phrase_index: Optional[PhraseIndex] = None,
        config: Optional[Settings] = None,
        events: Optional[EventSink] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.catalog = catalog
        self.store = store
        self.config = config or default_settings
        self.events = events or LoggingEventSink()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.selector = PracticeSelector(
            store,
            priorities=priorities,
            resolver=MeaningGroupResolver(variant_index, events=self.events),
            practice_settings=self.config.practice,
            events=self.events,
        )
        self.scoring = ScoringEngine(store, self.config.practice, events=self.events, clock=self.clock)
        self.ranker = SentenceRanker(
            phrase_index or PhraseIndex.unavailable(),
            catalog.phrases,
            self.config.ranker,
            events=self.events,
        )
        self.active_session: Optional[Session] = None

    def _subset(self, filters: Optional[SessionFilters]) -> Optional[List[str]]:
        if filters is None:
            return None
        subset: List[str] = []
        if filters.item_ids:
            subset.extend(filters.item_ids)
        if filters.word_lists:
            subset.extend(item.id for item in merge_lists(filters.word_lists, self.catalog))
        if filters.topic:
            subset.extend(item.id for item in items_by_topic(self.catalog, filters.topic))
        if not (filters.item_ids or filters.word_lists or filters.topic):
            return None
        return list(dict.fromkeys(subset))

    def start_session(
        self,
        mode: Union[SessionMode, str],
        filters: Optional[SessionFilters] = None,
        seed: Optional[int] = None,
    ) -> Union[Session, InsufficientItems]:
        """Start a session, replacing any active one.

        Multiple choice returns ``InsufficientItems`` instead of a short
        session when too few items are marked.
        """
        mode = SessionMode(mode)
        subset = self._subset(filters)
        items = self.catalog.item_list()

        if mode == SessionMode.CUSTOM_LIST and subset is None:
            raise ValueError("custom_list sessions need item ids, word lists or a topic")

        if mode == SessionMode.MULTIPLE_CHOICE:
            selection = self.selector.select_multiple_choice(items, subset, seed)
            if isinstance(selection, InsufficientItems):
                monitoring.sessions_unavailable.labels(mode=mode.value).inc()
                return selection
        else:
            selection = self.selector.select_session(items, subset, seed)

        session = Session(
            mode=mode,
            entries=selection.items,
            seed=selection.seed,
            started_at=self.clock(),
        )
        self.active_session = session
        monitoring.sessions_started.labels(mode=mode.value).inc()
        logger.info(f"Started {mode.value} session with {len(session)} items")
        return session

    def record_answer(self, session: Session, item_id: str, correct: bool) -> ProgressRecord:
        """Log an answer in the session and apply it to the item's progress."""
        updated = self.scoring.record_answer(item_id, correct)
        session.answers.append(AnswerLogEntry(item_id=item_id, was_correct=correct, timestamp=self.clock()))
        current = session.current
        if current is not None and current.id == item_id:
            session.current_index += 1
        return updated

    def end_session(self) -> Optional[Session]:
        """Abandon or finish the active session."""
        session, self.active_session = self.active_session, None
        if session is not None:
            logger.info(
                f"Ended {session.mode.value} session: {session.correct_count}/{len(session.answers)} correct"
            )
        return session

    def force_to_learned(self, item_id: str) -> ProgressRecord:
        return self.scoring.force_to_learned(item_id)

    def bulk_tag(self, item_ids: Iterable[str], level: Level, points: Optional[int] = None) -> None:
        self.scoring.bulk_tag(item_ids, level, points)

    def mark_for_learning(self, item_ids: Iterable[str]) -> int:
        return self.scoring.mark_for_learning(item_ids)

    def apply_placement_answer(self, word_list: WordList, answer: PlacementAnswer) -> int:
        """Tag every item of a list from a placement-guide answer."""
        item_ids = [item.id for item in merge_lists([word_list], self.catalog)]
        self.scoring.apply_placement_answer(item_ids, answer)
        return len(item_ids)

    def get_top_candidates(self, n: Optional[int] = None) -> List[Candidate]:
        """Unlearned items that would complete the most phrases."""
        return self.ranker.top_candidates(self.store.learned_ids(), n)

    def phrases_completed_by(self, item_id: str) -> List[NearCompletePhrase]:
        return self.ranker.phrases_completed_by(self.store.learned_ids(), item_id)

    def coverage(self) -> Coverage:
        """Share of tagged phrases the learned items already complete."""
        return self.ranker.coverage(self.store.learned_ids())
