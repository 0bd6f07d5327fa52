"""Choose which items populate a practice session."""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from tecken import monitoring
from tecken.config import PracticeSettings, settings
from tecken.models.catalog import Item, PriorityTable
from tecken.models.progress import Level
from tecken.monitoring import EventSink, LoggingEventSink
from tecken.services.errors import InsufficientItems
from tecken.services.meaning_groups import MeaningGroupResolver
from tecken.services.progress_store import ProgressStore
from tecken.shuffle import seeded_shuffle, session_seed

logger = logging.getLogger(__name__)


@dataclass
class SessionSelection:
    """Ordered items chosen for one session, plus how they were chosen."""
    items: List[Item]
    seed: int
    learning_count: int = 0
    learned_count: int = 0
    compensated: int = 0  # learned items pulled in to cover missing learning items
    fallback: bool = False  # True when nothing had progress and a plain slice was used
    item_ids: List[str] = field(init=False)

    def __post_init__(self):
        self.item_ids = [item.id for item in self.items]

    def __len__(self) -> int:
        return len(self.items)


class PracticeSelector:
    """Builds session item lists from progress, priority and meaning groups."""

    def __init__(
        self,
        store: ProgressStore,
        priorities: Optional[PriorityTable] = None,
        resolver: Optional[MeaningGroupResolver] = None,
        practice_settings: Optional[PracticeSettings] = None,
        events: Optional[EventSink] = None,
    ):
        self.store = store
        self.priorities = priorities or PriorityTable()
        self.events = events or LoggingEventSink()
        self.resolver = resolver or MeaningGroupResolver(events=self.events)
        self.settings = practice_settings or settings.practice

    def _sort_key(self, item: Item) -> Tuple[int, float, float]:
        """Never practiced first, then most recently practiced, then curated priority."""
        stats = self.store.get(item.id).stats
        if not stats.last_practiced:
            return (0, 0.0, self.priorities.get(item.id))
        return (1, -stats.last_practiced_at().timestamp(), self.priorities.get(item.id))

    def sort_learning(self, items: Iterable[Item]) -> List[Item]:
        return sorted(items, key=self._sort_key)

    def _pools(
        self, items: Sequence[Item], subset: Optional[Iterable[str]], seed: int
    ) -> Tuple[List[Item], List[Item], List[Item]]:
        """Candidate items, sorted learning pool and shuffled learned pool.

        Both pools are collapsed to one item per meaning group before any
        quota is applied; learning items win over learned ones.
        """
        if subset is not None:
            wanted = set(subset)
            items = [item for item in items if item.id in wanted]
        candidates = list({item.id: item for item in items}.values())

        learning = [item for item in candidates if self.store.get(item.id).level == Level.LEARNING]
        learned = [item for item in candidates if self.store.get(item.id).level == Level.LEARNED]
        learning = self.sort_learning(learning)
        learned = seeded_shuffle(learned, seed)

        survivors = {item.id for item in self.resolver.resolve(learning + learned)}
        learning = [item for item in learning if item.id in survivors]
        learned = [item for item in learned if item.id in survivors]
        return candidates, learning, learned

    def select_session(
        self,
        items: Sequence[Item],
        subset: Optional[Iterable[str]] = None,
        seed: Optional[int] = None,
    ) -> SessionSelection:
        """Select up to ``session_size`` items mixing learning and learned ones.

        Learning items fill ``session_size - review_count`` slots, learned
        items fill ``review_count`` slots for reinforcement. A shortfall in one
        pool is covered from the other. With ``subset`` only those item ids are
        considered.
        """
        seed = session_seed() if seed is None else seed
        size = self.settings.session_size
        review_count = min(self.settings.review_count, size)
        min_learning_needed = size - review_count

        candidates, learning, learned = self._pools(items, subset, seed)

        take_learning = min(min_learning_needed, len(learning))
        take_learned = min(review_count, len(learned))

        compensated = 0
        shortfall = min_learning_needed - take_learning
        if shortfall > 0:
            compensated = min(shortfall, len(learned) - take_learned)
            take_learned += compensated
            if compensated:
                logger.debug(f"Learning pool short by {shortfall}, pulled {compensated} learned items")
                self.events.emit(
                    "shortfall_compensated",
                    shortfall=shortfall,
                    compensated=compensated,
                    learning_available=len(learning),
                    learned_available=len(learned),
                )

        while take_learning + take_learned < size:
            learning_left = len(learning) - take_learning
            learned_left = len(learned) - take_learned
            if not learning_left and not learned_left:
                break
            learning_deficit = min_learning_needed - take_learning
            learned_deficit = review_count - take_learned
            if learning_left and (not learned_left or learning_deficit >= learned_deficit):
                take_learning += 1
            else:
                take_learned += 1

        selected = learning[:take_learning] + learned[:take_learned]
        selected = list({item.id: item for item in selected}.values())
        selected = self.resolver.resolve(selected)
        selected = seeded_shuffle(selected, seed)

        fallback = False
        if not selected:
            selected = candidates[:size]
            fallback = True
            logger.info(f"No items with progress, falling back to the first {len(selected)} items")
            self.events.emit("selection_fallback", count=len(selected))

        selection = SessionSelection(
            items=selected,
            seed=seed,
            learning_count=0 if fallback else take_learning,
            learned_count=0 if fallback else take_learned,
            compensated=compensated,
            fallback=fallback,
        )
        monitoring.session_size.observe(len(selection))
        self.events.emit(
            "session_selected",
            mode="mixed",
            item_ids=selection.item_ids,
            learning=selection.learning_count,
            learned=selection.learned_count,
            seed=seed,
        )
        return selection

    def select_multiple_choice(
        self,
        items: Sequence[Item],
        subset: Optional[Iterable[str]] = None,
        seed: Optional[int] = None,
    ) -> Union[SessionSelection, InsufficientItems]:
        """Select items for the multiple-choice mode.

        Uses only learning items when there are enough of them, otherwise
        learning items followed by learned ones. Returns ``InsufficientItems``
        when even the combined pool is too small.
        """
        seed = session_seed() if seed is None else seed
        size = self.settings.session_size
        required = max(self.settings.multiple_choice_min_items, size)

        _, learning, learned = self._pools(items, subset, seed)

        if len(learning) >= required:
            pool = learning
        else:
            pool = learning + learned

        if len(pool) < required:
            logger.info(f"Multiple choice unavailable: {len(pool)} items, {required} required")
            self.events.emit("multiple_choice_unavailable", required=required, available=len(pool))
            return InsufficientItems(mode="multiple_choice", required=required, available=len(pool))

        chosen = pool[:size]
        learning_ids = {item.id for item in learning}
        learning_count = sum(1 for item in chosen if item.id in learning_ids)
        selection = SessionSelection(
            items=chosen,
            seed=seed,
            learning_count=learning_count,
            learned_count=len(chosen) - learning_count,
        )
        monitoring.session_size.observe(len(selection))
        self.events.emit(
            "session_selected",
            mode="multiple_choice",
            item_ids=selection.item_ids,
            learning=selection.learning_count,
            learned=selection.learned_count,
            seed=seed,
        )
        return selection
