"""Recommend the next item to learn by how many phrases it would complete."""
import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, List, Mapping, Optional, Set, Tuple

from tecken.config import RankerSettings, settings
from tecken.models.catalog import Phrase, PhraseIndex
from tecken.monitoring import EventSink, LoggingEventSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NearCompletePhrase:
    """A phrase missing exactly one learned item."""
    phrase_id: str
    text: str
    level_tag: Optional[str]
    item_ids: Tuple[str, ...]
    missing_item_id: str


@dataclass
class Candidate:
    """An unlearned item and the near-complete phrases it would complete."""
    item_id: str
    count: int
    phrases: List[NearCompletePhrase] = field(default_factory=list)


@dataclass
class PhrasePartition:
    """Reachable phrases split by how many of their items are unlearned."""
    complete: Set[str] = field(default_factory=set)
    near_complete: Dict[str, str] = field(default_factory=dict)  # phrase id -> missing item id
    not_near: Set[str] = field(default_factory=set)

    @property
    def total(self) -> int:
        return len(self.complete) + len(self.near_complete) + len(self.not_near)


@dataclass(frozen=True)
class Coverage:
    """How much of the tagged phrase corpus the learned items unlock."""
    learned: int
    tagged_phrases: int
    complete: int
    near_complete: int
    not_near: int

    @property
    def complete_percentage(self) -> float:
        if not self.tagged_phrases:
            return 0.0
        return self.complete / self.tagged_phrases * 100


class SentenceRanker:
    """Ranks unlearned items by the number of near-complete phrases they finish.

    Only phrases reachable from a learned item are visited and each phrase is
    classified once, so the work is proportional to the learned items times
    their phrase fan-out.
    """

    def __init__(
        self,
        index: PhraseIndex,
        phrases: Mapping[str, Phrase],
        ranker_settings: Optional[RankerSettings] = None,
        events: Optional[EventSink] = None,
    ):
        self.index = index
        self.phrases = phrases
        self.settings = ranker_settings or settings.ranker
        self.level_tags = frozenset(self.settings.level_tags)
        self.events = events or LoggingEventSink()

    def _eligible(self, phrase_id: str, untagged: bool) -> bool:
        phrase = self.phrases.get(phrase_id)
        if phrase is None:
            return False
        if untagged:
            return not phrase.level_tag
        return phrase.level_tag in self.level_tags

    def partition(self, learned: AbstractSet[str], untagged: bool = False) -> PhrasePartition:
        """Classify every phrase reachable from a learned item.

        By default only phrases with a recognised level tag are considered;
        ``untagged=True`` classifies the phrases that carry no tag instead.
        """
        result = PhrasePartition()
        if not self.index.loaded:
            logger.warning("Phrase index not loaded, no phrases to rank")
            self.events.emit("phrase_index_unavailable", learned=len(learned))
            return result

        visited: Set[str] = set()
        for item_id in learned:
            for phrase_id in self.index.phrases_for(item_id):
                if phrase_id in visited:
                    continue
                visited.add(phrase_id)
                if not self._eligible(phrase_id, untagged):
                    continue
                unlearned = self.index.words_for(phrase_id) - learned
                if not unlearned:
                    result.complete.add(phrase_id)
                elif len(unlearned) == 1:
                    result.near_complete[phrase_id] = next(iter(unlearned))
                else:
                    result.not_near.add(phrase_id)
        return result

    def _describe(self, phrase_id: str, missing_item_id: str) -> NearCompletePhrase:
        phrase = self.phrases[phrase_id]
        return NearCompletePhrase(
            phrase_id=phrase_id,
            text=phrase.text,
            level_tag=phrase.level_tag,
            item_ids=tuple(sorted(self.index.words_for(phrase_id))),
            missing_item_id=missing_item_id,
        )

    def top_candidates(self, learned: AbstractSet[str], n: Optional[int] = None) -> List[Candidate]:
        """The ``n`` items that would complete the most near-complete phrases.

        Ties are broken by item id.
        """
        n = self.settings.top_candidates if n is None else n
        partition = self.partition(learned)

        by_item: Dict[str, List[str]] = {}
        for phrase_id, missing in partition.near_complete.items():
            by_item.setdefault(missing, []).append(phrase_id)

        ranked = sorted(by_item.items(), key=lambda entry: (-len(entry[1]), entry[0]))[:n]
        candidates = [
            Candidate(
                item_id=item_id,
                count=len(phrase_ids),
                phrases=[self._describe(phrase_id, item_id) for phrase_id in sorted(phrase_ids)],
            )
            for item_id, phrase_ids in ranked
        ]
        self.events.emit(
            "candidates_ranked",
            candidates=[(candidate.item_id, candidate.count) for candidate in candidates],
            complete=len(partition.complete),
            near_complete=len(partition.near_complete),
        )
        return candidates

    def phrases_completed_by(self, learned: AbstractSet[str], item_id: str) -> List[NearCompletePhrase]:
        """Near-complete phrases whose only missing item is ``item_id``."""
        partition = self.partition(learned)
        return [
            self._describe(phrase_id, missing)
            for phrase_id, missing in sorted(partition.near_complete.items())
            if missing == item_id
        ]

    def complete_phrases(self, learned: AbstractSet[str]) -> List[Phrase]:
        """Phrases the user can fully understand."""
        partition = self.partition(learned)
        return [self.phrases[phrase_id] for phrase_id in sorted(partition.complete)]

    def untagged_phrases(self, learned: AbstractSet[str]) -> PhrasePartition:
        """Partition of the reachable phrases that carry no level tag."""
        return self.partition(learned, untagged=True)

    def coverage(self, learned: AbstractSet[str]) -> Coverage:
        partition = self.partition(learned)
        tagged = sum(1 for phrase in self.phrases.values() if phrase.level_tag in self.level_tags)
        return Coverage(
            learned=len(learned),
            tagged_phrases=tagged,
            complete=len(partition.complete),
            near_complete=len(partition.near_complete),
            not_near=len(partition.not_near),
        )
