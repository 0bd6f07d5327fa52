"""Read-only catalog data: items, phrases, the phrase index and priorities."""
import math
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple


@dataclass(frozen=True)
class Item:
    """A vocabulary entry (sign/word)."""
    id: str
    text: str
    description: Optional[str] = None
    topics: Tuple[str, ...] = ()
    media_ref: Optional[str] = None


@dataclass(frozen=True)
class Phrase:
    """An example sentence referencing one or more items."""
    id: str
    text: str
    level_tag: Optional[str] = None
    media_ref: Optional[str] = None
    item_ids: Tuple[str, ...] = ()


class PhraseIndex:
    """Bipartite index between items and the phrases that reference them."""

    def __init__(
        self,
        word_to_phrases: Optional[Mapping[str, Iterable[str]]] = None,
        phrase_to_words: Optional[Mapping[str, Iterable[str]]] = None,
        loaded: bool = True,
    ):
        self._word_to_phrases: Dict[str, FrozenSet[str]] = {
            word_id: frozenset(phrase_ids) for word_id, phrase_ids in (word_to_phrases or {}).items()
        }
        self._phrase_to_words: Dict[str, FrozenSet[str]] = {
            phrase_id: frozenset(word_ids) for phrase_id, word_ids in (phrase_to_words or {}).items()
        }
        self.loaded = loaded

    @classmethod
    def unavailable(cls) -> "PhraseIndex":
        """An index that has not been loaded yet."""
        return cls(loaded=False)

    @classmethod
    def from_phrases(cls, phrases: Iterable[Phrase]) -> "PhraseIndex":
        """Build both directions of the index from phrase records."""
        word_to_phrases: Dict[str, Set[str]] = {}
        phrase_to_words: Dict[str, Set[str]] = {}
        for phrase in phrases:
            phrase_to_words.setdefault(phrase.id, set()).update(phrase.item_ids)
            for item_id in phrase.item_ids:
                word_to_phrases.setdefault(item_id, set()).add(phrase.id)
        return cls(word_to_phrases, phrase_to_words)

    def phrases_for(self, item_id: str) -> FrozenSet[str]:
        return self._word_to_phrases.get(item_id, frozenset())

    def words_for(self, phrase_id: str) -> FrozenSet[str]:
        return self._phrase_to_words.get(phrase_id, frozenset())

    def __len__(self) -> int:
        return len(self._phrase_to_words)


class PriorityTable:
    """Curated learning priority per item; lower values are learned earlier."""

    MISSING = math.inf

    def __init__(self, priorities: Optional[Mapping[str, float]] = None):
        self._priorities: Dict[str, float] = dict(priorities or {})

    def get(self, item_id: str) -> float:
        """Priority of an item, or the worst-priority sentinel when absent."""
        return self._priorities.get(item_id, self.MISSING)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._priorities

    def __len__(self) -> int:
        return len(self._priorities)


@dataclass
class Catalog:
    """Items and phrases available to the engine."""
    items: Dict[str, Item] = field(default_factory=dict)
    phrases: Dict[str, Phrase] = field(default_factory=dict)

    def item_list(self) -> List[Item]:
        """All items in catalog order."""
        return list(self.items.values())

    def get_items(self, item_ids: Iterable[str]) -> List[Item]:
        """Items for the given ids, skipping unknown ids."""
        return [self.items[item_id] for item_id in item_ids if item_id in self.items]
