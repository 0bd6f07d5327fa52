"""Word lists, catalog search and progress summaries over sets of items."""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Union

from tecken.models.catalog import Catalog, Item
from tecken.models.progress import EPOCH, Level, parse_timestamp
from tecken.services.progress_store import ProgressStore


@dataclass(frozen=True)
class PredefinedWordList:
    """A curated list of explicit item ids."""
    id: str
    name: str
    description: str
    item_ids: Sequence[str]


@dataclass(frozen=True)
class DynamicWordList:
    """All items carrying a topic."""
    id: str
    name: str
    description: str
    topic: str


@dataclass
class CustomWordList:
    """A list the user put together."""
    id: str
    name: str
    item_ids: List[str]
    description: str = "Custom word list"
    created_at: Optional[str] = None


WordList = Union[PredefinedWordList, DynamicWordList, CustomWordList]


class ListSort(Enum):
    """Orderings offered for custom word lists."""
    ALPHABETICAL = "alphabetical"
    LAST_PRACTICED = "lastPracticed"
    RECENT = "recent"

TOPIC_LISTS = [
    DynamicWordList("handalfabetet", "Handalfabetet", 'All words with the topic "Handalfabetet"', "Handalfabetet"),
    DynamicWordList("siffror", "Siffror", 'All words with the topic "Siffror"', "Siffror"),
    DynamicWordList("bildelar", "Bildelar", 'All words with the topic "Bildelar"', "Bildelar"),
    DynamicWordList("kläder", "Kläder", 'All words with the topic "Kläder"', "Kläder"),
    DynamicWordList("mat", "Mat", 'All words with the topic "Mat"', "Mat"),
]


@dataclass
class ListTrainingStats:
    """Practice summary for one word list."""
    word_count: int
    correct: int = 0
    attempts: int = 0
    last_practiced: Optional[datetime] = None
    learned: int = 0


def resolve_list_items(word_list: WordList, catalog: Catalog) -> List[Item]:
    """Items of a list; unknown ids are skipped."""
    if isinstance(word_list, DynamicWordList):
        return items_by_topic(catalog, word_list.topic)
    return catalog.get_items(word_list.item_ids)


def merge_lists(word_lists: Iterable[WordList], catalog: Catalog) -> List[Item]:
    """Items of several lists, without duplicates, in first-seen order."""
    merged = {}
    for word_list in word_lists:
        for item in resolve_list_items(word_list, catalog):
            merged.setdefault(item.id, item)
    return list(merged.values())


def items_by_topic(catalog: Catalog, topic: str) -> List[Item]:
    return [item for item in catalog.items.values() if topic in item.topics]


def all_topics(catalog: Catalog) -> List[str]:
    """Every topic used in the catalog, sorted."""
    return sorted({topic for item in catalog.items.values() for topic in item.topics})


def search_items(catalog: Catalog, term: str, limit: Optional[int] = None) -> List[Item]:
    """Case-insensitive substring search over item texts.

    Exact matches come first, then prefix matches, then shorter texts, then
    alphabetical order. Terms shorter than two characters match nothing.
    """
    term = term.lower().strip()
    if len(term) < 2:
        return []

    def rank(item: Item):
        text = item.text.lower()
        return (text != term, not text.startswith(term), len(text), text)

    matches = sorted((item for item in catalog.items.values() if term in item.text.lower()), key=rank)
    return matches[:limit] if limit else matches


def learned_percentage(item_ids: Sequence[str], store: ProgressStore) -> float:
    """Share of the given items that are Learned, in percent."""
    if not item_ids:
        return 0.0
    learned = sum(1 for item_id in item_ids if store.get(item_id).level == Level.LEARNED)
    return learned / len(item_ids) * 100


def list_training_stats(word_list: WordList, catalog: Catalog, store: ProgressStore) -> ListTrainingStats:
    """Answer totals, learned count and last practice time for a list."""
    items = resolve_list_items(word_list, catalog)
    stats = ListTrainingStats(word_count=len(items))
    for item in items:
        if not store.has(item.id):
            continue
        record = store.get(item.id)
        stats.correct += record.stats.correct
        stats.attempts += record.stats.attempts
        if record.level == Level.LEARNED:
            stats.learned += 1
        practiced = record.stats.last_practiced_at()
        if practiced > EPOCH and (stats.last_practiced is None or practiced > stats.last_practiced):
            stats.last_practiced = practiced
    return stats


def sort_custom_lists(
    lists: Iterable[CustomWordList],
    by: Union[ListSort, str],
    catalog: Catalog,
    store: ProgressStore,
) -> List[CustomWordList]:
    """Order custom lists by name, by last practice or by creation time.

    By last practice the newest come first and lists never practiced go last.
    By creation time the newest come first.
    """
    by = ListSort(by)
    lists = list(lists)
    if by == ListSort.ALPHABETICAL:
        return sorted(lists, key=lambda word_list: word_list.name.casefold())
    if by == ListSort.LAST_PRACTICED:
        practiced = {
            word_list.id: list_training_stats(word_list, catalog, store).last_practiced for word_list in lists
        }
        return sorted(
            lists,
            key=lambda word_list: (
                practiced[word_list.id] is None,
                -(practiced[word_list.id] or EPOCH).timestamp(),
            ),
        )
    return sorted(lists, key=lambda word_list: parse_timestamp(word_list.created_at), reverse=True)


def shared_list_items(item_ids: Iterable[str], catalog: Catalog) -> List[str]:
    """Ids of a shared list that exist in the catalog, in their given order."""
    return [item_id for item_id in dict.fromkeys(item_ids) if item_id in catalog.items]
