"""Collapse items that share a meaning so a session never repeats a concept."""
import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from tecken.models.catalog import Item
from tecken.monitoring import EventSink, LoggingEventSink

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
# Homonym markers such as "bank (1)" in catalog display text
_VARIANT_SUFFIX = re.compile(r"\s+\(\d+\)$")


def normalize_text(text: str) -> str:
    """Canonical form of a display text used as a variant-index key."""
    text = unicodedata.normalize("NFC", text).casefold().strip()
    text = _VARIANT_SUFFIX.sub("", text)
    return _WHITESPACE.sub(" ", text)


@dataclass(frozen=True)
class VariantGroup:
    """Items denoting the same underlying concept."""
    key: str
    members: Tuple[str, ...]


class VariantIndex:
    """Lookup from normalised text (and member id) to its variant group."""

    def __init__(self, groups: Optional[Mapping[str, Iterable[str]]] = None, loaded: bool = True):
        self.loaded = loaded
        self._by_text: Dict[str, VariantGroup] = {}
        self._by_member: Dict[str, VariantGroup] = {}
        for text, members in (groups or {}).items():
            key = normalize_text(text)
            group = VariantGroup(key=key, members=tuple(dict.fromkeys(members)))
            self._by_text[key] = group
            for member in group.members:
                self._by_member.setdefault(member, group)

    @classmethod
    def unavailable(cls) -> "VariantIndex":
        """An index that has not been loaded yet."""
        return cls(loaded=False)

    @classmethod
    def from_items(cls, items: Iterable[Item]) -> "VariantIndex":
        """Group items whose display texts normalise to the same key."""
        groups: Dict[str, List[str]] = {}
        for item in items:
            groups.setdefault(normalize_text(item.text), []).append(item.id)
        return cls({text: members for text, members in groups.items() if len(members) > 1})

    def group_for(self, item: Item) -> Optional[VariantGroup]:
        """Variant group of an item, if it belongs to one with several members."""
        group = self._by_text.get(normalize_text(item.text)) or self._by_member.get(item.id)
        if group is None or len(group.members) < 2:
            return None
        return group

    def __len__(self) -> int:
        return len(self._by_text)


class MeaningGroupResolver:
    """Keeps one representative per meaning group, first seen wins."""

    def __init__(self, index: Optional[VariantIndex] = None, events: Optional[EventSink] = None):
        self.index = index or VariantIndex.unavailable()
        self.events = events or LoggingEventSink()

    def resolve(self, items: Sequence[Item]) -> List[Item]:
        """Drop items whose meaning group is already represented.

        Surviving items keep their input order; the input is not modified.
        Without a loaded index the items pass through unchanged.
        """
        if not self.index.loaded:
            logger.warning("Variant index not loaded, skipping meaning-group deduplication")
            self.events.emit("variant_index_unavailable", count=len(items))
            return list(items)

        seen_groups = set()
        resolved: List[Item] = []
        dropped: List[str] = []
        for item in items:
            group = self.index.group_for(item)
            if group is None:
                resolved.append(item)
                continue
            if group.key in seen_groups:
                dropped.append(item.id)
                continue
            seen_groups.add(group.key)
            resolved.append(item)

        if dropped:
            logger.debug(f"Collapsed {len(dropped)} synonymous items: {dropped}")
            self.events.emit("meaning_groups_collapsed", dropped=dropped, kept=[item.id for item in resolved])
        return resolved
