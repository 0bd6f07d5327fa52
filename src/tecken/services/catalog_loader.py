"""Load the item and phrase databases and the lookup tables built from them."""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from tecken.models.catalog import Catalog, Item, Phrase, PhraseIndex, PriorityTable
from tecken.services.meaning_groups import VariantIndex

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _read_json(path: PathLike, what: str) -> Optional[Any]:
    """Read a JSON file, logging and returning None when it cannot be used."""
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        logger.error(f"Could not load {what}: {path} not found")
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not load {what} from {path}: {e}")
    return None


def _first(raw: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if raw.get(key) not in (None, ""):
            return raw[key]
    return default


def item_from_dict(item_id: str, raw: Dict[str, Any]) -> Item:
    """Build an item from a word-database entry (English or Swedish keys)."""
    topics = _first(raw, "topics", "ämne", default=[]) or []
    if isinstance(topics, str):
        topics = [topics]
    return Item(
        id=str(raw.get("id", item_id)),
        text=str(_first(raw, "text", "ord", default="")),
        description=_first(raw, "description", "beskrivning"),
        topics=tuple(topics),
        media_ref=_first(raw, "media_ref", "video_url"),
    )


def phrase_from_dict(phrase_id: str, raw: Dict[str, Any]) -> Phrase:
    """Build a phrase from a phrase-database entry (English or Swedish keys)."""
    item_ids = _first(raw, "item_ids", "ord_ids", default=None)
    if item_ids is None:
        single = _first(raw, "item_id", "ord_id")
        item_ids = [single] if single is not None else []
    return Phrase(
        id=str(raw.get("id", phrase_id)),
        text=str(_first(raw, "text", "fras", default="")),
        level_tag=_first(raw, "level_tag", "level", "nivå"),
        media_ref=_first(raw, "media_ref", "video_url"),
        item_ids=tuple(str(item_id) for item_id in item_ids),
    )


def load_items(path: PathLike) -> Dict[str, Item]:
    """Load the word database; empty when it cannot be read."""
    data = _read_json(path, "word database")
    if not isinstance(data, dict):
        return {}
    items = {str(item_id): item_from_dict(str(item_id), raw) for item_id, raw in data.items()}
    logger.info(f"Loaded {len(items)} items from {path}")
    return items


def load_phrases(path: PathLike) -> Dict[str, Phrase]:
    """Load the phrase database; empty when it cannot be read."""
    data = _read_json(path, "phrase database")
    if not isinstance(data, dict):
        return {}
    phrases = {str(phrase_id): phrase_from_dict(str(phrase_id), raw) for phrase_id, raw in data.items()}
    logger.info(f"Loaded {len(phrases)} phrases from {path}")
    return phrases


def load_catalog(words_file: PathLike, phrases_file: PathLike) -> Catalog:
    return Catalog(items=load_items(words_file), phrases=load_phrases(phrases_file))


def build_phrase_index(catalog: Catalog) -> PhraseIndex:
    """Index phrases by item; unavailable when there are no phrases."""
    if not catalog.phrases:
        return PhraseIndex.unavailable()
    return PhraseIndex.from_phrases(catalog.phrases.values())


def load_priorities(path: PathLike) -> PriorityTable:
    """Load the curated priority table; empty when it cannot be read."""
    data = _read_json(path, "priority table")
    if not isinstance(data, dict):
        return PriorityTable()
    priorities = {}
    for item_id, value in data.items():
        try:
            priorities[str(item_id)] = float(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid priority {value!r} for item {item_id}")
    return PriorityTable(priorities)


def load_variant_index(path: Optional[PathLike], catalog: Optional[Catalog] = None) -> VariantIndex:
    """Load the variant index, deriving one from item texts when no file exists.

    Entries look like ``{"text": {"members": ["id1", "id2"]}}`` or
    ``{"text": ["id1", "id2"]}``.
    """
    data = _read_json(path, "variant index") if path is not None and Path(path).exists() else None
    if isinstance(data, dict):
        groups = {}
        for text, entry in data.items():
            members = entry.get("members", []) if isinstance(entry, dict) else entry
            groups[text] = [str(member) for member in members or []]
        return VariantIndex(groups)
    if catalog is not None and catalog.items:
        logger.info("No variant index file, deriving groups from item texts")
        return VariantIndex.from_items(catalog.items.values())
    return VariantIndex.unavailable()
