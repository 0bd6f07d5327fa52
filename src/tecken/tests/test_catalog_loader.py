"""Tests for catalog loading."""
import json

import pytest

from tecken.models.catalog import Item
from tecken.services.catalog_loader import (
    build_phrase_index,
    item_from_dict,
    load_catalog,
    load_items,
    load_phrases,
    load_priorities,
    load_variant_index,
)


@pytest.fixture
def catalog_files(tmp_path):
    """Write Swedish-keyed word and phrase databases."""
    words = {
        "1": {"id": "1", "ord": "Hej", "beskrivning": "Vinka", "ämne": ["Hälsningar"], "video_url": "hej.mp4"},
        "2": {"id": "2", "ord": "Bil", "ämne": "Fordon"},
        "3": {"id": "3", "ord": "bil (2)"},
    }
    phrases = {
        "f1": {"id": "f1", "fras": "Hej bil", "ord_ids": ["1", "2"], "nivå": "beginner"},
        "f2": {"id": "f2", "fras": "Hej", "ord_id": "1"},
    }
    words_file = tmp_path / "words.json"
    phrases_file = tmp_path / "phrases.json"
    words_file.write_text(json.dumps(words, ensure_ascii=False), encoding="utf-8")
    phrases_file.write_text(json.dumps(phrases, ensure_ascii=False), encoding="utf-8")
    return words_file, phrases_file


def test_load_catalog_with_swedish_keys(catalog_files) -> None:
    """Test field mapping from the Swedish database format."""
    catalog = load_catalog(*catalog_files)

    assert catalog.items["1"] == Item(
        id="1", text="Hej", description="Vinka", topics=("Hälsningar",), media_ref="hej.mp4"
    )
    assert catalog.items["2"].topics == ("Fordon",)
    assert catalog.phrases["f1"].item_ids == ("1", "2")
    assert catalog.phrases["f1"].level_tag == "beginner"
    assert catalog.phrases["f2"].item_ids == ("1",)
    assert catalog.phrases["f2"].level_tag is None


def test_build_phrase_index(catalog_files) -> None:
    index = build_phrase_index(load_catalog(*catalog_files))

    assert index.loaded
    assert index.phrases_for("1") == {"f1", "f2"}
    assert index.words_for("f1") == {"1", "2"}
    assert index.phrases_for("3") == frozenset()


def test_missing_files_load_empty(tmp_path) -> None:
    """Test that absent databases give an empty catalog, not an error."""
    catalog = load_catalog(tmp_path / "nope.json", tmp_path / "nada.json")

    assert catalog.items == {}
    assert catalog.phrases == {}
    assert not build_phrase_index(catalog).loaded


def test_invalid_json_loads_empty(tmp_path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert load_items(broken) == {}
    assert load_phrases(broken) == {}


def test_english_keys_take_precedence() -> None:
    item = item_from_dict("9", {"text": "House", "ord": "Hus", "topics": ["Hem"]})
    assert item.id == "9"
    assert item.text == "House"
    assert item.topics == ("Hem",)


def test_load_priorities_skips_invalid(tmp_path) -> None:
    path = tmp_path / "priorities.json"
    path.write_text(json.dumps({"1": 3, "2": "7.5", "3": "high"}), encoding="utf-8")

    priorities = load_priorities(path)

    assert priorities.get("1") == 3
    assert priorities.get("2") == 7.5
    assert "3" not in priorities
    assert priorities.get("3") == float("inf")


def test_load_variant_index_from_file(tmp_path) -> None:
    """Test both accepted entry shapes."""
    path = tmp_path / "variants.json"
    path.write_text(json.dumps({"bil": {"members": ["2", "3"]}, "hej": ["1", "4"]}), encoding="utf-8")

    index = load_variant_index(path)

    assert index.loaded
    assert index.group_for(Item(id="3", text="whatever")).members == ("2", "3")
    assert index.group_for(Item(id="x", text="Hej")).members == ("1", "4")


def test_variant_index_derived_without_file(tmp_path, catalog_files) -> None:
    catalog = load_catalog(*catalog_files)

    index = load_variant_index(tmp_path / "missing.json", catalog)

    assert index.group_for(catalog.items["2"]).members == ("2", "3")


def test_variant_index_unavailable_without_anything(tmp_path) -> None:
    assert not load_variant_index(tmp_path / "missing.json").loaded
    assert not load_variant_index(None).loaded
