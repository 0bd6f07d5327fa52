"""Tests for meaning-group resolution."""
import pytest
from faker import Faker

from tecken.models.catalog import Item
from tecken.services.meaning_groups import MeaningGroupResolver, VariantIndex, normalize_text

fake = Faker()


@pytest.fixture
def items() -> list[Item]:
    return [
        Item(id="1", text="Bil"),
        Item(id="2", text="hus"),
        Item(id="3", text="bil (2)"),
        Item(id="4", text="auto"),
        Item(id="5", text="katt"),
    ]


@pytest.fixture
def index() -> VariantIndex:
    # "auto" is a spelling variant of "bil" listed by id
    return VariantIndex({"bil": ["1", "3", "4"], "katt": ["5"]})


def test_normalize_text() -> None:
    """Test canonical text keys."""
    assert normalize_text("  Bil  ") == "bil"
    assert normalize_text("bil (2)") == "bil"
    assert normalize_text("god   morgon") == "god morgon"
    assert normalize_text("5") == "5"


def test_resolve_keeps_first_of_each_group(items, index, events) -> None:
    """Test one representative per group, first seen by input order."""
    resolver = MeaningGroupResolver(index, events=events)

    resolved = resolver.resolve(items)

    assert [item.id for item in resolved] == ["1", "2", "5"]
    assert events.of("meaning_groups_collapsed")[0].data["dropped"] == ["3", "4"]


def test_resolve_is_idempotent(items, index) -> None:
    """Test resolve(resolve(x)) == resolve(x)."""
    resolver = MeaningGroupResolver(index)
    once = resolver.resolve(items)
    assert resolver.resolve(once) == once


def test_resolve_does_not_mutate_input(items, index) -> None:
    resolver = MeaningGroupResolver(index)
    before = list(items)
    resolver.resolve(items)
    assert items == before


def test_single_member_group_passes_through(index) -> None:
    """Test that a group with one member does not drop anything."""
    resolver = MeaningGroupResolver(index)
    cats = [Item(id="5", text="katt"), Item(id="6", text=fake.word())]
    assert resolver.resolve(cats) == cats


def test_unavailable_index_is_identity(items, events) -> None:
    """Test that an unloaded index never deduplicates or raises."""
    resolver = MeaningGroupResolver(VariantIndex.unavailable(), events=events)

    assert resolver.resolve(items) == items
    assert "variant_index_unavailable" in events.names()


def test_index_from_items_groups_same_text(items) -> None:
    """Test deriving groups from items sharing a normalised text."""
    index = VariantIndex.from_items(items)
    resolver = MeaningGroupResolver(index)

    assert [item.id for item in resolver.resolve(items)] == ["1", "2", "4", "5"]
    assert len(index) == 1
