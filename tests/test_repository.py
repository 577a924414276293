"""Unit tests for the collection store."""

from __future__ import annotations

from decimal import Decimal

import pytest

from menu_builder.constants import EntityType
from menu_builder.data_manager import Snapshot
from menu_builder.entities import AppSettings, ChoiceGroup, TaxGroup
from menu_builder.repository import Collection, MenuStore


def test_next_id_on_empty_collection_is_one():
    assert Collection(EntityType.CHOICE_GROUP).next_id() == 1


def test_next_id_follows_highest_id():
    """Gaps are never reused: the next id is always max + 1."""

    collection = Collection(EntityType.CHOICE_GROUP, [ChoiceGroup(3, "A"), ChoiceGroup(41, "B")])
    assert collection.next_id() == 42


def test_values_iterate_in_id_order():
    collection = Collection(EntityType.CHOICE_GROUP, [ChoiceGroup(9, "Z"), ChoiceGroup(2, "Y")])
    assert [record.id for record in collection.values()] == [2, 9]
    assert [record.id for record in collection] == [2, 9]
    assert collection.ids() == [2, 9]


def test_insert_get_and_remove():
    collection = Collection(EntityType.CHOICE_GROUP)
    collection.insert(4, ChoiceGroup(4, "Sides"))

    assert 4 in collection
    assert len(collection) == 1
    assert collection.get(4) == ChoiceGroup(4, "Sides")
    assert collection.remove(4) == ChoiceGroup(4, "Sides")
    assert collection.remove(4) is None
    assert collection.get(4) is None


def test_insert_rejects_mismatched_key():
    with pytest.raises(ValueError):
        Collection(EntityType.CHOICE_GROUP).insert(1, ChoiceGroup(2, "Sides"))


def test_update_replaces_fields():
    collection = Collection(EntityType.TAX_GROUP, [TaxGroup(1, "Food", Decimal("5"))])
    updated = collection.update(1, rate=Decimal("6"))
    assert updated.rate == Decimal("6")
    assert collection.get(1).rate == Decimal("6")
    with pytest.raises(KeyError):
        collection.update(2, name="x")


def test_others_excludes_one_record():
    collection = Collection(EntityType.CHOICE_GROUP, [ChoiceGroup(1, "A"), ChoiceGroup(2, "B")])
    assert [record.id for record in collection.others(1)] == [2]
    assert len(collection.others(None)) == 2


def test_store_owns_all_ten_collections():
    store = MenuStore()
    assert set(store.collections()) == set(EntityType)
    assert store.collection("ChoiceGroup") is store.collection(EntityType.CHOICE_GROUP)
    assert store.collection(EntityType.ITEM) is store.items


def test_snapshot_round_trip_preserves_records(store):
    settings = AppSettings(auto_save=False)
    snapshot = store.to_snapshot(settings)

    assert snapshot.settings == settings
    assert [item.id for item in snapshot.items] == [5, 7]

    restored = MenuStore.from_snapshot(snapshot)
    for entity_type in EntityType:
        assert restored.collection(entity_type).values() == store.collection(entity_type).values()


def test_from_snapshot_keeps_last_duplicate():
    snapshot = Snapshot(choice_groups=[ChoiceGroup(1, "First"), ChoiceGroup(1, "Second")])
    store = MenuStore.from_snapshot(snapshot)
    assert store.collection(EntityType.CHOICE_GROUP).get(1).name == "Second"
