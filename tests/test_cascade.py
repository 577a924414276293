"""Unit tests for cascade deletion."""

from __future__ import annotations

from decimal import Decimal

from menu_builder.cascade import cascade_delete, find_referencing
from menu_builder.constants import EntityType
from menu_builder.entities import ItemPrice
from menu_builder.validation import audit_store


def test_delete_choice_group_strips_item_lists(store):
    """Fries keeps its other choice group; Burger's list becomes absent."""

    report = cascade_delete(store, EntityType.CHOICE_GROUP, 1)

    assert report.removed
    assert store.items.get(5).choice_groups is None
    assert store.items.get(7).choice_groups == (2,)
    assert 1 not in store.collection(EntityType.CHOICE_GROUP)
    assert set(report.updated) == {(EntityType.ITEM, 5), (EntityType.ITEM, 7)}


def test_delete_item_group_nulls_references_and_keeps_items(store):
    cascade_delete(store, EntityType.ITEM_GROUP, 1)

    assert store.items.get(5).item_group is None
    assert store.items.get(7).item_group is None
    assert store.collection(EntityType.PRODUCT_CLASS).get(1).item_group is None
    assert len(store.items) == 2


def test_delete_price_level_strips_list_and_prices(store):
    report = cascade_delete(store, EntityType.PRICE_LEVEL, 1)

    burger = store.items.get(5)
    assert burger.price_levels == (2,)
    assert burger.item_prices == (ItemPrice(2, Decimal("7.50")),)
    assert report.updated == ((EntityType.ITEM, 5),)


def test_delete_revenue_category_touches_items_and_product_classes(store):
    cascade_delete(store, EntityType.REVENUE_CATEGORY, 1)

    assert store.items.get(5).revenue_category is None
    assert store.collection(EntityType.PRODUCT_CLASS).get(1).revenue_category is None


def test_delete_keeps_graph_consistent(store):
    """No dangling references remain after any delete."""

    for entity_type, entity_id in [
        (EntityType.TAX_GROUP, 1),
        (EntityType.PRINTER_LOGICAL, 0),
        (EntityType.SECURITY_LEVEL, 0),
        (EntityType.PRODUCT_CLASS, 1),
    ]:
        cascade_delete(store, entity_type, entity_id)
    assert audit_store(store) == []


def test_delete_missing_id_is_noop(store):
    before = {entity_type: store.collection(entity_type).values() for entity_type in EntityType}

    report = cascade_delete(store, EntityType.CHOICE_GROUP, 99)

    assert not report.removed
    assert report.updated == ()
    assert {entity_type: store.collection(entity_type).values() for entity_type in EntityType} == before


def test_delete_unreferenced_record(store):
    report = cascade_delete(store, EntityType.ITEM, 7)
    assert report.removed
    assert report.updated == ()
    assert 7 not in store.items


def test_find_referencing_lists_each_record_once(store):
    assert find_referencing(store, EntityType.PRICE_LEVEL, 1) == [(EntityType.ITEM, 5)]
    assert find_referencing(store, EntityType.ITEM_GROUP, 1) == [
        (EntityType.ITEM, 5),
        (EntityType.ITEM, 7),
        (EntityType.PRODUCT_CLASS, 1),
    ]
    assert find_referencing(store, EntityType.ITEM_GROUP, 2) == []
