"""Unit tests for the entity model, coercion helpers, and reference map."""

from __future__ import annotations

from decimal import Decimal

import pytest

from menu_builder.constants import ENTITY_ID_MAX, EntityType, PriceLevelType
from menu_builder.entities import (
    ENTITY_KINDS,
    Cardinality,
    ChoiceGroup,
    IdRange,
    Item,
    ItemGroup,
    ItemPrice,
    PriceLevel,
    coerce_item_prices,
    incoming_references,
    kind_for,
    kind_of,
    parse_decimal,
    parse_entity_id,
    parse_id_range,
    reference_list_coercer,
)
from menu_builder.errors import InvalidIdError, InvalidReferenceError, InvalidValueError


# ---------------------------------------------------------------------------
# IdRange
# ---------------------------------------------------------------------------


def test_adjacent_ranges_do_not_overlap():
    """A range ending where the next one starts leaves no shared id."""

    assert not IdRange(1, 100).overlaps(IdRange(100, 200))
    assert not IdRange(100, 200).overlaps(IdRange(1, 100))


def test_intersecting_ranges_overlap():
    """Ranges sharing at least one id overlap in either direction."""

    assert IdRange(1, 100).overlaps(IdRange(50, 150))
    assert IdRange(50, 150).overlaps(IdRange(1, 100))
    assert IdRange(1, 300).overlaps(IdRange(100, 200))


def test_range_contains_is_half_open():
    """The start id belongs to the range while the end id does not."""

    group_range = IdRange(1, 100)
    assert group_range.contains(1)
    assert group_range.contains(99)
    assert not group_range.contains(100)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("raw, expected", [("42", 42), (" 7 ", 7), (0, 0), ("-3", -3)])
def test_parse_entity_id_accepts_integers(raw, expected):
    """Integers and integer text are accepted."""

    assert parse_entity_id(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "", "1.5", None, True, 2**31])
def test_parse_entity_id_rejects_non_integers(raw):
    """Text, booleans, and values beyond 32 bits are not identifiers."""

    with pytest.raises(InvalidIdError):
        parse_entity_id(raw)


def test_parse_decimal_rejects_non_finite_values():
    """NaN and infinities never become prices or rates."""

    with pytest.raises(InvalidValueError):
        parse_decimal("NaN", "price")
    with pytest.raises(InvalidValueError):
        parse_decimal("Infinity", "price")
    assert parse_decimal("8.25", "rate") == Decimal("8.25")


@pytest.mark.parametrize("raw", ["1..100", "1-100", "1, 100", (1, 100), IdRange(1, 100)])
def test_parse_id_range_accepts_supported_forms(raw):
    """Ranges can be typed as text, passed as pairs, or reused as-is."""

    assert parse_id_range(raw) == IdRange(1, 100)


def test_parse_id_range_reports_bad_bounds():
    """Malformed text and non-numeric bounds get distinct messages."""

    with pytest.raises(InvalidIdError, match="Invalid ID range format"):
        parse_id_range("one to ten")
    with pytest.raises(InvalidIdError, match="Invalid range start value"):
        parse_id_range(("x", 5))
    with pytest.raises(InvalidIdError, match="Invalid range end value"):
        parse_id_range((1, "y"))


def test_reference_list_coercer_distinguishes_empty_from_absent():
    """An explicit empty list stays empty while blank input means absent."""

    coerce = reference_list_coercer("Choice Group")
    assert coerce(None) is None
    assert coerce("  ") is None
    assert coerce([]) == ()
    assert coerce("1, 2,3") == (1, 2, 3)
    with pytest.raises(InvalidReferenceError):
        coerce("1,abc")


def test_coerce_item_prices_parses_text_and_mappings():
    """Item prices come from ``level:price`` text or a level-to-price mapping."""

    expected = (ItemPrice(1, Decimal("9.50")), ItemPrice(2, Decimal("7.00")))
    assert coerce_item_prices("1:9.50, 2:7.00") == expected
    assert coerce_item_prices({1: "9.50", 2: "7.00"}) == expected
    assert coerce_item_prices(expected) == expected
    with pytest.raises(InvalidValueError):
        coerce_item_prices("1=9.50")


# ---------------------------------------------------------------------------
# Kinds and the reference map
# ---------------------------------------------------------------------------


def test_every_entity_type_has_a_kind():
    """The registry covers all ten collections."""

    assert set(ENTITY_KINDS) == set(EntityType)


def test_kind_build_applies_defaults_and_coercion():
    """Missing fields take their defaults and raw text is coerced."""

    kind = kind_for(EntityType.PRICE_LEVEL)
    record = kind.build(3, {"name": "Store", "level_type": "store", "price": "1.25"})
    assert record == PriceLevel(3, "Store", PriceLevelType.STORE, Decimal("1.25"))

    item = kind_for(EntityType.ITEM).build(9, {"name": "Soda"})
    assert item == Item(9, "Soda")


def test_kind_field_spec_rejects_unknown_fields():
    with pytest.raises(KeyError):
        kind_for(EntityType.CHOICE_GROUP).field_spec("colour")


def test_kind_of_rejects_foreign_objects():
    assert kind_of(ChoiceGroup(1, "Sides")).entity_type is EntityType.CHOICE_GROUP
    with pytest.raises(TypeError):
        kind_of(object())


def test_price_level_id_range_depends_on_level_type():
    """Store price levels accept a wider identifier range than item ones."""

    kind = kind_for(EntityType.PRICE_LEVEL)
    assert kind.identity_range(PriceLevel(1, "A", PriceLevelType.ITEM, Decimal("0"))) == (1, 999)
    assert kind.identity_range(PriceLevel(1, "B", PriceLevelType.STORE, Decimal("0"))) == (1, 99999)
    assert kind_for(EntityType.ITEM_GROUP).identity_range(ItemGroup(1, "G", IdRange(1, 2))) == (1, ENTITY_ID_MAX)


def test_incoming_references_for_price_level_include_item_prices():
    """Both the price level list and the item prices point at price levels."""

    refs = incoming_references(EntityType.PRICE_LEVEL)
    cardinalities = {(source, ref.field_name): ref.cardinality for source, ref in refs}
    assert cardinalities == {
        (EntityType.ITEM, "price_levels"): Cardinality.MANY,
        (EntityType.ITEM, "item_prices"): Cardinality.PRICES,
    }


def test_incoming_references_for_item_group_include_product_class():
    sources = {(source, ref.field_name) for source, ref in incoming_references(EntityType.ITEM_GROUP)}
    assert sources == {(EntityType.ITEM, "item_group"), (EntityType.PRODUCT_CLASS, "item_group")}


def test_strip_empties_list_to_absent():
    """Removing the last id from a list field leaves the field absent."""

    ref = next(ref for _, ref in incoming_references(EntityType.CHOICE_GROUP))
    item = Item(1, "Soup", choice_groups=(4,))
    assert ref.strip(item, 4).choice_groups is None
    assert ref.strip(Item(1, "Soup", choice_groups=(4, 5)), 4).choice_groups == (5,)


def test_strip_returns_same_object_when_unreferenced():
    ref = next(ref for _, ref in incoming_references(EntityType.TAX_GROUP))
    item = Item(1, "Soup", tax_group=2)
    assert ref.strip(item, 3) is item
    assert ref.strip(item, 2).tax_group is None


def test_strip_removes_item_prices_for_deleted_level():
    refs = dict((ref.field_name, ref) for _, ref in incoming_references(EntityType.PRICE_LEVEL))
    item = Item(1, "Soup", item_prices=(ItemPrice(1, Decimal("3")), ItemPrice(2, Decimal("4"))))
    stripped = refs["item_prices"].strip(item, 1)
    assert stripped.item_prices == (ItemPrice(2, Decimal("4")),)
    assert refs["item_prices"].strip(stripped, 2).item_prices is None


def test_records_display_their_name():
    assert str(ItemGroup(1, "Entrees", IdRange(1, 100))) == "Entrees"
    assert str(IdRange(1, 100)) == "1-100"
