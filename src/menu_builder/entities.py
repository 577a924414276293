"""Entity model for the Menu Builder configuration graph.

Each of the ten record types is a frozen dataclass keyed by an integer
``id``. Per-type behaviour (field defaults, coercion of raw form values,
identifier ranges, and outward references) is described declaratively by an
:class:`EntityKind`, so a single generic implementation of drafting,
validation, and cascade deletion serves every collection.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .constants import (
    ENTITY_ID_MAX,
    ENTITY_ID_MIN,
    ID_RANGES,
    PRICE_LEVEL_ID_RANGES,
    EntityType,
    PriceLevelType,
    ThemeChoice,
)
from .errors import InvalidIdError, InvalidReferenceError, InvalidValueError


IdList = Tuple[int, ...]


@dataclass(frozen=True)
class IdRange:
    """Half-open interval ``[start, end)`` of item identifiers owned by a group."""

    start: int
    end: int

    def contains(self, entity_id: int) -> bool:
        return self.start <= entity_id < self.end

    def overlaps(self, other: IdRange) -> bool:
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class ItemPrice:
    """Price charged for an item at one price level."""

    price_level_id: int
    price: Decimal


@dataclass(frozen=True)
class Item:
    """A sellable menu item and its links to the rest of the configuration."""

    id: int
    name: str
    item_group: Optional[int] = None
    tax_group: Optional[int] = None
    security_level: Optional[int] = None
    revenue_category: Optional[int] = None
    report_category: Optional[int] = None
    product_class: Optional[int] = None
    choice_groups: Optional[IdList] = None
    printer_logicals: Optional[IdList] = None
    price_levels: Optional[IdList] = None
    item_prices: Optional[Tuple[ItemPrice, ...]] = None

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ItemGroup:
    id: int
    name: str
    id_range: IdRange

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class PriceLevel:
    id: int
    name: str
    level_type: PriceLevelType
    price: Decimal

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ProductClass:
    id: int
    name: str
    item_group: Optional[int] = None
    revenue_category: Optional[int] = None

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class TaxGroup:
    """A tax group; ``rate`` is a percentage such as ``Decimal("8.25")``."""

    id: int
    name: str
    rate: Decimal

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class SecurityLevel:
    id: int
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class RevenueCategory:
    id: int
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ReportCategory:
    id: int
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ChoiceGroup:
    id: int
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class PrinterLogical:
    id: int
    name: str

    def __str__(self) -> str:
        return self.name


Entity = Union[
    Item,
    ItemGroup,
    PriceLevel,
    ProductClass,
    TaxGroup,
    SecurityLevel,
    RevenueCategory,
    ReportCategory,
    ChoiceGroup,
    PrinterLogical,
]


@dataclass(frozen=True)
class AppSettings:
    """Operator preferences persisted alongside the entity collections."""

    auto_save: bool = True
    create_backups: bool = True
    theme: ThemeChoice = ThemeChoice.DARK


# ---------------------------------------------------------------------------
# Coercion of raw form values
# ---------------------------------------------------------------------------


_RANGE_PATTERN = re.compile(r"^\s*(-?\d+)\s*(?:\.\.|,|-)\s*(-?\d+)\s*$")


def parse_entity_id(raw: Any, *, message: str = "Invalid ID format") -> int:
    """Parse an identifier typed by the operator into a 32-bit integer.

    Parsing failures are reported exactly like out-of-range identifiers so the
    form surfaces a single kind of error for "this ID is not usable".

    Args:
        raw (Any): ``int`` or text representation of the identifier.
        message (str): Error message used when ``raw`` is not an integer.

    Returns:
        int: The parsed identifier.

    Raises:
        InvalidIdError: If ``raw`` is not an integer or does not fit in 32 bits.
    """

    if isinstance(raw, bool):
        raise InvalidIdError(message)
    if isinstance(raw, int):
        value = raw
    else:
        try:
            value = int(str(raw).strip())
        except (TypeError, ValueError) as exc:
            raise InvalidIdError(message) from exc
    if not ENTITY_ID_MIN <= value <= ENTITY_ID_MAX:
        raise InvalidIdError(f"ID {value} does not fit in a 32-bit identifier")
    return value


def parse_decimal(raw: Any, label: str) -> Decimal:
    """Parse a monetary or percentage value, rejecting NaN and infinities."""

    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, bool) or raw is None:
        raise InvalidValueError(f"Invalid {label} value: {raw!r}")
    elif isinstance(raw, (int, float)):
        value = Decimal(str(raw))
    else:
        try:
            value = Decimal(str(raw).strip())
        except InvalidOperation as exc:
            raise InvalidValueError(f"Invalid {label} value: {raw!r}") from exc
    if not value.is_finite():
        raise InvalidValueError(f"Invalid {label} value: {raw!r}")
    return value


def parse_price_level_type(raw: Any) -> PriceLevelType:
    if isinstance(raw, PriceLevelType):
        return raw
    text = str(raw).strip().casefold()
    for member in PriceLevelType:
        if text in (member.value.casefold(), member.name.casefold()):
            return member
    raise InvalidValueError(f"Unknown price level type: {raw!r}")


def parse_id_range(raw: Any) -> IdRange:
    """Parse an item group range from an :class:`IdRange`, a pair, or ``"start..end"`` text."""

    if isinstance(raw, IdRange):
        return raw
    if isinstance(raw, str):
        match = _RANGE_PATTERN.match(raw)
        if match is None:
            raise InvalidIdError("Invalid ID range format")
        start_raw, end_raw = match.groups()
    else:
        try:
            start_raw, end_raw = raw
        except (TypeError, ValueError) as exc:
            raise InvalidIdError("Invalid ID range format") from exc
    start = parse_entity_id(start_raw, message="Invalid range start value")
    end = parse_entity_id(end_raw, message="Invalid range end value")
    return IdRange(start=start, end=end)


def _coerce_name(raw: Any) -> str:
    return "" if raw is None else str(raw)


def _blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def _parse_reference(raw: Any, label: str) -> int:
    try:
        return parse_entity_id(raw)
    except InvalidIdError as exc:
        raise InvalidReferenceError(f"Invalid {label} reference: {raw!r}") from exc


def reference_coercer(label: str) -> Callable[[Any], Optional[int]]:
    """Build a coercer for an optional scalar reference; blank input clears it."""

    def _coerce(raw: Any) -> Optional[int]:
        if _blank(raw):
            return None
        return _parse_reference(raw, label)

    return _coerce


def reference_list_coercer(label: str) -> Callable[[Any], Optional[IdList]]:
    """Build a coercer for a list reference.

    ``None`` and blank text mean "absent". A comma separated string or any
    iterable of identifiers becomes a tuple; an explicitly empty iterable stays
    an empty tuple, which is distinct from absent.
    """

    def _coerce(raw: Any) -> Optional[IdList]:
        if _blank(raw):
            return None
        if isinstance(raw, str):
            parts: Iterable[Any] = [part for part in raw.split(",") if part.strip()]
        else:
            parts = raw
        return tuple(_parse_reference(part, label) for part in parts)

    return _coerce


def coerce_item_prices(raw: Any) -> Optional[Tuple[ItemPrice, ...]]:
    """Coerce item prices from ``"level:price,..."`` text, a mapping, or pairs."""

    if _blank(raw):
        return None
    if isinstance(raw, str):
        pairs: List[Tuple[Any, Any]] = []
        for chunk in raw.split(","):
            if not chunk.strip():
                continue
            level_raw, separator, price_raw = chunk.partition(":")
            if not separator:
                raise InvalidValueError(f"Invalid item price entry: {chunk.strip()!r}")
            pairs.append((level_raw, price_raw))
    elif isinstance(raw, Mapping):
        pairs = list(raw.items())
    else:
        pairs = [
            (entry.price_level_id, entry.price) if isinstance(entry, ItemPrice) else tuple(entry)
            for entry in raw
        ]
    return tuple(
        ItemPrice(
            price_level_id=_parse_reference(level_raw, "Price Level"),
            price=parse_decimal(price_raw, "item price"),
        )
        for level_raw, price_raw in pairs
    )


# ---------------------------------------------------------------------------
# Declarative reference map and per-type capabilities
# ---------------------------------------------------------------------------


class Cardinality(str, Enum):
    SCALAR = "scalar"
    MANY = "many"
    PRICES = "prices"


@dataclass(frozen=True)
class ReferenceField:
    """One outward reference from a record field to another collection."""

    field_name: str
    target: EntityType
    cardinality: Cardinality = Cardinality.SCALAR

    def referenced_ids(self, record: Entity) -> IdList:
        value = getattr(record, self.field_name)
        if value is None:
            return ()
        if self.cardinality is Cardinality.SCALAR:
            return (value,)
        if self.cardinality is Cardinality.PRICES:
            return tuple(entry.price_level_id for entry in value)
        return tuple(value)

    def references(self, record: Entity, entity_id: int) -> bool:
        return entity_id in self.referenced_ids(record)

    def strip(self, record: Entity, entity_id: int) -> Entity:
        """Return ``record`` without any reference to ``entity_id``.

        Scalars pointing at the id become ``None``. The id is removed from
        list fields, and a list emptied by the removal becomes ``None``. A
        record that does not reference ``entity_id`` is returned unchanged
        (the same object).
        """

        if not self.references(record, entity_id):
            return record
        value = getattr(record, self.field_name)
        if self.cardinality is Cardinality.SCALAR:
            remaining: Any = None
        elif self.cardinality is Cardinality.PRICES:
            remaining = tuple(entry for entry in value if entry.price_level_id != entity_id) or None
        else:
            remaining = tuple(ref for ref in value if ref != entity_id) or None
        return replace(record, **{self.field_name: remaining})


@dataclass(frozen=True)
class FieldSpec:
    name: str
    coerce: Callable[[Any], Any]
    default: Any = None


@dataclass(frozen=True)
class EntityKind:
    """Capability set describing how one entity type is built and checked."""

    entity_type: EntityType
    model: type
    label: str
    fields: Tuple[FieldSpec, ...]
    references: Tuple[ReferenceField, ...] = ()
    id_range: Optional[Tuple[int, int]] = None
    copy_as_draft: bool = False

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self.fields)

    def defaults(self) -> Dict[str, Any]:
        return {spec.name: spec.default for spec in self.fields}

    def field_spec(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(f"Unknown {self.label} field: {name}")

    def build(self, entity_id: int, values: Mapping[str, Any]) -> Entity:
        """Coerce raw draft values into a committed-shape record with ``entity_id``."""

        kwargs = {spec.name: spec.coerce(values.get(spec.name, spec.default)) for spec in self.fields}
        return self.model(id=entity_id, **kwargs)

    def to_fields(self, record: Entity) -> Dict[str, Any]:
        return {spec.name: getattr(record, spec.name) for spec in self.fields}

    def identity_range(self, record: Entity) -> Optional[Tuple[int, int]]:
        """Return the inclusive ID bounds that apply to ``record``, if any."""

        if self.entity_type is EntityType.PRICE_LEVEL:
            return PRICE_LEVEL_ID_RANGES[record.level_type]
        return self.id_range


_NAME = FieldSpec("name", _coerce_name, "")


def _scalar(field_name: str, target: EntityType, label: str) -> Tuple[FieldSpec, ReferenceField]:
    return (
        FieldSpec(field_name, reference_coercer(label)),
        ReferenceField(field_name, target, Cardinality.SCALAR),
    )


def _many(field_name: str, target: EntityType, label: str) -> Tuple[FieldSpec, ReferenceField]:
    return (
        FieldSpec(field_name, reference_list_coercer(label)),
        ReferenceField(field_name, target, Cardinality.MANY),
    )


def _simple_kind(entity_type: EntityType, model: type, label: str) -> EntityKind:
    return EntityKind(
        entity_type=entity_type,
        model=model,
        label=label,
        fields=(_NAME,),
        id_range=ID_RANGES[entity_type],
    )


def _item_kind() -> EntityKind:
    links = (
        _scalar("item_group", EntityType.ITEM_GROUP, "Item Group"),
        _scalar("tax_group", EntityType.TAX_GROUP, "Tax Group"),
        _scalar("security_level", EntityType.SECURITY_LEVEL, "Security Level"),
        _scalar("revenue_category", EntityType.REVENUE_CATEGORY, "Revenue Category"),
        _scalar("report_category", EntityType.REPORT_CATEGORY, "Report Category"),
        _scalar("product_class", EntityType.PRODUCT_CLASS, "Product Class"),
        _many("choice_groups", EntityType.CHOICE_GROUP, "Choice Group"),
        _many("printer_logicals", EntityType.PRINTER_LOGICAL, "Printer Logical"),
        _many("price_levels", EntityType.PRICE_LEVEL, "Price Level"),
    )
    fields = (_NAME, *(spec for spec, _ in links), FieldSpec("item_prices", coerce_item_prices))
    references = (
        *(ref for _, ref in links),
        ReferenceField("item_prices", EntityType.PRICE_LEVEL, Cardinality.PRICES),
    )
    return EntityKind(
        entity_type=EntityType.ITEM,
        model=Item,
        label="Item",
        fields=fields,
        references=references,
        id_range=ID_RANGES[EntityType.ITEM],
    )


def _product_class_kind() -> EntityKind:
    group_field, group_ref = _scalar("item_group", EntityType.ITEM_GROUP, "Item Group")
    category_field, category_ref = _scalar("revenue_category", EntityType.REVENUE_CATEGORY, "Revenue Category")
    return EntityKind(
        entity_type=EntityType.PRODUCT_CLASS,
        model=ProductClass,
        label="Product Class",
        fields=(_NAME, group_field, category_field),
        references=(group_ref, category_ref),
        id_range=ID_RANGES[EntityType.PRODUCT_CLASS],
    )


ENTITY_KINDS: Dict[EntityType, EntityKind] = {
    kind.entity_type: kind
    for kind in (
        _item_kind(),
        EntityKind(
            entity_type=EntityType.ITEM_GROUP,
            model=ItemGroup,
            label="Item Group",
            fields=(_NAME, FieldSpec("id_range", parse_id_range, IdRange(0, 0))),
            id_range=ID_RANGES[EntityType.ITEM_GROUP],
            copy_as_draft=True,
        ),
        EntityKind(
            entity_type=EntityType.PRICE_LEVEL,
            model=PriceLevel,
            label="Price Level",
            fields=(
                _NAME,
                FieldSpec("level_type", parse_price_level_type, PriceLevelType.ITEM),
                FieldSpec("price", lambda raw: parse_decimal(raw, "price"), Decimal("0.00")),
            ),
        ),
        _product_class_kind(),
        EntityKind(
            entity_type=EntityType.TAX_GROUP,
            model=TaxGroup,
            label="Tax Group",
            fields=(_NAME, FieldSpec("rate", lambda raw: parse_decimal(raw, "tax rate"), Decimal("0.00"))),
            id_range=ID_RANGES[EntityType.TAX_GROUP],
        ),
        _simple_kind(EntityType.SECURITY_LEVEL, SecurityLevel, "Security Level"),
        _simple_kind(EntityType.REVENUE_CATEGORY, RevenueCategory, "Revenue Category"),
        _simple_kind(EntityType.REPORT_CATEGORY, ReportCategory, "Report Category"),
        _simple_kind(EntityType.CHOICE_GROUP, ChoiceGroup, "Choice Group"),
        _simple_kind(EntityType.PRINTER_LOGICAL, PrinterLogical, "Printer Logical"),
    )
}

_KINDS_BY_MODEL: Dict[type, EntityKind] = {kind.model: kind for kind in ENTITY_KINDS.values()}


def kind_for(entity_type: Union[EntityType, str]) -> EntityKind:
    return ENTITY_KINDS[EntityType(entity_type)]


def kind_of(record: Entity) -> EntityKind:
    try:
        return _KINDS_BY_MODEL[type(record)]
    except KeyError as exc:
        raise TypeError(f"Not a menu entity: {record!r}") from exc


def incoming_references(target: EntityType) -> List[Tuple[EntityType, ReferenceField]]:
    """List every ``(source_type, field)`` pair whose field points at ``target``."""

    return [
        (kind.entity_type, ref)
        for kind in ENTITY_KINDS.values()
        for ref in kind.references
        if ref.target is target
    ]
