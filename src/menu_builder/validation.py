"""Validation engine enforcing the per-entity rules before any commit.

Rules run in a fixed order and stop at the first failure, matching a form
that shows one error message at a time:

1. identifier range (item groups: ordered, non-overlapping id ranges),
2. duplicate identifier among the other committed records,
3. non-blank name,
4. field values (rates, prices, name length),
5. existence of every referenced entity.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, List, Sequence

from . import log
from .constants import PRINTER_NAME_MAX_LENGTH, EntityType
from .entities import Cardinality, Entity, EntityKind, ItemGroup, kind_of
from .errors import (
    DuplicateIdError,
    EmptyNameError,
    InvalidIdError,
    InvalidRangeError,
    InvalidReferenceError,
    InvalidValueError,
    RangeOverlapError,
    ValidationError,
)

if TYPE_CHECKING:
    from .repository import MenuStore


def check_id_range(record: Entity, kind: EntityKind) -> None:
    bounds = kind.identity_range(record)
    if bounds is None:
        return
    low, high = bounds
    if not low <= record.id <= high:
        raise InvalidIdError(f"{kind.label} ID must be between {low} and {high}")


def check_item_group_range(group: ItemGroup, other_groups: Iterable[ItemGroup]) -> None:
    """Require ``start < end`` and no overlap with any other group's range.

    Raises:
        InvalidRangeError: If the range is empty or reversed.
        RangeOverlapError: If the range intersects another group's range; the
            error names the conflicting group.
    """

    if group.id_range.start >= group.id_range.end:
        raise InvalidRangeError("Start ID must be less than end ID")
    for other in other_groups:
        if group.id_range.overlaps(other.id_range):
            raise RangeOverlapError(
                f"Range overlaps with group '{other.name}'",
                conflicting_group=other.name,
            )


def check_duplicate_id(record: Entity, kind: EntityKind, siblings: Sequence[Entity]) -> None:
    if any(other.id == record.id for other in siblings):
        raise DuplicateIdError(f"{kind.label} with ID {record.id} already exists")


def check_name(record: Entity, kind: EntityKind) -> None:
    if not record.name.strip():
        raise EmptyNameError(f"{kind.label} name cannot be empty")


def check_values(record: Entity, kind: EntityKind) -> None:
    """Apply the value rules specific to each entity type."""

    if kind.entity_type is EntityType.TAX_GROUP:
        if not Decimal("0") <= record.rate <= Decimal("100"):
            raise InvalidValueError("Tax rate must be between 0 and 100 percent")
    elif kind.entity_type is EntityType.PRICE_LEVEL:
        if record.price < 0:
            raise InvalidValueError("Price Level price cannot be negative")
    elif kind.entity_type is EntityType.PRINTER_LOGICAL:
        if len(record.name.strip()) > PRINTER_NAME_MAX_LENGTH:
            raise InvalidValueError(
                f"Printer name can't have more than {PRINTER_NAME_MAX_LENGTH} characters"
            )
    elif kind.entity_type is EntityType.ITEM and record.item_prices is not None:
        seen = set()
        for entry in record.item_prices:
            if entry.price < 0:
                raise InvalidValueError(f"Price for level {entry.price_level_id} cannot be negative")
            if entry.price_level_id in seen:
                raise InvalidValueError(f"Price level {entry.price_level_id} is priced more than once")
            seen.add(entry.price_level_id)

    for ref in kind.references:
        if ref.cardinality is not Cardinality.MANY:
            continue
        ids = ref.referenced_ids(record)
        if len(set(ids)) != len(ids):
            raise InvalidValueError(f"{ref.field_name} lists the same ID more than once")


def check_references(record: Entity, kind: EntityKind, store: "MenuStore") -> None:
    for ref in kind.references:
        target = store.collection(ref.target)
        for entity_id in ref.referenced_ids(record):
            if entity_id not in target:
                raise InvalidReferenceError(
                    f"Referenced {target.kind.label} {entity_id} does not exist"
                )


def validate_entity(record: Entity, siblings: Iterable[Entity], store: "MenuStore") -> None:
    """Validate ``record`` against its siblings and the rest of the graph.

    Args:
        record (Entity): Candidate record, already carrying the identifier it
            would be committed under.
        siblings (Iterable[Entity]): Other committed records of the same type.
            The caller excludes the record being edited.
        store (MenuStore): Store used to resolve outward references.

    Raises:
        ValidationError: The first failing rule, as one of its subclasses.
    """

    kind = kind_of(record)
    others = list(siblings)
    try:
        check_id_range(record, kind)
        if kind.entity_type is EntityType.ITEM_GROUP:
            check_item_group_range(record, others)
        check_duplicate_id(record, kind, others)
        check_name(record, kind)
        check_values(record, kind)
        check_references(record, kind, store)
    except ValidationError as exc:
        log.error("%s %s failed validation: %s", kind.label, record.id, exc)
        raise


def audit_store(store: "MenuStore") -> List[str]:
    """Run every rule over every committed record and collect the failures.

    Bulk loads from storage bypass validation, so this gives the shell a way
    to report records that violate the graph invariants. Unlike
    :func:`validate_entity`, all violations are returned, one message per
    offending record.
    """

    problems: List[str] = []
    for entity_type in EntityType:
        collection = store.collection(entity_type)
        for record in collection.values():
            try:
                validate_entity(record, collection.others(record.id), store)
            except ValidationError as exc:
                problems.append(f"{collection.kind.label} {record.id}: {exc}")
    return problems
