"""Cascade deletion keeping the entity graph free of dangling references.

Before a record is removed, every record pointing at it is rewritten through
the declarative reference map: scalar references become empty, and the id
is dropped from list references (a list left empty becomes absent). Records
that merely referenced the deleted one always survive.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

from . import log
from .constants import EntityType
from .entities import incoming_references, kind_for
from .repository import MenuStore


RecordKey = Tuple[EntityType, int]


@dataclass(frozen=True)
class DeletionReport:
    """Outcome of a cascade delete."""

    entity_type: EntityType
    entity_id: int
    removed: bool
    updated: Tuple[RecordKey, ...] = field(default_factory=tuple)


def find_referencing(store: MenuStore, entity_type: EntityType, entity_id: int) -> List[RecordKey]:
    """Return ``(source_type, source_id)`` for every record referencing the target.

    Each source record is listed once even if several of its fields point at
    the target.
    """

    entity_type = EntityType(entity_type)
    found: List[RecordKey] = []
    for source_type, ref in incoming_references(entity_type):
        for record in store.collection(source_type).values():
            key = (source_type, record.id)
            if key not in found and ref.references(record, entity_id):
                found.append(key)
    return found


def cascade_delete(store: MenuStore, entity_type: EntityType, entity_id: int) -> DeletionReport:
    """Strip every reference to the target, then remove it.

    Deleting an identifier that does not exist changes nothing and reports
    ``removed=False``.
    """

    entity_type = EntityType(entity_type)
    target = store.collection(entity_type)
    label = kind_for(entity_type).label
    if entity_id not in target:
        log.warning("Delete skipped: %s %s does not exist", label, entity_id)
        return DeletionReport(entity_type, entity_id, removed=False)

    updated: List[RecordKey] = []
    for source_type, ref in incoming_references(entity_type):
        collection = store.collection(source_type)
        for record in collection.values():
            stripped = ref.strip(record, entity_id)
            if stripped is not record:
                # values() is re-read per field, so strips on one record accumulate.
                collection.insert(record.id, stripped)
                key = (source_type, record.id)
                if key not in updated:
                    updated.append(key)

    target.remove(entity_id)
    log.info("Deleted %s %s; updated %d referencing record(s)", label, entity_id, len(updated))
    return DeletionReport(entity_type, entity_id, removed=True, updated=tuple(updated))
