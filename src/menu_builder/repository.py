"""Repository owning every committed record, one ID-keyed collection per type.

The store is the single source of truth read by the shell, by validation, and
by persistence. Nothing is inserted here without passing the validation
engine, except during a bulk load from storage, which is trusted to already
satisfy the graph invariants.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Generic, Iterable, Iterator, List, Mapping, Optional, Tuple, TypeVar, Union

from . import log
from .constants import EntityType
from .data_manager import Snapshot
from .entities import AppSettings, Entity, EntityKind, kind_for


E = TypeVar("E")


class Collection(Generic[E]):
    """Ordered-by-ID mapping of the committed records of one entity type."""

    def __init__(self, entity_type: EntityType, records: Iterable[E] = ()) -> None:
        self.entity_type = EntityType(entity_type)
        self.kind: EntityKind = kind_for(self.entity_type)
        self._records: Dict[int, E] = {}
        for record in records:
            self._records[record.id] = record

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[E]:
        return iter(self.values())

    def get(self, entity_id: int) -> Optional[E]:
        return self._records.get(entity_id)

    def insert(self, entity_id: int, record: E) -> None:
        """Store ``record`` under ``entity_id``, replacing any existing record.

        Records are immutable, so replacing the entry is also how an existing
        record is modified in place.
        """

        if record.id != entity_id:
            raise ValueError(f"Record id {record.id} does not match key {entity_id}")
        self._records[entity_id] = record

    def update(self, entity_id: int, **changes: Any) -> E:
        current = self._records.get(entity_id)
        if current is None:
            raise KeyError(f"{self.kind.label} not found: {entity_id}")
        updated = replace(current, **changes)
        self._records[entity_id] = updated
        return updated

    def remove(self, entity_id: int) -> Optional[E]:
        return self._records.pop(entity_id, None)

    def ids(self) -> List[int]:
        return sorted(self._records)

    def values(self) -> List[E]:
        return [self._records[entity_id] for entity_id in sorted(self._records)]

    def items(self) -> List[Tuple[int, E]]:
        return [(entity_id, self._records[entity_id]) for entity_id in sorted(self._records)]

    def others(self, exclude_id: Optional[int]) -> List[E]:
        """Return every record except the one stored under ``exclude_id``."""

        return [record for entity_id, record in self.items() if entity_id != exclude_id]

    def as_mapping(self) -> Dict[int, E]:
        return dict(self.items())

    def next_id(self) -> int:
        """Return the next free identifier: ``max(ids) + 1``, or ``1`` when empty.

        Gaps in the identifier space are never reused. This is the only place
        identifiers are allocated, and it is consulted at commit time so that
        abandoned drafts never consume an identifier.
        """

        if not self._records:
            return 1
        return max(self._records) + 1

    def __repr__(self) -> str:
        return f"Collection({self.entity_type.value}, size={len(self)})"


_SNAPSHOT_FIELDS: Mapping[EntityType, str] = {
    EntityType.ITEM: "items",
    EntityType.ITEM_GROUP: "item_groups",
    EntityType.PRICE_LEVEL: "price_levels",
    EntityType.PRODUCT_CLASS: "product_classes",
    EntityType.TAX_GROUP: "tax_groups",
    EntityType.SECURITY_LEVEL: "security_levels",
    EntityType.REVENUE_CATEGORY: "revenue_categories",
    EntityType.REPORT_CATEGORY: "report_categories",
    EntityType.CHOICE_GROUP: "choice_groups",
    EntityType.PRINTER_LOGICAL: "printer_logicals",
}


class MenuStore:
    """Explicit owner of the ten entity collections."""

    def __init__(self, collections: Optional[Mapping[EntityType, Iterable[Entity]]] = None) -> None:
        collections = collections or {}
        self._collections: Dict[EntityType, Collection[Any]] = {
            entity_type: Collection(entity_type, collections.get(entity_type, ()))
            for entity_type in EntityType
        }

    def collection(self, entity_type: Union[EntityType, str]) -> Collection[Any]:
        return self._collections[EntityType(entity_type)]

    def collections(self) -> Dict[EntityType, Collection[Any]]:
        return dict(self._collections)

    def counts(self) -> Dict[EntityType, int]:
        return {entity_type: len(collection) for entity_type, collection in self._collections.items()}

    @property
    def items(self) -> Collection[Any]:
        return self._collections[EntityType.ITEM]

    @property
    def item_groups(self) -> Collection[Any]:
        return self._collections[EntityType.ITEM_GROUP]

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> MenuStore:
        """Bulk load a snapshot's flat lists into ID-keyed collections.

        Later duplicates of an identifier win, mirroring how the lists are
        folded into maps; run :func:`validation.audit_store` to detect them.
        """

        store = cls(
            {entity_type: getattr(snapshot, attribute) for entity_type, attribute in _SNAPSHOT_FIELDS.items()}
        )
        log.info(
            "Loaded store with %d records across %d collections",
            sum(store.counts().values()),
            len(_SNAPSHOT_FIELDS),
        )
        return store

    def to_snapshot(self, settings: AppSettings) -> Snapshot:
        lists = {attribute: self.collection(entity_type).values() for entity_type, attribute in _SNAPSHOT_FIELDS.items()}
        return Snapshot(settings=settings, **lists)
