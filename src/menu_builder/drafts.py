"""Draft and edit session management, one optional draft per entity type.

A draft holds pending field values and has no identifier. The identifier is
allocated (or the operator's requested one checked) only when the draft is
saved, so abandoning a draft never consumes an id and never leaves a
placeholder record behind in the repository.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from . import log
from .constants import EntityType
from .entities import Entity, kind_for, parse_entity_id
from .errors import BusinessRuleViolation, DraftInProgressError, MissingReferenceError, ValidationError
from .repository import MenuStore
from .validation import validate_entity


class SessionState(str, Enum):
    IDLE = "Idle"
    CREATING = "Creating"
    EDITING = "Editing"


@dataclass
class Draft:
    """Pending, uncommitted values for one record."""

    entity_type: EntityType
    state: SessionState
    fields: Dict[str, Any]
    original_id: Optional[int] = None
    requested_id: Optional[Any] = None
    error: Optional[str] = None


@dataclass
class EditSessionManager:
    """Track the create/edit session of every entity type against ``store``."""

    store: MenuStore
    _drafts: Dict[EntityType, Draft] = field(default_factory=dict, repr=False)

    def state(self, entity_type: EntityType) -> SessionState:
        draft = self._drafts.get(EntityType(entity_type))
        return SessionState.IDLE if draft is None else draft.state

    def draft(self, entity_type: EntityType) -> Optional[Draft]:
        return self._drafts.get(EntityType(entity_type))

    def active_drafts(self) -> Dict[EntityType, Draft]:
        return dict(self._drafts)

    def _require_idle(self, entity_type: EntityType) -> None:
        current = self._drafts.get(entity_type)
        if current is not None:
            label = kind_for(entity_type).label
            raise DraftInProgressError(
                f"A {label} draft is already in progress ({current.state.value.lower()})"
            )

    def _require_draft(self, entity_type: EntityType) -> Draft:
        draft = self._drafts.get(entity_type)
        if draft is None:
            raise BusinessRuleViolation(f"No {kind_for(entity_type).label} draft in progress")
        return draft

    def _apply(self, draft: Draft, changes: Dict[str, Any]) -> None:
        kind = kind_for(draft.entity_type)
        for name, value in changes.items():
            if name == "requested_id":
                if draft.state is not SessionState.CREATING:
                    raise BusinessRuleViolation("The ID of a committed record cannot be changed")
                draft.requested_id = value
                continue
            kind.field_spec(name)
            draft.fields[name] = value

    def create_new(self, entity_type: EntityType, **fields: Any) -> Draft:
        """Open a CREATING draft seeded with the type's default field values.

        ``fields`` may pre-fill any field, and ``requested_id`` asks for a
        specific identifier instead of the next free one.

        Raises:
            DraftInProgressError: If the type already has a draft.
            KeyError: If a field name is unknown for the type.
        """

        entity_type = EntityType(entity_type)
        self._require_idle(entity_type)
        draft = Draft(entity_type, SessionState.CREATING, kind_for(entity_type).defaults())
        self._apply(draft, fields)
        self._drafts[entity_type] = draft
        log.debug("Opened %s draft for creation", entity_type.value)
        return draft

    def start_edit(self, entity_type: EntityType, entity_id: int) -> Draft:
        entity_type = EntityType(entity_type)
        kind = kind_for(entity_type)
        record = self.store.collection(entity_type).get(entity_id)
        if record is None:
            log.warning("Cannot edit %s %s: not found", kind.label, entity_id)
            raise MissingReferenceError(f"{kind.label} not found: {entity_id}")
        self._require_idle(entity_type)
        draft = Draft(entity_type, SessionState.EDITING, kind.to_fields(record), original_id=entity_id)
        self._drafts[entity_type] = draft
        log.debug("Opened %s draft editing %s", entity_type.value, entity_id)
        return draft

    def update(self, entity_type: EntityType, **changes: Any) -> Draft:
        """Apply ``changes`` to the pending fields and clear the stored error."""

        draft = self._require_draft(EntityType(entity_type))
        self._apply(draft, changes)
        draft.error = None
        return draft

    def cancel(self, entity_type: EntityType) -> Optional[Draft]:
        draft = self._drafts.pop(EntityType(entity_type), None)
        if draft is not None:
            log.debug("Discarded %s draft", draft.entity_type.value)
        return draft

    def save(self, entity_type: EntityType) -> Entity:
        """Validate and commit the draft for ``entity_type``.

        A creating draft receives its requested identifier or the next free
        one. An editing draft overwrites the record at its original
        identifier. The session returns to idle on success.

        Returns:
            Entity: The committed record.

        Raises:
            BusinessRuleViolation: If the type has no draft.
            ValidationError: If the candidate record fails validation. The
                message is kept on ``Draft.error`` and the repository is left
                unchanged.
        """

        entity_type = EntityType(entity_type)
        draft = self._require_draft(entity_type)
        kind = kind_for(entity_type)
        collection = self.store.collection(entity_type)

        try:
            if draft.state is SessionState.EDITING:
                entity_id = draft.original_id
                siblings = collection.others(entity_id)
            else:
                if draft.requested_id is None or str(draft.requested_id).strip() == "":
                    entity_id = collection.next_id()
                else:
                    entity_id = parse_entity_id(draft.requested_id)
                siblings = collection.values()
            record = kind.build(entity_id, draft.fields)
            validate_entity(record, siblings, self.store)
        except ValidationError as exc:
            draft.error = str(exc)
            raise

        collection.insert(entity_id, record)
        del self._drafts[entity_type]
        verb = "Updated" if draft.state is SessionState.EDITING else "Created"
        log.info("%s %s %s '%s'", verb, kind.label, entity_id, record.name)
        return record

    def copy(self, entity_type: EntityType, entity_id: int) -> Union[Entity, Draft]:
        """Duplicate a committed record.

        The copy receives the next free identifier and the name suffix
        ``"(<new id>)"``, and is validated and committed at once. Kinds flagged
        ``copy_as_draft`` (item groups, whose copied range would always overlap
        the source) open a pre-filled creating draft instead.

        Returns:
            Entity | Draft: The committed copy, or the opened draft.

        Raises:
            MissingReferenceError: If the source record does not exist.
            ValidationError: If the copy fails validation.
        """

        entity_type = EntityType(entity_type)
        kind = kind_for(entity_type)
        collection = self.store.collection(entity_type)
        source = collection.get(entity_id)
        if source is None:
            log.warning("Cannot copy %s %s: not found", kind.label, entity_id)
            raise MissingReferenceError(f"{kind.label} not found: {entity_id}")

        values = kind.to_fields(source)
        new_id = collection.next_id()
        values["name"] = f"{source.name}({new_id})"
        if kind.copy_as_draft:
            return self.create_new(entity_type, **values)

        record = kind.build(new_id, values)
        validate_entity(record, collection.values(), self.store)
        collection.insert(new_id, record)
        log.info("Copied %s %s to %s", kind.label, entity_id, new_id)
        return record

    def discard_for(self, entity_type: EntityType, entity_id: int) -> bool:
        """Drop an editing draft whose original record was deleted."""

        entity_type = EntityType(entity_type)
        draft = self._drafts.get(entity_type)
        if draft is not None and draft.state is SessionState.EDITING and draft.original_id == entity_id:
            del self._drafts[entity_type]
            log.info("Discarded %s draft for deleted record %s", entity_type.value, entity_id)
            return True
        return False
