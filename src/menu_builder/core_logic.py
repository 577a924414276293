"""Business logic layer for Menu Builder.

This module orchestrates the editor's operations on top of the repository,
the draft session manager, and the cascade coordinator. It consumes the Data
Access Layer (DAL) for all I/O, so every front end (the CLI today) drives the
same rules through the same functions.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from . import data_manager, log
from .cascade import DeletionReport, RecordKey, cascade_delete, find_referencing
from .constants import EXPECTED_SCHEMA_VERSION, EntityType
from .csv_export import export_items_to_csv
from .drafts import Draft, EditSessionManager
from .entities import AppSettings, Entity, kind_for
from .errors import (
    BusinessRuleViolation,
    DraftInProgressError,
    ExportError,
    ExportErrorKind,
    MissingReferenceError,
    ValidationError,
)
from .repository import MenuStore
from .validation import audit_store


__all__ = [
    "BusinessRuleViolation",
    "MissingReferenceError",
    "DraftInProgressError",
    "RuntimeContext",
    "PendingDeletion",
    "ExportStatus",
    "ExportOutcome",
]


@dataclass(frozen=True)
class PendingDeletion:
    """A delete awaiting operator confirmation, with the records it would touch."""

    entity_type: EntityType
    entity_id: int
    name: str
    affected: Tuple[RecordKey, ...] = ()


@dataclass
class RuntimeContext:
    """Container for configuration, the entity store, and session state."""

    settings: data_manager.ConfigSettings
    store: MenuStore
    app_settings: AppSettings
    drafts: EditSessionManager
    data_schema_version: str = EXPECTED_SCHEMA_VERSION
    selection: Dict[EntityType, Optional[int]] = field(default_factory=dict)
    pending_deletion: Optional[PendingDeletion] = None
    last_error: Optional[str] = None
    dirty: bool = False


class ExportStatus(str, Enum):
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    FAILED = "Failed"


@dataclass(frozen=True)
class ExportOutcome:
    status: ExportStatus
    path: Optional[Path] = None
    message: Optional[str] = None
    kind: Optional[ExportErrorKind] = None


def _build_context(settings: data_manager.ConfigSettings) -> RuntimeContext:
    snapshot = data_manager.load_snapshot(settings.data_file, defaults=settings.default_app_settings)
    store = MenuStore.from_snapshot(snapshot)
    return RuntimeContext(
        settings=settings,
        store=store,
        app_settings=snapshot.settings,
        drafts=EditSessionManager(store),
        data_schema_version=snapshot.schema_version,
    )


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and the persisted menu for the BLL.

    The helper resolves ``config.ini``, parses settings, and reads the menu
    workbook into a fresh :class:`MenuStore`. A missing workbook yields an
    empty menu.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer performs its upward search from
            the current working directory.

    Returns:
        RuntimeContext: Fully populated context ready for orchestration
            functions.

    Raises:
        FileNotFoundError: If the configuration file cannot be located.
        KeyError: When mandatory configuration options are missing.
        PersistenceError: If the workbook exists but cannot be read.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    context = _build_context(settings)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return context


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate workbook compatibility before mutating state.

    Both the version declared in ``config.ini`` and the one recorded in the
    workbook must match ``EXPECTED_SCHEMA_VERSION``.

    Raises:
        RuntimeError: On any mismatch.
    """
    for source, version in (
        ("configuration", context.settings.schema_version),
        ("workbook", context.data_schema_version),
    ):
        if version != EXPECTED_SCHEMA_VERSION:
            log.error(
                "Schema mismatch in %s: expected %s, found %s",
                source,
                EXPECTED_SCHEMA_VERSION,
                version,
            )
            raise RuntimeError(
                "Schema mismatch in %s: expected %s, found %s" % (source, EXPECTED_SCHEMA_VERSION, version)
            )

    log.debug("Schema version '%s' validated", EXPECTED_SCHEMA_VERSION)


# ---------------------------------------------------------------------------
# Queries and selection
# ---------------------------------------------------------------------------


def list_entities(context: RuntimeContext, entity_type: EntityType) -> List[Entity]:
    """Return the committed records of ``entity_type`` in identifier order."""

    return context.store.collection(entity_type).values()


def get_entity(context: RuntimeContext, entity_type: EntityType, entity_id: int) -> Entity:
    """Retrieve one committed record.

    Raises:
        MissingReferenceError: If no record has ``entity_id``.
    """

    record = context.store.collection(entity_type).get(entity_id)
    if record is None:
        label = kind_for(entity_type).label
        log.warning("%s lookup failed for id %s", label, entity_id)
        raise MissingReferenceError(f"{label} not found: {entity_id}")
    return record


def select_entity(context: RuntimeContext, entity_type: EntityType, entity_id: int) -> Entity:
    record = get_entity(context, entity_type, entity_id)
    context.selection[EntityType(entity_type)] = entity_id
    return record


def audit(context: RuntimeContext) -> List[str]:
    """Report every committed record that breaks a validation rule."""

    problems = audit_store(context.store)
    if problems:
        log.warning("Audit found %d problem(s)", len(problems))
    return problems


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------


def _mark_changed(context: RuntimeContext) -> None:
    context.dirty = True
    context.last_error = None
    if context.app_settings.auto_save:
        persist_context(context)


def create_draft(context: RuntimeContext, entity_type: EntityType, **fields: Any) -> Draft:
    return context.drafts.create_new(entity_type, **fields)


def start_edit(context: RuntimeContext, entity_type: EntityType, entity_id: int) -> Draft:
    draft = context.drafts.start_edit(entity_type, entity_id)
    context.selection[EntityType(entity_type)] = entity_id
    return draft


def update_draft(context: RuntimeContext, entity_type: EntityType, **changes: Any) -> Draft:
    return context.drafts.update(entity_type, **changes)


def cancel_draft(context: RuntimeContext, entity_type: EntityType) -> Optional[Draft]:
    return context.drafts.cancel(entity_type)


def save_draft(context: RuntimeContext, entity_type: EntityType) -> Entity:
    """Commit the pending draft for ``entity_type`` and select the result.

    Raises:
        BusinessRuleViolation: If there is no draft to save.
        ValidationError: If the draft fails validation; the message is also
            stored on ``context.last_error``.
    """

    try:
        record = context.drafts.save(entity_type)
    except ValidationError as exc:
        context.last_error = str(exc)
        raise
    context.selection[EntityType(entity_type)] = record.id
    _mark_changed(context)
    return record


def copy_entity(context: RuntimeContext, entity_type: EntityType, entity_id: int) -> Union[Entity, Draft]:
    """Copy a committed record, or open a pre-filled draft for item groups."""

    try:
        result = context.drafts.copy(entity_type, entity_id)
    except ValidationError as exc:
        context.last_error = str(exc)
        raise
    if isinstance(result, Draft):
        return result
    context.selection[EntityType(entity_type)] = result.id
    _mark_changed(context)
    return result


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


def request_delete(
    context: RuntimeContext, entity_type: EntityType, entity_id: int
) -> Optional[PendingDeletion]:
    """Stage a delete and describe which records the cascade would rewrite.

    Requesting the deletion of an identifier that does not exist stages
    nothing and returns ``None``.
    """

    entity_type = EntityType(entity_type)
    record = context.store.collection(entity_type).get(entity_id)
    if record is None:
        log.warning("Nothing to delete: %s %s not found", kind_for(entity_type).label, entity_id)
        context.pending_deletion = None
        return None
    pending = PendingDeletion(
        entity_type=entity_type,
        entity_id=entity_id,
        name=record.name,
        affected=tuple(find_referencing(context.store, entity_type, entity_id)),
    )
    context.pending_deletion = pending
    return pending


def cancel_delete(context: RuntimeContext) -> None:
    context.pending_deletion = None


def confirm_delete(context: RuntimeContext) -> DeletionReport:
    pending = context.pending_deletion
    if pending is None:
        raise BusinessRuleViolation("No deletion is awaiting confirmation")
    context.pending_deletion = None
    return delete_entity(context, pending.entity_type, pending.entity_id)


def delete_entity(context: RuntimeContext, entity_type: EntityType, entity_id: int) -> DeletionReport:
    """Cascade-delete a record and clear session state that pointed at it.

    Deleting an identifier that does not exist is a no-op.
    """

    entity_type = EntityType(entity_type)
    report = cascade_delete(context.store, entity_type, entity_id)
    if not report.removed:
        return report

    context.drafts.discard_for(entity_type, entity_id)
    if context.selection.get(entity_type) == entity_id:
        context.selection[entity_type] = None
    pending = context.pending_deletion
    if pending is not None and (pending.entity_type, pending.entity_id) == (entity_type, entity_id):
        context.pending_deletion = None
    _mark_changed(context)
    return report


# ---------------------------------------------------------------------------
# Settings and persistence
# ---------------------------------------------------------------------------


def update_app_settings(context: RuntimeContext, **changes: Any) -> AppSettings:
    """Replace selected user settings and save them immediately."""

    context.app_settings = replace(context.app_settings, **changes)
    log.info("Updated settings: %s", ", ".join(sorted(changes)) or "none")
    persist_context(context)
    return context.app_settings


def persist_context(context: RuntimeContext) -> None:
    """Write the store and user settings to the configured workbook.

    When backups are enabled the previous file is copied aside first.

    Raises:
        PersistenceError: If the backup or the save fails. In-memory state is
            left untouched.
    """
    if context.app_settings.create_backups:
        data_manager.create_backup(
            context.settings.data_file,
            context.settings.backup_dir,
            context.settings.max_backups,
        )
    snapshot = context.store.to_snapshot(context.app_settings)
    data_manager.save_snapshot(snapshot, context.settings.data_file)
    context.dirty = False
    log.info("Persisted workbook '%s'", context.settings.data_file)


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Reload the workbook to discard unsaved modifications.

    Returns:
        RuntimeContext: Fresh context with a newly loaded store, no drafts,
            and no selection.
    """
    refreshed = _build_context(context.settings)
    log.info("Reloaded workbook '%s'", context.settings.data_file)
    return refreshed


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def export_items(context: RuntimeContext, destination: Path) -> Path:
    """Export every item to ``destination`` with item group names resolved."""

    return export_items_to_csv(
        context.store.items.values(),
        destination,
        item_groups=context.store.item_groups.as_mapping(),
    )


def handle_export_selection(context: RuntimeContext, destination: Optional[Path]) -> ExportOutcome:
    """Run an export for a path chosen by the operator, or none at all.

    ``None`` means the operator dismissed the file picker and is reported as
    cancelled, distinct from a failed export.
    """

    if destination is None:
        log.info("Export cancelled: no destination selected")
        return ExportOutcome(status=ExportStatus.CANCELLED)

    try:
        written = export_items(context, Path(destination))
    except ExportError as exc:
        log.error("Export failed: %s", exc)
        context.last_error = f"Export failed: {exc}"
        return ExportOutcome(status=ExportStatus.FAILED, path=Path(destination), message=str(exc), kind=exc.kind)

    context.last_error = None
    return ExportOutcome(status=ExportStatus.COMPLETED, path=written, message=f"Export successful: {written}")
