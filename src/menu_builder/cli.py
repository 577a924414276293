"""Command-line entry points for the Menu Builder toolkit.

All orchestration in this module is limited to argparse wiring and translating
command-line arguments into calls on the business layer. Keeping the CLI thin
ensures the same parser configuration can be reused by tests, scripts, or any
alternative front-end that wants to expose the package capabilities.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, log
from .constants import DEFAULT_EXPORT_FILE_NAME, EntityType, ThemeChoice
from .drafts import Draft
from .entities import Entity, kind_for, kind_of, parse_entity_id
from .errors import ExportError, PersistenceError, ValidationError


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


def parse_entity_type(raw: str) -> EntityType:
    """Accept ``ItemGroup``, ``item-group``, or ``item_group`` style names."""

    wanted = raw.replace("-", "").replace("_", "").casefold()
    for member in EntityType:
        if wanted == member.value.casefold():
            return member
    raise argparse.ArgumentTypeError(f"Unknown entity type: {raw}")


def parse_id_arg(raw: str) -> int:
    try:
        return parse_entity_id(raw)
    except ValidationError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_assignment(raw: str) -> tuple[str, str]:
    name, separator, value = raw.partition("=")
    if not separator or not name.strip():
        raise argparse.ArgumentTypeError(f"Expected FIELD=VALUE, got '{raw}'")
    return name.strip(), value


def parse_switch(raw: str) -> bool:
    text = raw.strip().casefold()
    if text in ("on", "true", "yes", "1"):
        return True
    if text in ("off", "false", "no", "0"):
        return False
    raise argparse.ArgumentTypeError(f"Expected on/off, got '{raw}'")


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="menu-cli",
        description="Command-line tools for the Menu Builder workbook.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to ./config.ini).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as add, edit, and delete."""
    specs = {
        "add": register_add_command(subparsers),
        "edit": register_edit_command(subparsers),
        "copy": register_copy_command(subparsers),
        "delete": register_delete_command(subparsers),
        "settings": register_settings_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as listings and export."""
    specs = {
        "list": register_list_command(subparsers),
        "show": register_show_command(subparsers),
        "check": register_check_command(subparsers),
        "export-csv": register_export_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def _add_target_arguments(parser: argparse.ArgumentParser, *, with_id: bool = True) -> None:
    parser.add_argument("entity_type", type=parse_entity_type, help="Entity type, e.g. Item or item-group.")
    if with_id:
        parser.add_argument("entity_id", type=parse_id_arg)


def _add_set_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--set",
        dest="assignments",
        type=parse_assignment,
        action="append",
        default=[],
        metavar="FIELD=VALUE",
        help="Field value; repeatable. Lists are comma separated, ranges use start..end.",
    )


def register_add_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add``."""
    name = "add"
    help_text = "Create a record from field values."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_target_arguments(parser, with_id=False)
        parser.add_argument("--id", dest="requested_id", default=None, help="Use this ID instead of the next free one.")
        _add_set_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add)


def register_edit_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``edit``."""
    name = "edit"
    help_text = "Change fields of an existing record."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_target_arguments(parser)
        _add_set_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_edit)


def register_copy_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``copy``."""
    name = "copy"
    help_text = "Duplicate a record under the next free ID."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_target_arguments(parser)
        _add_set_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_copy)


def register_delete_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete``."""
    name = "delete"
    help_text = "Delete a record and strip every reference to it."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_target_arguments(parser)
        parser.add_argument("--yes", action="store_true", help="Confirm the deletion.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete)


def register_settings_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``settings``."""
    name = "settings"
    help_text = "Show or change the user settings."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--auto-save", type=parse_switch, default=None, metavar="on|off")
        parser.add_argument("--create-backups", type=parse_switch, default=None, metavar="on|off")
        parser.add_argument("--theme", choices=[member.value for member in ThemeChoice], default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_settings)


def register_list_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``list``."""
    name = "list"
    help_text = "List the records of one entity type."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_target_arguments(parser, with_id=False)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_list)


def register_show_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``show``."""
    name = "show"
    help_text = "Show every field of one record."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_target_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_show)


def register_check_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``check``."""
    name = "check"
    help_text = "Validate every stored record."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_check)


def register_export_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``export-csv``."""
    name = "export-csv"
    help_text = "Export all items to a CSV file."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument(
            "destination",
            nargs="?",
            type=Path,
            default=Path(DEFAULT_EXPORT_FILE_NAME),
            help=f"Target file (default: {DEFAULT_EXPORT_FILE_NAME}).",
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_export)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    target = Path(config_path) if config_path is not None else Path.cwd() / "config.ini"
    return core_logic.load_runtime_context(target)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def translate_assignments(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate repeated ``--set FIELD=VALUE`` options into field changes."""
    return {name: value for name, value in getattr(args, "assignments", [])}


def translate_settings(args: argparse.Namespace) -> Dict[str, Any]:
    changes: Dict[str, Any] = {}
    if args.auto_save is not None:
        changes["auto_save"] = args.auto_save
    if args.create_backups is not None:
        changes["create_backups"] = args.create_backups
    if args.theme is not None:
        changes["theme"] = ThemeChoice(args.theme)
    return changes


def format_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, tuple):
        return ", ".join(format_value(entry) for entry in value) or "(empty)"
    if hasattr(value, "price_level_id"):
        return f"{value.price_level_id}:{value.price}"
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def format_record(record: Entity) -> List[str]:
    kind = kind_of(record)
    lines = [f"{kind.label} {record.id}: {record.name}"]
    for name, value in kind.to_fields(record).items():
        if name != "name":
            lines.append(f"  {name}: {format_value(value)}")
    return lines


def _save_with_changes(
    context: core_logic.RuntimeContext,
    entity_type: EntityType,
    changes: Mapping[str, Any],
) -> Entity:
    try:
        if changes:
            core_logic.update_draft(context, entity_type, **changes)
        return core_logic.save_draft(context, entity_type)
    except Exception:
        core_logic.cancel_draft(context, entity_type)
        raise


def run_add(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the create-and-save workflow in the BLL."""
    changes = translate_assignments(args)
    core_logic.create_draft(context, args.entity_type)
    if args.requested_id is not None:
        changes["requested_id"] = args.requested_id
    record = _save_with_changes(context, args.entity_type, changes)
    print(f"Created {kind_of(record).label} {record.id}: {record.name}")
    return 0


def run_edit(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the edit-and-save workflow in the BLL."""
    core_logic.start_edit(context, args.entity_type, args.entity_id)
    record = _save_with_changes(context, args.entity_type, translate_assignments(args))
    print(f"Updated {kind_of(record).label} {record.id}: {record.name}")
    return 0


def run_copy(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the copy workflow; item groups need new values before saving."""
    result = core_logic.copy_entity(context, args.entity_type, args.entity_id)
    changes = translate_assignments(args)
    if isinstance(result, Draft):
        record = _save_with_changes(context, args.entity_type, changes)
    elif changes:
        core_logic.start_edit(context, args.entity_type, result.id)
        record = _save_with_changes(context, args.entity_type, changes)
    else:
        record = result
    print(f"Copied {kind_of(record).label} {args.entity_id} to {record.id}: {record.name}")
    return 0


def run_delete(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Report what a delete would touch, and perform it when confirmed."""
    pending = core_logic.request_delete(context, args.entity_type, args.entity_id)
    label = kind_for(args.entity_type).label
    if pending is None:
        print(f"Nothing to delete; {label} {args.entity_id} does not exist.")
        return 0
    print(f"Deleting {label} {pending.entity_id}: {pending.name}")
    for source_type, source_id in pending.affected:
        print(f"  will update {kind_for(source_type).label} {source_id}")
    if not args.yes:
        core_logic.cancel_delete(context)
        print("Nothing deleted; re-run with --yes to confirm.")
        return 0
    report = core_logic.confirm_delete(context)
    print(f"Deleted {label} {report.entity_id}; updated {len(report.updated)} record(s).")
    return 0


def run_settings(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Show the settings, applying any requested changes first."""
    changes = translate_settings(args)
    if changes:
        core_logic.update_app_settings(context, **changes)
    current = context.app_settings
    print(f"auto_save: {'on' if current.auto_save else 'off'}")
    print(f"create_backups: {'on' if current.create_backups else 'off'}")
    print(f"theme: {current.theme.value}")
    return 0


def run_list(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print one line per record of the requested type."""
    for record in core_logic.list_entities(context, args.entity_type):
        print(f"{record.id}\t{record.name}")
    return 0


def run_show(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    record = core_logic.select_entity(context, args.entity_type, args.entity_id)
    for line in format_record(record):
        print(line)
    return 0


def run_check(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print stored records that break a rule; exit 2 when any do."""
    problems = core_logic.audit(context)
    for problem in problems:
        print(problem)
    if problems:
        return 2
    print("No problems found.")
    return 0


def run_export(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    outcome = core_logic.handle_export_selection(context, args.destination)
    if outcome.status is core_logic.ExportStatus.FAILED:
        print(f"Export failed: {outcome.message}")
        return 4
    print(outcome.message or "Export cancelled.")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, (core_logic.BusinessRuleViolation, ValidationError)):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    if isinstance(error, (PersistenceError, ExportError)):
        log.error("%s", error)
        return 4
    log.error("%s", error)
    return 1


def persist_workbook(context: core_logic.RuntimeContext) -> None:
    """Persist changes that auto-save has not already written."""
    if context.dirty:
        core_logic.persist_context(context)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        core_logic.ensure_schema_version(context)
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == 0:
            persist_workbook(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
