"""Data access layer for Menu Builder.

This module provides low-level helpers that read from and write to the menu
workbook. Business logic belongs elsewhere.

The public API is designed around four responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: creating, opening, and persisting the Excel file.
3. Snapshot conversion: turning each worksheet into typed entity records and
   back, one sheet per entity type plus a ``Settings`` key/value sheet.
4. Backups: copying the previous file aside before it is overwritten.
"""


from __future__ import annotations

import configparser
import json
import re
import shutil
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from openpyxl.styles import Font
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import EXPECTED_SCHEMA_VERSION, SETTINGS_SHEET, EntityType, PriceLevelType, ThemeChoice
from .entities import (
    AppSettings,
    ChoiceGroup,
    IdRange,
    Item,
    ItemGroup,
    ItemPrice,
    PriceLevel,
    PrinterLogical,
    ProductClass,
    ReportCategory,
    RevenueCategory,
    SecurityLevel,
    TaxGroup,
)
from .errors import PersistenceError


CONFIG_FILE_NAME = "config.ini"
DEFAULT_BACKUP_DIR = "backups"
DEFAULT_MAX_BACKUPS = 10


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    schema_version: str
    backup_dir: Path
    max_backups: int = DEFAULT_MAX_BACKUPS
    default_app_settings: AppSettings = field(default_factory=AppSettings)


@dataclass
class Snapshot:
    """Flat-list form of the whole entity graph as it is persisted."""

    items: List[Item] = field(default_factory=list)
    item_groups: List[ItemGroup] = field(default_factory=list)
    price_levels: List[PriceLevel] = field(default_factory=list)
    product_classes: List[ProductClass] = field(default_factory=list)
    tax_groups: List[TaxGroup] = field(default_factory=list)
    security_levels: List[SecurityLevel] = field(default_factory=list)
    revenue_categories: List[RevenueCategory] = field(default_factory=list)
    report_categories: List[ReportCategory] = field(default_factory=list)
    choice_groups: List[ChoiceGroup] = field(default_factory=list)
    printer_logicals: List[PrinterLogical] = field(default_factory=list)
    settings: AppSettings = field(default_factory=AppSettings)
    schema_version: str = EXPECTED_SCHEMA_VERSION


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory looking for a file named ``CONFIG_FILE_NAME``; the first
    match is considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If no parent directory contains ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = Path(config_path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def _resolve(raw: str, base_path: Optional[Path]) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (base_path or Path.cwd()) / path
    return path.resolve()


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[System] DataFile`` and ``[System] SchemaVersion`` are required. The
    backup directory and the ``[Defaults]`` section are optional and fall back
    to built-in values. Relative paths are anchored at ``base_path`` (normally
    the directory holding ``config.ini``) or the current working directory.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Anchor directory for relative paths.

    Returns:
        ConfigSettings: Immutable settings with resolved paths.

    Raises:
        KeyError: If a required section or option is missing.
        ValueError: If an optional value cannot be interpreted.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    backup_dir_raw = parser.get("System", "BackupDir", fallback=DEFAULT_BACKUP_DIR)
    defaults = AppSettings()
    theme_raw = parser.get("Defaults", "Theme", fallback=defaults.theme.value)
    default_app_settings = AppSettings(
        auto_save=parser.getboolean("Defaults", "AutoSave", fallback=defaults.auto_save),
        create_backups=parser.getboolean("Defaults", "CreateBackups", fallback=defaults.create_backups),
        theme=parse_theme(theme_raw),
    )
    max_backups = parser.getint("Defaults", "MaxBackups", fallback=DEFAULT_MAX_BACKUPS)
    if max_backups < 1:
        raise ValueError(f"MaxBackups must be at least 1, got {max_backups}")

    return ConfigSettings(
        data_file=_resolve(data_file_raw, base_path),
        schema_version=schema_version,
        backup_dir=_resolve(backup_dir_raw, base_path),
        max_backups=max_backups,
        default_app_settings=default_app_settings,
    )


def parse_theme(raw: Any) -> ThemeChoice:
    text = str(raw).strip().casefold()
    for member in ThemeChoice:
        if text in (member.value.casefold(), member.name.casefold()):
            return member
    raise ValueError(f"Unknown theme: {raw!r}")


# ---------------------------------------------------------------------------
# Sheet schemas
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Column:
    """One worksheet column bound to a record attribute."""

    header: str
    attribute: str
    encode: Callable[[Any], Any]
    decode: Callable[[Any], Any]


@dataclass(frozen=True)
class SheetSchema:
    entity_type: EntityType
    sheet_name: str
    snapshot_field: str
    model: type
    columns: Tuple[Column, ...]

    @property
    def headers(self) -> List[str]:
        return [column.header for column in self.columns]


def _same(value: Any) -> Any:
    return value


def _decode_int(raw: Any) -> int:
    if isinstance(raw, bool) or raw is None:
        raise ValueError(f"Expected an integer, got {raw!r}")
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValueError(f"Expected an integer, got {raw!r}")
        return int(raw)
    return int(str(raw).strip())


def _decode_optional_int(raw: Any) -> Optional[int]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    return _decode_int(raw)


def _decode_text(raw: Any) -> str:
    return "" if raw is None else str(raw)


def _encode_decimal(value: Decimal) -> str:
    return str(value)


def _decode_decimal(raw: Any) -> Decimal:
    if raw is None:
        raise ValueError("Missing decimal value")
    return Decimal(str(raw).strip())


def _encode_id_list(value: Optional[Tuple[int, ...]]) -> Optional[str]:
    # Blank cell means absent; "[]" means an explicitly empty list.
    if value is None:
        return None
    return json.dumps(list(value))


def _decode_id_list(raw: Any) -> Optional[Tuple[int, ...]]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    values = json.loads(str(raw))
    if not isinstance(values, list):
        raise ValueError(f"Expected a JSON list, got {raw!r}")
    return tuple(_decode_int(value) for value in values)


def _encode_item_prices(value: Optional[Tuple[ItemPrice, ...]]) -> Optional[str]:
    if value is None:
        return None
    return json.dumps([[entry.price_level_id, str(entry.price)] for entry in value])


def _decode_item_prices(raw: Any) -> Optional[Tuple[ItemPrice, ...]]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    entries = json.loads(str(raw))
    if not isinstance(entries, list):
        raise ValueError(f"Expected a JSON list, got {raw!r}")
    return tuple(
        ItemPrice(price_level_id=_decode_int(level_id), price=_decode_decimal(price))
        for level_id, price in entries
    )


def _encode_id_range(value: IdRange) -> str:
    return json.dumps([value.start, value.end])


def _decode_id_range(raw: Any) -> IdRange:
    start, end = json.loads(str(raw))
    return IdRange(start=_decode_int(start), end=_decode_int(end))


_ID = Column("ID", "id", _same, _decode_int)
_NAME = Column("Name", "name", _same, _decode_text)


def _ref(header: str, attribute: str) -> Column:
    return Column(header, attribute, _same, _decode_optional_int)


def _ref_list(header: str, attribute: str) -> Column:
    return Column(header, attribute, _encode_id_list, _decode_id_list)


def _simple(entity_type: EntityType, snapshot_field: str, model: type) -> SheetSchema:
    return SheetSchema(entity_type, entity_type.value, snapshot_field, model, (_ID, _NAME))


SHEET_SCHEMAS: Tuple[SheetSchema, ...] = (
    SheetSchema(
        EntityType.ITEM,
        EntityType.ITEM.value,
        "items",
        Item,
        (
            _ID,
            _NAME,
            _ref("ItemGroup", "item_group"),
            _ref("TaxGroup", "tax_group"),
            _ref("SecurityLevel", "security_level"),
            _ref("RevenueCategory", "revenue_category"),
            _ref("ReportCategory", "report_category"),
            _ref("ProductClass", "product_class"),
            _ref_list("ChoiceGroups", "choice_groups"),
            _ref_list("PrinterLogicals", "printer_logicals"),
            _ref_list("PriceLevels", "price_levels"),
            Column("ItemPrices", "item_prices", _encode_item_prices, _decode_item_prices),
        ),
    ),
    SheetSchema(
        EntityType.ITEM_GROUP,
        EntityType.ITEM_GROUP.value,
        "item_groups",
        ItemGroup,
        (_ID, _NAME, Column("IdRange", "id_range", _encode_id_range, _decode_id_range)),
    ),
    SheetSchema(
        EntityType.PRICE_LEVEL,
        EntityType.PRICE_LEVEL.value,
        "price_levels",
        PriceLevel,
        (
            _ID,
            _NAME,
            Column("LevelType", "level_type", lambda value: value.value, lambda raw: PriceLevelType(str(raw))),
            Column("Price", "price", _encode_decimal, _decode_decimal),
        ),
    ),
    SheetSchema(
        EntityType.PRODUCT_CLASS,
        EntityType.PRODUCT_CLASS.value,
        "product_classes",
        ProductClass,
        (_ID, _NAME, _ref("ItemGroup", "item_group"), _ref("RevenueCategory", "revenue_category")),
    ),
    SheetSchema(
        EntityType.TAX_GROUP,
        EntityType.TAX_GROUP.value,
        "tax_groups",
        TaxGroup,
        (_ID, _NAME, Column("Rate", "rate", _encode_decimal, _decode_decimal)),
    ),
    _simple(EntityType.SECURITY_LEVEL, "security_levels", SecurityLevel),
    _simple(EntityType.REVENUE_CATEGORY, "revenue_categories", RevenueCategory),
    _simple(EntityType.REPORT_CATEGORY, "report_categories", ReportCategory),
    _simple(EntityType.CHOICE_GROUP, "choice_groups", ChoiceGroup),
    _simple(EntityType.PRINTER_LOGICAL, "printer_logicals", PrinterLogical),
)

SETTINGS_COLUMNS: Sequence[str] = ("Key", "Value")


def serialize_record(schema: SheetSchema, record: Any) -> List[object]:
    """Convert a record into the worksheet column ordering of ``schema``."""

    return [column.encode(getattr(record, column.attribute)) for column in schema.columns]


def deserialize_record(schema: SheetSchema, raw_row: Sequence[object]) -> Any:
    """Convert a raw worksheet row into a typed record.

    Missing trailing cells are treated as blank.

    Raises:
        ValueError: If a cell cannot be interpreted.
    """

    cells = list(raw_row) + [None] * (len(schema.columns) - len(raw_row))
    values = {column.attribute: column.decode(cell) for column, cell in zip(schema.columns, cells)}
    return schema.model(**values)


# ---------------------------------------------------------------------------
# Workbook lifecycle
# ---------------------------------------------------------------------------


def create_workbook() -> Workbook:
    """Build an empty workbook with one headed sheet per schema plus settings."""

    workbook = openpyxl.Workbook()
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    bold_font = Font(bold=True)
    for headers, title in [(schema.headers, schema.sheet_name) for schema in SHEET_SCHEMAS] + [
        (list(SETTINGS_COLUMNS), SETTINGS_SHEET)
    ]:
        worksheet = workbook.create_sheet(title=title)
        for column_index, header in enumerate(headers, start=1):
            cell = worksheet.cell(row=1, column=column_index)
            cell.value = header
            cell.font = bold_font
    return workbook


def open_workbook(data_file: Path) -> Workbook:
    """Open the menu workbook and return a live ``openpyxl`` workbook.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist.
        PersistenceError: If the file is not a readable workbook.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    try:
        return openpyxl.load_workbook(data_file)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise PersistenceError(f"Unable to read workbook {data_file}: {exc}") from exc


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to ``destination``, creating parent folders on demand."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def iter_rows(workbook: Workbook, sheet_name: str):
    """Yield the non-empty data rows of ``sheet_name`` with their 1-based index."""

    sheet = workbook[sheet_name]
    for row_index, raw in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            yield row_index, raw


# ---------------------------------------------------------------------------
# Snapshot load/save
# ---------------------------------------------------------------------------


def _read_settings(workbook: Workbook, defaults: AppSettings) -> Tuple[AppSettings, str]:
    if SETTINGS_SHEET not in workbook.sheetnames:
        return defaults, EXPECTED_SCHEMA_VERSION

    values: Dict[str, Any] = {}
    for _, raw in iter_rows(workbook, SETTINGS_SHEET):
        if raw[0] is not None:
            values[str(raw[0])] = raw[1] if len(raw) > 1 else None

    def _flag(key: str, fallback: bool) -> bool:
        raw = values.get(key)
        if raw is None:
            return fallback
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().casefold()
        if text in ("true", "yes", "1", "on"):
            return True
        if text in ("false", "no", "0", "off"):
            return False
        raise ValueError(f"Invalid boolean for {key}: {raw!r}")

    theme_raw = values.get("Theme")
    settings = AppSettings(
        auto_save=_flag("AutoSave", defaults.auto_save),
        create_backups=_flag("CreateBackups", defaults.create_backups),
        theme=defaults.theme if theme_raw is None else parse_theme(theme_raw),
    )
    schema_version = str(values.get("SchemaVersion") or EXPECTED_SCHEMA_VERSION)
    return settings, schema_version


def load_snapshot(data_file: Path, *, defaults: Optional[AppSettings] = None) -> Snapshot:
    """Read the whole entity graph from ``data_file``.

    A missing file is not an error: an empty snapshot seeded with ``defaults``
    is returned so a fresh installation starts with no records.

    Args:
        data_file (Path): Workbook to read.
        defaults (AppSettings | None): Settings used when the workbook does
            not define them.

    Returns:
        Snapshot: Records for all ten collections plus user settings.

    Raises:
        PersistenceError: If the workbook is unreadable, lacks an entity sheet,
            or holds a row that cannot be converted.
    """

    defaults = defaults or AppSettings()
    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        log.warning("Data file %s not found; starting with an empty menu", data_file)
        return Snapshot(settings=defaults)

    workbook = open_workbook(data_file)
    lists: Dict[str, List[Any]] = {}
    for schema in SHEET_SCHEMAS:
        if schema.sheet_name not in workbook.sheetnames:
            raise PersistenceError(f"Workbook {data_file} is missing sheet '{schema.sheet_name}'")
        records = []
        for row_index, raw in iter_rows(workbook, schema.sheet_name):
            try:
                records.append(deserialize_record(schema, raw))
            except (ValueError, TypeError, InvalidOperation) as exc:
                raise PersistenceError(
                    f"Invalid row {row_index} on sheet '{schema.sheet_name}': {exc}"
                ) from exc
        lists[schema.snapshot_field] = records

    try:
        settings, schema_version = _read_settings(workbook, defaults)
    except ValueError as exc:
        raise PersistenceError(f"Invalid settings in {data_file}: {exc}") from exc

    log.info("Loaded snapshot from %s", data_file)
    return Snapshot(settings=settings, schema_version=schema_version, **lists)


def save_snapshot(snapshot: Snapshot, data_file: Path) -> Path:
    """Write every collection and the user settings to ``data_file``.

    Returns:
        Path: The resolved destination.

    Raises:
        PersistenceError: If the file cannot be written.
    """

    workbook = create_workbook()
    for schema in SHEET_SCHEMAS:
        sheet = workbook[schema.sheet_name]
        for record in getattr(snapshot, schema.snapshot_field):
            sheet.append(serialize_record(schema, record))

    settings_sheet = workbook[SETTINGS_SHEET]
    for key, value in (
        ("SchemaVersion", snapshot.schema_version),
        ("AutoSave", snapshot.settings.auto_save),
        ("CreateBackups", snapshot.settings.create_backups),
        ("Theme", snapshot.settings.theme.value),
    ):
        settings_sheet.append([key, value])

    destination = Path(data_file).expanduser().resolve()
    try:
        save_workbook(workbook, destination)
    except OSError as exc:
        raise PersistenceError(f"Unable to write workbook {destination}: {exc}") from exc
    log.info("Saved snapshot to %s", destination)
    return destination


def create_backup(data_file: Path, backup_dir: Path, max_backups: int = DEFAULT_MAX_BACKUPS) -> Optional[Path]:
    """Copy ``data_file`` into ``backup_dir`` under a timestamped name.

    Only the newest ``max_backups`` copies are kept. Nothing happens when the
    data file does not exist yet.

    Returns:
        Path | None: The new backup, or ``None`` if there was nothing to copy.

    Raises:
        PersistenceError: If the copy or the rotation fails.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        return None

    backup_dir = Path(backup_dir).expanduser().resolve()
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    target = backup_dir / f"{data_file.stem}_{stamp}{data_file.suffix}"
    try:
        backup_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(data_file, target)
        # Timestamped names sort chronologically.
        pattern = re.compile(
            rf"{re.escape(data_file.stem)}_\d{{8}}_\d{{6}}_\d{{6}}{re.escape(data_file.suffix)}"
        )
        existing = sorted(path for path in backup_dir.iterdir() if pattern.fullmatch(path.name))
        for stale in existing[:-max_backups] if max_backups > 0 else existing:
            stale.unlink()
    except OSError as exc:
        raise PersistenceError(f"Unable to back up {data_file}: {exc}") from exc

    log.info("Created backup %s", target)
    return target
