"""Utility for initializing a Menu Builder installation.

The module doubles as a script (``python -m menu_builder.setup_workbook``) and
as a library used by tests or other tooling. It writes a ``config.ini`` when
none exists and creates an empty menu workbook at the configured location.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from . import data_manager
from .constants import EXPECTED_SCHEMA_VERSION
from .entities import AppSettings
from .errors import PersistenceError


CONFIG_FILE = data_manager.CONFIG_FILE_NAME
DEFAULT_DATA_FILE = "menu_data.xlsx"

CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "SchemaVersion = {schema_version}\n"
    "BackupDir = {backup_dir}\n\n"
    "[Defaults]\n"
    "AutoSave = {auto_save}\n"
    "CreateBackups = {create_backups}\n"
    "Theme = {theme}\n"
    "MaxBackups = {max_backups}\n"
)


def render_config(
    *,
    data_file: str = DEFAULT_DATA_FILE,
    backup_dir: str = data_manager.DEFAULT_BACKUP_DIR,
    max_backups: int = data_manager.DEFAULT_MAX_BACKUPS,
    defaults: AppSettings = AppSettings(),
) -> str:
    return CONFIG_TEMPLATE.format(
        data_file=data_file,
        schema_version=EXPECTED_SCHEMA_VERSION,
        backup_dir=backup_dir,
        auto_save=str(defaults.auto_save).lower(),
        create_backups=str(defaults.create_backups).lower(),
        theme=defaults.theme.value,
        max_backups=max_backups,
    )


def write_default_config(config_path: Path, *, overwrite: bool = False) -> Path:
    """Write a default ``config.ini`` to ``config_path``.

    Raises:
        FileExistsError: If the file exists and ``overwrite`` is ``False``.
    """

    config_path = Path(config_path).expanduser().resolve()
    if config_path.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing configuration: {config_path}")
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(render_config(), encoding="utf-8")
    return config_path


def create_menu_workbook(
    destination: Path,
    *,
    settings: AppSettings = AppSettings(),
    overwrite: bool = False,
) -> Path:
    """Create an empty menu workbook at ``destination``.

    When ``overwrite`` is ``False`` (the default) this function raises
    ``FileExistsError`` if the target already exists.
    """

    destination = Path(destination).expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing menu workbook: {destination}")
    return data_manager.save_snapshot(data_manager.Snapshot(settings=settings), destination)


def run_from_config(config_path: Path, *, overwrite: bool = False) -> Path:
    """Create the workbook named by ``config_path``, writing the config first if absent."""

    config_path = Path(config_path).expanduser().resolve()
    if not config_path.exists():
        write_default_config(config_path)
    parser = data_manager.read_config(config_path)
    settings = data_manager.parse_settings(parser, base_path=config_path.parent)
    return create_menu_workbook(
        settings.data_file,
        settings=settings.default_app_settings,
        overwrite=overwrite,
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(description="Initialize a Menu Builder data file")
    parser.add_argument(
        "--config",
        default=CONFIG_FILE,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the target workbook if it already exists.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the setup script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- Menu Builder Setup ---")
    print(f"Using configuration: {config_path}")

    try:
        output_path = run_from_config(config_path, overwrite=args.force)
    except (FileNotFoundError, KeyError, ValueError) as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except (PersistenceError, OSError) as exc:
        print(f"\n[ERROR] Unable to write workbook: {exc}")
        return 1

    print(f"\n[SUCCESS] Created menu workbook at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
