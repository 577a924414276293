"""Shared pytest fixtures and utilities for Menu Builder tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from menu_builder import cli, constants, core_logic, data_manager  # noqa: E402
from menu_builder.constants import EntityType, PriceLevelType  # noqa: E402
from menu_builder.drafts import EditSessionManager  # noqa: E402
from menu_builder.entities import (  # noqa: E402
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
from menu_builder.repository import MenuStore  # noqa: E402
from menu_builder.setup_workbook import create_menu_workbook  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "SchemaVersion = {schema_version}\n"
    "BackupDir = {backup_dir}\n\n"
    "[Defaults]\n"
    "AutoSave = {auto_save}\n"
    "CreateBackups = {create_backups}\n"
    "Theme = Dark\n"
    "MaxBackups = {max_backups}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    backup_dir: Path
    schema_version: str


def build_sample_store() -> MenuStore:
    """Return a small, fully consistent menu covering every entity type."""

    return MenuStore(
        {
            EntityType.ITEM_GROUP: [
                ItemGroup(1, "Entrees", IdRange(1, 100)),
                ItemGroup(2, "Drinks", IdRange(100, 200)),
            ],
            EntityType.PRICE_LEVEL: [
                PriceLevel(1, "Regular", PriceLevelType.ITEM, Decimal("0.00")),
                PriceLevel(2, "Happy Hour", PriceLevelType.ITEM, Decimal("0.00")),
            ],
            EntityType.PRODUCT_CLASS: [ProductClass(1, "Sandwiches", item_group=1, revenue_category=1)],
            EntityType.TAX_GROUP: [TaxGroup(1, "Food Tax", Decimal("8.25"))],
            EntityType.SECURITY_LEVEL: [SecurityLevel(0, "Open")],
            EntityType.REVENUE_CATEGORY: [RevenueCategory(1, "Food")],
            EntityType.REPORT_CATEGORY: [ReportCategory(1, "Kitchen Sales")],
            EntityType.CHOICE_GROUP: [ChoiceGroup(1, "Sides"), ChoiceGroup(2, "Sauces")],
            EntityType.PRINTER_LOGICAL: [PrinterLogical(0, "Kitchen"), PrinterLogical(1, "Bar")],
            EntityType.ITEM: [
                Item(
                    5,
                    "Burger",
                    item_group=1,
                    tax_group=1,
                    security_level=0,
                    revenue_category=1,
                    report_category=1,
                    product_class=1,
                    choice_groups=(1,),
                    printer_logicals=(0, 1),
                    price_levels=(1, 2),
                    item_prices=(ItemPrice(1, Decimal("9.50")), ItemPrice(2, Decimal("7.50"))),
                ),
                Item(7, "Fries", item_group=1, choice_groups=(1, 2)),
            ],
        }
    )


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the repository root path."""

    return PROJECT_ROOT


@pytest.fixture
def store() -> MenuStore:
    """Return a populated store; each test gets its own copy."""

    return build_sample_store()


@pytest.fixture
def empty_store() -> MenuStore:
    return MenuStore()


@pytest.fixture
def drafts(store: MenuStore) -> EditSessionManager:
    return EditSessionManager(store)


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an empty menu workbook in a temp folder."""

    def _create_workbook(*, subdir: str | None = None, filename: str = "menu_data.xlsx") -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = base_dir / filename
        create_menu_workbook(workbook_path, overwrite=True)
        return workbook_path

    return _create_workbook


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        auto_save: bool = False,
        create_backups: bool = False,
        max_backups: int = 3,
        with_workbook: bool = True,
    ) -> ConfigBundle:
        bundle_name = f"bundle_{uuid.uuid4().hex}"
        bundle_dir = tmp_path / bundle_name
        bundle_dir.mkdir(parents=True, exist_ok=True)
        if with_workbook:
            workbook_path = workbook_factory(subdir=bundle_name)
        else:
            workbook_path = bundle_dir / "menu_data.xlsx"
        backup_dir = bundle_dir / "backups"
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=workbook_path.name if make_relative else str(workbook_path),
                schema_version=schema_version,
                backup_dir="backups" if make_relative else str(backup_dir),
                auto_save=str(auto_save).lower(),
                create_backups=str(create_backups).lower(),
                max_backups=max_backups,
            )
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            backup_dir=backup_dir,
            schema_version=schema_version,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="menu-cli", description="Menu CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide configuration settings pointing into a temp folder."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "menu_data.xlsx",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
        backup_dir=tmp_path / "backups",
        max_backups=3,
    )


@pytest.fixture
def context(settings: data_manager.ConfigSettings, store: MenuStore) -> core_logic.RuntimeContext:
    """Assemble an in-memory runtime context with auto-save and backups off."""

    return core_logic.RuntimeContext(
        settings=settings,
        store=store,
        app_settings=AppSettings(auto_save=False, create_backups=False),
        drafts=EditSessionManager(store),
    )
