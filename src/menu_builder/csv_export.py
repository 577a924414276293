"""CSV export of menu items for import into the point-of-sale system."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence

from . import log
from .entities import Item, ItemGroup
from .errors import ExportError, ExportErrorKind


CSV_HEADERS: Sequence[str] = (
    "ItemID",
    "Name",
    "ItemGroupID",
    "ItemGroupName",
    "TaxGroupID",
    "SecurityLevelID",
    "RevenueCategoryID",
    "ReportCategoryID",
    "ProductClassID",
    "ChoiceGroupIDs",
    "PrinterLogicalIDs",
    "PriceLevelIDs",
    "ItemPrices",
)

LIST_SEPARATOR = ";"


def _optional(value: Optional[int]) -> str:
    return "" if value is None else str(value)


def _join(values: Optional[Iterable[object]]) -> str:
    if values is None:
        return ""
    return LIST_SEPARATOR.join(str(value) for value in values)


def item_to_row(item: Item, item_groups: Optional[Mapping[int, ItemGroup]] = None) -> List[str]:
    """Flatten one item into the export column ordering.

    When ``item_groups`` is supplied the group name is resolved and a dangling
    group reference is rejected.

    Raises:
        ExportError: With kind ``INVALID_VALUE`` for an unresolvable group or
            an item without a name.
    """

    if not item.name.strip():
        raise ExportError(ExportErrorKind.INVALID_VALUE, f"Item {item.id} has no name")

    group_name = ""
    if item_groups is not None and item.item_group is not None:
        group = item_groups.get(item.item_group)
        if group is None:
            raise ExportError(
                ExportErrorKind.INVALID_VALUE,
                f"Item {item.id} references unknown item group {item.item_group}",
            )
        group_name = group.name

    prices = None
    if item.item_prices is not None:
        prices = [f"{entry.price_level_id}:{entry.price}" for entry in item.item_prices]

    return [
        str(item.id),
        item.name,
        _optional(item.item_group),
        group_name,
        _optional(item.tax_group),
        _optional(item.security_level),
        _optional(item.revenue_category),
        _optional(item.report_category),
        _optional(item.product_class),
        _join(item.choice_groups),
        _join(item.printer_logicals),
        _join(item.price_levels),
        _join(prices),
    ]


def export_items_to_csv(
    items: Iterable[Item],
    destination: Path,
    item_groups: Optional[Mapping[int, ItemGroup]] = None,
) -> Path:
    """Write one row per item, in id order, to ``destination``.

    Every row is built before the file is opened, so a value error never
    leaves a partial export behind.

    Args:
        items (Iterable[Item]): Items to export.
        destination (Path): Target file; must carry a ``.csv`` extension.
        item_groups (Mapping[int, ItemGroup] | None): Groups used to resolve
            the ``ItemGroupName`` column.

    Returns:
        Path: The resolved destination.

    Raises:
        ExportError: ``INVALID_FORMAT`` for a non-CSV path, ``INVALID_VALUE``
            for an item that cannot be flattened, ``IO`` if writing fails.
    """

    destination = Path(destination).expanduser()
    if destination.suffix.lower() != ".csv":
        raise ExportError(ExportErrorKind.INVALID_FORMAT, f"Export target must be a .csv file: {destination}")

    rows = [item_to_row(item, item_groups) for item in sorted(items, key=lambda item: item.id)]

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with destination.open("w", newline="", encoding="utf-8") as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow(CSV_HEADERS)
            writer.writerows(rows)
    except OSError as exc:
        raise ExportError(ExportErrorKind.IO, f"Unable to write {destination}: {exc}") from exc

    log.info("Exported %d item(s) to %s", len(rows), destination)
    return destination.resolve()
