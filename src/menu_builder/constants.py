"""Enumerations and fixed limits shared across Menu Builder modules.

Centralises domain constants so that the entity model, the persistence layer,
and the command-line shell rely on a single source of truth for entity type
names and identifier ranges.
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Tuple


# Schema version written to, and expected in, every persisted workbook.
EXPECTED_SCHEMA_VERSION = "1.0.0"

# EntityId is a 32-bit signed integer.
ENTITY_ID_MIN = -(2**31)
ENTITY_ID_MAX = 2**31 - 1

PRINTER_NAME_MAX_LENGTH = 16
DEFAULT_EXPORT_FILE_NAME = "Infogenesis_Items_Import.csv"
SETTINGS_SHEET = "Settings"


class EntityType(str, Enum):
    """Enumerate the ten entity collections managed by the editor."""

    ITEM = "Item"
    ITEM_GROUP = "ItemGroup"
    PRICE_LEVEL = "PriceLevel"
    PRODUCT_CLASS = "ProductClass"
    TAX_GROUP = "TaxGroup"
    SECURITY_LEVEL = "SecurityLevel"
    REVENUE_CATEGORY = "RevenueCategory"
    REPORT_CATEGORY = "ReportCategory"
    CHOICE_GROUP = "ChoiceGroup"
    PRINTER_LOGICAL = "PrinterLogical"


class PriceLevelType(str, Enum):
    """Enumerate price level scopes; each scope has its own ID range."""

    ITEM = "Item"
    STORE = "Store"


class ThemeChoice(str, Enum):
    """Enumerate the display themes an operator can pick."""

    LIGHT = "Light"
    DARK = "Dark"


# Inclusive (low, high) ID bounds. PriceLevel bounds depend on its level type.
ID_RANGES: Mapping[EntityType, Tuple[int, int]] = {
    EntityType.ITEM: (1, ENTITY_ID_MAX),
    EntityType.ITEM_GROUP: (1, ENTITY_ID_MAX),
    EntityType.PRODUCT_CLASS: (1, 999),
    EntityType.TAX_GROUP: (1, 99),
    EntityType.SECURITY_LEVEL: (0, 9),
    EntityType.REVENUE_CATEGORY: (1, 99),
    EntityType.REPORT_CATEGORY: (1, 255),
    EntityType.CHOICE_GROUP: (1, 9999),
    EntityType.PRINTER_LOGICAL: (0, 25),
}

PRICE_LEVEL_ID_RANGES: Mapping[PriceLevelType, Tuple[int, int]] = {
    PriceLevelType.ITEM: (1, 999),
    PriceLevelType.STORE: (1, 99999),
}


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "ENTITY_ID_MIN",
    "ENTITY_ID_MAX",
    "PRINTER_NAME_MAX_LENGTH",
    "DEFAULT_EXPORT_FILE_NAME",
    "SETTINGS_SHEET",
    "EntityType",
    "PriceLevelType",
    "ThemeChoice",
    "ID_RANGES",
    "PRICE_LEVEL_ID_RANGES",
]
