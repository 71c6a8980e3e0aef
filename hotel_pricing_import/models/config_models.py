from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the hotel pricing import tool.

These are the typed results of YAML loading (see config/loader.py).
Every field except ``database`` has a default so that library callers can use
``ImportConfig()`` without a config file.
"""

DEFAULT_DATE_FORMATS = (
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d-%m-%Y",
    "%m-%d-%Y",
    "%d.%m.%Y",
    "%m.%d.%Y",
)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class TableNames:
    """Physical table names used by the PostgreSQL store and reference provider."""
    hotel_pricing: str = "hotel_pricing"
    hotels: str = "hotels"
    locations: str = "locations"
    room_types: str = "room_types"
    occupancy_types: str = "occupancy_types"
    meal_plans: str = "meal_plans"


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for an import run."""
    preferred_sheet: str = "UploadTemplate"  # 優先して読むシート名 (大文字小文字無視)
    lookup_sheet: str = "Lookups"  # テンプレート付属の参照シート。データとしては読まない
    base_currency: str = "INR"
    date_formats: tuple[str, ...] = DEFAULT_DATE_FORMATS
    allowed_users: frozenset[str] = frozenset()  # 空 = 全員許可
    tables: TableNames = field(default_factory=TableNames)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
