from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

import psycopg2
from psycopg2 import sql
from psycopg2.extras import execute_values

from ..errors import PricingImportError
from ..models.config_models import TableNames
from ..models.prepared_row import CombinationKey, PreparedRow
from ..models.reference import PersistedPricing

"""PostgreSQL pricing store (psycopg2).

- find_by_combinations: 1 クエリで全組み合わせを取得 (execute_values で VALUES 結合)
- create / update: 行ごとに INSERT / UPDATE ... RETURNING
- meal_plan_id は NULL 許容なので IS NOT DISTINCT FROM で比較する
- start_date / end_date は naive な UTC 値で渡す (接続側で timezone=UTC を固定)

Transaction boundaries are owned by the caller (see ``transaction``).
"""

logger = logging.getLogger(__name__)

__all__ = [
    "PricingStoreError",
    "PostgresPricingStore",
    "table_identifier",
    "transaction",
]

_COLUMNS = (
    "id",
    "hotel_id",
    "room_type_id",
    "occupancy_type_id",
    "meal_plan_id",
    "start_date",
    "end_date",
    "price",
    "is_active",
)


class PricingStoreError(PricingImportError):
    pass


def table_identifier(name: str) -> sql.Identifier:
    """``schema.table`` -> quoted identifier."""
    return sql.Identifier(*name.split("."))


def _as_utc(value: Any) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    raise PricingStoreError(f"unexpected date value from database: {value!r}")


def _naive_utc(value: datetime) -> datetime:
    # timestamp 列には UTC の壁時計時刻をそのまま渡す (セッション TimeZone に依存しない)
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.replace(tzinfo=None)


def _to_record(row: Sequence[Any]) -> PersistedPricing:
    (pid, hotel_id, room_type_id, occupancy_type_id, meal_plan_id, start, end, price, is_active) = row
    return PersistedPricing(
        id=str(pid),
        hotel_id=str(hotel_id),
        room_type_id=str(room_type_id),
        occupancy_type_id=str(occupancy_type_id),
        meal_plan_id=str(meal_plan_id) if meal_plan_id is not None else None,
        start_date=_as_utc(start),
        end_date=_as_utc(end),
        price=float(price) if isinstance(price, Decimal) else price,
        is_active=bool(is_active),
    )


@contextmanager
def transaction(cursor: Any) -> Iterator[Any]:
    """BEGIN / COMMIT, or ROLLBACK on any exception (re-raised)."""
    cursor.execute("BEGIN")
    try:
        yield cursor
    except Exception:
        try:
            cursor.execute("ROLLBACK")
        except psycopg2.Error as rb:  # pragma: no cover
            logger.error(f"rollback failed: {rb}")
        raise
    cursor.execute("COMMIT")


class PostgresPricingStore:
    """PricingStore backed by a psycopg2 cursor."""

    def __init__(self, cursor: Any, tables: TableNames | None = None) -> None:
        self.cursor = cursor
        self.table = table_identifier((tables or TableNames()).hotel_pricing)
        self._returning = sql.SQL(", ").join(sql.Identifier(c) for c in _COLUMNS)

    def _render(self, query: sql.Composable) -> str:
        return query.as_string(self.cursor)

    def find_by_combinations(self, keys: Sequence[CombinationKey]) -> list[PersistedPricing]:
        if not keys:
            return []
        query = sql.SQL(
            "SELECT {cols} FROM {table} p "
            "JOIN (VALUES %s) AS c(hotel_id, room_type_id, occupancy_type_id, meal_plan_id) "
            "ON p.hotel_id::text = c.hotel_id "
            "AND p.room_type_id::text = c.room_type_id "
            "AND p.occupancy_type_id::text = c.occupancy_type_id "
            "AND p.meal_plan_id::text IS NOT DISTINCT FROM c.meal_plan_id "
            "ORDER BY p.start_date"
        ).format(
            cols=sql.SQL(", ").join(sql.SQL("p.") + sql.Identifier(c) for c in _COLUMNS),
            table=self.table,
        )
        rows = execute_values(
            self.cursor,
            self._render(query),
            [tuple(k) for k in keys],
            template="(%s::text, %s::text, %s::text, %s::text)",
            page_size=max(len(keys), 1),
            fetch=True,
        )
        return [_to_record(r) for r in rows]

    def create(self, row: PreparedRow) -> PersistedPricing:
        query = sql.SQL(
            "INSERT INTO {table} (hotel_id, room_type_id, occupancy_type_id, meal_plan_id, "
            "start_date, end_date, price, is_active) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s) RETURNING {cols}"
        ).format(table=self.table, cols=self._returning)
        self.cursor.execute(
            query,
            (
                row.hotel_id,
                row.room_type_id,
                row.occupancy_type_id,
                row.meal_plan_id,
                _naive_utc(row.start_date_utc),
                _naive_utc(row.end_date_utc),
                row.price,
                row.is_active,
            ),
        )
        return _to_record(self.cursor.fetchone())

    def update(self, pricing_id: str, price: float, is_active: bool) -> PersistedPricing:
        query = sql.SQL(
            "UPDATE {table} SET price = %s, is_active = %s WHERE id::text = %s RETURNING {cols}"
        ).format(table=self.table, cols=self._returning)
        self.cursor.execute(query, (price, is_active, pricing_id))
        fetched = self.cursor.fetchone()
        if fetched is None:
            raise PricingStoreError(f"pricing record not found: {pricing_id}")
        return _to_record(fetched)
