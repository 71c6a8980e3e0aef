from __future__ import annotations

from typing import Any

from psycopg2 import sql

from ..models.config_models import TableNames
from ..models.reference import HotelRef, MealPlanRef, OccupancyTypeRef, RoomTypeRef
from .pricing_store import table_identifier

"""Reference-data provider reading hotels / room types / occupancy types /
meal plans from PostgreSQL. Each call is one SELECT; the pipeline calls each
method once per import run."""

__all__ = [
    "PostgresReferenceProvider",
]


class PostgresReferenceProvider:
    def __init__(self, cursor: Any, tables: TableNames | None = None) -> None:
        self.cursor = cursor
        self.tables = tables or TableNames()

    def _fetch(self, query: sql.Composable) -> list[tuple[Any, ...]]:
        self.cursor.execute(query)
        return list(self.cursor.fetchall())

    def hotels(self) -> list[HotelRef]:
        query = sql.SQL(
            "SELECT h.id, h.name, l.label FROM {hotels} h "
            "LEFT JOIN {locations} l ON l.id = h.location_id "
            "ORDER BY l.label, h.name"
        ).format(
            hotels=table_identifier(self.tables.hotels),
            locations=table_identifier(self.tables.locations),
        )
        return [HotelRef(id=str(i), name=n, location_label=loc) for i, n, loc in self._fetch(query)]

    def room_types(self) -> list[RoomTypeRef]:
        query = sql.SQL("SELECT id, name FROM {t} ORDER BY name").format(
            t=table_identifier(self.tables.room_types)
        )
        return [RoomTypeRef(id=str(i), name=n) for i, n in self._fetch(query)]

    def occupancy_types(self) -> list[OccupancyTypeRef]:
        query = sql.SQL("SELECT id, name FROM {t} ORDER BY name").format(
            t=table_identifier(self.tables.occupancy_types)
        )
        return [OccupancyTypeRef(id=str(i), name=n) for i, n in self._fetch(query)]

    def meal_plans(self) -> list[MealPlanRef]:
        query = sql.SQL("SELECT id, code, name FROM {t} ORDER BY code").format(
            t=table_identifier(self.tables.meal_plans)
        )
        return [MealPlanRef(id=str(i), code=c, name=n) for i, c, n in self._fetch(query)]
