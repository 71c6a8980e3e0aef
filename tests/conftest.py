# Shared pytest fixtures
from __future__ import annotations

import io
import tempfile
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

import pandas as pd
import pytest

from hotel_pricing_import.models.prepared_row import CombinationKey, PreparedRow
from hotel_pricing_import.models.reference import (
    HotelRef,
    MealPlanRef,
    OccupancyTypeRef,
    PersistedPricing,
    RoomTypeRef,
)

HEADER = [
    "hotel_id",
    "hotel_name",
    "location_name",
    "room_type_name",
    "meal_plan_code",
    "start_date",
    "end_date",
    "is_active",
    "Single",
    "Double",
]


class StaticReferenceProvider:
    """ReferenceDataProvider over fixed lists."""

    def __init__(self, hotels=None, room_types=None, occupancy_types=None, meal_plans=None) -> None:
        self._hotels = list(hotels or [])
        self._room_types = list(room_types or [])
        self._occupancy_types = list(occupancy_types or [])
        self._meal_plans = list(meal_plans or [])
        self.calls = 0

    def hotels(self):
        self.calls += 1
        return list(self._hotels)

    def room_types(self):
        return list(self._room_types)

    def occupancy_types(self):
        return list(self._occupancy_types)

    def meal_plans(self):
        return list(self._meal_plans)


class InMemoryPricingStore:
    """PricingStore fake keeping records in a dict; counts calls."""

    def __init__(self, records: Sequence[PersistedPricing] = ()) -> None:
        self.records: dict[str, PersistedPricing] = {r.id: r for r in records}
        self.find_calls = 0
        self.create_calls = 0
        self.update_calls = 0
        self._seq = len(self.records)
        self.fail_on_create_after: int | None = None

    def find_by_combinations(self, keys: Sequence[CombinationKey]) -> list[PersistedPricing]:
        self.find_calls += 1
        wanted = set(keys)
        return [r for r in self.records.values() if r.combination_key in wanted]

    def create(self, row: PreparedRow) -> PersistedPricing:
        if self.fail_on_create_after is not None and self.create_calls >= self.fail_on_create_after:
            raise ConnectionError("connection lost")
        self.create_calls += 1
        self._seq += 1
        record = PersistedPricing(
            id=f"p{self._seq}",
            hotel_id=row.hotel_id,
            room_type_id=row.room_type_id,
            occupancy_type_id=row.occupancy_type_id,
            meal_plan_id=row.meal_plan_id,
            start_date=row.start_date_utc,
            end_date=row.end_date_utc,
            price=row.price,
            is_active=row.is_active,
        )
        self.records[record.id] = record
        return record

    def update(self, pricing_id: str, price: float, is_active: bool) -> PersistedPricing:
        self.update_calls += 1
        record = replace(self.records[pricing_id], price=price, is_active=is_active)
        self.records[pricing_id] = record
        return record

    @property
    def write_calls(self) -> int:
        return self.create_calls + self.update_calls


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def reference() -> StaticReferenceProvider:
    return StaticReferenceProvider(
        hotels=[
            HotelRef(id="h-lotus", name="Lotus Inn", location_label="Munnar"),
            HotelRef(id="h-palm", name="Palm Grove", location_label="Kochi"),
        ],
        room_types=[RoomTypeRef(id="rt-deluxe", name="Deluxe"), RoomTypeRef(id="rt-suite", name="Suite")],
        occupancy_types=[
            OccupancyTypeRef(id="occ-single", name="Single"),
            OccupancyTypeRef(id="occ-double", name="Double"),
            OccupancyTypeRef(id="occ-triple", name="Triple"),
        ],
        meal_plans=[MealPlanRef(id="mp-map", code="MAP", name="Breakfast + Dinner"), MealPlanRef(id="mp-cp", code="CP")],
    )


@pytest.fixture()
def store() -> InMemoryPricingStore:
    return InMemoryPricingStore()


def workbook_bytes(sheets: dict[str, list[list[object]]]) -> bytes:
    """Build an xlsx in memory; first list of each sheet is its header row."""
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        for sheet_name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return buf.getvalue()


@pytest.fixture()
def make_workbook():
    def _make(rows: list[list[object]], header: list[str] | None = None, sheet: str = "UploadTemplate") -> bytes:
        return workbook_bytes({sheet: [list(header or HEADER)] + rows})

    return _make


@pytest.fixture()
def scenario_a_row() -> list[object]:
    return ["h-lotus", "Lotus Inn", "Munnar", "Deluxe", "MAP", "2025-01-01", "2025-01-31", True, 2000, 2800]


CONFIG_YAML = """\
preferred_sheet: UploadTemplate
lookup_sheet: Lookups
base_currency: INR
allowed_users: []
database:
  host: localhost
  port: 5432
  user: postgres
  password: null
  database: travel_backoffice
"""


@pytest.fixture()
def write_config(temp_workdir: Path) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(CONFIG_YAML, encoding="utf-8")
    return cfg


@pytest.fixture()
def build_workbook():
    return workbook_bytes


@pytest.fixture()
def header() -> list[str]:
    return list(HEADER)


@pytest.fixture()
def lookups(reference):
    from hotel_pricing_import.services.lookups import build_lookup_maps

    return build_lookup_maps(
        reference.hotels(), reference.room_types(), reference.occupancy_types(), reference.meal_plans()
    )
