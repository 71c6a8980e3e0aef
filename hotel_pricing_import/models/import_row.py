from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""ImportRow model: one non-blank sheet row after header binding."""

__all__ = [
    "ImportRow",
    "OccupancyPrice",
]


@dataclass(frozen=True)
class OccupancyPrice:
    """Price for one occupancy column (label as written in the sheet header)."""
    column_label: str
    price: float


@dataclass(frozen=True)
class ImportRow:
    """Logical representation of a single pricing row before name resolution.

    Dates are kept raw; they are normalized to UTC by the validator.
    ``occupancy_prices`` is never empty for a row that reaches this model.
    """
    row_number: int  # シート上の行番号 (ヘッダ = 1)
    room_type_name: str
    start_date: Any
    end_date: Any
    occupancy_prices: tuple[OccupancyPrice, ...]
    hotel_id: str | None = None
    hotel_name: str | None = None
    location_name: str | None = None
    meal_plan_code: str | None = None
    is_active: bool = True
    currency: str | None = None
    notes: str | None = None
