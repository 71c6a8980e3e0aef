from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import NamedTuple

"""PreparedRow: a resolved, validated pricing entry ready for persistence.

One ImportRow expands into one PreparedRow per occupancy column.
"""

__all__ = [
    "CombinationKey",
    "PreparedRow",
]


class CombinationKey(NamedTuple):
    """Identifies a distinct pricing series."""
    hotel_id: str
    room_type_id: str
    occupancy_type_id: str
    meal_plan_id: str | None


@dataclass(frozen=True)
class PreparedRow:
    row_number: int
    hotel_id: str
    room_type_id: str
    occupancy_type_id: str
    occupancy_type_label: str  # 警告メッセージ用
    meal_plan_id: str | None
    start_date_utc: datetime
    end_date_utc: datetime
    price: float
    is_active: bool

    @property
    def combination_key(self) -> CombinationKey:
        return CombinationKey(
            self.hotel_id, self.room_type_id, self.occupancy_type_id, self.meal_plan_id
        )

    @property
    def range_key(self) -> tuple[datetime, datetime]:
        return (self.start_date_utc, self.end_date_utc)
