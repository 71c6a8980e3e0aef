from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .prepared_row import CombinationKey

"""Reference entities and the persisted pricing record.

Reference entities come from the reference-data provider; PersistedPricing is
owned by the pricing store.
"""

__all__ = [
    "HotelRef",
    "RoomTypeRef",
    "OccupancyTypeRef",
    "MealPlanRef",
    "PersistedPricing",
]


@dataclass(frozen=True)
class HotelRef:
    id: str
    name: str
    location_label: str | None = None


@dataclass(frozen=True)
class RoomTypeRef:
    id: str
    name: str


@dataclass(frozen=True)
class OccupancyTypeRef:
    id: str
    name: str


@dataclass(frozen=True)
class MealPlanRef:
    id: str
    code: str
    name: str | None = None


@dataclass(frozen=True)
class PersistedPricing:
    """A stored price band for one combination key."""
    id: str
    hotel_id: str
    room_type_id: str
    occupancy_type_id: str
    meal_plan_id: str | None
    start_date: datetime
    end_date: datetime
    price: float
    is_active: bool = True

    @property
    def combination_key(self) -> CombinationKey:
        return CombinationKey(
            self.hotel_id, self.room_type_id, self.occupancy_type_id, self.meal_plan_id
        )
