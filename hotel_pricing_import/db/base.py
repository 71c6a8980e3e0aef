from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from ..models.prepared_row import CombinationKey, PreparedRow
from ..models.reference import (
    HotelRef,
    MealPlanRef,
    OccupancyTypeRef,
    PersistedPricing,
    RoomTypeRef,
)

"""Collaborator interfaces consumed by the pipeline.

The pipeline never talks to a global client: a PricingStore and a
ReferenceDataProvider are passed in explicitly. PostgreSQL implementations
live in pricing_store.py / reference_data.py.
"""

__all__ = [
    "PricingStore",
    "ReferenceDataProvider",
]


class PricingStore(Protocol):
    def find_by_combinations(self, keys: Sequence[CombinationKey]) -> list[PersistedPricing]:
        """Return every stored record whose combination key is in ``keys`` (one round trip)."""
        ...

    def create(self, row: PreparedRow) -> PersistedPricing:
        ...

    def update(self, pricing_id: str, price: float, is_active: bool) -> PersistedPricing:
        ...


class ReferenceDataProvider(Protocol):
    def hotels(self) -> list[HotelRef]:
        ...

    def room_types(self) -> list[RoomTypeRef]:
        ...

    def occupancy_types(self) -> list[OccupancyTypeRef]:
        ...

    def meal_plans(self) -> list[MealPlanRef]:
        ...
