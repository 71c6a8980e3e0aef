from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from ..models.reference import HotelRef, MealPlanRef, OccupancyTypeRef, RoomTypeRef

"""Lookup resolver: in-memory indexes over reference data.

Built once per import run and never mutated afterwards. Keys are normalized
so that spreadsheet entry variance (case, stray spaces) still resolves:

- names: trim + collapse inner whitespace + lowercase
- codes: trim + uppercase (meal plan codes are conventionally upper-case)
"""

__all__ = [
    "LookupMaps",
    "build_lookup_maps",
    "normalize_name",
    "normalize_code",
    "composite_hotel_key",
]


def normalize_name(value: str | None) -> str:
    if not value:
        return ""
    return " ".join(value.split()).lower()


def normalize_code(value: str | None) -> str:
    if not value:
        return ""
    return value.strip().upper()


def composite_hotel_key(name: str | None, location: str | None) -> str:
    return f"{normalize_name(name)}|{normalize_name(location)}"


@dataclass(frozen=True)
class LookupMaps:
    hotels_by_id: Mapping[str, HotelRef]
    hotels_by_composite: Mapping[str, HotelRef]
    room_type_by_name: Mapping[str, RoomTypeRef]
    occupancy_type_by_name: Mapping[str, OccupancyTypeRef]
    meal_plan_by_code: Mapping[str, MealPlanRef]

    def resolve_hotel(
        self, hotel_id: str | None, hotel_name: str | None, location_name: str | None
    ) -> HotelRef | None:
        """Exact id first, then the (name, location) composite."""
        hotel = self.hotels_by_id.get(hotel_id.strip()) if hotel_id else None
        if hotel is None and (hotel_name or location_name):
            hotel = self.hotels_by_composite.get(composite_hotel_key(hotel_name, location_name))
        return hotel

    def resolve_room_type(self, name: str | None) -> RoomTypeRef | None:
        return self.room_type_by_name.get(normalize_name(name))

    def resolve_occupancy_type(self, label: str | None) -> OccupancyTypeRef | None:
        return self.occupancy_type_by_name.get(normalize_name(label))

    def resolve_meal_plan(self, code: str | None) -> MealPlanRef | None:
        return self.meal_plan_by_code.get(normalize_code(code))


def build_lookup_maps(
    hotels: Iterable[HotelRef],
    room_types: Iterable[RoomTypeRef],
    occupancy_types: Iterable[OccupancyTypeRef],
    meal_plans: Iterable[MealPlanRef],
) -> LookupMaps:
    """Build the resolver indexes. O(n) in the total number of reference entities.

    On key collisions the later entity wins, matching the order returned by
    the reference-data provider.
    """
    hotels_by_id: dict[str, HotelRef] = {}
    hotels_by_composite: dict[str, HotelRef] = {}
    for hotel in hotels:
        hotels_by_id[hotel.id.strip()] = hotel
        hotels_by_composite[composite_hotel_key(hotel.name, hotel.location_label)] = hotel

    room_type_by_name = {normalize_name(r.name): r for r in room_types}
    occupancy_type_by_name = {normalize_name(o.name): o for o in occupancy_types}
    meal_plan_by_code = {normalize_code(m.code): m for m in meal_plans}

    return LookupMaps(
        hotels_by_id=MappingProxyType(hotels_by_id),
        hotels_by_composite=MappingProxyType(hotels_by_composite),
        room_type_by_name=MappingProxyType(room_type_by_name),
        occupancy_type_by_name=MappingProxyType(occupancy_type_by_name),
        meal_plan_by_code=MappingProxyType(meal_plan_by_code),
    )
