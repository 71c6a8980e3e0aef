"""Domain models for the hotel pricing import tool.

This package contains the value objects passed between the parser, the
lookup resolver, the validator and the reconciler.
"""

from .config_models import DatabaseConfig, ImportConfig, TableNames
from .import_result import ImportResult, ParseResult, ParseStats, ValidationFailure
from .import_row import ImportRow, OccupancyPrice
from .parse_error import ParseError
from .prepared_row import CombinationKey, PreparedRow
from .reference import HotelRef, MealPlanRef, OccupancyTypeRef, PersistedPricing, RoomTypeRef

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    "TableNames",
    # Parser output
    "ImportRow",
    "OccupancyPrice",
    "ParseError",
    "ParseResult",
    "ParseStats",
    # Reference / persisted entities
    "HotelRef",
    "RoomTypeRef",
    "OccupancyTypeRef",
    "MealPlanRef",
    "PersistedPricing",
    # Validator / reconciler output
    "CombinationKey",
    "PreparedRow",
    "ImportResult",
    "ValidationFailure",
]
