from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from ..models.config_models import DEFAULT_DATE_FORMATS
from ..models.import_row import ImportRow
from ..models.parse_error import ParseError
from ..models.prepared_row import CombinationKey, PreparedRow
from ..excel.cells import coerce_date
from .lookups import LookupMaps

"""Row validator & combination builder.

Maps parsed rows through the lookup indexes into PreparedRow entries (one per
occupancy column). Validation is strict per row (any defect voids the whole
row) but batch-wide: every row is scanned before anything is reported.
"""

__all__ = [
    "MappingResult",
    "date_ranges_overlap",
    "map_rows_to_prepared",
]


@dataclass(frozen=True)
class MappingResult:
    prepared: list[PreparedRow] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def date_ranges_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """Half-open intersection test. Symmetric; touching ranges do not overlap."""
    return start_a < end_b and start_b < end_a


def _resolve_row_references(
    row: ImportRow, lookups: LookupMaps, date_formats: Sequence[str]
) -> tuple[dict[str, object], list[tuple[str, str, object]]]:
    """Steps 1-4: hotel, room type, meal plan, dates.

    Returns (resolved values, defects as (field, message, value)).
    """
    defects: list[tuple[str, str, object]] = []
    resolved: dict[str, object] = {}

    hotel = lookups.resolve_hotel(row.hotel_id, row.hotel_name, row.location_name)
    if hotel is None:
        defects.append(
            ("hotel_id", "Hotel could not be matched to database record", row.hotel_id or row.hotel_name)
        )
    else:
        resolved["hotel_id"] = hotel.id

    room_type = lookups.resolve_room_type(row.room_type_name)
    if room_type is None:
        defects.append(("room_type_name", f"Room type \"{row.room_type_name}\" not found", None))
    else:
        resolved["room_type_id"] = room_type.id

    resolved["meal_plan_id"] = None
    if row.meal_plan_code:
        plan = lookups.resolve_meal_plan(row.meal_plan_code)
        if plan is None:
            defects.append(("meal_plan_code", f"Meal plan code \"{row.meal_plan_code}\" not found", None))
        else:
            resolved["meal_plan_id"] = plan.id

    start = coerce_date(row.start_date, date_formats)
    end = coerce_date(row.end_date, date_formats)
    if start is None:
        defects.append(("start_date", "Start date is invalid or missing", row.start_date))
    if end is None:
        defects.append(("end_date", "End date is invalid or missing", row.end_date))
    if start is not None and end is not None and start > end:
        defects.append(("start_date", "Start date must be on or before end date", None))
    resolved["start"] = start
    resolved["end"] = end
    return resolved, defects


def map_rows_to_prepared(
    rows: Iterable[ImportRow],
    lookups: LookupMaps,
    date_formats: Sequence[str] = DEFAULT_DATE_FORMATS,
) -> MappingResult:
    """Resolve and validate ``rows`` in order.

    Row-level defects (unresolved hotel / room type / meal plan, bad dates) are
    reported once per occupancy cell of the row, because each cell would have
    become its own price band. An unresolved occupancy column label rejects
    the whole row. Duplicate (combination, range) pairs are errors citing the
    earlier row; intersecting ranges for one combination are warnings.
    """
    prepared: list[PreparedRow] = []
    errors: list[ParseError] = []
    warnings: list[str] = []
    seen: dict[tuple[CombinationKey, datetime, datetime], int] = {}
    by_combination: dict[CombinationKey, list[PreparedRow]] = {}

    for row in rows:
        resolved, defects = _resolve_row_references(row, lookups, date_formats)
        if defects:
            for _ in row.occupancy_prices:
                errors.extend(
                    ParseError(row_number=row.row_number, field=f, message=m, value=v)
                    for f, m, v in defects
                )
            continue

        row_entries: list[PreparedRow] = []
        row_failed = False
        for cell in row.occupancy_prices:
            occupancy = lookups.resolve_occupancy_type(cell.column_label)
            if occupancy is None:
                errors.append(
                    ParseError(
                        row_number=row.row_number,
                        field="occupancy_type_name",
                        message=f"Occupancy type \"{cell.column_label}\" not found",
                        value=cell.column_label,
                    )
                )
                row_failed = True
                continue
            row_entries.append(
                PreparedRow(
                    row_number=row.row_number,
                    hotel_id=resolved["hotel_id"],  # type: ignore[arg-type]
                    room_type_id=resolved["room_type_id"],  # type: ignore[arg-type]
                    occupancy_type_id=occupancy.id,
                    occupancy_type_label=cell.column_label,
                    meal_plan_id=resolved["meal_plan_id"],  # type: ignore[arg-type]
                    start_date_utc=resolved["start"],  # type: ignore[arg-type]
                    end_date_utc=resolved["end"],  # type: ignore[arg-type]
                    price=cell.price,
                    is_active=row.is_active,
                )
            )
        if row_failed:
            # 部分的な取り込みは許可しない
            continue

        for entry in row_entries:
            key = (entry.combination_key, entry.start_date_utc, entry.end_date_utc)
            earlier = seen.get(key)
            if earlier is not None:
                errors.append(
                    ParseError(
                        row_number=entry.row_number,
                        field="start_date",
                        message=f"Duplicate pricing combination (matches row {earlier})",
                        value=entry.occupancy_type_label,
                    )
                )
                continue
            seen[key] = entry.row_number

            bucket = by_combination.setdefault(entry.combination_key, [])
            for other in bucket:
                if date_ranges_overlap(
                    other.start_date_utc, other.end_date_utc, entry.start_date_utc, entry.end_date_utc
                ):
                    warnings.append(
                        f"Row {entry.row_number} ({entry.occupancy_type_label}) overlaps with row "
                        f"{other.row_number} for the same hotel/room/occupancy/meal plan "
                        "combination in this upload."
                    )
                    break
            bucket.append(entry)
            prepared.append(entry)

    return MappingResult(prepared=prepared, errors=errors, warnings=warnings)
