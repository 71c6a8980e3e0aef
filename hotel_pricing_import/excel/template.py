from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.datavalidation import DataValidation

from ..db.base import ReferenceDataProvider
from ..models.config_models import ImportConfig
from .reader import is_reserved_header

"""Upload template generator.

Writes a workbook with two sheets:
- UploadTemplate: base columns + one column per occupancy type (blank rows)
- Lookups (hidden): hotel ids / names, room types, meal plan codes, currencies

List validations on the template point at the Lookups ranges so that
operators pick valid names instead of typing them.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "BASE_HEADER",
    "build_template",
]

BASE_HEADER = [
    "hotel_id",
    "hotel_name",
    "location_name",
    "room_type_name",
    "meal_plan_code",
    "start_date",
    "end_date",
    "currency",
    "is_active",
    "notes",
]

CURRENCIES = ["INR", "USD", "EUR", "GBP", "AED", "SGD"]


def _column(values: list[object], length: int) -> list[object]:
    return values + [None] * (length - len(values))


def _list_validation(sheet_range: str, source: str) -> DataValidation:
    dv = DataValidation(type="list", formula1=source, allow_blank=True, showErrorMessage=True)
    dv.add(sheet_range)
    return dv


def build_template(
    provider: ReferenceDataProvider,
    out_path: Path,
    rows: int = 400,
    config: ImportConfig | None = None,
) -> Path:
    """Write the upload template to ``out_path`` and return it.

    Raises:
        ValueError: If no hotels exist (a template without hotel ids is useless).
    """
    cfg = config or ImportConfig()
    hotels = provider.hotels()
    if not hotels:
        raise ValueError("No hotels found in the database. Cannot build template.")
    room_types = provider.room_types()
    occupancy_types = provider.occupancy_types()
    meal_plans = provider.meal_plans()

    occupancy_columns: list[str] = []
    for o in occupancy_types:
        # 既知列の別名と同じ名前は列にできない (読み戻せないため)
        if is_reserved_header(o.name):
            logger.warning(f"occupancy type \"{o.name}\" skipped: name is a reserved column alias")
            continue
        occupancy_columns.append(o.name)
    header = BASE_HEADER + occupancy_columns
    template_df = pd.DataFrame([[None] * len(header) for _ in range(rows)], columns=header)

    length = max(len(hotels), len(room_types), len(occupancy_types), len(meal_plans), len(CURRENCIES), 2)
    lookups_df = pd.DataFrame(
        {
            "hotel_id": _column([h.id for h in hotels], length),
            "hotel_name": _column([h.name for h in hotels], length),
            "location_name": _column([h.location_label or "" for h in hotels], length),
            "hotel_display": _column(
                [f"{h.name} ({h.location_label})" if h.location_label else h.name for h in hotels], length
            ),
            "room_type_name": _column([r.name for r in room_types], length),
            "occupancy_type_name": _column([o.name for o in occupancy_types], length),
            "meal_plan_code": _column([m.code for m in meal_plans], length),
            "meal_plan_name": _column([m.name or "" for m in meal_plans], length),
            "currency": _column(list(CURRENCIES), length),
            "boolean_flag": _column(["TRUE", "FALSE"], length),
        }
    )

    out_path.parent.mkdir(parents=True, exist_ok=True)
    template_name = cfg.preferred_sheet
    lookup_name = cfg.lookup_sheet
    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        template_df.to_excel(writer, sheet_name=template_name, index=False)
        lookups_df.to_excel(writer, sheet_name=lookup_name, index=False)

        ws = writer.sheets[template_name]
        last = rows + 1
        validations = [
            ("hotel_id", f"{lookup_name}!$A$2:$A${len(hotels) + 1}", len(hotels)),
            ("room_type_name", f"{lookup_name}!$E$2:$E${len(room_types) + 1}", len(room_types)),
            ("meal_plan_code", f"{lookup_name}!$G$2:$G${len(meal_plans) + 1}", len(meal_plans)),
            ("currency", f"{lookup_name}!$I$2:$I${len(CURRENCIES) + 1}", len(CURRENCIES)),
            ("is_active", f"{lookup_name}!$J$2:$J$3", 2),
        ]
        for column, source, count in validations:
            if count == 0:
                continue
            letter = get_column_letter(header.index(column) + 1)
            ws.add_data_validation(_list_validation(f"{letter}2:{letter}{last}", source))

        widths = [40, 32, 28, 28, 20, 14, 14, 10, 10, 40] + [18] * len(occupancy_columns)
        for idx, width in enumerate(widths, start=1):
            ws.column_dimensions[get_column_letter(idx)].width = width
        writer.sheets[lookup_name].sheet_state = "hidden"

    return out_path
