from __future__ import annotations

import csv
import io
import re
import zipfile
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from ..errors import PricingImportError
from ..models.config_models import ImportConfig
from ..models.import_result import ParseResult, ParseStats
from ..models.import_row import ImportRow, OccupancyPrice
from ..models.parse_error import ParseError
from ..services.lookups import normalize_name
from .cells import coerce_boolean, coerce_number, coerce_string, is_blank

"""Workbook parser: byte buffer -> ImportRow list + collected defects.

- 1行目をヘッダ行、2行目以降をデータ行として扱う (行番号はシート上の番号)。
- Known columns are bound through an alias table; every other non-blank
  header is an occupancy-type column whose cells hold the nightly price.
- Long format (occupancy_type_name + price_per_night) is accepted as well.
- Defects never abort the parse; they are collected so that one response can
  list every problem in the file.
"""

__all__ = [
    "WorkbookReadError",
    "COLUMN_ALIASES",
    "parse_workbook",
    "read_table",
    "normalize_header",
    "is_reserved_header",
]


class WorkbookReadError(PricingImportError):
    """Raised when the buffer cannot be read as a workbook or delimited text."""


COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "hotel_id": ("hotel_id", "hotelid", "hotel_code", "hotel"),
    "hotel_name": ("hotel_name", "hotelname", "name"),
    "location_name": ("location_name", "location", "destination"),
    "room_type_name": ("room_type_name", "roomtype", "room_type", "room"),
    "occupancy_type_name": ("occupancy_type_name", "occupancy", "occupancy_type", "pax"),
    "meal_plan_code": ("meal_plan_code", "mealplan", "meal_plan", "plan"),
    "start_date": ("start_date", "from", "from_date", "start"),
    "end_date": ("end_date", "to", "to_date", "end"),
    "price_per_night": ("price_per_night", "price", "rate", "amount"),
    "currency": ("currency",),
    "is_active": ("is_active", "active", "status"),
    "notes": ("notes", "note", "remarks", "comment"),
}

_ALL_ALIASES = {alias for aliases in COLUMN_ALIASES.values() for alias in aliases}
_DELIMITED_SUFFIXES = (".csv", ".tsv", ".txt")
_HEADER_NOISE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class _HeaderLayout:
    indexes: dict[str, int]  # canonical column -> position
    occupancy_columns: list[tuple[int, str]]  # (position, label as written)


def normalize_header(label: Any) -> str:
    if is_blank(label):
        return ""
    return _HEADER_NOISE.sub("_", str(label).strip().lower()).strip("_")


def is_reserved_header(label: Any) -> bool:
    """True when ``label`` would bind to a known column instead of an occupancy column."""
    return normalize_header(label) in _ALL_ALIASES


def _to_python(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    return value


def _looks_like_workbook(buffer: bytes) -> bool:
    return zipfile.is_zipfile(io.BytesIO(buffer))


def read_table(
    buffer: bytes, file_name: str | None = None, config: ImportConfig | None = None
) -> tuple[str, pd.DataFrame]:
    """Read the data table from ``buffer``.

    Returns (sheet_name, raw DataFrame without header binding).

    Raises:
        WorkbookReadError: If the buffer is neither a readable workbook nor
            delimited text, or the workbook has no usable sheet.
    """
    cfg = config or ImportConfig()
    name = (file_name or "").lower()
    if name.endswith(_DELIMITED_SUFFIXES) or not _looks_like_workbook(buffer):
        try:
            text = buffer.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise WorkbookReadError(f"unable to decode delimited text: {e}") from e
        try:
            # 区切り文字は推定 (カンマ / タブ / セミコロン)
            df = pd.read_csv(
                io.StringIO(text),
                header=None,
                sep=None,
                engine="python",
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=False,
            )
        except pd.errors.EmptyDataError:
            df = pd.DataFrame()
        except (pd.errors.ParserError, csv.Error) as e:
            raise WorkbookReadError(f"unable to parse delimited text: {e}") from e
        return ("csv", df)

    try:
        xls = pd.ExcelFile(io.BytesIO(buffer), engine="openpyxl")
    except Exception as e:
        raise WorkbookReadError(f"unable to open workbook: {e}") from e
    sheet_names = [str(s) for s in xls.sheet_names]
    if not sheet_names:
        raise WorkbookReadError("No worksheets found in uploaded file")

    preferred = cfg.preferred_sheet.lower()
    lookup = cfg.lookup_sheet.lower()
    sheet_name = next((s for s in sheet_names if s.lower() == preferred), None)
    if sheet_name is None:
        sheet_name = next((s for s in sheet_names if s.lower() != lookup), None)
    if sheet_name is None:
        raise WorkbookReadError("Unable to locate worksheet data")
    # "NA" などの文字列を欠損値に変換しない (occupancy 列名として有効)
    df = xls.parse(sheet_name, header=None, keep_default_na=False)
    return (sheet_name, df)


def _bind_header(header: list[Any]) -> tuple[_HeaderLayout, list[ParseError]]:
    normalized = [normalize_header(h) for h in header]
    indexes: dict[str, int] = {}
    for column, aliases in COLUMN_ALIASES.items():
        # 別名リストの先頭から優先して一致させる
        for alias in aliases:
            if alias in normalized:
                indexes[column] = normalized.index(alias)
                break

    bound = set(indexes.values())
    errors: list[ParseError] = []
    occupancy_columns: list[tuple[int, str]] = []
    seen_labels: dict[str, str] = {}
    for pos, (raw, norm) in enumerate(zip(header, normalized)):
        if not norm or pos in bound or norm in _ALL_ALIASES:
            continue
        label = str(raw).strip()
        key = normalize_name(label)
        if key in seen_labels:
            errors.append(
                ParseError(
                    row_number=1,
                    field=label,
                    message=f"Duplicate occupancy column \"{label}\" in header",
                    value=seen_labels[key],
                )
            )
            continue
        seen_labels[key] = label
        occupancy_columns.append((pos, label))
    return _HeaderLayout(indexes=indexes, occupancy_columns=occupancy_columns), errors


def _missing_columns(layout: _HeaderLayout) -> list[ParseError]:
    idx = layout.indexes
    errors: list[ParseError] = []
    if "hotel_id" not in idx and "hotel_name" not in idx:
        errors.append(
            ParseError(row_number=1, field="hotel_id", message="Missing required column \"hotel_id\" in template")
        )
    for column in ("room_type_name", "start_date", "end_date"):
        if column not in idx:
            errors.append(
                ParseError(row_number=1, field=column, message=f"Missing required column \"{column}\" in template")
            )
    has_long_format = "occupancy_type_name" in idx and "price_per_night" in idx
    if not layout.occupancy_columns and not has_long_format:
        errors.append(
            ParseError(
                row_number=1,
                field="occupancy_type_name",
                message="No occupancy price columns found (add one column per occupancy type, "
                "or occupancy_type_name + price_per_night)",
            )
        )
    return errors


def _cell(row: list[Any], layout: _HeaderLayout, column: str) -> Any:
    pos = layout.indexes.get(column)
    if pos is None or pos >= len(row):
        return None
    return row[pos]


def _parse_price(
    raw: Any, label: str, row_number: int, errors: list[ParseError]
) -> OccupancyPrice | None:
    price = coerce_number(raw)
    if price is None:
        errors.append(
            ParseError(
                row_number=row_number,
                field="price_per_night",
                message=f"Price for \"{label}\" must be a valid number",
                value=raw,
            )
        )
        return None
    if price < 0:
        errors.append(
            ParseError(
                row_number=row_number,
                field="price_per_night",
                message=f"Price for \"{label}\" cannot be negative",
                value=price,
            )
        )
        return None
    return OccupancyPrice(column_label=label, price=price)


def _parse_row(
    row: list[Any],
    row_number: int,
    layout: _HeaderLayout,
    cfg: ImportConfig,
    warnings: list[str],
) -> tuple[ImportRow | None, list[ParseError]]:
    errors: list[ParseError] = []

    hotel_id = coerce_string(_cell(row, layout, "hotel_id"))
    hotel_name = coerce_string(_cell(row, layout, "hotel_name"))
    location_name = coerce_string(_cell(row, layout, "location_name"))
    room_type_name = coerce_string(_cell(row, layout, "room_type_name"))
    meal_plan_code = coerce_string(_cell(row, layout, "meal_plan_code"))
    currency = coerce_string(_cell(row, layout, "currency"))
    notes = coerce_string(_cell(row, layout, "notes"))
    raw_active = _cell(row, layout, "is_active")

    if not hotel_id and not hotel_name:
        errors.append(ParseError(row_number=row_number, field="hotel_id", message="Hotel ID is required"))
    if not room_type_name:
        errors.append(ParseError(row_number=row_number, field="room_type_name", message="Room type is required"))

    is_active = coerce_boolean(raw_active)
    if is_active is None:
        if is_blank(raw_active):
            is_active = True
        else:
            errors.append(
                ParseError(
                    row_number=row_number,
                    field="is_active",
                    message="is_active must be a boolean (TRUE/FALSE)",
                    value=raw_active,
                )
            )

    prices: list[OccupancyPrice] = []
    # long format: occupancy_type_name + price_per_night
    occupancy_label = coerce_string(_cell(row, layout, "occupancy_type_name"))
    raw_long_price = _cell(row, layout, "price_per_night")
    if occupancy_label and not is_blank(raw_long_price):
        parsed = _parse_price(raw_long_price, occupancy_label, row_number, errors)
        if parsed is not None:
            prices.append(parsed)
    elif occupancy_label:
        errors.append(
            ParseError(
                row_number=row_number,
                field="price_per_night",
                message=f"Price for \"{occupancy_label}\" must be a valid number",
            )
        )
    elif not is_blank(raw_long_price):
        errors.append(
            ParseError(
                row_number=row_number,
                field="occupancy_type_name",
                message="Occupancy type is required when price_per_night is given",
            )
        )

    # wide format: 占有タイプ列ごとに価格
    for pos, label in layout.occupancy_columns:
        raw = row[pos] if pos < len(row) else None
        if is_blank(raw):
            continue
        parsed = _parse_price(raw, label, row_number, errors)
        if parsed is not None:
            prices.append(parsed)

    if not prices and not any(e.field in ("price_per_night", "occupancy_type_name") for e in errors):
        errors.append(
            ParseError(
                row_number=row_number,
                field="price_per_night",
                message="At least one occupancy price is required",
            )
        )

    if currency and currency.upper() != cfg.base_currency.upper():
        warnings.append(
            f"Row {row_number}: Currency \"{currency}\" detected and ignored "
            f"(pricing stored in {cfg.base_currency})"
        )

    if errors:
        return None, errors

    return (
        ImportRow(
            row_number=row_number,
            hotel_id=hotel_id,
            hotel_name=hotel_name,
            location_name=location_name,
            room_type_name=room_type_name or "",
            meal_plan_code=meal_plan_code,
            start_date=_cell(row, layout, "start_date"),
            end_date=_cell(row, layout, "end_date"),
            is_active=is_active,
            occupancy_prices=tuple(prices),
            currency=currency,
            notes=notes,
        ),
        [],
    )


def parse_workbook(
    buffer: bytes, file_name: str | None = None, config: ImportConfig | None = None
) -> ParseResult:
    """Parse an uploaded pricing sheet.

    Parameters
    ----------
    buffer: アップロードされたファイルのバイト列 (xlsx / csv)
    file_name: ファイル名ヒント (拡張子で csv 判定、stats にも記録)
    config: 優先シート名・基準通貨など

    Raises
    ------
    WorkbookReadError: the file cannot be read at all. Everything else is
        reported through ``ParseResult.errors``.
    """
    cfg = config or ImportConfig()
    sheet_name, df = read_table(buffer, file_name, cfg)

    table = [[_to_python(v) for v in raw] for raw in df.itertuples(index=False, name=None)]
    if not table:
        return ParseResult(
            rows=[],
            errors=[ParseError(row_number=1, message="Worksheet is empty")],
            warnings=[],
            stats=ParseStats(sheet_name, 0, 0, 0, file_name),
        )

    layout, header_errors = _bind_header(table[0])
    missing = _missing_columns(layout)
    if missing or header_errors:
        return ParseResult(
            rows=[],
            errors=missing + header_errors,
            warnings=[],
            stats=ParseStats(sheet_name, 0, 0, 0, file_name),
        )

    rows: list[ImportRow] = []
    errors: list[ParseError] = []
    warnings: list[str] = []
    data_rows = 0
    skipped_empty_rows = 0

    for offset, raw_row in enumerate(table[1:]):
        row_number = offset + 2
        if all(is_blank(v) for v in raw_row):
            skipped_empty_rows += 1
            continue
        data_rows += 1
        parsed, row_errors = _parse_row(raw_row, row_number, layout, cfg, warnings)
        if row_errors:
            errors.extend(row_errors)
            continue
        if parsed is not None:
            rows.append(parsed)

    return ParseResult(
        rows=rows,
        errors=errors,
        warnings=warnings,
        stats=ParseStats(
            sheet_name=sheet_name,
            total_rows=max(len(table) - 1, 0),
            data_rows=data_rows,
            skipped_empty_rows=skipped_empty_rows,
            file_name=file_name,
        ),
    )
