from __future__ import annotations

import math
import re
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta
from typing import Any

import pandas as pd

"""Cell coercion helpers for spreadsheet values.

pandas returns a mix of str / int / float / bool / Timestamp / datetime / NaN
depending on the cell type and the source format (xlsx vs csv). These helpers
turn those into plain Python values, returning None for "blank or unusable".
"""

__all__ = [
    "is_blank",
    "coerce_string",
    "coerce_number",
    "coerce_boolean",
    "coerce_date",
]

# Excel 1900 date system epoch (1899-12-30 accounts for the Lotus leap-year bug)
_EXCEL_EPOCH = datetime(1899, 12, 30, tzinfo=UTC)
# シリアル値として妥当な範囲 (1900-01-01 .. 9999-12-31)
_EXCEL_SERIAL_MIN = 1
_EXCEL_SERIAL_MAX = 2958465

_TRUE_TOKENS = {"true", "t", "yes", "y", "1", "active", "enabled"}
_FALSE_TOKENS = {"false", "f", "no", "n", "0", "inactive", "disabled"}

_NUMBER_NOISE = re.compile(r"[\s,]")


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def coerce_string(value: Any) -> str | None:
    if is_blank(value):
        return None
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float) and value.is_integer():
        # 123.0 -> "123" (Excel が ID を float で返すケース)
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    return str(value).strip()


def coerce_number(value: Any) -> float | None:
    """Return a finite float, or None when the cell is blank or not numeric."""
    if is_blank(value):
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        cleaned = _NUMBER_NOISE.sub("", value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def coerce_boolean(value: Any) -> bool | None:
    if is_blank(value):
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUE_TOKENS:
            return True
        if normalized in _FALSE_TOKENS:
            return False
    return None


def _from_excel_serial(serial: float) -> datetime | None:
    if not (_EXCEL_SERIAL_MIN <= serial <= _EXCEL_SERIAL_MAX):
        return None
    return _EXCEL_EPOCH + timedelta(days=int(serial))


def _utc_date(value: datetime) -> date:
    # offset 付きの値は UTC の暦日に揃える
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.date()


def _utc_midnight(d: date) -> datetime:
    return datetime(d.year, d.month, d.day, tzinfo=UTC)


def coerce_date(value: Any, formats: Iterable[str] = ()) -> datetime | None:
    """Normalize a date-like cell to a UTC-anchored midnight datetime.

    Accepted inputs: datetime/date, pandas Timestamp, Excel serial numbers
    (numeric or digit-only strings), ISO-8601 strings, and strings matching one
    of ``formats`` (tried in order). The time-of-day part is dropped: pricing
    bands are day-granular.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return _utc_midnight(_utc_date(value))
    if isinstance(value, date):
        return _utc_midnight(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return _from_excel_serial(float(value))
    if not isinstance(value, str):
        return None

    text = value.strip()
    # ISO を先に試す ("20250101" のような basic 形式もシリアル値より優先)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None
    if parsed is not None:
        return _utc_midnight(_utc_date(parsed))
    if text.isdigit():
        return _from_excel_serial(float(text))
    for fmt in formats:
        try:
            return _utc_midnight(datetime.strptime(text, fmt).date())
        except ValueError:
            continue
    return None
