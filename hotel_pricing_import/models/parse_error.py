from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

"""ParseError model for row-level import defects.

Row number 1 is the header row; it is used for sheet-level defects such as a
missing required column. The serialized form uses the camelCase keys of the
JSON response contract and omits unset optional keys.
"""

__all__ = [
    "ParseError",
]


@dataclass(frozen=True)
class ParseError:
    """A single collected defect.

    Attributes:
        row_number: 1-based sheet row (header = 1)
        message: Human readable description
        field: Canonical column name the defect relates to, if any
        value: Offending raw value, if useful for the operator
    """
    row_number: int
    message: str
    field: str | None = None
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"rowNumber": self.row_number}
        if self.field is not None:
            data["field"] = self.field
        data["message"] = self.message
        if self.value is not None:
            data["value"] = _json_safe(self.value)
        return data

    def to_json_line(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def _json_safe(value: Any) -> Any:
    # datetime / Timestamp / numpy scalar などは文字列化
    if isinstance(value, (str, int, float, bool)):
        return value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)
