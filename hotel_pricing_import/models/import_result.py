from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .import_row import ImportRow
from .parse_error import ParseError

"""Result models for parse, validation and reconciliation.

The ``to_response`` helpers render the JSON body returned to the caller:
either full success with advisory warnings, or full rejection with an
itemized, row-numbered error list.
"""

__all__ = [
    "ParseStats",
    "ParseResult",
    "ImportResult",
    "ValidationFailure",
]


@dataclass(frozen=True)
class ParseStats:
    """Operator-facing diagnostics for the parsed sheet."""
    sheet_name: str
    total_rows: int  # ヘッダ以降の行数 (空行含む)
    data_rows: int  # 空行を除いた行数
    skipped_empty_rows: int
    file_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sheetName": self.sheet_name,
            "totalRows": self.total_rows,
            "dataRows": self.data_rows,
            "skippedEmptyRows": self.skipped_empty_rows,
            "fileName": self.file_name,
        }


@dataclass(frozen=True)
class ParseResult:
    rows: list[ImportRow]
    errors: list[ParseError]
    warnings: list[str]
    stats: ParseStats


@dataclass(frozen=True)
class ImportResult:
    """Successful import summary (or validate-only preview when ``dry_run``)."""
    processed: int
    created: int
    updated: int
    skipped_empty_rows: int
    file_name: str | None
    sheet_name: str
    warnings: list[str] = field(default_factory=list)
    dry_run: bool = False

    def to_response(self) -> dict[str, Any]:
        summary: dict[str, Any] = {
            "sheetName": self.sheet_name,
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "skippedEmptyRows": self.skipped_empty_rows,
            "fileName": self.file_name,
        }
        if self.dry_run:
            summary["dryRun"] = True
        return {"success": True, "summary": summary, "warnings": list(self.warnings)}


@dataclass(frozen=True)
class ValidationFailure:
    """Rejected import. Nothing was persisted."""
    error: str
    code: str  # VALIDATION | NO_ROWS | EMPTY_FILE | FORBIDDEN
    errors: list[ParseError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: ParseStats | None = None

    def to_response(self) -> dict[str, Any]:
        details: dict[str, Any] = {
            "errors": [e.to_dict() for e in self.errors],
            "warnings": list(self.warnings),
        }
        if self.stats is not None:
            details["stats"] = self.stats.to_dict()
        return {"error": self.error, "code": self.code, "details": details}
