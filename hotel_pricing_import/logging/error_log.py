from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..models.parse_error import ParseError

"""Error log buffering for rejected imports.

- JSON Lines 固定スキーマ (追加キー禁止)
- 起動ごとに `logs/errors-YYYYMMDD-HHMMSS.log` (UTC) を生成 (必要時のみ)
- Each line is one ParseError plus the run context (timestamp, file, sheet, code).
"""

__all__ = [
    "ErrorLogEntry",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


@dataclass(frozen=True)
class ErrorLogEntry:
    timestamp: str  # ISO8601 UTC, 'Z' suffix
    file: str
    sheet: str
    code: str  # VALIDATION / NO_ROWS / ...
    error: ParseError

    @staticmethod
    def create(file: str | None, sheet: str | None, code: str, error: ParseError) -> ErrorLogEntry:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorLogEntry(
            timestamp=ts,
            file=file or "<unknown>",
            sheet=sheet or "<unknown>",
            code=code,
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "file": self.file,
            "sheet": self.sheet,
            "code": self.code,
            **self.error.to_dict(),
        }

    def to_json_line(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


class ErrorLogBuffer:
    """In-memory buffer of rejected-import defects. ``flush`` appends JSON Lines.

    The file path is fixed on first access. Not thread-safe (one buffer per run).
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._entries: list[ErrorLogEntry] = []
        self._logs_dir = logs_dir or LOGS_DIR
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, entry: ErrorLogEntry) -> None:
        self._entries.append(entry)

    def extend(self, file: str | None, sheet: str | None, code: str, errors: list[ParseError]) -> None:
        for err in errors:
            self.append(ErrorLogEntry.create(file, sheet, code, err))

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._entries)

    def flush(self) -> Path | None:
        """Write buffered entries. Returns the log path, or None when nothing was buffered."""
        if not self._entries:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for entry in self._entries:
                f.write(entry.to_json_line() + "\n")
        self._entries.clear()
        return fp

