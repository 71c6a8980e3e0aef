from __future__ import annotations

from ..models.import_result import ImportResult, ValidationFailure

"""SUMMARY line rendering.

Format:
SUMMARY file={file} sheet={sheet} processed={n} created={n} updated={n}
skipped_empty_rows={n} warnings={n}

Rejected runs render ``SUMMARY file=... code={code} errors={n} warnings={n}``.
"""


def _token(value: str | None) -> str:
    # 空白を含むファイル名でも 1 トークンに収める
    if not value:
        return "-"
    return value.replace(" ", "_")


def render_summary_line(outcome: ImportResult | ValidationFailure) -> str:
    """Render a full SUMMARY line (label included) for an import outcome.

    Examples:
        >>> r = ImportResult(processed=2, created=2, updated=0, skipped_empty_rows=1,
        ...                  file_name="rates.xlsx", sheet_name="UploadTemplate")
        >>> render_summary_line(r)
        'SUMMARY file=rates.xlsx sheet=UploadTemplate processed=2 created=2 updated=0 skipped_empty_rows=1 warnings=0'
    """
    return f"SUMMARY {render_summary_body(outcome)}"


def render_summary_body(outcome: ImportResult | ValidationFailure) -> str:
    """SUMMARY line without the label; the logging formatter adds it."""
    if isinstance(outcome, ValidationFailure):
        stats = outcome.stats
        return (
            f"file={_token(stats.file_name if stats else None)} "
            f"code={outcome.code} "
            f"errors={len(outcome.errors)} "
            f"warnings={len(outcome.warnings)}"
        )
    line = (
        f"file={_token(outcome.file_name)} "
        f"sheet={_token(outcome.sheet_name)} "
        f"processed={outcome.processed} "
        f"created={outcome.created} "
        f"updated={outcome.updated} "
        f"skipped_empty_rows={outcome.skipped_empty_rows} "
        f"warnings={len(outcome.warnings)}"
    )
    if outcome.dry_run:
        line += " dry_run=1"
    return line
