from __future__ import annotations

import logging
from collections.abc import Callable

from ..db.base import PricingStore, ReferenceDataProvider
from ..excel.reader import parse_workbook
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ImportConfig
from ..models.import_result import ImportResult, ParseStats, ValidationFailure
from ..models.parse_error import ParseError
from .lookups import build_lookup_maps
from .reconciler import dedupe_warnings, reconcile
from .validator import map_rows_to_prepared

"""Import orchestration: buffer -> parse -> resolve/validate -> reconcile.

The whole file is validated before anything is persisted; when any defect is
found the run returns a ValidationFailure and the store is never touched.
Fatal conditions (unreadable file, store failure) propagate as exceptions.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ImportOutcome",
    "run_import",
]

ImportOutcome = ImportResult | ValidationFailure


def _reject(
    error: str,
    code: str,
    *,
    errors: list[ParseError] | None = None,
    warnings: list[str] | None = None,
    stats: ParseStats | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> ValidationFailure:
    failure = ValidationFailure(
        error=error,
        code=code,
        errors=list(errors or []),
        warnings=list(warnings or []),
        stats=stats,
    )
    if error_log is not None and failure.errors:
        error_log.extend(
            stats.file_name if stats else None,
            stats.sheet_name if stats else None,
            code,
            failure.errors,
        )
    logger.info(f"import rejected: code={code} errors={len(failure.errors)}")
    return failure


def run_import(
    buffer: bytes,
    file_name: str | None,
    reference_provider: ReferenceDataProvider,
    store: PricingStore | None,
    *,
    config: ImportConfig | None = None,
    authorize: Callable[[], bool] | None = None,
    validate_only: bool = False,
    error_log: ErrorLogBuffer | None = None,
) -> ImportOutcome:
    """Run one import end-to-end.

    Args:
        buffer: Uploaded file content (xlsx or delimited text)
        file_name: Upload file name (format hint, echoed in the summary)
        reference_provider: Source of hotels / room types / occupancy types / meal plans
        store: Pricing store; may be None only when ``validate_only``
        config: Import configuration (defaults when None)
        authorize: Gate called before anything else; False -> FORBIDDEN
        validate_only: Stop after validation and return a preview (no store calls)
        error_log: Receives the defects of a rejected run

    Returns:
        ImportResult on success (or preview), ValidationFailure on rejection

    Raises:
        WorkbookReadError: The file cannot be read at all
        PersistenceError: The store failed during reconciliation
    """
    cfg = config or ImportConfig()

    if authorize is not None and not authorize():
        return _reject("Forbidden", "FORBIDDEN")

    if not buffer:
        return _reject("Uploaded file is empty", "EMPTY_FILE")

    parsed = parse_workbook(buffer, file_name, cfg)
    logger.info(
        f"parsed sheet={parsed.stats.sheet_name} rows={len(parsed.rows)} "
        f"blank={parsed.stats.skipped_empty_rows} errors={len(parsed.errors)}"
    )
    if parsed.errors:
        return _reject(
            "Validation failed",
            "VALIDATION",
            errors=parsed.errors,
            warnings=parsed.warnings,
            stats=parsed.stats,
            error_log=error_log,
        )
    if not parsed.rows:
        return _reject(
            "No pricing rows detected", "NO_ROWS", warnings=parsed.warnings, stats=parsed.stats
        )

    lookups = build_lookup_maps(
        reference_provider.hotels(),
        reference_provider.room_types(),
        reference_provider.occupancy_types(),
        reference_provider.meal_plans(),
    )
    mapping = map_rows_to_prepared(parsed.rows, lookups, cfg.date_formats)
    warnings = dedupe_warnings(parsed.warnings, mapping.warnings)
    if mapping.errors:
        return _reject(
            "Validation failed",
            "VALIDATION",
            errors=mapping.errors,
            warnings=warnings,
            stats=parsed.stats,
            error_log=error_log,
        )

    if validate_only:
        logger.info(f"validate-only: {len(mapping.prepared)} pricing rows ready")
        return ImportResult(
            processed=len(mapping.prepared),
            created=0,
            updated=0,
            skipped_empty_rows=parsed.stats.skipped_empty_rows,
            file_name=parsed.stats.file_name,
            sheet_name=parsed.stats.sheet_name,
            warnings=warnings,
            dry_run=True,
        )

    if store is None:
        raise ValueError("store is required unless validate_only=True")
    result = reconcile(mapping.prepared, store, parsed.stats, warnings)
    for w in result.warnings:
        logger.warning(w)
    return result
