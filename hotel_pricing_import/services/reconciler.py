from __future__ import annotations

import logging
from collections.abc import Sequence

from ..db.base import PricingStore
from ..errors import PricingImportError
from ..models.import_result import ImportResult, ParseStats
from ..models.prepared_row import CombinationKey, PreparedRow
from ..models.reference import PersistedPricing
from .progress import ProgressTracker
from .validator import date_ranges_overlap

"""Persistence reconciler: idempotent upsert of prepared price bands.

Exact (combination, start, end) match -> update price / is_active in place.
Otherwise -> create a new record. Overlaps with stored bands are reported as
warnings but never block the import.

Partial application is possible when the store fails mid-batch (each row is a
separate call). Re-running the same file is safe: rows already written are
found by exact range and updated with identical values.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "PersistenceError",
    "reconcile",
    "dedupe_warnings",
]


class PersistenceError(PricingImportError):
    """Unexpected failure talking to the pricing store."""

    def __init__(self, message: str, *, applied: int = 0) -> None:
        super().__init__(message)
        self.applied = applied  # 失敗前に適用済みの行数 (参考値)


def dedupe_warnings(*groups: Sequence[str]) -> list[str]:
    """Concatenate warning lists, dropping repeats but keeping first-seen order."""
    merged: dict[str, None] = {}
    for group in groups:
        for w in group:
            merged.setdefault(w, None)
    return list(merged)


def _date_label(value) -> str:
    return value.strftime("%Y-%m-%d")


def _index_existing(
    prepared: Sequence[PreparedRow], store: PricingStore
) -> dict[CombinationKey, list[PersistedPricing]]:
    keys = list(dict.fromkeys(row.combination_key for row in prepared))
    if not keys:
        return {}
    try:
        existing = store.find_by_combinations(keys)
    except Exception as e:
        raise PersistenceError(f"failed to load existing pricing: {e}") from e

    index: dict[CombinationKey, list[PersistedPricing]] = {k: [] for k in keys}
    for record in existing:
        bucket = index.get(record.combination_key)
        if bucket is not None:
            bucket.append(record)
    logger.debug(f"existing pricing loaded: combinations={len(keys)} records={len(existing)}")
    return index


def reconcile(
    prepared: Sequence[PreparedRow],
    store: PricingStore,
    parse_stats: ParseStats,
    prior_warnings: Sequence[str] = (),
) -> ImportResult:
    """Apply ``prepared`` rows to ``store``. Only called when validation found no errors.

    Args:
        prepared: Validated rows in sheet order
        store: Pricing store (batch find + per-row create/update)
        parse_stats: Parser stats (sheet / file name, skipped blank rows)
        prior_warnings: Parse and mapping warnings, listed first in the result

    Raises:
        PersistenceError: First store failure, unchanged message chained via ``from``
    """
    index = _index_existing(prepared, store)

    overlap_warnings: list[str] = []
    targets: list[PersistedPricing | None] = []
    for row in prepared:
        match: PersistedPricing | None = None
        for record in index.get(row.combination_key, []):
            if record.start_date == row.start_date_utc and record.end_date == row.end_date_utc:
                match = record
                continue
            if date_ranges_overlap(row.start_date_utc, row.end_date_utc, record.start_date, record.end_date):
                overlap_warnings.append(
                    f"Row {row.row_number} ({row.occupancy_type_label}) overlaps existing pricing "
                    f"({_date_label(record.start_date)} to {_date_label(record.end_date)})."
                )
        targets.append(match)

    created = 0
    updated = 0
    with ProgressTracker(len(prepared), description="Applying pricing") as progress:
        for row, target in zip(prepared, targets):
            try:
                if target is not None:
                    store.update(target.id, row.price, row.is_active)
                    updated += 1
                else:
                    store.create(row)
                    created += 1
            except Exception as e:
                raise PersistenceError(
                    f"row {row.row_number}: {e}", applied=created + updated
                ) from e
            progress.advance(created=created, updated=updated)

    return ImportResult(
        processed=len(prepared),
        created=created,
        updated=updated,
        skipped_empty_rows=parse_stats.skipped_empty_rows,
        file_name=parse_stats.file_name,
        sheet_name=parse_stats.sheet_name,
        warnings=dedupe_warnings(prior_warnings, overlap_warnings),
    )
