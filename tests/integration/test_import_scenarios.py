from __future__ import annotations

from datetime import UTC, datetime

import pytest

from hotel_pricing_import.logging.error_log import ErrorLogBuffer
from hotel_pricing_import.models.import_result import ImportResult, ValidationFailure
from hotel_pricing_import.models.reference import PersistedPricing
from hotel_pricing_import.services.pipeline import run_import

"""End-to-end import runs: workbook bytes -> pipeline -> in-memory store."""


def test_new_pricing_is_created(make_workbook, scenario_a_row, reference, store):
    buf = make_workbook([scenario_a_row])
    result = run_import(buf, "rates.xlsx", reference, store)

    assert isinstance(result, ImportResult)
    assert result.to_response() == {
        "success": True,
        "summary": {
            "sheetName": "UploadTemplate",
            "processed": 2,
            "created": 2,
            "updated": 0,
            "skippedEmptyRows": 0,
            "fileName": "rates.xlsx",
        },
        "warnings": [],
    }
    stored = sorted((r.occupancy_type_id, r.price) for r in store.records.values())
    assert stored == [("occ-double", 2800.0), ("occ-single", 2000.0)]
    assert all(r.start_date == datetime(2025, 1, 1, tzinfo=UTC) for r in store.records.values())


def test_reimport_updates_instead_of_duplicating(make_workbook, scenario_a_row, reference, store):
    buf = make_workbook([scenario_a_row])
    run_import(buf, "rates.xlsx", reference, store)
    before = set(store.records)

    snapshot = dict(store.records)

    second = run_import(buf, "rates.xlsx", reference, store)

    assert (second.processed, second.created, second.updated) == (2, 0, 2)
    assert set(store.records) == before
    assert store.records == snapshot


def test_reimport_with_new_prices_overwrites_in_place(make_workbook, scenario_a_row, reference, store):
    run_import(make_workbook([scenario_a_row]), "rates.xlsx", reference, store)
    changed = list(scenario_a_row)
    changed[7:] = [False, 2200, 3000]

    result = run_import(make_workbook([changed]), "rates.xlsx", reference, store)

    assert (result.created, result.updated) == (0, 2)
    assert sorted((r.occupancy_type_id, r.price, r.is_active) for r in store.records.values()) == [
        ("occ-double", 3000.0, False),
        ("occ-single", 2200.0, False),
    ]


def test_unknown_hotel_rejects_whole_file(make_workbook, reference, store, temp_workdir):
    row = [None, "Sunrise Lodge", "Munnar", "Deluxe", "MAP", "2025-01-01", "2025-01-31", True, 2000, 2800]
    error_log = ErrorLogBuffer(temp_workdir / "logs")
    outcome = run_import(make_workbook([row]), "rates.xlsx", reference, store, error_log=error_log)

    assert isinstance(outcome, ValidationFailure)
    body = outcome.to_response()
    assert body["code"] == "VALIDATION"
    errors = body["details"]["errors"]
    assert len(errors) == 2
    assert {(e["rowNumber"], e["field"]) for e in errors} == {(2, "hotel_id")}
    assert store.find_calls == 0
    assert store.write_calls == 0
    assert len(error_log) == 2


def test_overlap_with_existing_pricing_is_advisory(make_workbook, reference, store):
    store.records["p-1"] = PersistedPricing(
        id="p-1",
        hotel_id="h-lotus",
        room_type_id="rt-deluxe",
        occupancy_type_id="occ-single",
        meal_plan_id="mp-map",
        start_date=datetime(2025, 1, 1, tzinfo=UTC),
        end_date=datetime(2025, 1, 31, tzinfo=UTC),
        price=1800.0,
    )
    row = ["h-lotus", None, None, "Deluxe", "MAP", "2025-01-15", "2025-02-15", True, 2100, None]
    result = run_import(make_workbook([row]), "rates.xlsx", reference, store)

    assert isinstance(result, ImportResult)
    assert (result.created, result.updated) == (1, 0)
    assert result.warnings == ["Row 2 (Single) overlaps existing pricing (2025-01-01 to 2025-01-31)."]
    assert store.records["p-1"].price == 1800.0


def test_one_bad_row_blocks_all_writes(make_workbook, scenario_a_row, reference, store):
    bad = list(scenario_a_row)
    bad[3] = "Penthouse"
    outcome = run_import(make_workbook([scenario_a_row, bad]), "rates.xlsx", reference, store)

    assert isinstance(outcome, ValidationFailure)
    assert {e.row_number for e in outcome.errors} == {3}
    assert store.write_calls == 0
    assert store.records == {}


def test_parse_errors_stop_before_reference_lookup(make_workbook, scenario_a_row, reference, store):
    scenario_a_row[-2:] = ["cheap", None]
    outcome = run_import(make_workbook([scenario_a_row]), "rates.xlsx", reference, store)
    assert outcome.code == "VALIDATION"
    assert reference.calls == 0
    assert outcome.stats is not None


def test_blank_rows_only_count_as_skipped(make_workbook, scenario_a_row, header, reference, store):
    blank = [None] * len(header)
    result = run_import(make_workbook([blank, scenario_a_row]), "rates.xlsx", reference, store)
    assert result.skipped_empty_rows == 1
    assert result.processed == 2


def test_only_blank_rows_is_no_rows(make_workbook, header, reference, store):
    blank = [None] * len(header)
    outcome = run_import(make_workbook([blank, blank]), "rates.xlsx", reference, store)
    assert outcome.code == "NO_ROWS"
    assert store.find_calls == 0


def test_empty_upload(reference, store):
    outcome = run_import(b"", "rates.xlsx", reference, store)
    assert outcome.code == "EMPTY_FILE"
    assert outcome.to_response() == {
        "error": "Uploaded file is empty",
        "code": "EMPTY_FILE",
        "details": {"errors": [], "warnings": []},
    }

def test_header_only_sheet_is_no_rows(make_workbook, reference, store):
    outcome = run_import(make_workbook([]), "rates.xlsx", reference, store)
    assert isinstance(outcome, ValidationFailure)
    assert outcome.code == "NO_ROWS"
    assert outcome.to_response()["error"] == "No pricing rows detected"


def test_forbidden_runs_before_anything(make_workbook, scenario_a_row, reference, store):
    outcome = run_import(make_workbook([scenario_a_row]), "rates.xlsx", reference, store, authorize=lambda: False)
    assert outcome.code == "FORBIDDEN"
    assert reference.calls == 0
    assert store.find_calls == 0


def test_validate_only_previews_without_store(make_workbook, scenario_a_row, reference):
    result = run_import(make_workbook([scenario_a_row]), "rates.xlsx", reference, None, validate_only=True)
    assert isinstance(result, ImportResult)
    assert result.dry_run is True
    assert (result.processed, result.created, result.updated) == (2, 0, 0)
    assert result.to_response()["summary"]["dryRun"] is True


def test_store_required_for_real_runs(make_workbook, scenario_a_row, reference):
    with pytest.raises(ValueError):
        run_import(make_workbook([scenario_a_row]), "rates.xlsx", reference, None)


def test_csv_upload(reference, store):
    text = (
        "hotel_name,location_name,room_type_name,meal_plan_code,start_date,end_date,Double\n"
        "Palm Grove,Kochi,Suite,CP,01/03/2025,31/03/2025,5400\n"
    )
    result = run_import(text.encode("utf-8"), "rates.csv", reference, store)
    assert isinstance(result, ImportResult)
    assert result.sheet_name == "csv"
    (record,) = store.records.values()
    assert record.hotel_id == "h-palm"
    assert record.meal_plan_id == "mp-cp"
    assert record.end_date == datetime(2025, 3, 31, tzinfo=UTC)
