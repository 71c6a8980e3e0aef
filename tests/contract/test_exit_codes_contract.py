from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from unittest.mock import MagicMock, patch

import psycopg2

from hotel_pricing_import.cli import main as cli_main
from hotel_pricing_import.logging.init import reset_logging

"""Exit code contract: 0 success / 1 fatal / 2 validation / 3 forbidden."""

CLI = "hotel_pricing_import.cli.__main__"


@contextmanager
def _wired(reference, store, cursor=None):
    cur = cursor or MagicMock()

    @contextmanager
    def fake_cursor(cfg):
        yield cur

    with patch(f"{CLI}._db_cursor", fake_cursor), patch(
        f"{CLI}.PostgresReferenceProvider", return_value=reference
    ), patch(f"{CLI}.PostgresPricingStore", return_value=store):
        yield cur


def _save(temp_workdir: Path, content: bytes, name: str = "rates.xlsx") -> Path:
    path = temp_workdir / "data" / name
    path.write_bytes(content)
    return path


def test_exit_code_fatal_without_config(temp_workdir: Path, capsys):
    reset_logging()
    code = cli_main(["import", "data/rates.xlsx"])
    assert code == 1
    assert "ERROR config:" in capsys.readouterr().out


def test_exit_code_fatal_missing_file(write_config, capsys):
    reset_logging()
    code = cli_main(["import", "data/missing.xlsx"])
    assert code == 1
    assert "ERROR file not found" in capsys.readouterr().out


def test_exit_code_success(write_config, temp_workdir, make_workbook, scenario_a_row, reference, store, capsys):
    reset_logging()
    path = _save(temp_workdir, make_workbook([scenario_a_row]))
    with _wired(reference, store) as cur:
        code = cli_main(["import", str(path)])
    out = capsys.readouterr().out
    assert code == 0
    assert (
        "SUMMARY file=rates.xlsx sheet=UploadTemplate processed=2 created=2 updated=0 "
        "skipped_empty_rows=0 warnings=0" in out
    )
    executed = [c.args[0] for c in cur.execute.call_args_list]
    assert executed[0] == "BEGIN"
    assert executed[-1] == "COMMIT"


def test_exit_code_validation(write_config, temp_workdir, make_workbook, scenario_a_row, reference, store, capsys):
    reset_logging()
    scenario_a_row[3] = "Penthouse"
    path = _save(temp_workdir, make_workbook([scenario_a_row]))
    with _wired(reference, store):
        code = cli_main(["import", str(path)])
    out = capsys.readouterr().out
    assert code == 2
    assert 'ERROR row 2 [room_type_name]: Room type "Penthouse" not found' in out
    assert "SUMMARY file=rates.xlsx code=VALIDATION errors=2 warnings=0" in out
    assert store.write_calls == 0
    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    assert len(logs[0].read_text(encoding="utf-8").splitlines()) == 2


def test_exit_code_forbidden(write_config, temp_workdir, make_workbook, scenario_a_row, reference, store, capsys):
    reset_logging()
    write_config.write_text(
        write_config.read_text(encoding="utf-8").replace("allowed_users: []", "allowed_users: [alice]"),
        encoding="utf-8",
    )
    path = _save(temp_workdir, make_workbook([scenario_a_row]))
    with _wired(reference, store):
        code = cli_main(["import", str(path), "--user", "mallory"])
    assert code == 3
    assert "code=FORBIDDEN" in capsys.readouterr().out

    reset_logging()
    with _wired(reference, store):
        assert cli_main(["import", str(path), "--user", "alice"]) == 0


def test_exit_code_unreadable_file(write_config, temp_workdir, reference, store, capsys):
    reset_logging()
    path = _save(temp_workdir, b"\xff\xfe\x00\x81", "rates.csv")
    with _wired(reference, store):
        code = cli_main(["import", str(path)])
    assert code == 1
    assert "ERROR read:" in capsys.readouterr().out


def test_exit_code_persistence_failure_rolls_back(
    write_config, temp_workdir, make_workbook, scenario_a_row, reference, store, capsys
):
    reset_logging()
    store.fail_on_create_after = 1
    path = _save(temp_workdir, make_workbook([scenario_a_row]))
    with _wired(reference, store) as cur:
        code = cli_main(["import", str(path)])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR persistence:" in out
    assert cur.execute.call_args_list[-1].args[0] == "ROLLBACK"


def test_exit_code_database_error(write_config, temp_workdir, make_workbook, scenario_a_row, store, capsys):
    reset_logging()
    path = _save(temp_workdir, make_workbook([scenario_a_row]))
    broken = MagicMock()
    broken.hotels.side_effect = psycopg2.OperationalError("could not connect")
    with _wired(broken, store):
        code = cli_main(["import", str(path)])
    assert code == 1
    assert "ERROR database:" in capsys.readouterr().out


def test_json_output(write_config, temp_workdir, make_workbook, scenario_a_row, reference, capsys):
    reset_logging()
    path = _save(temp_workdir, make_workbook([scenario_a_row]))
    with _wired(reference, None):
        code = cli_main(["import", str(path), "--validate-only", "--json"])
    out = capsys.readouterr().out
    assert code == 0
    body = json.loads(out[out.index("{\n") : out.index("\nSUMMARY")])
    assert body["success"] is True
    assert body["summary"]["dryRun"] is True
    assert body["summary"]["processed"] == 2


def test_export_template(write_config, temp_workdir, reference, capsys):
    reset_logging()
    with _wired(reference, None):
        code = cli_main(["export-template", "out/template.xlsx", "--rows", "3"])
    assert code == 0
    assert (temp_workdir / "out" / "template.xlsx").exists()
    assert "INFO template written to" in capsys.readouterr().out


def test_export_template_without_hotels(write_config, temp_workdir, capsys):
    reset_logging()
    empty = MagicMock()
    empty.hotels.return_value = []
    with _wired(empty, None):
        code = cli_main(["export-template", "out/template.xlsx"])
    assert code == 1
    assert "ERROR template:" in capsys.readouterr().out


def test_debug_flag(write_config, temp_workdir, make_workbook, scenario_a_row, reference, capsys):
    reset_logging()
    path = _save(temp_workdir, make_workbook([scenario_a_row]))
    with _wired(reference, None):
        code = cli_main(["--debug", "import", str(path), "--validate-only"])
    out = capsys.readouterr().out
    assert code == 0
    assert "DEBUG debug mode enabled" in out
    assert "dry_run=1" in out
    reset_logging()
