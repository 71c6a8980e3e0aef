from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from hotel_pricing_import.config.loader import ConfigError, load_config
from hotel_pricing_import.db.pricing_store import PostgresPricingStore, transaction
from hotel_pricing_import.db.reference_data import PostgresReferenceProvider
from hotel_pricing_import.excel.reader import WorkbookReadError
from hotel_pricing_import.excel.template import build_template
from hotel_pricing_import.logging.error_log import ErrorLogBuffer
from hotel_pricing_import.logging.init import log_summary, setup_logging
from hotel_pricing_import.models.config_models import ImportConfig
from hotel_pricing_import.models.import_result import ValidationFailure
from hotel_pricing_import.services.pipeline import run_import
from hotel_pricing_import.services.reconciler import PersistenceError
from hotel_pricing_import.services.summary import render_summary_body

"""CLI entrypoint.

  hotel-pricing-import import rates.xlsx [--validate-only] [--json]
  hotel-pricing-import export-template out.xlsx [--rows 400]

Exit codes: 0 success / 1 fatal / 2 validation failure / 3 forbidden.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_VALIDATION = 2
EXIT_FORBIDDEN = 3

DEFAULT_CONFIG_PATH = Path("config/import.yml")
SESSION_OPTIONS = "-c timezone=UTC"


def resolve_dsn(cfg: ImportConfig) -> str:
    """Build the connection string.

    優先順位:
        1. DATABASE_URL / PGDSN (.env で上書き済み)
        2. 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. config の database セクション (不足分のフォールバック)
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_cursor(cfg: ImportConfig) -> Iterator[Any]:
    # 日付は UTC で保存・比較する。サーバ既定の TimeZone は使わない
    conn = psycopg2.connect(resolve_dsn(cfg), options=SESSION_OPTIONS)
    conn.autocommit = True  # BEGIN/COMMIT は transaction() が明示的に発行
    try:
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv (values override the process environment)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="hotel-pricing-import", description="Hotel pricing spreadsheet importer")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import a pricing workbook (xlsx / csv)")
    imp.add_argument("file", type=Path)
    imp.add_argument("--validate-only", action="store_true", help="Validate and preview, do not write")
    imp.add_argument("--json", action="store_true", help="Print the response body as JSON")
    imp.add_argument("--user", default=os.getenv("USER"), help="Operator name for the allow-list check")

    tpl = sub.add_parser("export-template", help="Write an upload template from reference data")
    tpl.add_argument("out", type=Path)
    tpl.add_argument("--rows", type=int, default=400)
    return p.parse_args(argv)


def _authorizer(cfg: ImportConfig, user: str | None):
    def authorize() -> bool:
        if not cfg.allowed_users:
            return True
        return user is not None and user in cfg.allowed_users

    return authorize


def _cmd_import(args: argparse.Namespace, cfg: ImportConfig, logger) -> int:
    path: Path = args.file
    if not path.exists():
        logger.error(f"file not found: {path}")
        return EXIT_FATAL
    buffer = path.read_bytes()
    error_log = ErrorLogBuffer()

    try:
        with _db_cursor(cfg) as cur:
            provider = PostgresReferenceProvider(cur, cfg.tables)
            store = PostgresPricingStore(cur, cfg.tables)
            with transaction(cur):
                outcome = run_import(
                    buffer,
                    path.name,
                    provider,
                    store,
                    config=cfg,
                    authorize=_authorizer(cfg, args.user),
                    validate_only=args.validate_only,
                    error_log=error_log,
                )
    except WorkbookReadError as e:
        logger.error(f"read: {e}")
        return EXIT_FATAL
    except PersistenceError as e:
        # 途中まで適用された可能性あり。同じファイルで再実行すれば冪等に収束する
        logger.error(f"persistence: {e} (re-run the same file to complete the import)")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    log_path = error_log.flush()
    if log_path is not None:
        logger.info(f"error log written: {log_path}")

    if args.json:
        print(json.dumps(outcome.to_response(), ensure_ascii=False, indent=2))
    elif isinstance(outcome, ValidationFailure):
        for err in outcome.errors:
            field = f" [{err.field}]" if err.field else ""
            logger.error(f"row {err.row_number}{field}: {err.message}")
        for w in outcome.warnings:
            logger.warning(w)

    log_summary(render_summary_body(outcome))

    if isinstance(outcome, ValidationFailure):
        return EXIT_FORBIDDEN if outcome.code == "FORBIDDEN" else EXIT_VALIDATION
    return EXIT_SUCCESS


def _cmd_export_template(args: argparse.Namespace, cfg: ImportConfig, logger) -> int:
    try:
        with _db_cursor(cfg) as cur:
            out = build_template(PostgresReferenceProvider(cur, cfg.tables), args.out, args.rows, cfg)
    except (ValueError, psycopg2.Error) as e:
        logger.error(f"template: {e}")
        return EXIT_FATAL
    logger.info(f"template written to {out}")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む (テストで [] を渡せるように)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.debug:
        for h in logger.handlers:
            h.setLevel("DEBUG")
        logger.setLevel("DEBUG")
        logger.debug("debug mode enabled")

    if args.command == "export-template":
        return _cmd_export_template(args, cfg, logger)
    return _cmd_import(args, cfg, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
