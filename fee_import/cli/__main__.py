from __future__ import annotations

import argparse
import sys
import warnings
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg2

from fee_import.config.loader import ConfigError, load_config_or_default
from fee_import.db.connection import db_cursor, load_env_file
from fee_import.db.store import PostgresFeeStore, StoreError
from fee_import.excel.reader import analysis_to_json, analyze_workbook, read_workbook
from fee_import.excel.row_parser import HeaderNotFoundWarning, find_header_row
from fee_import.logging.init import log_summary, set_debug, setup_logging
from fee_import.models.config_models import ImportConfig
from fee_import.services.orchestrator import ImportAbortedError, run_import
from fee_import.services.summary import render_summary_line

"""CLI entrypoint.

    fee-import [--cleanup|--clean] [--debug] [--config PATH] [--inspect-data [--output JSON]] <workbook>

Exit codes: 0 all students imported, 2 some students failed, 1 fatal
(missing workbook, bad config, database unreachable, no current academic year,
any unhandled error).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

EPILOG = """\
examples:
  # Import new data (keeps existing)
  fee-import "FEE RECORD 2025-2026.xlsx"

  # Cleanup and re-import updated data
  fee-import --cleanup "UPDATED_FEE_RECORD.xlsx"

  # Inspect sheets and headers without touching the database
  fee-import --inspect-data --output analysis.json "FEE RECORD 2025-2026.xlsx"

WARNING: --cleanup permanently deletes all students whose matricule starts with
the import prefix, together with their enrollment, fee and payment data for the
current academic year.
"""


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="fee-import",
        description="Import class fee workbooks into the school database",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("workbook", nargs="?", help="Path to the fee workbook (.xlsx/.xls/.csv)")
    p.add_argument(
        "--cleanup", "--clean", dest="cleanup", action="store_true",
        help="Delete previously imported students before importing",
    )
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help="Config file (default: config/import.yml)")
    p.add_argument("--inspect-data", action="store_true", help="Print sheet statistics & headers then exit")
    p.add_argument("--output", type=Path, default=None, help="With --inspect-data: write the analysis as JSON")
    return p.parse_args(argv)


@contextmanager
def _open_store(cfg: ImportConfig) -> Iterator[PostgresFeeStore]:  # pragma: no cover (needs a live database)
    with db_cursor(cfg.database) as cur:
        yield PostgresFeeStore(cur, timestamp_columns=cfg.timestamp_columns)


def _inspect_data(path: Path, cfg: ImportConfig, output: Path | None) -> int:
    analysis = analyze_workbook(path)
    print(f"FILE: {analysis.file_name} sheets={analysis.total_sheets}")
    for name, sheet in analysis.sheets.items():
        stats = sheet.statistics
        target = cfg.class_mapping.get(name, "-")
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", HeaderNotFoundWarning)
            header_idx = find_header_row(sheet.raw_data, cfg.column_aliases)
        header_label = header_idx + 1 if header_idx is not None else "none"
        print(
            f"  SHEET: {name} -> {target} rows={stats.total_rows} used_rows={stats.used_rows} "
            f"cols={stats.total_columns} range={sheet.range_ref} header_row={header_label}"
        )
        if header_idx is not None:
            headers = [str(c) for c in sheet.raw_data[header_idx] if c is not None]
            print(f"    headers={headers}")
    if output is not None:
        output.write_text(analysis_to_json(analysis), encoding="utf-8")
        print(f"analysis written: {output}")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみ sys.argv を読む (テストで [] を渡した場合に pytest の引数を拾わないため)
    if argv is None:
        argv = sys.argv[1:]
    try:
        args = _parse_args(argv)
    except SystemExit as e:  # --help (0) / usage error (2)
        return EXIT_SUCCESS_ALL if e.code in (0, None) else EXIT_FATAL

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    if not args.workbook:
        logger.error("Excel file path is required (use --help for usage information)")
        return EXIT_FATAL
    path = Path(args.workbook)
    if not path.is_file():
        logger.error(f"file not found: {path}")
        return EXIT_FATAL

    # .env を最優先で読み込む (DB 接続パラメータ優先順位保証)
    load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config_or_default(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        try:
            return _inspect_data(path, cfg, args.output)
        except Exception as e:
            logger.error(f"inspect: {e}")
            return EXIT_FATAL

    logger.info(f"Reading workbook: {path}")
    try:
        workbook = read_workbook(path)
    except Exception as e:
        logger.error(f"read: {e}")
        return EXIT_FATAL
    logger.info(f"Found {len(workbook)} sheet(s): {', '.join(workbook)}")

    try:
        with _open_store(cfg) as store:
            result = run_import(workbook, store, cfg, cleanup=args.cleanup, source_name=path.name)
    except ImportAbortedError as e:
        logger.error(f"import aborted: {e}")
        return EXIT_FATAL
    except psycopg2.OperationalError as e:
        logger.error(f"database connection failed: {e}")
        return EXIT_FATAL
    except StoreError as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    except Exception as e:
        logger.error(f"Import failed: {e}", exc_info=True)
        return EXIT_FATAL

    summary_line = render_summary_line(result)
    # log_summary が "SUMMARY " を付与するので除去
    log_summary(summary_line[len("SUMMARY "):])

    if result.failed_students > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
