from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from ..config.loader import ConfigError, load_config
from ..db.store import DryRunStore, Store, connect_store
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, set_debug, setup_logging
from ..models.config_models import ImportConfig
from ..models.entity_schemas import INGREDIENT_CATEGORIES, SCHEMAS, get_schema
from ..models.field_alias import EntitySchema
from ..models.import_outcome import ImportOutcome, RunSummary
from ..services.catalog import ALL_CATEGORIES, categories, export_csv, search_records
from ..services.identity import StaticIdentity
from ..services.normalizer import normalize
from ..services.progress import ProgressTracker
from ..services.session import ImportSession
from ..services.summary import render_summary_line
from ..spreadsheet.reader import TableReadError, read_table

"""CLI entrypoint: elabel-import {ingredients,products} FILE...

Each file is one import attempt (parse -> normalize -> one bulk insert).
Exit codes:
    0  every attempt succeeded
    1  fatal (config, missing input file, database connection)
    2  at least one attempt failed
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

PREVIEW_ROWS = 5
USER_ID_ENV = "ELABEL_USER_ID"
CATEGORY_FIELD = "category"


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env via python-dotenv (values in .env win over the process env)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="elabel-import", description="Spreadsheet -> e-label bulk importer")
    p.add_argument("entity", choices=sorted(SCHEMAS), help="Entity to import")
    p.add_argument("files", nargs="+", type=Path, help="xlsx / xls / csv files (first sheet is read)")
    p.add_argument("--config", type=Path, default=None, help="YAML config (default: config/import.yml)")
    p.add_argument("--user-id", default=None, help=f"Owning user id (falls back to ${USER_ID_ENV} / config)")
    p.add_argument("--dry-run", action="store_true", help="Normalize and validate without writing to the database")
    p.add_argument("--inspect-data", action="store_true", help="Print headers & normalized preview then exit")
    p.add_argument("--search", default="", help="Filter the --inspect-data preview by a search term")
    p.add_argument("--category", default=ALL_CATEGORIES,
                   help=f"Filter the --inspect-data preview by category (default: {ALL_CATEGORIES})")
    p.add_argument("--export-accepted", type=Path, default=None, metavar="PATH",
                   help="Write accepted records as CSV (re-importable)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _resolve_user_id(args: argparse.Namespace, cfg: ImportConfig) -> str | None:
    raw = args.user_id or os.getenv(USER_ID_ENV) or cfg.user_id
    return StaticIdentity(raw).current_user_id()


@contextmanager
def _open_store(cfg: ImportConfig, dry_run: bool) -> Iterator[Store]:
    # DB 接続を完全に無効化したい場合 DISABLE_DB_CONNECT=1 (テスト用)
    if dry_run or os.getenv("DISABLE_DB_CONNECT") == "1":
        yield DryRunStore()
        return
    with connect_store(cfg) as store:  # pragma: no cover (needs a live DB)
        yield store


def _inspect_data(
    schema: EntitySchema, files: list[Path], cfg: ImportConfig, search: str, category: str = ALL_CATEGORIES
) -> int:
    code = EXIT_SUCCESS_ALL
    for f in files:
        print(f"FILE: {f.name}")
        try:
            table = read_table(f.read_bytes())
        except TableReadError as e:
            print(f"  read_error: {e}")
            code = EXIT_PARTIAL_FAILURE
            continue
        result = normalize(table.rows, schema, cfg.null_sentinels)
        print(f"  format={table.file_format.value} cols={table.columns}")
        print(f"  rows={result.total_rows} accepted={len(result.accepted)} rejected={len(result.rejected)}")
        if CATEGORY_FIELD in schema.field_names:
            found = categories(result.accepted, CATEGORY_FIELD)
            print(f"  categories={found}")
            unknown = [c for c in found if c not in INGREDIENT_CATEGORIES]
            if unknown:
                print(f"  non_standard_categories={unknown}")
        preview = search_records(
            result.accepted, search, fields=schema.field_names, category=category, category_field=CATEGORY_FIELD
        )[:PREVIEW_ROWS]
        print("    sample_records=", preview)
        for rej in result.rejected[:PREVIEW_ROWS]:
            print(f"    rejected line={table.line_numbers[rej.row]} field={rej.reason.field}")
    return code


def _import_files(
    schema: EntitySchema,
    files: list[Path],
    store: Store,
    cfg: ImportConfig,
    user_id: str | None,
    error_log: ErrorLogBuffer,
) -> list[ImportOutcome]:
    session = ImportSession()
    outcomes: list[ImportOutcome] = []
    with ProgressTracker(len(files)) as progress:
        for path in files:
            progress.start_file(path)
            outcome = session.run(
                path.read_bytes(),
                schema,
                store,
                file_name=path.name,
                user_id=user_id,
                error_log=error_log,
                null_sentinels=cfg.null_sentinels,
            )
            if outcome is not None:
                outcomes.append(outcome)
            progress.set_postfix(
                success=sum(1 for o in outcomes if o.succeeded),
                failed=sum(1 for o in outcomes if not o.succeeded),
            )
            progress.finish_file(success=outcome is not None and outcome.succeeded)
    return outcomes


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみ sys.argv を読む ([] はテストからの明示指定)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config, required=args.config is not None)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    schema = get_schema(args.entity)
    missing = [str(f) for f in args.files if not f.is_file()]
    if missing:
        logger.error(f"file not found: {', '.join(missing)}")
        return EXIT_FATAL

    if args.category != ALL_CATEGORIES and CATEGORY_FIELD not in schema.field_names:
        logger.error(f"--category is not supported for {schema.entity}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(schema, args.files, cfg, args.search, args.category)

    start = datetime.now(UTC)
    error_log = ErrorLogBuffer(cfg.logs_directory)
    user_id = _resolve_user_id(args, cfg)
    try:
        with _open_store(cfg, args.dry_run) as store:
            mode = "dry-run" if isinstance(store, DryRunStore) else "live"
            logger.info(f"Importing {len(args.files)} file(s) into {schema.table} (mode={mode})")
            outcomes = _import_files(schema, args.files, store, cfg, user_id, error_log)
    except psycopg2.Error as e:
        logger.error(f"database connection failed: {str(e).strip()}")
        return EXIT_FATAL
    finally:
        # 中断時も収集済みのエラーレコードは書き出す
        log_path = error_log.flush()
        if log_path is not None:
            logger.info(f"error log written: {log_path}")

    if args.export_accepted is not None:
        records = [r for o in outcomes for r in o.records]
        args.export_accepted.write_text(export_csv(records, schema), encoding="utf-8")
        logger.info(f"exported {len(records)} record(s) to {args.export_accepted}")

    elapsed = (datetime.now(UTC) - start).total_seconds()
    summary = RunSummary.from_outcomes(outcomes, elapsed)
    log_summary(render_summary_line(summary).removeprefix("SUMMARY "))

    if summary.failed_files > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL
