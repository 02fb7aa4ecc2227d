from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from crm_bulk.config.loader import ConfigError, default_config, load_config
from crm_bulk.csvio.codec import serialize_csv
from crm_bulk.db.pagination import fetch_page
from crm_bulk.db.repository import SessionExpiredError, StoreRecordRepository
from crm_bulk.logging.error_log import ErrorLogBuffer
from crm_bulk.logging.init import log_summary, setup_logging
from crm_bulk.models.config_models import EntityConfig, PipelineConfig
from crm_bulk.models.pagination import PaginationRequest, SortDirection
from crm_bulk.normalize.users import UserDirectory, load_user_directory
from crm_bulk.services.errors import NoDataError, PipelineError
from crm_bulk.services.exporter import export_table, write_artifact
from crm_bulk.services.importer import import_file
from crm_bulk.services.progress import ProgressTracker
from crm_bulk.services.summary import render_import_message, render_summary_line
from crm_bulk.store.base import RemoteQueryError, RowStore
from crm_bulk.store.memory import InMemoryRowStore
from crm_bulk.store.postgres import PostgresRowStore

"""CLI entrypoint.

Subcommands:
- import FILE --entity E --user-id U   CSV -> store (create or update by natural key)
- export --entity E --out-dir DIR      store -> <entity>_export_<date>.csv
- page --entity E [--page N ...]       one page of a list view, printed as CSV

DISABLE_DB_CONNECT=1 runs against an empty in-memory store (offline dry run).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

DEFAULT_CONFIG_PATH = Path("config/pipeline.yml")


def _resolve_dsn(cfg: PipelineConfig) -> str:
    """Connection string.

        優先順位 (.env は main() 冒頭で上書きロード済み):
            1. DATABASE_URL / PGDSN
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
def _open_store(cfg: PipelineConfig) -> Iterator[tuple[RowStore, str]]:
    """Yield (store, mode). mode is "live" or "memory"."""
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logging.getLogger(__name__).debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> memory mode")
        yield InMemoryRowStore(), "memory"
        return

    conn = psycopg2.connect(_resolve_dsn(cfg))
    try:
        conn.autocommit = False
        yield PostgresRowStore(conn, page_size=cfg.fetch_chunk_size), "live"
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv (override: .env wins over the process env)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_filter(value: str) -> tuple[str, str]:
    column, sep, v = value.partition("=")
    if not sep or not column:
        raise argparse.ArgumentTypeError(f"filter must be column=value (got '{value}')")
    return column.strip(), v.strip()


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="CRM bulk CSV import / export")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help=f"YAML config (default {DEFAULT_CONFIG_PATH})")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import a CSV file")
    imp.add_argument("file", type=Path)
    imp.add_argument("--entity", required=True)
    imp.add_argument("--user-id", default=None, help="Importing user id (default $CRM_USER_ID)")
    imp.add_argument("--logs-dir", type=Path, default=Path("logs"))

    exp = sub.add_parser("export", help="Export a table to CSV")
    exp.add_argument("--entity", required=True)
    exp.add_argument("--out-dir", type=Path, default=Path("."))

    page = sub.add_parser("page", help="Print one page of a table")
    page.add_argument("--entity", required=True)
    page.add_argument("--page", type=int, default=1)
    page.add_argument("--page-size", type=int, default=25)
    page.add_argument("--search", default=None)
    page.add_argument("--sort", default=None)
    page.add_argument("--desc", action="store_true")
    page.add_argument("--filter", type=_parse_filter, action="append", default=[])
    return p.parse_args(argv)


def _load_cfg(path: Path | None) -> PipelineConfig:
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return default_config()


def _user_directory(store: RowStore, logger: logging.Logger) -> UserDirectory | None:
    try:
        return load_user_directory(store)
    except RemoteQueryError as e:
        logger.warning(f"user directory unavailable, owner names are not resolved: {e}")
        return None


def _run_import(
    args: argparse.Namespace,
    cfg: PipelineConfig,
    entity: EntityConfig,
    store: RowStore,
    logger: logging.Logger,
) -> int:
    user_id = args.user_id or os.getenv("CRM_USER_ID")
    path: Path = args.file
    if not path.exists():
        logger.error(f"file not found: {path}")
        return EXIT_FATAL

    directory = _user_directory(store, logger)
    repository = StoreRecordRepository(store, entity, user_id or "")
    error_log = ErrorLogBuffer(args.logs_dir)
    started = time.perf_counter()
    with ProgressTracker(description=f"Importing {entity.name}") as tracker:

        def _on_progress(processed: int, total: int) -> None:
            tracker.update(processed, total)
            tracker.set_postfix(errors=len(error_log))

        outcome = import_file(
            path.name,
            path.read_bytes(),
            entity,
            repository,
            user_id=user_id,
            on_progress=_on_progress,
            user_directory=directory,
            timezone=cfg.timezone,
            error_log=error_log,
        )
    elapsed = time.perf_counter() - started

    log_file = error_log.flush()
    if log_file is not None:
        logger.info(f"error log written: {log_file}")
    logger.info(render_import_message(outcome, entity.name, cfg.error_sample_size))
    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(entity.name, outcome, elapsed)[len("SUMMARY "):])
    return EXIT_PARTIAL_FAILURE if outcome.error_count > 0 else EXIT_SUCCESS_ALL


def _run_export(
    args: argparse.Namespace,
    cfg: PipelineConfig,
    entity: EntityConfig,
    store: RowStore,
    logger: logging.Logger,
) -> int:
    directory = _user_directory(store, logger)
    try:
        artifact = export_table(
            store,
            entity,
            timezone=cfg.timezone,
            user_names=directory.display_names() if directory is not None else None,
            chunk_size=cfg.fetch_chunk_size,
        )
    except NoDataError as e:
        logger.warning(str(e))
        return EXIT_SUCCESS_ALL
    path = write_artifact(artifact, args.out_dir)
    logger.info(f"exported {artifact.row_count} {entity.name} rows to {path}")
    return EXIT_SUCCESS_ALL


def _run_page(
    args: argparse.Namespace,
    cfg: PipelineConfig,
    entity: EntityConfig,
    store: RowStore,
    logger: logging.Logger,
) -> int:
    request = PaginationRequest(
        page=args.page,
        page_size=args.page_size,
        sort_field=args.sort,
        sort_direction=SortDirection.DESC if args.desc else SortDirection.ASC,
        search_term=args.search,
        search_fields=entity.search_fields,
        filters=dict(args.filter),
    )
    result = fetch_page(store, entity.table, request, default_sort=entity.default_order)
    print(serialize_csv(result.data, entity.export_fields))
    pages = -(-result.total_count // request.page_size)
    logger.info(f"page {request.page}/{max(pages, 1)} rows={len(result.data)} total={result.total_count}")
    return EXIT_SUCCESS_ALL


_COMMANDS = {
    "import": _run_import,
    "export": _run_export,
    "page": _run_page,
}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む ([] はテストからの明示的な空引数)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        for h in logger.handlers:
            h.setLevel("DEBUG")
        logger.setLevel("DEBUG")
        logger.debug("debug mode enabled")

    try:
        cfg = _load_cfg(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        entity = cfg.entity(args.entity)
    except KeyError as e:
        logger.error(f"{args.command}: {e.args[0]}")
        return EXIT_FATAL

    try:
        with _open_store(cfg) as (store, mode):
            logger.debug(f"mode={mode}")
            return _COMMANDS[args.command](args, cfg, entity, store, logger)
    except SessionExpiredError as e:
        logger.error(f"{args.command}: session expired, please log in again ({e})")
        return EXIT_FATAL
    except (PipelineError, RemoteQueryError, ValueError) as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"db connection failed: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
