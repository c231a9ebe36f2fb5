from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any, Protocol

import psycopg2

from ..models.config_models import DatabaseConfig, ImportConfig
from ..models.import_result import NormalizedRecord
from .bulk_insert import BulkInsertError, InsertMetrics, bulk_insert

"""Persistence collaborator for the import pipeline.

Store.bulk_insert(table, records) is all-or-nothing: either every record is
committed or StoreError is raised and nothing is. There is no per-row detail
and no retry; the endpoint is not idempotent, so re-sending a batch after an
ambiguous failure can duplicate rows.

Waiting is bounded twice: statement_timeout caps server-side execution, and
connect_store() sets libpq keepalives plus tcp_user_timeout so a stalled
network fails the batch instead of blocking it indefinitely.
"""

__all__ = [
    "StoreError",
    "Store",
    "PostgresStore",
    "DryRunStore",
    "resolve_dsn",
    "connection_options",
    "connect_store",
]

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Opaque wrapper for whatever the backing store reported."""


class Store(Protocol):
    def bulk_insert(self, table: str, records: Sequence[NormalizedRecord]) -> int:
        """Insert every record or none; return the inserted count."""
        ...


class PostgresStore:
    """Store backed by a psycopg2 connection (one transaction per batch)."""

    def __init__(self, connection: Any, timeout_seconds: float | None = None) -> None:
        self.connection = connection
        self.timeout_seconds = timeout_seconds

    def _log_metrics(self, metrics: InsertMetrics) -> None:
        logger.debug(
            "bulk insert batch_size=%d elapsed_sec=%.3f",
            metrics.batch_size,
            metrics.elapsed_seconds,
        )

    def _rollback(self) -> None:
        try:
            self.connection.rollback()
        except psycopg2.Error:
            logger.warning("rollback failed", exc_info=True)

    def bulk_insert(self, table: str, records: Sequence[NormalizedRecord]) -> int:
        if not records:
            return 0
        cursor = None
        try:
            cursor = self.connection.cursor()
            if self.timeout_seconds:
                # 待ち時間の上限。超過時は statement 自体が失敗し、再送はしない
                cursor.execute(
                    "SET LOCAL statement_timeout = %s", (int(self.timeout_seconds * 1000),)
                )
            result = bulk_insert(cursor, table, records, metrics_callback=self._log_metrics)
            self.connection.commit()
        except (BulkInsertError, psycopg2.Error) as e:
            self._rollback()
            raise StoreError(str(e).strip()) from e
        finally:
            if cursor is not None:
                try:
                    cursor.close()
                except psycopg2.Error:  # pragma: no cover
                    logger.debug("cursor close failed", exc_info=True)
        return result.inserted_rows


class DryRunStore:
    """In-memory store used for --dry-run and DISABLE_DB_CONNECT=1."""

    def __init__(self) -> None:
        self.batches: list[tuple[str, list[NormalizedRecord]]] = []

    def bulk_insert(self, table: str, records: Sequence[NormalizedRecord]) -> int:
        self.batches.append((table, [dict(r) for r in records]))
        logger.debug("dry-run bulk insert table=%s records=%d", table, len(records))
        return len(records)

    @property
    def inserted(self) -> list[NormalizedRecord]:
        return [r for _, batch in self.batches for r in batch]


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Build the connection DSN.

    Precedence:
        1. DATABASE_URL / PGDSN environment variable (whole DSN)
        2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. config database section (fallback for missing pieces)
    """
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


def connection_options(timeout_seconds: float) -> dict[str, Any]:
    """libpq keyword arguments bounding how long a batch may wait on the network."""
    timeout_ms = int(timeout_seconds * 1000)
    # keepalive 検出時間 (idle + interval * count) も timeout 以内に収める
    interval = max(1, int(timeout_seconds) // 6)
    return {
        "connect_timeout": max(1, int(timeout_seconds)),
        "options": f"-c statement_timeout={timeout_ms}",
        "keepalives": 1,
        "keepalives_idle": max(1, int(timeout_seconds) // 2),
        "keepalives_interval": interval,
        "keepalives_count": 3,
        "tcp_user_timeout": timeout_ms,
    }


@contextmanager
def connect_store(cfg: ImportConfig) -> Iterator[PostgresStore]:
    """Open a psycopg2 connection and yield a PostgresStore bound to it."""
    conn = psycopg2.connect(
        resolve_dsn(cfg.database),
        **connection_options(cfg.submit_timeout_seconds),
    )
    conn.autocommit = False  # 明示トランザクション (PostgresStore が COMMIT/ROLLBACK)
    try:
        yield PostgresStore(conn, timeout_seconds=cfg.submit_timeout_seconds)
    finally:
        conn.close()
