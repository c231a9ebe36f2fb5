from __future__ import annotations

import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

from ..models.import_result import NormalizedRecord

"""Single-statement bulk INSERT via psycopg2.extras.execute_values.

page_size is set to the batch length so the whole batch goes out as one
statement (one round trip). Transaction control belongs to the caller
(PostgresStore); this module only builds and executes the INSERT.
"""

__all__ = [
    "BulkInsertError",
    "InsertMetrics",
    "InsertResult",
    "record_columns",
    "bulk_insert",
]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class BulkInsertError(Exception):
    pass


@dataclass(frozen=True)
class InsertMetrics:
    """Timing data for one bulk insert statement."""
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise BulkInsertError(f"invalid identifier: {name!r}")
    return name


def record_columns(records: Sequence[NormalizedRecord]) -> list[str]:
    """Ordered union of record keys (first-seen order)."""
    columns: list[str] = []
    seen: set[str] = set()
    for rec in records:
        for key in rec:
            if key not in seen:
                seen.add(key)
                columns.append(key)
    return columns


def bulk_insert(
    cursor: Any,
    table: str,
    records: Sequence[NormalizedRecord],
    metrics_callback: Callable[[InsertMetrics], None] | None = None,
) -> InsertResult:
    """INSERT all records with a single execute_values statement.

    Parameters
    ----------
    cursor: psycopg2 cursor (open transaction)
    table: target table name
    records: canonical-key dicts; missing keys are inserted as NULL
    metrics_callback: receives InsertMetrics after the statement ran.
        Not invoked for an empty batch (returns early).
    """
    if not records:
        return InsertResult(inserted_rows=0)

    columns = [_check_identifier(c) for c in record_columns(records)]
    cols_sql = ",".join(f'"{c}"' for c in columns)
    base_sql = f'INSERT INTO "{_check_identifier(table)}" ({cols_sql}) VALUES %s'
    rows = [tuple(rec.get(c) for c in columns) for rec in records]

    start_time = time.time()
    try:
        execute_values(cursor, base_sql, rows, page_size=len(rows))
    except Exception as e:
        raise BulkInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                InsertMetrics(
                    batch_size=len(rows),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )
    return InsertResult(inserted_rows=len(rows))
