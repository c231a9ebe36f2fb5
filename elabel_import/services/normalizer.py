from __future__ import annotations

import logging
import numbers
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, time
from typing import Any

from ..models.field_alias import EntitySchema, FieldAlias, header_key
from ..models.import_result import (
    ImportResult,
    MissingRequiredField,
    NormalizedRecord,
    RawRow,
    Rejection,
)

"""Row normalization: RawRow sequence -> ImportResult.

Pure and synchronous. For every declared field the cell is resolved by trying
the field's spellings in priority order; a missing header or a blank cell falls
through to the next spelling. Undeclared spellings are simply absent.
"""

__all__ = [
    "coerce_value",
    "resolve_field",
    "normalize_row",
    "normalize",
]

logger = logging.getLogger(__name__)


def coerce_value(value: Any, null_sentinels: Iterable[str] | None = None) -> str | None:
    """Coerce a cell value to a trimmed string or None.

    - None / NaN / blank after trim -> None
    - integral numbers render without a decimal part (2019.0 -> "2019")
    - dates render ISO-8601
    - text matching a null sentinel (case-insensitive) -> None
    """
    if value is None:
        return None
    if isinstance(value, bool):
        text = "TRUE" if value else "FALSE"
    elif isinstance(value, numbers.Integral):
        text = str(int(value))
    elif isinstance(value, numbers.Real):
        f = float(value)
        if f != f:  # NaN
            return None
        text = str(int(f)) if f.is_integer() else repr(f)
    elif isinstance(value, datetime):
        # 時刻成分が 0 の日付セルは日付のみ
        text = value.date().isoformat() if value.time() == time(0) else value.isoformat()
    elif isinstance(value, date):
        text = value.isoformat()
    else:
        text = str(value)
    text = text.strip()
    if text == "":
        return None
    if null_sentinels and text.upper() in null_sentinels:
        return None
    return text


def _index_row(row: Mapping[str, Any]) -> dict[str, list[Any]]:
    # 大小文字/空白違いの同一ヘッダは出現順にすべて保持
    indexed: dict[str, list[Any]] = {}
    for k, v in row.items():
        indexed.setdefault(header_key(k), []).append(v)
    return indexed


def resolve_field(
    indexed_row: Mapping[str, list[Any]],
    field_def: FieldAlias,
    null_sentinels: Iterable[str] | None = None,
) -> str | None:
    """Resolve one field from a header-key indexed row (first non-missing spelling wins)."""
    for key in field_def.lookup_keys:
        for raw in indexed_row.get(key, ()):
            value = coerce_value(raw, null_sentinels)
            if value is not None:
                return value
    return None


def normalize_row(
    row: Mapping[str, Any],
    schema: EntitySchema,
    null_sentinels: Iterable[str] | None = None,
) -> tuple[NormalizedRecord, str | None]:
    """Normalize one row.

    Returns:
        (record, missing_field) where missing_field is the first required field
        (schema order) that resolved to None, or None when the row is valid.
    """
    indexed = _index_row(row)
    record: NormalizedRecord = {}
    missing: str | None = None
    for field_def in schema.fields:
        value = resolve_field(indexed, field_def, null_sentinels)
        if value is None:
            if field_def.required and missing is None:
                missing = field_def.name
            elif field_def.default is not None:
                value = field_def.default
        record[field_def.name] = value
    return record, missing


def normalize(
    rows: Sequence[RawRow],
    schema: EntitySchema,
    null_sentinels: Iterable[str] | None = None,
) -> ImportResult:
    """Map raw rows onto the schema's canonical record shape.

    Parameters
    ----------
    rows: parsed rows in import order
    schema: entity declaration (fields, aliases, required flags, defaults)
    null_sentinels: upper-cased strings treated as absent (e.g. {"NULL", "N/A"})

    Every input row ends up in exactly one of ``accepted`` / ``rejected``.
    """
    sentinels = frozenset(s.strip().upper() for s in null_sentinels) if null_sentinels else None
    accepted: list[NormalizedRecord] = []
    accepted_rows: list[int] = []
    rejected: list[Rejection] = []
    for index, row in enumerate(rows):
        record, missing = normalize_row(row, schema, sentinels)
        if missing is not None:
            rejected.append(Rejection(row=index, reason=MissingRequiredField(row=index, field=missing)))
            continue
        accepted.append(record)
        accepted_rows.append(index)
    logger.debug(
        "normalize entity=%s rows=%d accepted=%d rejected=%d",
        schema.entity,
        len(rows),
        len(accepted),
        len(rejected),
    )
    return ImportResult(accepted=accepted, rejected=rejected, accepted_rows=accepted_rows)
