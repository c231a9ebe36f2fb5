from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import pandas as pd

from ..models.field_alias import EntitySchema

"""List helpers over in-memory records: search, category filter, CSV export.

export_csv() writes the display labels as headers, so an exported file can be
imported again unchanged (backup / restore).
"""

__all__ = [
    "ALL_CATEGORIES",
    "search_records",
    "categories",
    "export_csv",
]

ALL_CATEGORIES = "All"


def _matches(record: Mapping[str, Any], term: str, fields: Iterable[str]) -> bool:
    for name in fields:
        value = record.get(name)
        if value is not None and term in str(value).casefold():
            return True
    return False


def search_records(
    records: Sequence[Mapping[str, Any]],
    term: str,
    *,
    fields: Sequence[str],
    category: str | None = None,
    category_field: str = "category",
) -> list[Mapping[str, Any]]:
    """Filter records by a case-insensitive substring and an optional category.

    An empty term matches everything; category None or "All" disables the
    category filter. Order is preserved.
    """
    needle = term.strip().casefold()
    out = []
    for rec in records:
        if category not in (None, ALL_CATEGORIES) and rec.get(category_field) != category:
            continue
        if needle and not _matches(rec, needle, fields):
            continue
        out.append(rec)
    return out


def categories(records: Iterable[Mapping[str, Any]], category_field: str = "category") -> list[str]:
    """Distinct non-empty categories in first-seen order."""
    seen: dict[str, None] = {}
    for rec in records:
        value = rec.get(category_field)
        if value:
            seen.setdefault(str(value), None)
    return list(seen)


def export_csv(records: Iterable[Mapping[str, Any]], schema: EntitySchema) -> str:
    """Render records as CSV with the schema's display labels as headers."""
    labels = [f.label for f in schema.fields]
    data = [[rec.get(f.name) for f in schema.fields] for rec in records]
    df = pd.DataFrame(data, columns=labels, dtype=object)
    return df.to_csv(index=False, lineterminator="\n")
