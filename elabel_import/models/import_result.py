from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypeAlias

"""Row / record / result models for the import pipeline.

RawRow: one parsed spreadsheet row (header -> cell value), import order preserved.
NormalizedRecord: canonical field name -> trimmed string or None.
ImportResult: accepted records + (row index, reason) rejections for one attempt.
"""

__all__ = [
    "RawRow",
    "NormalizedRecord",
    "MissingRequiredField",
    "Rejection",
    "ImportResult",
]

RawRow: TypeAlias = dict[str, Any]
NormalizedRecord: TypeAlias = dict[str, str | None]


@dataclass(frozen=True)
class MissingRequiredField:
    """Row-level rejection reason: a required field resolved to None.

    Collected during normalization, never raised.
    """
    row: int  # 0-based index into the RawRow sequence
    field: str

    error_type = "MISSING_REQUIRED_FIELD"

    def __str__(self) -> str:
        return f"row {self.row}: missing required field '{self.field}'"


@dataclass(frozen=True)
class Rejection:
    row: int
    reason: MissingRequiredField


@dataclass(frozen=True)
class ImportResult:
    """Outcome of normalize(): every input row lands in exactly one list."""
    accepted: list[NormalizedRecord] = field(default_factory=list)
    rejected: list[Rejection] = field(default_factory=list)
    # accepted[i] が元データの何行目か (rows 上の index)
    accepted_rows: list[int] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.accepted) + len(self.rejected)

    @property
    def rejected_rows(self) -> list[int]:
        return [r.row for r in self.rejected]
