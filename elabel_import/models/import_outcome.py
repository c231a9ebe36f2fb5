from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .import_attempt import ImportState
from .import_result import NormalizedRecord, Rejection

"""Outcome models returned to the caller (CLI / session).

SubmitOutcome covers the single bulk insert; ImportOutcome covers a whole
attempt. RunSummary aggregates several attempts for the SUMMARY line.
"""

__all__ = [
    "SubmitOutcome",
    "ImportOutcome",
    "RunSummary",
]


@dataclass(frozen=True)
class SubmitOutcome:
    """Result of one all-or-nothing bulk insert.

    inserted is either equal to attempted (success) or 0 (failure); the store
    gives no per-row detail so partial success is never reported.
    """
    table: str
    attempted: int
    inserted: int
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        if self.succeeded:
            return f"imported {self.inserted} record(s) into {self.table}"
        return (
            f"import into {self.table} failed, none of the {self.attempted} record(s) "
            f"were saved: {self.error}"
        )


@dataclass(frozen=True)
class ImportOutcome:
    """Final state of one import attempt."""
    attempt_id: int
    file_name: str
    entity: str
    state: ImportState
    total_rows: int = 0
    accepted: int = 0
    rejections: list[Rejection] = field(default_factory=list)
    inserted: int = 0
    records: list[NormalizedRecord] = field(default_factory=list)  # 送信対象 (スコープ済)
    error_type: str | None = None  # UPPER_SNAKE (失敗時のみ)
    message: str = ""
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is ImportState.SUCCEEDED

    @property
    def rejected(self) -> int:
        return len(self.rejections)

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()


@dataclass(frozen=True)
class RunSummary:
    """Aggregated counters over every attempt of one CLI run."""
    success_files: int
    failed_files: int
    accepted_rows: int
    rejected_rows: int
    inserted_rows: int
    elapsed_seconds: float

    @property
    def total_files(self) -> int:
        return self.success_files + self.failed_files

    @staticmethod
    def from_outcomes(outcomes: list[ImportOutcome], elapsed_seconds: float) -> RunSummary:
        return RunSummary(
            success_files=sum(1 for o in outcomes if o.succeeded),
            failed_files=sum(1 for o in outcomes if not o.succeeded),
            accepted_rows=sum(o.accepted for o in outcomes),
            rejected_rows=sum(o.rejected for o in outcomes),
            inserted_rows=sum(o.inserted for o in outcomes),
            elapsed_seconds=elapsed_seconds,
        )
