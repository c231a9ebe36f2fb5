from __future__ import annotations

import itertools
from datetime import UTC, datetime
from enum import Enum

"""ImportAttempt state machine & ImportState enum.

One attempt per selected file:
    idle -> file_selected -> parsing -> normalizing -> submitting -> (succeeded | failed)

Any non-terminal state may move to failed. Terminal states have no exits; a
failed attempt is never retried, the caller starts a new attempt instead.
"""

__all__ = [
    "ImportState",
    "ImportAttempt",
    "ImportStateError",
]


class ImportStateError(Exception):
    """Raised on an illegal state transition."""


class ImportState(Enum):
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    PARSING = "parsing"
    NORMALIZING = "normalizing"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (ImportState.SUCCEEDED, ImportState.FAILED)


_NEXT: dict[ImportState, ImportState] = {
    ImportState.IDLE: ImportState.FILE_SELECTED,
    ImportState.FILE_SELECTED: ImportState.PARSING,
    ImportState.PARSING: ImportState.NORMALIZING,
    ImportState.NORMALIZING: ImportState.SUBMITTING,
    ImportState.SUBMITTING: ImportState.SUCCEEDED,
}

_ids = itertools.count(1)


class ImportAttempt:
    """Tracks the lifecycle of a single import attempt.

    Not thread-safe; an attempt is owned by exactly one caller.
    """

    def __init__(self, file_name: str | None = None) -> None:
        self.attempt_id = next(_ids)
        self.file_name = file_name
        self.state = ImportState.IDLE
        self.history: list[ImportState] = [ImportState.IDLE]
        self.started_at = datetime.now(UTC)
        self.finished_at: datetime | None = None
        self.error: str | None = None

    def __repr__(self) -> str:  # pragma: no cover (trivial)
        return f"ImportAttempt(id={self.attempt_id}, file={self.file_name!r}, state={self.state.value})"

    @property
    def finished(self) -> bool:
        return self.state.terminal

    def advance(self, target: ImportState) -> None:
        """Move to the next state in the happy path."""
        if target is ImportState.FAILED:
            self.fail("failed")
            return
        expected = _NEXT.get(self.state)
        if expected is not target:
            raise ImportStateError(f"invalid transition {self.state.value} -> {target.value}")
        self._set(target)

    def fail(self, error: str) -> None:
        if self.state.terminal:
            raise ImportStateError(f"attempt already finished ({self.state.value})")
        self.error = error
        self._set(ImportState.FAILED)

    def _set(self, target: ImportState) -> None:
        self.state = target
        self.history.append(target)
        if target.terminal:
            self.finished_at = datetime.now(UTC)
