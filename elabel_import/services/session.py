from __future__ import annotations

import logging
from typing import Any

from ..db.store import Store
from ..models.field_alias import EntitySchema
from ..models.import_attempt import ImportAttempt
from ..models.import_outcome import ImportOutcome
from .importer import run_import

"""Import session: at most one live attempt at a time.

Starting a new attempt (or cancelling) supersedes the current one. An outcome
that arrives for a superseded attempt is discarded instead of applied, so a
late success/failure never overwrites the state of a newer attempt.
"""

__all__ = [
    "ImportSession",
]

logger = logging.getLogger(__name__)


class ImportSession:
    def __init__(self) -> None:
        self._current: ImportAttempt | None = None
        self.last_outcome: ImportOutcome | None = None
        self.discarded: int = 0

    @property
    def current(self) -> ImportAttempt | None:
        return self._current

    def begin(self, file_name: str | None = None) -> ImportAttempt:
        """Start a new attempt, superseding any attempt still in flight."""
        if self._current is not None and not self._current.finished:
            logger.debug("attempt %d superseded", self._current.attempt_id)
        self._current = ImportAttempt(file_name)
        return self._current

    def cancel(self) -> None:
        """Abandon the current attempt; its outcome will be discarded."""
        if self._current is not None:
            logger.debug("attempt %d cancelled", self._current.attempt_id)
        self._current = None

    def is_current(self, attempt: ImportAttempt) -> bool:
        return self._current is attempt

    def deliver(self, attempt: ImportAttempt, outcome: ImportOutcome) -> bool:
        """Apply an outcome if its attempt is still current.

        Returns:
            True when applied, False when the attempt was superseded/cancelled
        """
        if not self.is_current(attempt):
            self.discarded += 1
            logger.debug("stale outcome of attempt %d discarded", attempt.attempt_id)
            return False
        self.last_outcome = outcome
        return True

    def run(
        self,
        file_bytes: bytes,
        schema: EntitySchema,
        store: Store,
        *,
        file_name: str = "<upload>",
        **kwargs: Any,
    ) -> ImportOutcome | None:
        """Begin an attempt, run it and deliver the outcome.

        Returns the outcome, or None when the attempt was abandoned while running.
        """
        attempt = self.begin(file_name)
        outcome = run_import(file_bytes, schema, store, file_name=file_name, attempt=attempt, **kwargs)
        if not self.deliver(attempt, outcome):
            return None
        return outcome
