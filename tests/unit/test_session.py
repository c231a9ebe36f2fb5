from __future__ import annotations

from elabel_import.db.store import DryRunStore
from elabel_import.models.entity_schemas import INGREDIENT_SCHEMA
from elabel_import.services.session import ImportSession


class SupersedingStore(DryRunStore):
    """Starts (or cancels) another attempt while the bulk insert is in flight."""

    def __init__(self, session: ImportSession, cancel: bool = False) -> None:
        super().__init__()
        self.session = session
        self.cancel = cancel

    def bulk_insert(self, table, records):
        if self.cancel:
            self.session.cancel()
        else:
            self.session.begin("newer.xlsx")
        return super().bulk_insert(table, records)


def test_run_delivers_current_outcome(ingredients_xlsx: bytes):
    session = ImportSession()
    outcome = session.run(ingredients_xlsx, INGREDIENT_SCHEMA, DryRunStore(), file_name="a.xlsx")
    assert outcome is not None
    assert outcome.succeeded
    assert session.last_outcome is outcome
    assert session.discarded == 0
    assert session.current is not None and session.current.finished


def test_superseded_outcome_is_discarded(ingredients_xlsx: bytes):
    session = ImportSession()
    store = SupersedingStore(session)
    outcome = session.run(ingredients_xlsx, INGREDIENT_SCHEMA, store, file_name="old.xlsx")
    assert outcome is None
    assert session.discarded == 1
    assert session.last_outcome is None
    # 新しい試行はそのまま (上書きされない)
    assert session.current is not None
    assert session.current.file_name == "newer.xlsx"
    assert not session.current.finished


def test_cancelled_outcome_is_discarded(ingredients_xlsx: bytes):
    session = ImportSession()
    store = SupersedingStore(session, cancel=True)
    assert session.run(ingredients_xlsx, INGREDIENT_SCHEMA, store) is None
    assert session.current is None
    assert session.discarded == 1


def test_begin_supersedes_previous_attempt():
    session = ImportSession()
    first = session.begin("a.xlsx")
    second = session.begin("b.xlsx")
    assert not session.is_current(first)
    assert session.is_current(second)


def test_failed_outcome_is_still_delivered():
    session = ImportSession()
    outcome = session.run(b"", INGREDIENT_SCHEMA, DryRunStore(), file_name="empty.csv")
    assert outcome is not None
    assert outcome.error_type == "EMPTY_FILE"
    assert session.last_outcome is outcome
