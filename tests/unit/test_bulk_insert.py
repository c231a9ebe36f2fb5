from __future__ import annotations

import pytest

from elabel_import.db.bulk_insert import (
    BulkInsertError,
    InsertMetrics,
    InsertResult,
    bulk_insert,
    record_columns,
)


class DummyCursor:
    def __init__(self) -> None:
        self.calls: list[tuple[str, list[tuple], int]] = []


# execute_values を差し替えて DB なしでロジックだけ検証
@pytest.fixture(autouse=True)
def patch_execute_values(monkeypatch):
    import elabel_import.db.bulk_insert as bi

    def fake_execute_values(cursor, sql, rows, page_size=100, template=None):
        cursor.calls.append((sql, list(rows), page_size))

    monkeypatch.setattr(bi, "execute_values", fake_execute_values)
    return fake_execute_values


def test_bulk_insert_single_statement():
    cur = DummyCursor()
    records = [
        {"name": "Sucrose", "category": "Other ingredient"},
        {"name": "Sulphites", "category": "Preservative"},
        {"name": "Citric acid", "category": "Acid"},
    ]
    res = bulk_insert(cur, "ingredients", records)
    assert isinstance(res, InsertResult)
    assert res.inserted_rows == 3
    assert len(cur.calls) == 1
    sql, rows, page_size = cur.calls[0]
    assert sql == 'INSERT INTO "ingredients" ("name","category") VALUES %s'
    assert rows == [
        ("Sucrose", "Other ingredient"),
        ("Sulphites", "Preservative"),
        ("Citric acid", "Acid"),
    ]
    # 全件 1 ページ
    assert page_size == 3


def test_bulk_insert_missing_keys_become_null():
    cur = DummyCursor()
    bulk_insert(cur, "products", [{"name": "A"}, {"name": "B", "brand": "X"}])
    sql, rows, _ = cur.calls[0]
    assert '("name","brand")' in sql
    assert rows == [("A", None), ("B", "X")]


def test_bulk_insert_empty_batch_skips_statement():
    cur = DummyCursor()
    captured: list[InsertMetrics] = []
    res = bulk_insert(cur, "ingredients", [], metrics_callback=captured.append)
    assert res.inserted_rows == 0
    assert cur.calls == []
    assert captured == []


@pytest.mark.parametrize("table", ["ingredients; DROP TABLE x", "1abc", "bad-name", ""])
def test_bulk_insert_rejects_invalid_table(table: str):
    with pytest.raises(BulkInsertError, match="invalid identifier"):
        bulk_insert(DummyCursor(), table, [{"name": "A"}])


def test_bulk_insert_rejects_invalid_column():
    with pytest.raises(BulkInsertError):
        bulk_insert(DummyCursor(), "ingredients", [{'na"me': "A"}])


def test_bulk_insert_wraps_driver_error(monkeypatch):
    import elabel_import.db.bulk_insert as bi

    def boom(cursor, sql, rows, page_size=100):
        raise RuntimeError("duplicate key value violates unique constraint")

    monkeypatch.setattr(bi, "execute_values", boom)
    captured: list[InsertMetrics] = []
    with pytest.raises(BulkInsertError, match="duplicate key"):
        bulk_insert(DummyCursor(), "ingredients", [{"name": "A"}], metrics_callback=captured.append)
    # 失敗時もメトリクスは通知される
    assert len(captured) == 1
    assert captured[0].batch_size == 1


def test_bulk_insert_with_metrics_callback():
    captured: list[InsertMetrics] = []
    bulk_insert(DummyCursor(), "ingredients", [{"name": "A"}, {"name": "B"}], metrics_callback=captured.append)
    assert len(captured) == 1
    m = captured[0]
    assert m.batch_size == 2
    assert m.elapsed_seconds >= 0
    assert m.end_time >= m.start_time


def test_record_columns_first_seen_order():
    assert record_columns([{"b": 1, "a": 2}, {"c": 3, "a": 4}]) == ["b", "a", "c"]
    assert record_columns([]) == []
