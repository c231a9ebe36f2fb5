from __future__ import annotations

import json
import re
from pathlib import Path

from elabel_import.logging.error_log import ErrorLogBuffer
from elabel_import.models.error_record import FILE_LEVEL_ROW, ErrorRecord


def _record(row: int = 3, error_type: str = "MISSING_REQUIRED_FIELD") -> ErrorRecord:
    return ErrorRecord.create(
        file="ingredients.xlsx",
        entity="ingredients",
        row=row,
        error_type=error_type,
        message="row 1: missing required field 'name'",
    )


def test_error_record_timestamp_is_utc_z():
    rec = _record()
    assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$", rec.timestamp)


def test_error_record_json_line_has_fixed_keys():
    data = json.loads(_record().to_json_line())
    assert set(data) == {"timestamp", "file", "entity", "row", "error_type", "message"}
    assert data["row"] == 3


def test_error_record_keeps_non_ascii():
    rec = ErrorRecord.create("原材料.xlsx", "ingredients", FILE_LEVEL_ROW, "EMPTY_FILE", "file is empty")
    assert "原材料.xlsx" in rec.to_json_line()


def test_flush_empty_buffer_writes_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_flush_writes_json_lines(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.append(_record(row=2))
    buf.append(_record(row=FILE_LEVEL_ROW, error_type="STORE_ERROR"))
    path = buf.flush()
    assert path is not None
    assert re.match(r"^errors-\d{8}-\d{6}\.log$", path.name)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["row"] for line in lines] == [2, -1]
    assert buf.records == []


def test_flush_appends_to_same_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(_record())
    first = buf.flush()
    buf.append(_record())
    second = buf.flush()
    assert first == second
    assert len(first.read_text(encoding="utf-8").splitlines()) == 2
