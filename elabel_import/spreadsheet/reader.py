from __future__ import annotations

import csv
import io
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import pandas as pd

from ..models.import_result import RawRow

"""Spreadsheet reader: bytes -> header + RawRow sequence.

Format is detected from content, never from the file extension:
- OLE2 compound document magic -> legacy .xls (xlrd)
- ZIP magic                      -> .xlsx (openpyxl)
- otherwise decodable text       -> delimited text (delimiter sniffed)

Only the first sheet is read. The first non-blank row is the header; fully
blank rows are dropped and never reach normalization.
"""

__all__ = [
    "FileFormat",
    "TableData",
    "TableReadError",
    "UnreadableFileError",
    "EmptyFileError",
    "detect_format",
    "read_table",
    "parse",
]

logger = logging.getLogger(__name__)

OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
ZIP_MAGIC = b"PK\x03\x04"
CSV_DELIMITERS = ",;\t|"
SNIFF_SAMPLE_BYTES = 64 * 1024


class TableReadError(Exception):
    """Base class for file-level read failures (abort the attempt)."""


class UnreadableFileError(TableReadError):
    """Raised when the bytes cannot be decoded as any supported tabular format."""


class EmptyFileError(TableReadError):
    """Raised when no data row follows the header row."""


class FileFormat(Enum):
    XLS = "xls"
    XLSX = "xlsx"
    CSV = "csv"


@dataclass
class TableData:
    file_format: FileFormat
    columns: list[str]
    rows: list[RawRow]  # 空行除去済 (ヘッダ→値)
    line_numbers: list[int] = field(default_factory=list)  # rows[i] の元の行番号 (1-based)


def _decode_text(file_bytes: bytes) -> str | None:
    if file_bytes.startswith((b"\xff\xfe", b"\xfe\xff")):
        try:
            return file_bytes.decode("utf-16")
        except UnicodeDecodeError:
            return None
    # NUL を含むものはテキストとみなさない (バイナリ)
    if b"\x00" in file_bytes:
        return None
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return file_bytes.decode(encoding)
        except UnicodeDecodeError:
            continue
    return None


def detect_format(file_bytes: bytes) -> FileFormat:
    """Detect the tabular format of raw file bytes.

    Raises:
        UnreadableFileError: content matches none of the supported formats
    """
    if file_bytes.startswith(OLE2_MAGIC):
        return FileFormat.XLS
    if file_bytes.startswith(ZIP_MAGIC):
        return FileFormat.XLSX
    if _decode_text(file_bytes) is not None:
        return FileFormat.CSV
    raise UnreadableFileError("file is not a supported spreadsheet (xls, xlsx or delimited text)")


def _read_excel_frame(file_bytes: bytes, engine: str) -> pd.DataFrame:
    try:
        # sheet_name=0: 先頭シートのみ。NA 文字列の自動変換は無効化 (null_sentinels で制御)
        return pd.read_excel(
            io.BytesIO(file_bytes),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=engine,
            keep_default_na=False,
        )
    except Exception as e:
        raise UnreadableFileError(f"could not read spreadsheet: {e}") from e


def _read_csv_frame(file_bytes: bytes) -> pd.DataFrame:
    text = _decode_text(file_bytes)
    if text is None:  # pragma: no cover - detect_format guards this
        raise UnreadableFileError("could not decode delimited text")
    sample = text[:SNIFF_SAMPLE_BYTES]
    try:
        dialect: Any = csv.Sniffer().sniff(sample, delimiters=CSV_DELIMITERS)
    except csv.Error:
        # 1列のみ等で判定不能 -> カンマ
        dialect = csv.excel
    try:
        records = list(csv.reader(io.StringIO(text, newline=""), dialect))
    except csv.Error as e:
        raise UnreadableFileError(f"could not parse delimited text: {e}") from e
    # 行ごとの列数が揃っていない CSV もあるので DataFrame 側で NaN 埋め
    return pd.DataFrame(records, dtype=object)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def _cell(value: Any) -> Any:
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def _header_text(value: Any) -> str:
    # 前後空白/大小文字の違いは残す (照合は normalizer 側の header_key)
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _frame_to_table(df: pd.DataFrame, file_format: FileFormat) -> TableData:
    values = df.values.tolist()
    # 先頭の空行はヘッダ探索時にスキップ
    start = 0
    while start < len(values) and all(_is_blank(v) for v in values[start]):
        start += 1
    if start >= len(values):
        raise EmptyFileError("file contains no header row")

    header = [_header_text(v) for v in values[start]]
    keep: list[tuple[int, str]] = []
    seen: set[str] = set()
    for idx, name in enumerate(header):
        if not name:
            continue
        if name in seen:
            logger.debug("duplicate header %r at column %d ignored", name, idx + 1)
            continue
        seen.add(name)
        keep.append((idx, name))

    rows: list[RawRow] = []
    line_numbers: list[int] = []
    for offset, raw in enumerate(values[start + 1:], start=start + 2):
        if all(_is_blank(v) for v in raw):
            continue
        row: RawRow = {}
        for idx, name in keep:
            row[name] = _cell(raw[idx]) if idx < len(raw) else None
        rows.append(row)
        line_numbers.append(offset)

    if not rows:
        raise EmptyFileError("file contains a header row but no data rows")
    return TableData(
        file_format=file_format,
        columns=[name for _, name in keep],
        rows=rows,
        line_numbers=line_numbers,
    )


def read_table(file_bytes: bytes) -> TableData:
    """Read the first sheet/table of a spreadsheet file.

    Parameters
    ----------
    file_bytes: raw file content (xls, xlsx, csv/tsv)

    Raises
    ------
    UnreadableFileError: content cannot be decoded as a supported format
    EmptyFileError: zero data rows after the header (zero-byte files included)
    """
    if not file_bytes:
        raise EmptyFileError("file is empty")
    file_format = detect_format(file_bytes)
    if file_format is FileFormat.XLS:
        df = _read_excel_frame(file_bytes, engine="xlrd")
    elif file_format is FileFormat.XLSX:
        df = _read_excel_frame(file_bytes, engine="openpyxl")
    else:
        df = _read_csv_frame(file_bytes)
    table = _frame_to_table(df, file_format)
    logger.debug(
        "read_table format=%s columns=%s rows=%d",
        table.file_format.value,
        table.columns,
        len(table.rows),
    )
    return table


def parse(file_bytes: bytes) -> list[RawRow]:
    """Parse spreadsheet bytes into RawRow dicts in source order."""
    return read_table(file_bytes).rows
