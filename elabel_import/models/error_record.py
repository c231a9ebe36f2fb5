from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the import error log.

Each rejected row and each failed attempt becomes one JSON Lines record.
row=-1 marks a file-level error where no single row is to blame.
"""

__all__ = [
    "ErrorRecord",
    "FILE_LEVEL_ROW",
]

FILE_LEVEL_ROW = -1


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Imported file name
        entity: Entity being imported (ingredients / products)
        row: 1-based source line of the row. -1 for file-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable description (store message, missing field, ...)
    """
    timestamp: str  # ISO8601 UTC
    file: str
    entity: str
    row: int  # 行番号。ファイル単位エラーは -1
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, entity: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            entity=entity,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON line (fixed key set, no extras)."""
        return json.dumps(asdict(self), ensure_ascii=False)
