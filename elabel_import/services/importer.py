from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from ..db.store import Store, StoreError
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import FILE_LEVEL_ROW, ErrorRecord
from ..models.field_alias import EntitySchema
from ..models.import_attempt import ImportAttempt, ImportState
from ..models.import_outcome import ImportOutcome, SubmitOutcome
from ..models.import_result import ImportResult, NormalizedRecord
from ..spreadsheet.reader import EmptyFileError, TableData, UnreadableFileError, read_table
from .identity import NotAuthenticatedError, require_user_id
from .normalizer import normalize

"""Import service: drives one attempt from file bytes to bulk insert.

    idle -> file_selected -> parsing -> normalizing -> submitting -> (succeeded | failed)

File-level errors (unreadable, empty, not authenticated) end the attempt at
once. Rows missing a required field are collected and reported but do not stop
the attempt; only accepted rows are submitted, in one bulk insert call.
"""

__all__ = [
    "submit",
    "scope_to_user",
    "run_import",
]

logger = logging.getLogger(__name__)

# ファイル単位エラー -> error_type
_FILE_ERRORS: dict[type[Exception], str] = {
    NotAuthenticatedError: "NOT_AUTHENTICATED",
    UnreadableFileError: "UNREADABLE_FILE",
    EmptyFileError: "EMPTY_FILE",
}


def submit(records: Sequence[NormalizedRecord], table: str, store: Store) -> SubmitOutcome:
    """Send all records to the store in a single bulk insert call.

    The store is all-or-nothing, so a StoreError means none of the records were
    saved. No retry is attempted.
    """
    attempted = len(records)
    try:
        inserted = store.bulk_insert(table, records)
    except StoreError as e:
        logger.debug("bulk insert into %s failed (%d record(s) attempted): %s", table, attempted, e)
        return SubmitOutcome(table=table, attempted=attempted, inserted=0, error=str(e) or type(e).__name__)
    return SubmitOutcome(table=table, attempted=attempted, inserted=inserted)


def scope_to_user(
    records: Iterable[NormalizedRecord], schema: EntitySchema, user_id: str | None
) -> list[NormalizedRecord]:
    """Attach the owning user id to each record for user-scoped entities."""
    if not schema.requires_user:
        return [dict(r) for r in records]
    owner = require_user_id(user_id)
    return [{schema.user_column: owner, **r} for r in records]


def _log_rejections(
    result: ImportResult,
    table: TableData,
    schema: EntitySchema,
    file_name: str,
    error_log: ErrorLogBuffer | None,
) -> None:
    for rej in result.rejected:
        line = table.line_numbers[rej.row] if rej.row < len(table.line_numbers) else FILE_LEVEL_ROW
        logger.warning(
            "%s line %d skipped: missing required field '%s'", file_name, line, rej.reason.field
        )
        if error_log is not None:
            error_log.append(
                ErrorRecord.create(
                    file=file_name,
                    entity=schema.entity,
                    row=line,
                    error_type=rej.reason.error_type,
                    message=str(rej.reason),
                )
            )


def _failed(
    attempt: ImportAttempt,
    schema: EntitySchema,
    error_type: str,
    message: str,
    error_log: ErrorLogBuffer | None,
    result: ImportResult | None = None,
    records: list[NormalizedRecord] | None = None,
) -> ImportOutcome:
    attempt.fail(message)
    file_name = attempt.file_name or "<upload>"
    logger.error("%s: %s", file_name, message)
    if error_log is not None:
        error_log.append(
            ErrorRecord.create(
                file=file_name,
                entity=schema.entity,
                row=FILE_LEVEL_ROW,
                error_type=error_type,
                message=message,
            )
        )
    return ImportOutcome(
        attempt_id=attempt.attempt_id,
        file_name=file_name,
        entity=schema.entity,
        state=attempt.state,
        total_rows=result.total_rows if result else 0,
        accepted=len(result.accepted) if result else 0,
        rejections=list(result.rejected) if result else [],
        inserted=0,
        records=records or [],
        error_type=error_type,
        message=message,
        start_time=attempt.started_at,
        end_time=attempt.finished_at,
    )


def run_import(
    file_bytes: bytes,
    schema: EntitySchema,
    store: Store,
    *,
    user_id: str | None = None,
    file_name: str = "<upload>",
    error_log: ErrorLogBuffer | None = None,
    null_sentinels: Iterable[str] | None = None,
    attempt: ImportAttempt | None = None,
) -> ImportOutcome:
    """Run one import attempt.

    Args:
        file_bytes: raw spreadsheet content
        schema: entity declaration to normalize against
        store: persistence collaborator (single bulk insert)
        user_id: resolved identity; required when schema.requires_user
        file_name: used in log / error log output only
        error_log: buffer receiving one ErrorRecord per rejection / failure
        null_sentinels: strings treated as empty cells
        attempt: pre-created attempt (ImportSession); a new one is made otherwise

    Returns:
        ImportOutcome in state SUCCEEDED or FAILED. Nothing is raised for
        file-level or store errors; they are reported in the outcome.
    """
    if attempt is None:
        attempt = ImportAttempt(file_name)
    elif attempt.file_name is None:
        attempt.file_name = file_name
    file_name = attempt.file_name or file_name
    attempt.advance(ImportState.FILE_SELECTED)

    try:
        # 認証確認はパース開始前
        if schema.requires_user:
            require_user_id(user_id)
        attempt.advance(ImportState.PARSING)
        table = read_table(file_bytes)
    except (NotAuthenticatedError, UnreadableFileError, EmptyFileError) as e:
        return _failed(attempt, schema, _FILE_ERRORS[type(e)], str(e), error_log)

    attempt.advance(ImportState.NORMALIZING)
    result = normalize(table.rows, schema, null_sentinels)
    logger.info(
        "%s: %d row(s) read (%s), %d accepted, %d rejected",
        file_name,
        result.total_rows,
        table.file_format.value,
        len(result.accepted),
        len(result.rejected),
    )
    _log_rejections(result, table, schema, file_name, error_log)

    if not result.accepted:
        return _failed(
            attempt, schema, "NO_VALID_ROWS", "no row passed validation, nothing to import", error_log, result
        )

    records = scope_to_user(result.accepted, schema, user_id)
    attempt.advance(ImportState.SUBMITTING)
    sub = submit(records, schema.table, store)
    if not sub.succeeded:
        return _failed(attempt, schema, "STORE_ERROR", sub.message, error_log, result, records)

    attempt.advance(ImportState.SUCCEEDED)
    logger.info("%s: %s", file_name, sub.message)
    return ImportOutcome(
        attempt_id=attempt.attempt_id,
        file_name=file_name,
        entity=schema.entity,
        state=attempt.state,
        total_rows=result.total_rows,
        accepted=len(result.accepted),
        rejections=list(result.rejected),
        inserted=sub.inserted,
        records=records,
        message=sub.message,
        start_time=attempt.started_at,
        end_time=attempt.finished_at or datetime.now(UTC),
    )
