"""Domain models for the e-label spreadsheet importer.

Schema declarations, row/record/result types, the import attempt state
machine and configuration dataclasses.
"""

from .config_models import DatabaseConfig, ImportConfig
from .entity_schemas import INGREDIENT_SCHEMA, PRODUCT_SCHEMA, SCHEMAS, get_schema
from .error_record import ErrorRecord
from .field_alias import EntitySchema, FieldAlias
from .import_attempt import ImportAttempt, ImportState, ImportStateError
from .import_outcome import ImportOutcome, RunSummary, SubmitOutcome
from .import_result import ImportResult, MissingRequiredField, NormalizedRecord, RawRow, Rejection

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    # Schema declarations
    "EntitySchema",
    "FieldAlias",
    "INGREDIENT_SCHEMA",
    "PRODUCT_SCHEMA",
    "SCHEMAS",
    "get_schema",
    # Processing models
    "ErrorRecord",
    "ImportAttempt",
    "ImportOutcome",
    "ImportResult",
    "ImportState",
    "ImportStateError",
    "MissingRequiredField",
    "NormalizedRecord",
    "RawRow",
    "Rejection",
    "RunSummary",
    "SubmitOutcome",
]
