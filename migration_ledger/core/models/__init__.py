"""
Core data models for migration-ledger.

All models use Pydantic for runtime validation and type safety.
"""

from .combined_record import CombinedRecord
from .data_kind import DISPLAY_NAMES, CanonicalField, DataKind, FieldType
from .import_result import DuplicateRow, ImportResult, RowFailure
from .records import (
    DATE_FIELDS,
    ENVIRONMENT_CODES,
    NOT_AVAILABLE,
    RECORD_TYPES,
    ClusterRecord,
    IdentityGroupRecord,
    MigrationRecord,
    PackageStatusRecord,
    PersonRecord,
    SourceRecord,
    TestStatusRecord,
    is_absent,
)
from .validation_result import ValidationResult

__all__ = [
    "CanonicalField",
    "ClusterRecord",
    "CombinedRecord",
    "DataKind",
    "DISPLAY_NAMES",
    "DuplicateRow",
    "DATE_FIELDS",
    "ENVIRONMENT_CODES",
    "FieldType",
    "IdentityGroupRecord",
    "ImportResult",
    "is_absent",
    "MigrationRecord",
    "NOT_AVAILABLE",
    "PackageStatusRecord",
    "PersonRecord",
    "RECORD_TYPES",
    "RowFailure",
    "SourceRecord",
    "TestStatusRecord",
    "ValidationResult",
]
