"""
Primitive per-source records.

One model per importable data kind. Field names are the CanonicalField values,
which are also the column names of the backing tables.
"""

from datetime import date, datetime
from typing import Any, ClassVar

from pydantic import BaseModel, Field, field_validator, model_validator

from .data_kind import CanonicalField, DataKind

NOT_AVAILABLE = "N/A"

ENVIRONMENT_CODES = ("O", "T", "A", "P")

DATE_FIELDS = frozenset({
    CanonicalField.LEAVE_DATE,
    CanonicalField.PACKAGE_READINESS_DATE,
    CanonicalField.TEST_DATE,
    CanonicalField.TESTING_PLAN_DATE,
    CanonicalField.TEST_READINESS_DATE,
})


def is_absent(value: Any) -> bool:
    """True for None, blank strings and the N/A sentinel."""
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return stripped == "" or stripped.upper() == NOT_AVAILABLE
    return False


class SourceRecord(BaseModel):
    """
    Fields shared by every persisted primitive record.

    Attributes:
        extra: Unknown spreadsheet columns, keyed by their trimmed header text
        batch_id: Import batch that created the record
        imported_at: When the batch was imported
        row_number: 1-based worksheet row the record came from (not persisted)
    """

    kind: ClassVar[DataKind]
    key_fields: ClassVar[tuple[CanonicalField, ...]]

    extra: dict[str, str] = Field(default_factory=dict)
    batch_id: str | None = None
    imported_at: datetime | None = None
    row_number: int | None = Field(None, ge=1, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def normalize_absent_values(cls, data: Any) -> Any:
        """Turn N/A and blank cells into None, or drop them where the field has a default."""
        if not isinstance(data, dict):
            return data
        normalized = {}
        for name, value in data.items():
            if is_absent(value):
                field = cls.model_fields.get(name)
                if field is not None and not field.is_required() and field.default is not None:
                    continue
                value = None
            normalized[name] = value
        return normalized

    @property
    def natural_key(self) -> tuple[str, ...]:
        return tuple(str(getattr(self, f.value)) for f in self.key_fields)

    @classmethod
    def column_names(cls) -> list[str]:
        """Kind-specific columns in declaration order (no bookkeeping fields)."""
        shared = set(SourceRecord.model_fields)
        return [name for name in cls.model_fields if name not in shared]


class IdentityGroupRecord(SourceRecord):
    """
    One membership of a system account in an AD group, with the application it grants.
    """

    kind: ClassVar[DataKind] = DataKind.IDENTITY_GROUP
    key_fields: ClassVar[tuple[CanonicalField, ...]] = (
        CanonicalField.IDENTITY_GROUP,
        CanonicalField.ACCOUNT_ID,
    )

    identity_group: str = Field(..., min_length=1)
    account_id: str = Field(..., min_length=1)
    application_name: str = NOT_AVAILABLE
    application_suite: str = NOT_AVAILABLE
    environment: str = NOT_AVAILABLE
    critical_flag: str = NOT_AVAILABLE

    @field_validator("environment")
    @classmethod
    def upper_environment(cls, v: str) -> str:
        return v.strip().upper()

    class Config:
        json_schema_extra = {
            "example": {
                "identity_group": "GRP1",
                "account_id": "user1",
                "application_name": "App A",
                "application_suite": "Suite1",
                "environment": "P",
                "critical_flag": "Y",
            }
        }


class PersonRecord(SourceRecord):
    """HR personnel record for one system account."""

    kind: ClassVar[DataKind] = DataKind.HR
    key_fields: ClassVar[tuple[CanonicalField, ...]] = (CanonicalField.ACCOUNT_ID,)

    account_id: str = Field(..., min_length=1)
    department: str | None = None
    job_role: str | None = None
    division: str | None = None
    department_simple: str | None = None
    leave_date: date | None = None
    employee_number: str | None = None

    def has_left(self, as_of: date | None = None) -> bool:
        """Whether the leave date lies strictly before as_of (default: today)."""
        if self.leave_date is None:
            return False
        return self.leave_date < (as_of or date.today())


class PackageStatusRecord(SourceRecord):
    """Packaging status of one application."""

    kind: ClassVar[DataKind] = DataKind.PACKAGE
    key_fields: ClassVar[tuple[CanonicalField, ...]] = (CanonicalField.APPLICATION_NAME,)

    application_name: str = Field(..., min_length=1)
    package_status: str = Field(..., min_length=1)
    package_readiness_date: date | None = None


class TestStatusRecord(SourceRecord):
    """Test status of one application."""

    __test__ = False  # keep pytest from collecting this model

    kind: ClassVar[DataKind] = DataKind.TEST
    key_fields: ClassVar[tuple[CanonicalField, ...]] = (CanonicalField.APPLICATION_NAME,)

    application_name: str = Field(..., min_length=1)
    test_status: str = Field(..., min_length=1)
    test_date: date
    test_result: str = Field(..., min_length=1)
    test_comments: str | None = None
    testing_plan_date: date | None = None


class MigrationRecord(SourceRecord):
    """
    Migration metadata for an application as used by one AD group.

    Attributes:
        scope_division: "in" or "out" when recognised, otherwise the raw text
        will_be: Successor application that receives this application's usage
    """

    kind: ClassVar[DataKind] = DataKind.MIGRATION
    key_fields: ClassVar[tuple[CanonicalField, ...]] = (
        CanonicalField.IDENTITY_GROUP,
        CanonicalField.APPLICATION_NAME,
    )

    identity_group: str = Field(..., min_length=1)
    application_name: str = Field(..., min_length=1)
    new_application_name: str | None = None
    suite: str | None = None
    new_suite: str | None = None
    scope_division: str | None = None
    will_be: str | None = None
    migration_platform: str | None = None
    migration_application_readiness: str | None = None

    @field_validator("scope_division")
    @classmethod
    def normalize_scope(cls, v: str | None) -> str | None:
        if v is None:
            return v
        lowered = v.strip().lower()
        return lowered if lowered in ("in", "out") else v


class ClusterRecord(SourceRecord):
    """Organizational clustering of one department."""

    kind: ClassVar[DataKind] = DataKind.CLUSTER
    key_fields: ClassVar[tuple[CanonicalField, ...]] = (CanonicalField.DEPARTMENT,)

    department: str = Field(..., min_length=1)
    department_simple: str | None = None
    domain: str | None = None
    migration_cluster: str | None = None
    migration_cluster_readiness: str | None = None


RECORD_TYPES: dict[DataKind, type[SourceRecord]] = {
    DataKind.IDENTITY_GROUP: IdentityGroupRecord,
    DataKind.HR: PersonRecord,
    DataKind.PACKAGE: PackageStatusRecord,
    DataKind.TEST: TestStatusRecord,
    DataKind.MIGRATION: MigrationRecord,
    DataKind.CLUSTER: ClusterRecord,
}
