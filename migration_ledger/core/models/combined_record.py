"""
CombinedRecord model: the reconciled projection for one (identity group, account) pair.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from .records import NOT_AVAILABLE, is_absent


class CombinedRecord(BaseModel):
    """
    Denormalized row joining identity, person, package, test, migration and cluster facts.

    Only identity_group and account_id are guaranteed; every other field is
    None when no matching source record was found.

    Attributes:
        identity_group: AD group name
        account_id: System account
        department: From the matched HR record
        leave_date: From the matched HR record; see has_left()
        test_readiness_date: Test date of the matched test record
        will_be: Successor application, None when not redirected
        batch_id: Reconciliation batch that produced the row
    """

    id: int | None = None

    identity_group: str = Field(..., min_length=1)
    account_id: str = Field(..., min_length=1)
    application_name: str = NOT_AVAILABLE
    application_suite: str = NOT_AVAILABLE
    environment: str = NOT_AVAILABLE
    critical_flag: str = NOT_AVAILABLE

    department: str | None = None
    job_role: str | None = None
    division: str | None = None
    leave_date: date | None = None
    employee_number: str | None = None

    package_status: str | None = None
    package_readiness_date: date | None = None

    test_status: str | None = None
    test_readiness_date: date | None = None
    test_result: str | None = None
    testing_plan_date: date | None = None

    new_application_name: str | None = None
    suite: str | None = None
    new_suite: str | None = None
    scope_division: str | None = None
    will_be: str | None = None
    migration_platform: str | None = None
    migration_application_readiness: str | None = None

    department_simple: str | None = None
    domain: str | None = None
    migration_cluster: str | None = None
    migration_cluster_readiness: str | None = None

    imported_at: datetime | None = None
    batch_id: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.identity_group, self.account_id)

    @property
    def redirect_target(self) -> str | None:
        """The will-be application, or None when the field is empty or N/A."""
        if is_absent(self.will_be):
            return None
        return self.will_be.strip()

    @property
    def is_out_of_scope(self) -> bool:
        return (self.scope_division or "").strip().lower() == "out"

    def has_left(self, as_of: date | None = None) -> bool:
        """Whether the account departed before as_of (default: today)."""
        if self.leave_date is None:
            return False
        return self.leave_date < (as_of or date.today())

    def content(self) -> dict:
        """Field values without row id, timestamp and batch id."""
        return self.model_dump(exclude={"id", "imported_at", "batch_id"})

    @classmethod
    def column_names(cls) -> list[str]:
        return [name for name in cls.model_fields if name != "id"]

    class Config:
        json_schema_extra = {
            "example": {
                "identity_group": "GRP1",
                "account_id": "user1",
                "application_name": "App A",
                "application_suite": "Suite1",
                "environment": "P",
                "critical_flag": "Y",
                "department": "Finance",
                "job_role": "Analyst",
                "division": "East",
                "leave_date": None,
                "package_status": "Ready",
                "test_status": "PAT OK",
                "will_be": None,
                "batch_id": "Combined_Import_20240101_120000_1a2b3c4d",
            }
        }
