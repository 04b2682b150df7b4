"""
Enumerations shared by every layer: data kinds, canonical columns and field types.
"""

from enum import Enum


class DataKind(str, Enum):
    """Kinds of spreadsheet exports the ledger can import."""

    IDENTITY_GROUP = "identity_group"
    HR = "hr"
    PACKAGE = "package"
    TEST = "test"
    MIGRATION = "migration"
    CLUSTER = "cluster"
    COMBINED = "combined"

    @property
    def label(self) -> str:
        """Short human label used in batch ids and messages."""
        return _KIND_LABELS[self]

    @property
    def importable(self) -> bool:
        return self is not DataKind.COMBINED

    @classmethod
    def importable_kinds(cls) -> list["DataKind"]:
        return [kind for kind in cls if kind.importable]

    @classmethod
    def parse(cls, value: "str | DataKind") -> "DataKind":
        """
        Resolve a kind from its value or label, case-insensitively.

        Raises:
            ValueError: If the name matches no kind
        """
        if isinstance(value, DataKind):
            return value
        needle = value.strip().lower().replace("-", "_").replace(" ", "_")
        for kind in cls:
            if needle in (kind.value, kind.label.lower()):
                return kind
        raise ValueError(f"Unknown data kind: {value}")


_KIND_LABELS = {
    DataKind.IDENTITY_GROUP: "AD",
    DataKind.HR: "HR",
    DataKind.PACKAGE: "Package",
    DataKind.TEST: "Test",
    DataKind.MIGRATION: "Migration",
    DataKind.CLUSTER: "Cluster",
    DataKind.COMBINED: "Combined",
}


class CanonicalField(str, Enum):
    """Canonical column identifiers. Values double as model field and SQL column names."""

    IDENTITY_GROUP = "identity_group"
    ACCOUNT_ID = "account_id"
    APPLICATION_NAME = "application_name"
    APPLICATION_SUITE = "application_suite"
    ENVIRONMENT = "environment"
    CRITICAL_FLAG = "critical_flag"

    DEPARTMENT = "department"
    JOB_ROLE = "job_role"
    DIVISION = "division"
    DEPARTMENT_SIMPLE = "department_simple"
    LEAVE_DATE = "leave_date"
    EMPLOYEE_NUMBER = "employee_number"

    PACKAGE_STATUS = "package_status"
    PACKAGE_READINESS_DATE = "package_readiness_date"

    TEST_STATUS = "test_status"
    TEST_DATE = "test_date"
    TEST_RESULT = "test_result"
    TEST_COMMENTS = "test_comments"
    TESTING_PLAN_DATE = "testing_plan_date"

    NEW_APPLICATION_NAME = "new_application_name"
    SUITE = "suite"
    NEW_SUITE = "new_suite"
    SCOPE_DIVISION = "scope_division"
    WILL_BE = "will_be"
    MIGRATION_PLATFORM = "migration_platform"
    MIGRATION_APPLICATION_READINESS = "migration_application_readiness"

    DOMAIN = "domain"
    MIGRATION_CLUSTER = "migration_cluster"
    MIGRATION_CLUSTER_READINESS = "migration_cluster_readiness"

    # Combined-only column: the test date of the matched test record
    TEST_READINESS_DATE = "test_readiness_date"

    @property
    def display_name(self) -> str:
        return DISPLAY_NAMES[self]


DISPLAY_NAMES = {
    CanonicalField.IDENTITY_GROUP: "AD Group",
    CanonicalField.ACCOUNT_ID: "System Account",
    CanonicalField.APPLICATION_NAME: "Application Name",
    CanonicalField.APPLICATION_SUITE: "Application Suite",
    CanonicalField.ENVIRONMENT: "OTAP",
    CanonicalField.CRITICAL_FLAG: "Critical",
    CanonicalField.DEPARTMENT: "Department",
    CanonicalField.JOB_ROLE: "Job Role",
    CanonicalField.DIVISION: "Division",
    CanonicalField.DEPARTMENT_SIMPLE: "Department Simple",
    CanonicalField.LEAVE_DATE: "Leave Date",
    CanonicalField.EMPLOYEE_NUMBER: "Employee Number",
    CanonicalField.PACKAGE_STATUS: "Package Status",
    CanonicalField.PACKAGE_READINESS_DATE: "Package Readiness Date",
    CanonicalField.TEST_STATUS: "Test Status",
    CanonicalField.TEST_DATE: "Test Date",
    CanonicalField.TEST_RESULT: "Test Result",
    CanonicalField.TEST_COMMENTS: "Test Comments",
    CanonicalField.TESTING_PLAN_DATE: "Testing Plan Date",
    CanonicalField.NEW_APPLICATION_NAME: "Application New",
    CanonicalField.SUITE: "Migration Suite",
    CanonicalField.NEW_SUITE: "Application Suite New",
    CanonicalField.SCOPE_DIVISION: "In Scope/Out Scope Division",
    CanonicalField.WILL_BE: "Will Be",
    CanonicalField.MIGRATION_PLATFORM: "Migration Platform",
    CanonicalField.MIGRATION_APPLICATION_READINESS: "Migration Application Readiness",
    CanonicalField.DOMAIN: "Domain",
    CanonicalField.MIGRATION_CLUSTER: "Migration Cluster",
    CanonicalField.MIGRATION_CLUSTER_READINESS: "Migration Cluster Readiness",
    CanonicalField.TEST_READINESS_DATE: "Test Readiness Date",
}


class FieldType(str, Enum):
    """Declared type of a queryable field; gates the allowed query operators."""

    TEXT = "text"
    DATE = "date"
    BOOLEAN = "boolean"
