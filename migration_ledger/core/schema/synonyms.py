"""
Header synonym tables per data kind.

Spreadsheet exports label the same column in many ways ("AD Group", "ADGroup",
"ad_group", "Group"). Every spelling is normalized with normalize_header() and
mapped to exactly one CanonicalField per kind. The tables are checked once when
this module is imported.
"""

import re

from migration_ledger.core.models import CanonicalField, DataKind

F = CanonicalField

_SEPARATORS = re.compile(r"[\s\-_/.]+")

_APPLICATION = ("Application Name", "App Name", "App", "Application")
_ACCOUNT = ("System Account", "Account", "Account ID", "SystemAccount")
_DEPARTMENT = ("Department", "Dept")
_DEPARTMENT_SIMPLE = ("Department Simple", "Dept Simple", "Simple Department")

SYNONYMS: dict[DataKind, dict[CanonicalField, tuple[str, ...]]] = {
    DataKind.IDENTITY_GROUP: {
        F.IDENTITY_GROUP: ("AD Group", "Group", "Identity Group"),
        F.ACCOUNT_ID: _ACCOUNT,
        F.APPLICATION_NAME: _APPLICATION,
        F.APPLICATION_SUITE: ("Application Suite", "Suite", "App Suite"),
        F.ENVIRONMENT: ("OTAP", "Environment", "Env"),
        F.CRITICAL_FLAG: ("Critical", "Is Critical"),
    },
    DataKind.HR: {
        F.ACCOUNT_ID: _ACCOUNT,
        F.DEPARTMENT: _DEPARTMENT,
        F.JOB_ROLE: ("Job Role", "Role", "Function"),
        F.DIVISION: ("Division", "Div"),
        F.DEPARTMENT_SIMPLE: _DEPARTMENT_SIMPLE,
        F.LEAVE_DATE: ("Leave Date", "Date of Leave", "End Date"),
        F.EMPLOYEE_NUMBER: ("Employee Number", "EmpNo", "Employee No"),
    },
    DataKind.PACKAGE: {
        F.APPLICATION_NAME: _APPLICATION,
        F.PACKAGE_STATUS: ("Package Status", "Status", "Packaging Status"),
        F.PACKAGE_READINESS_DATE: (
            "Package Readiness Date",
            "Readiness Date",
            "Package Ready Date",
        ),
    },
    DataKind.TEST: {
        F.APPLICATION_NAME: _APPLICATION,
        F.TEST_STATUS: ("Test Status", "Testing Status", "Status"),
        F.TEST_DATE: ("Test Date", "Test Readiness Date", "Date"),
        F.TEST_RESULT: ("Test Result", "Result"),
        F.TEST_COMMENTS: ("Test Comments", "Comments", "Comment"),
        F.TESTING_PLAN_DATE: ("Testing Plan Date", "Test Plan Date", "Plan Date"),
    },
    DataKind.MIGRATION: {
        F.IDENTITY_GROUP: ("AD Group", "Group", "Identity Group"),
        F.APPLICATION_NAME: _APPLICATION,
        F.NEW_APPLICATION_NAME: (
            "Application New",
            "New Application Name",
            "Application Name New",
        ),
        F.SUITE: ("Application Suite", "Suite"),
        F.NEW_SUITE: ("Application Suite New", "Suite New", "New Suite"),
        F.SCOPE_DIVISION: (
            "In Scope/Out Scope Division",
            "In/Out Scope Division",
            "Scope Division",
            "Scope",
        ),
        F.WILL_BE: ("Will Be", "Will Be Application"),
        F.MIGRATION_PLATFORM: ("Migration Platform", "Platform"),
        F.MIGRATION_APPLICATION_READINESS: (
            "Migration Application Readiness",
            "Application Readiness",
        ),
    },
    DataKind.CLUSTER: {
        F.DEPARTMENT: _DEPARTMENT,
        F.DEPARTMENT_SIMPLE: _DEPARTMENT_SIMPLE,
        F.DOMAIN: ("Domain",),
        F.MIGRATION_CLUSTER: ("Migration Cluster", "Cluster"),
        F.MIGRATION_CLUSTER_READINESS: (
            "Migration Cluster Readiness",
            "Cluster Readiness",
            "Readiness",
        ),
    },
}

# Column whose presence identifies the header row
KEY_FIELDS: dict[DataKind, CanonicalField] = {
    DataKind.IDENTITY_GROUP: F.IDENTITY_GROUP,
    DataKind.HR: F.ACCOUNT_ID,
    DataKind.PACKAGE: F.APPLICATION_NAME,
    DataKind.TEST: F.APPLICATION_NAME,
    DataKind.MIGRATION: F.APPLICATION_NAME,
    DataKind.CLUSTER: F.DEPARTMENT,
}


class KindSignature:
    """
    Columns that together mark a header row as belonging to one data kind.

    Attributes:
        all_of: Every one of these must be present
        any_of: At least one of these must be present (ignored when empty)
        none_of: None of these may be present under any kind's spelling
    """

    def __init__(
        self,
        all_of: set[CanonicalField],
        any_of: set[CanonicalField] | None = None,
        none_of: set[CanonicalField] | None = None,
    ):
        self.all_of = frozenset(all_of)
        self.any_of = frozenset(any_of or ())
        self.none_of = frozenset(none_of or ())

    def matches(self, fields: set[CanonicalField], present: set[CanonicalField] | None = None) -> bool:
        """
        Args:
            fields: Columns recognized by this kind's synonym table
            present: Columns recognized by any kind's table (default: fields)
        """
        if not self.all_of <= fields:
            return False
        if self.any_of and not (self.any_of & fields):
            return False
        return not (self.none_of & (fields if present is None else present))


SIGNATURES: dict[DataKind, KindSignature] = {
    DataKind.IDENTITY_GROUP: KindSignature({F.IDENTITY_GROUP, F.ACCOUNT_ID}),
    DataKind.HR: KindSignature(
        {F.ACCOUNT_ID},
        any_of={F.DEPARTMENT, F.JOB_ROLE, F.DIVISION, F.LEAVE_DATE, F.EMPLOYEE_NUMBER},
        none_of={F.IDENTITY_GROUP},
    ),
    DataKind.PACKAGE: KindSignature({F.APPLICATION_NAME, F.PACKAGE_STATUS}),
    DataKind.TEST: KindSignature({F.APPLICATION_NAME, F.TEST_STATUS}),
    DataKind.MIGRATION: KindSignature(
        {F.APPLICATION_NAME},
        any_of={
            F.WILL_BE,
            F.SCOPE_DIVISION,
            F.MIGRATION_PLATFORM,
            F.NEW_SUITE,
            F.NEW_APPLICATION_NAME,
            F.MIGRATION_APPLICATION_READINESS,
        },
    ),
    DataKind.CLUSTER: KindSignature(
        {F.DEPARTMENT},
        any_of={F.MIGRATION_CLUSTER, F.DOMAIN, F.DEPARTMENT_SIMPLE, F.MIGRATION_CLUSTER_READINESS},
        none_of={F.ACCOUNT_ID},
    ),
}


def normalize_header(text: str) -> str:
    """Lowercase and strip whitespace and separators: 'AD-Group ' -> 'adgroup'."""
    return _SEPARATORS.sub("", text.strip().lower())


def _build_lookup() -> dict[DataKind, dict[str, CanonicalField]]:
    lookup: dict[DataKind, dict[str, CanonicalField]] = {}
    for kind, table in SYNONYMS.items():
        normalized: dict[str, CanonicalField] = {}
        for field, spellings in table.items():
            for spelling in (field.display_name, field.value, *spellings):
                key = normalize_header(spelling)
                existing = normalized.get(key)
                if existing is not None and existing is not field:
                    raise ValueError(
                        f"Header spelling '{spelling}' maps to both {existing.value} "
                        f"and {field.value} for {kind.value} data"
                    )
                normalized[key] = field
        if KEY_FIELDS[kind] not in table:
            raise ValueError(f"Key field {KEY_FIELDS[kind].value} missing from {kind.value} synonyms")
        lookup[kind] = normalized
    return lookup


LOOKUP = _build_lookup()


def canonical_field(kind: DataKind, header: str) -> CanonicalField | None:
    """Canonical field for a header cell of the given kind, or None if unknown."""
    return LOOKUP[kind].get(normalize_header(header))


def fields_for(kind: DataKind) -> list[CanonicalField]:
    return list(SYNONYMS[kind])
