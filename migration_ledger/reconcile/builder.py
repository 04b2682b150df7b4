"""
Combined record builder.

Joins the persisted primitive record sets into one CombinedRecord per
(identity group, account) pair. The join is a pure function of its inputs:
first match wins on every join key and every ignored candidate is counted.
"""

from collections import Counter
from collections.abc import Callable, Hashable, Iterable
from datetime import datetime
from typing import TypeVar

from pydantic import BaseModel, Field

from migration_ledger.core.models import (
    ClusterRecord,
    CombinedRecord,
    IdentityGroupRecord,
    MigrationRecord,
    PackageStatusRecord,
    PersonRecord,
    TestStatusRecord,
)
from migration_ledger.observability.logger import get_logger

from .redirects import RedirectIssue, RedirectMap

logger = get_logger(__name__)

R = TypeVar("R")

JOINS = ("identity", "person", "package", "test", "migration", "migration_fallback", "cluster")


class SourceSnapshot(BaseModel):
    """All persisted primitive records, each list in persisted order."""

    identity_groups: list[IdentityGroupRecord] = Field(default_factory=list)
    persons: list[PersonRecord] = Field(default_factory=list)
    packages: list[PackageStatusRecord] = Field(default_factory=list)
    tests: list[TestStatusRecord] = Field(default_factory=list)
    migrations: list[MigrationRecord] = Field(default_factory=list)
    clusters: list[ClusterRecord] = Field(default_factory=list)


class ReconciliationResult(BaseModel):
    """
    Output of a rebuild plus its data-quality findings.

    Attributes:
        records: Combined records ordered by (identity_group, account_id)
        ambiguities: Per join, the number of candidate records ignored
            because an earlier record had the same key; migration_fallback
            counts those passed over when only the application matched
        unmatched_accounts: Accounts of identity rows without an HR record
        unmatched_departments: Departments of matched persons without a cluster record
        redirect_issues: Will-be cycles, chains and conflicts
    """

    records: list[CombinedRecord] = Field(default_factory=list)
    ambiguities: dict[str, int] = Field(default_factory=lambda: {join: 0 for join in JOINS})
    unmatched_accounts: list[str] = Field(default_factory=list)
    unmatched_departments: list[str] = Field(default_factory=list)
    redirect_issues: list[RedirectIssue] = Field(default_factory=list)

    @property
    def total_ambiguities(self) -> int:
        return sum(self.ambiguities.values())

    def summary(self) -> dict:
        return {
            "records": len(self.records),
            "ambiguities": dict(self.ambiguities),
            "unmatched_accounts": len(self.unmatched_accounts),
            "unmatched_departments": len(self.unmatched_departments),
            "redirect_issues": len(self.redirect_issues),
        }


def first_wins_index(
    records: Iterable[R],
    key: Callable[[R], Hashable | None],
) -> tuple[dict[Hashable, R], int]:
    """
    Index records by key, keeping the first record per key.

    Records whose key is None are skipped.

    Returns:
        (index, number of records ignored because their key was taken)
    """
    index: dict[Hashable, R] = {}
    ignored = 0
    for record in records:
        k = key(record)
        if k is None:
            continue
        if k in index:
            ignored += 1
        else:
            index[k] = record
    return index, ignored


class CombinedRecordBuilder:
    """
    Builds combined records from a SourceSnapshot.

    Joins:
    - identity rows deduplicated on (identity_group, account_id)
    - person on account_id
    - package and test on application_name
    - migration on (identity_group, application_name), falling back to
      application_name alone
    - cluster on the person's department
    """

    def build(
        self,
        snapshot: SourceSnapshot,
        imported_at: datetime | None = None,
        batch_id: str | None = None,
    ) -> ReconciliationResult:
        """
        Join the snapshot into combined records.

        Args:
            snapshot: Persisted primitive records
            imported_at: Timestamp stamped on every combined record
            batch_id: Batch id stamped on every combined record

        Returns:
            ReconciliationResult with records and data-quality findings
        """
        result = ReconciliationResult()

        identities, result.ambiguities["identity"] = first_wins_index(
            snapshot.identity_groups, lambda r: (r.identity_group, r.account_id)
        )
        persons, result.ambiguities["person"] = first_wins_index(snapshot.persons, lambda r: r.account_id)
        packages, result.ambiguities["package"] = first_wins_index(
            snapshot.packages, lambda r: r.application_name
        )
        tests, result.ambiguities["test"] = first_wins_index(snapshot.tests, lambda r: r.application_name)
        migrations, result.ambiguities["migration"] = first_wins_index(
            snapshot.migrations, lambda r: (r.identity_group, r.application_name)
        )
        migrations_by_app, _ = first_wins_index(snapshot.migrations, lambda r: r.application_name)
        migrations_per_app = Counter(r.application_name for r in snapshot.migrations)
        clusters, result.ambiguities["cluster"] = first_wins_index(snapshot.clusters, lambda r: r.department)

        unmatched_accounts: set[str] = set()
        unmatched_departments: set[str] = set()

        for (group, account), identity in sorted(identities.items(), key=lambda item: item[0]):
            person = persons.get(account)
            if person is None:
                unmatched_accounts.add(account)

            app = identity.application_name
            package = packages.get(app)
            test = tests.get(app)
            migration = migrations.get((group, app))
            if migration is None:
                migration = migrations_by_app.get(app)
                # Fallback picks the first of possibly several groups' records
                if migration is not None:
                    result.ambiguities["migration_fallback"] += migrations_per_app[app] - 1

            cluster = None
            if person is not None and person.department:
                cluster = clusters.get(person.department)
                if cluster is None:
                    unmatched_departments.add(person.department)

            result.records.append(
                self._combine(identity, person, package, test, migration, cluster, imported_at, batch_id)
            )

        result.unmatched_accounts = sorted(unmatched_accounts)
        result.unmatched_departments = sorted(unmatched_departments)
        result.redirect_issues = RedirectMap.from_records(snapshot.migrations).issues

        for join, count in result.ambiguities.items():
            if count:
                logger.warning(
                    f"{count} ambiguous {join} records ignored; first match kept",
                    extra={"join": join, "ignored": count},
                )
        if unmatched_accounts:
            logger.warning(
                f"{len(unmatched_accounts)} accounts have no HR record",
                extra={"unmatched_accounts": len(unmatched_accounts)},
            )
        for issue in result.redirect_issues:
            logger.warning(issue.message, extra={"issue": issue.issue})

        return result

    @staticmethod
    def _combine(
        identity: IdentityGroupRecord,
        person: PersonRecord | None,
        package: PackageStatusRecord | None,
        test: TestStatusRecord | None,
        migration: MigrationRecord | None,
        cluster: ClusterRecord | None,
        imported_at: datetime | None,
        batch_id: str | None,
    ) -> CombinedRecord:
        department_simple = None
        if cluster is not None and cluster.department_simple:
            department_simple = cluster.department_simple
        elif person is not None:
            department_simple = person.department_simple

        return CombinedRecord(
            identity_group=identity.identity_group,
            account_id=identity.account_id,
            application_name=identity.application_name,
            application_suite=identity.application_suite,
            environment=identity.environment,
            critical_flag=identity.critical_flag,
            department=person.department if person else None,
            job_role=person.job_role if person else None,
            division=person.division if person else None,
            leave_date=person.leave_date if person else None,
            employee_number=person.employee_number if person else None,
            package_status=package.package_status if package else None,
            package_readiness_date=package.package_readiness_date if package else None,
            test_status=test.test_status if test else None,
            test_readiness_date=test.test_date if test else None,
            test_result=test.test_result if test else None,
            testing_plan_date=test.testing_plan_date if test else None,
            new_application_name=migration.new_application_name if migration else None,
            suite=migration.suite if migration else None,
            new_suite=migration.new_suite if migration else None,
            scope_division=migration.scope_division if migration else None,
            will_be=migration.will_be if migration else None,
            migration_platform=migration.migration_platform if migration else None,
            migration_application_readiness=(
                migration.migration_application_readiness if migration else None
            ),
            department_simple=department_simple,
            domain=cluster.domain if cluster else None,
            migration_cluster=cluster.migration_cluster if cluster else None,
            migration_cluster_readiness=cluster.migration_cluster_readiness if cluster else None,
            imported_at=imported_at,
            batch_id=batch_id,
        )
