"""
Progress scoring and hierarchical aggregation over combined records.
"""

from collections.abc import Iterable, Sequence
from datetime import date
from enum import Enum

from pydantic import BaseModel, Field

from migration_ledger.core.models import CombinedRecord, is_absent
from migration_ledger.reconcile.redirects import RedirectMap, RedirectPolicy
from migration_ledger.observability.logger import get_logger

from .status_maps import (
    ReadinessStage,
    application_status_label,
    package_percentage,
    readiness_percentage,
    readiness_stage_for,
    readiness_text,
    test_percentage,
)

logger = get_logger(__name__)

UNKNOWN_GROUP = "Unknown"


class GroupLevel(str, Enum):
    DEPARTMENT = "department"
    DIVISION = "division"
    CLUSTER = "cluster"

    def group_name(self, record: CombinedRecord) -> str:
        if self is GroupLevel.DEPARTMENT:
            name = record.department_simple or record.department
        elif self is GroupLevel.DIVISION:
            name = record.division
        else:
            name = record.migration_cluster
        return UNKNOWN_GROUP if is_absent(name) else name


class ScoringFilter(BaseModel):
    """
    Which combined records count as active.

    Attributes:
        exclude_redirected_and_out_of_scope: Drop applications with scope "out"
            or with a will-be redirect
        exclude_left: Drop accounts whose leave date is before as_of
        as_of: Reference date for exclude_left (default: today)
        environments: OTAP codes to keep (None keeps all)
        redirect_policy: How will-be chains are resolved
    """

    exclude_redirected_and_out_of_scope: bool = False
    exclude_left: bool = False
    as_of: date | None = None
    environments: frozenset[str] | None = None
    redirect_policy: RedirectPolicy = RedirectPolicy.DIRECT


class ApplicationProgress(BaseModel):
    """Scores of one application, taken from its first record."""

    application_name: str
    users: list[str] = Field(default_factory=list)
    package_progress: float = 0.0
    test_progress: float = 0.0
    readiness_progress: float | None = None
    will_be: str | None = None
    out_of_scope: bool = False
    package_readiness_date: date | None = None
    test_readiness_date: date | None = None

    @property
    def progress(self) -> float:
        return (self.package_progress + self.test_progress) / 2

    @property
    def status_label(self) -> str:
        return application_status_label(
            self.package_progress, self.test_progress, self.will_be, self.out_of_scope
        )


class GroupProgress(BaseModel):
    """
    Aggregated scores of a department, division, cluster or total.

    Attributes:
        applications: Distinct applications in the group
        users: Distinct accounts in the group (summed when aggregated)
        readiness_mean: Mean readiness over applications that have one
        readiness_weight: Number of applications with a defined readiness
    """

    name: str
    level: GroupLevel | None = None
    applications: int = 0
    users: int = 0
    package_progress: float = 0.0
    test_progress: float = 0.0
    readiness_mean: float | None = None
    readiness_weight: int = 0
    latest_package_date: date | None = None
    latest_test_date: date | None = None

    @property
    def combined_progress(self) -> float:
        return (self.package_progress + self.test_progress) / 2

    @property
    def readiness_progress(self) -> float | None:
        """Mean readiness, reported only when at least half the applications have one."""
        if self.readiness_mean is None or self.applications == 0:
            return None
        if self.readiness_weight * 2 < self.applications:
            return None
        return self.readiness_mean

    @property
    def readiness_stage(self) -> ReadinessStage | None:
        return readiness_stage_for(self.readiness_progress)

    @property
    def readiness_text(self) -> str:
        return readiness_text(self.combined_progress)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _latest(dates: Iterable[date | None]) -> date | None:
    present = [d for d in dates if d is not None]
    return max(present) if present else None


class ProgressScoringEngine:
    """
    Turns combined records into application and group progress.

    Each application is scored once per group, from its first record; the
    group's package and test progress are plain means over its applications,
    and totals weight groups by application count.
    """

    def __init__(self, redirect_policy: RedirectPolicy = RedirectPolicy.DIRECT):
        self.redirect_policy = redirect_policy

    def _policy(self, scoring_filter: ScoringFilter) -> RedirectPolicy:
        if "redirect_policy" in scoring_filter.model_fields_set:
            return scoring_filter.redirect_policy
        return self.redirect_policy

    def _eligible(self, records: Iterable[CombinedRecord], scoring_filter: ScoringFilter) -> list[CombinedRecord]:
        """Records left after the environment and leave-date filters."""
        kept = []
        codes = {code.upper() for code in scoring_filter.environments} if scoring_filter.environments else None
        for record in records:
            if codes is not None and record.environment.upper() not in codes:
                continue
            if scoring_filter.exclude_left and record.has_left(scoring_filter.as_of):
                continue
            kept.append(record)
        return kept

    def active_records(
        self,
        records: Sequence[CombinedRecord],
        scoring_filter: ScoringFilter | None = None,
    ) -> list[CombinedRecord]:
        """Records that count towards progress under the filter."""
        scoring_filter = scoring_filter or ScoringFilter()
        eligible = self._eligible(records, scoring_filter)
        if not scoring_filter.exclude_redirected_and_out_of_scope:
            return eligible

        redirects = RedirectMap.from_records(records)
        policy = self._policy(scoring_filter)
        return [
            r
            for r in eligible
            if not r.is_out_of_scope and redirects.resolve(r.application_name, policy) is None
        ]

    def application_users(
        self,
        records: Sequence[CombinedRecord],
        scoring_filter: ScoringFilter | None = None,
    ) -> dict[str, set[str]]:
        """
        Accounts using each application.

        Users of a redirected application are added to its target's set. With
        redirect exclusion active the redirected application itself is removed.
        """
        scoring_filter = scoring_filter or ScoringFilter()
        redirects = RedirectMap.from_records(records)
        policy = self._policy(scoring_filter)
        exclude = scoring_filter.exclude_redirected_and_out_of_scope

        users: dict[str, set[str]] = {}
        for record in self._eligible(records, scoring_filter):
            app = record.application_name
            if is_absent(app):
                continue
            target = redirects.resolve(app, policy)
            if target is not None:
                users.setdefault(target, set()).add(record.account_id)
                if exclude:
                    continue
            elif exclude and record.is_out_of_scope:
                continue
            users.setdefault(app, set()).add(record.account_id)
        return users

    def application_progress(
        self,
        records: Sequence[CombinedRecord],
        scoring_filter: ScoringFilter | None = None,
    ) -> list[ApplicationProgress]:
        """
        Per-application scores of the active records, ordered by application name.

        A will-be target with folded users but no active record of its own is
        listed with those users and zero progress.
        """
        scoring_filter = scoring_filter or ScoringFilter()
        active = self.active_records(records, scoring_filter)
        folded = self.application_users(records, scoring_filter)

        first: dict[str, CombinedRecord] = {}
        for record in active:
            if not is_absent(record.application_name):
                first.setdefault(record.application_name, record)

        progress = {
            app: ApplicationProgress(
                application_name=app,
                users=sorted(folded.get(app, set())),
                package_progress=package_percentage(record.package_status),
                test_progress=test_percentage(record.test_status),
                readiness_progress=readiness_percentage(record.migration_cluster_readiness),
                will_be=record.redirect_target,
                out_of_scope=record.is_out_of_scope,
                package_readiness_date=record.package_readiness_date,
                test_readiness_date=record.test_readiness_date,
            )
            for app, record in first.items()
        }
        for app, users in folded.items():
            if app not in progress:
                progress[app] = ApplicationProgress(application_name=app, users=sorted(users))
        return [progress[app] for app in sorted(progress)]

    def summarize(
        self,
        name: str,
        active: Sequence[CombinedRecord],
        level: GroupLevel | None = None,
    ) -> GroupProgress:
        """Aggregate already-filtered records into one group."""
        first: dict[str, CombinedRecord] = {}
        for record in active:
            if not is_absent(record.application_name):
                first.setdefault(record.application_name, record)

        readiness = [
            value
            for value in (readiness_percentage(r.migration_cluster_readiness) for r in first.values())
            if value is not None
        ]
        return GroupProgress(
            name=name,
            level=level,
            applications=len(first),
            users=len({r.account_id for r in active}),
            package_progress=_mean([package_percentage(r.package_status) for r in first.values()]),
            test_progress=_mean([test_percentage(r.test_status) for r in first.values()]),
            readiness_mean=_mean(readiness) if readiness else None,
            readiness_weight=len(readiness),
            latest_package_date=_latest(r.package_readiness_date for r in active),
            latest_test_date=_latest(r.test_readiness_date for r in active),
        )

    def group_progress(
        self,
        records: Sequence[CombinedRecord],
        level: GroupLevel,
        scoring_filter: ScoringFilter | None = None,
    ) -> list[GroupProgress]:
        """One GroupProgress per department, division or cluster, ordered by name."""
        groups: dict[str, list[CombinedRecord]] = {}
        for record in self.active_records(records, scoring_filter):
            groups.setdefault(level.group_name(record), []).append(record)
        return [self.summarize(name, members, level) for name, members in sorted(groups.items())]

    def aggregate(self, groups: Sequence[GroupProgress], name: str = "Total") -> GroupProgress:
        """
        Combine groups into a higher-level total.

        Package and test progress are weighted by application count. Readiness
        is weighted by the number of applications that have one and is only
        reported when those cover at least half of all applications.
        """
        applications = sum(g.applications for g in groups)
        rated = [g for g in groups if g.readiness_mean is not None and g.readiness_weight > 0]
        readiness_weight = sum(g.readiness_weight for g in rated)

        def weighted(attr: str) -> float:
            if applications == 0:
                return 0.0
            return sum(getattr(g, attr) * g.applications for g in groups) / applications

        return GroupProgress(
            name=name,
            level=None,
            applications=applications,
            users=sum(g.users for g in groups),
            package_progress=weighted("package_progress"),
            test_progress=weighted("test_progress"),
            readiness_mean=(
                sum(g.readiness_mean * g.readiness_weight for g in rated) / readiness_weight
                if readiness_weight
                else None
            ),
            readiness_weight=readiness_weight,
            latest_package_date=_latest(g.latest_package_date for g in groups),
            latest_test_date=_latest(g.latest_test_date for g in groups),
        )

    def division_breakdown(
        self,
        records: Sequence[CombinedRecord],
        scoring_filter: ScoringFilter | None = None,
    ) -> dict[str, tuple[list[GroupProgress], GroupProgress]]:
        """
        Departments per division together with the division total.

        Returns:
            Division name -> (department groups, application-weighted division total)
        """
        by_division: dict[str, list[CombinedRecord]] = {}
        for record in self.active_records(records, scoring_filter):
            by_division.setdefault(GroupLevel.DIVISION.group_name(record), []).append(record)

        breakdown = {}
        for division, members in sorted(by_division.items()):
            departments: dict[str, list[CombinedRecord]] = {}
            for record in members:
                departments.setdefault(GroupLevel.DEPARTMENT.group_name(record), []).append(record)
            groups = [
                self.summarize(name, dept_records, GroupLevel.DEPARTMENT)
                for name, dept_records in sorted(departments.items())
            ]
            total = self.aggregate(groups, name=division)
            total.level = GroupLevel.DIVISION
            breakdown[division] = (groups, total)
        return breakdown
