"""
Unit tests for status percentages, readiness stages and progress aggregation.
"""

import pytest
from datetime import date
from hypothesis import given, strategies as st

from migration_ledger.core.models import CombinedRecord
from migration_ledger.reconcile import RedirectPolicy
from migration_ledger.scoring import (
    GroupLevel,
    GroupProgress,
    ProgressScoringEngine,
    ReadinessStage,
    ScoringFilter,
    application_status_label,
    package_percentage,
    readiness_percentage,
    readiness_stage_for,
    readiness_text,
)
from migration_ledger.scoring import status_maps


def record(group: str, account: str, app: str, **fields) -> CombinedRecord:
    fields.setdefault("environment", "P")
    return CombinedRecord(identity_group=group, account_id=account, application_name=app, **fields)


@pytest.fixture
def will_be_records():
    """App A is superseded by App B"""
    return [
        record("GRP1", "u1", "App A", will_be="App B", package_status="Ready", department="Finance"),
        record("GRP1", "u2", "App A", will_be="App B", department="Finance"),
        record("GRP2", "u3", "App B", package_status="In Progress", department="Finance"),
    ]


@pytest.mark.unit
class TestStatusMaps:
    """Tests for status and readiness vocabularies"""

    def test_package_percentages(self):
        """Test known, folded and unknown package statuses"""
        assert package_percentage("Ready") == 100.0
        assert package_percentage("  in   PROGRESS ") == 50.0
        assert package_percentage("Something else") == 0.0
        assert package_percentage(None) == 0.0

    def test_test_percentages(self):
        """Test the test-status vocabulary"""
        assert status_maps.test_percentage("PAT OK") == 100.0
        assert status_maps.test_percentage("pat planned") == 60.0
        assert status_maps.test_percentage("GAT OK") == 50.0
        assert status_maps.test_percentage("unheard of") == 0.0

    def test_unknown_readiness_has_no_value(self):
        """Test unknown readiness is None rather than zero"""
        assert readiness_percentage("Planned") == 60.0
        assert readiness_percentage("Somewhere") is None
        assert readiness_percentage(None) is None

    @pytest.mark.parametrize("stage", list(ReadinessStage))
    def test_stage_percentage_maps_back_to_stage(self, stage):
        """Test every stage's percentage falls inside its own band"""
        assert readiness_stage_for(stage.percentage) is stage
        assert ReadinessStage.parse(stage.label) is stage

    @given(st.floats(min_value=0.0, max_value=100.0, allow_nan=False))
    def test_every_percentage_has_a_stage(self, percentage):
        """Test the bands cover [0, 100] without gaps"""
        assert readiness_stage_for(percentage) is not None

    def test_out_of_range_has_no_stage(self):
        """Test values outside [0, 100] map to no stage"""
        assert readiness_stage_for(-0.1) is None
        assert readiness_stage_for(100.5) is None
        assert readiness_stage_for(None) is None

    def test_application_status_label(self):
        """Test label precedence and thresholds"""
        assert application_status_label(100, 100, will_be="App B") == "Sunset"
        assert application_status_label(100, 100, out_of_scope=True) == "Out of scope"
        assert application_status_label(0, 0) == "Not Started"
        assert application_status_label(50, 0) == "In Progress"
        assert application_status_label(100, 100) == "Migration ready"

    def test_readiness_text(self):
        """Test wording thresholds"""
        assert readiness_text(0) == "Not started"
        assert readiness_text(20) == "Started"
        assert readiness_text(50) == "In progress"
        assert readiness_text(99) == "Finishing"
        assert readiness_text(100) == "Ready to Migrate"


@pytest.mark.unit
class TestGroupProgress:
    """Tests for GroupProgress and aggregation"""

    def test_readiness_needs_half_coverage(self):
        """Test readiness is reported only when half the applications have one"""
        sparse = GroupProgress(name="x", applications=4, readiness_mean=60.0, readiness_weight=1)
        covered = GroupProgress(name="x", applications=4, readiness_mean=60.0, readiness_weight=2)

        assert sparse.readiness_progress is None
        assert sparse.readiness_stage is None
        assert covered.readiness_progress == 60.0
        assert covered.readiness_stage is ReadinessStage.PLANNED

    def test_aggregate_weights_by_applications(self):
        """Test three finished applications and one untouched make 75 percent"""
        engine = ProgressScoringEngine()
        done = GroupProgress(name="Finance", applications=3, users=5, package_progress=100.0, test_progress=100.0)
        idle = GroupProgress(name="IT", applications=1, users=2)

        total = engine.aggregate([done, idle])

        assert total.name == "Total"
        assert total.applications == 4
        assert total.users == 7
        assert total.package_progress == pytest.approx(75.0)
        assert total.combined_progress == pytest.approx(75.0)
        assert total.readiness_progress is None

    def test_aggregate_readiness_weighted_by_rated_applications(self):
        """Test readiness means are weighted by their application count"""
        engine = ProgressScoringEngine()
        groups = [
            GroupProgress(name="a", applications=2, readiness_mean=90.0, readiness_weight=2),
            GroupProgress(name="b", applications=2, readiness_mean=60.0, readiness_weight=1),
        ]

        total = engine.aggregate(groups)

        assert total.readiness_weight == 3
        assert total.readiness_progress == pytest.approx(80.0)

    def test_aggregate_of_nothing(self):
        """Test an empty aggregate is all zero"""
        total = ProgressScoringEngine().aggregate([])
        assert total.applications == 0
        assert total.combined_progress == 0.0


@pytest.mark.unit
class TestProgressScoringEngine:
    """Tests for ProgressScoringEngine"""

    def test_summarize_scores_each_application_once(self):
        """Test users are distinct accounts and applications are scored from their first record"""
        records = [
            record("GRP1", "u1", "App A", package_status="Ready", test_status="PAT OK",
                   migration_cluster_readiness="Executed", package_readiness_date=date(2024, 3, 1)),
            record("GRP2", "u2", "App A", package_status="Not Started"),
            record("GRP2", "u1", "App C", test_status="In Progress", package_readiness_date=date(2024, 5, 1)),
        ]

        group = ProgressScoringEngine().summarize("Finance", records)

        assert group.applications == 2
        assert group.users == 2
        assert group.package_progress == pytest.approx(50.0)
        assert group.test_progress == pytest.approx(65.0)
        assert group.readiness_weight == 1
        assert group.readiness_progress == pytest.approx(90.0)
        assert group.latest_package_date == date(2024, 5, 1)

    def test_group_progress_by_department(self):
        """Test grouping prefers the simple department and collects unknowns"""
        records = [
            record("GRP1", "u1", "App A", department="Finance", department_simple="FIN"),
            record("GRP1", "u2", "App A", department="Sales"),
            record("GRP1", "u3", "App A"),
        ]

        groups = ProgressScoringEngine().group_progress(records, GroupLevel.DEPARTMENT)

        assert [g.name for g in groups] == ["FIN", "Sales", "Unknown"]
        assert all(g.level is GroupLevel.DEPARTMENT for g in groups)

    def test_redirected_users_fold_into_target(self, will_be_records):
        """Test users of App A count towards App B"""
        users = ProgressScoringEngine().application_users(will_be_records)

        assert users["App B"] == {"u1", "u2", "u3"}
        assert users["App A"] == {"u1", "u2"}

    def test_exclusion_drops_redirected_application(self, will_be_records):
        """Test App A disappears and App B keeps the folded users"""
        scoring_filter = ScoringFilter(exclude_redirected_and_out_of_scope=True)

        apps = ProgressScoringEngine().application_progress(will_be_records, scoring_filter)

        assert [a.application_name for a in apps] == ["App B"]
        assert apps[0].users == ["u1", "u2", "u3"]
        assert apps[0].package_progress == 50.0

    def test_without_exclusion_redirected_application_is_sunset(self, will_be_records):
        """Test App A stays but is labelled Sunset"""
        apps = ProgressScoringEngine().application_progress(will_be_records)

        by_name = {a.application_name: a for a in apps}
        assert by_name["App A"].status_label == "Sunset"
        assert by_name["App B"].status_label == "In Progress"

    @pytest.mark.parametrize("exclude", [False, True])
    def test_target_without_records_is_listed(self, exclude):
        """Test a will-be target with no records of its own still shows its folded users"""
        records = [
            record("GRP1", "u1", "App A", will_be="App Z", package_status="Ready"),
            record("GRP1", "u2", "App A", will_be="App Z"),
        ]
        scoring_filter = ScoringFilter(exclude_redirected_and_out_of_scope=exclude)

        apps = ProgressScoringEngine().application_progress(records, scoring_filter)

        by_name = {a.application_name: a for a in apps}
        assert by_name["App Z"].users == ["u1", "u2"]
        assert by_name["App Z"].package_progress == 0.0
        assert by_name["App Z"].will_be is None
        assert ("App A" in by_name) is not exclude

    def test_exclusion_drops_out_of_scope(self):
        """Test out-of-scope applications are not active"""
        records = [
            record("GRP1", "u1", "App A", scope_division="out"),
            record("GRP1", "u2", "App B"),
        ]
        scoring_filter = ScoringFilter(exclude_redirected_and_out_of_scope=True)

        active = ProgressScoringEngine().active_records(records, scoring_filter)

        assert [r.application_name for r in active] == ["App B"]

    def test_follow_chain_policy(self):
        """Test chained redirects fold users into the last application"""
        records = [
            record("GRP1", "u1", "App A", will_be="App B"),
            record("GRP1", "u2", "App B", will_be="App C"),
            record("GRP1", "u3", "App C"),
        ]

        direct = ProgressScoringEngine().application_users(records)
        followed = ProgressScoringEngine(redirect_policy=RedirectPolicy.FOLLOW_CHAIN).application_users(records)

        assert direct["App B"] == {"u1", "u2"}
        assert followed["App C"] == {"u1", "u2", "u3"}

    def test_exclude_left(self):
        """Test accounts that left before the reference date are dropped"""
        records = [
            record("GRP1", "u1", "App A", leave_date=date(2020, 1, 1)),
            record("GRP1", "u2", "App A", leave_date=date(2030, 1, 1)),
            record("GRP1", "u3", "App A"),
        ]
        scoring_filter = ScoringFilter(exclude_left=True, as_of=date(2024, 1, 1))

        active = ProgressScoringEngine().active_records(records, scoring_filter)

        assert [r.account_id for r in active] == ["u2", "u3"]

    def test_environment_filter(self):
        """Test only the requested OTAP codes are kept"""
        records = [
            record("GRP1", "u1", "App A", environment="P"),
            record("GRP1", "u2", "App A", environment="A"),
        ]

        active = ProgressScoringEngine().active_records(records, ScoringFilter(environments=frozenset({"p"})))

        assert [r.account_id for r in active] == ["u1"]

    def test_division_breakdown(self):
        """Test departments are grouped per division with a division total"""
        records = [
            record("GRP1", "u1", "App A", division="East", department="Finance", package_status="Ready"),
            record("GRP1", "u2", "App B", division="East", department="Legal"),
            record("GRP1", "u3", "App C", division="West", department="IT"),
        ]

        breakdown = ProgressScoringEngine().division_breakdown(records)

        assert list(breakdown) == ["East", "West"]
        departments, total = breakdown["East"]
        assert [d.name for d in departments] == ["Finance", "Legal"]
        assert total.level is GroupLevel.DIVISION
        assert total.applications == 2
        assert total.package_progress == pytest.approx(50.0)
