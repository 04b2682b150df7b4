"""
Unit tests for Prometheus metric helpers.
"""

import pytest

from migration_ledger.observability.metrics import (
    REGISTRY,
    generate_metrics,
    import_duration_seconds,
    record_import_failure,
    record_import_outcome,
    record_reconciliation,
    track_duration,
)


def sample(name: str, **labels) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.mark.unit
class TestMetrics:
    """Tests for the ledger metric helpers"""

    def test_import_outcome_counts_rows(self):
        """Test the row partition and outcome are counted"""
        valid_before = sample("ledger_rows_processed_total", kind="cluster", status="valid")
        blank_before = sample("ledger_rows_processed_total", kind="cluster", status="blank")
        imports_before = sample("ledger_imports_total", kind="cluster", status="dry_run")

        record_import_outcome("cluster", 3, 1, 0, 2, status="dry_run")

        assert sample("ledger_rows_processed_total", kind="cluster", status="valid") == valid_before + 3
        assert sample("ledger_rows_processed_total", kind="cluster", status="blank") == blank_before + 2
        assert sample("ledger_imports_total", kind="cluster", status="dry_run") == imports_before + 1

    def test_import_failure_counts_error_type(self):
        """Test aborted imports are counted by error class and outcome"""
        before = sample("ledger_import_failures_total", kind="hr", error_type="KeyError")
        cancelled_before = sample("ledger_imports_total", kind="hr", status="cancelled")

        record_import_failure("hr", KeyError("x"), status="cancelled")

        assert sample("ledger_import_failures_total", kind="hr", error_type="KeyError") == before + 1
        assert sample("ledger_imports_total", kind="hr", status="cancelled") == cancelled_before + 1

    def test_reconciliation_gauges(self):
        """Test the last rebuild's findings are published"""
        record_reconciliation("development", 5, {"identity": 2, "person": 0}, unmatched=1)

        assert sample("ledger_combined_records", environment="development") == 5
        assert sample("ledger_unmatched_accounts", environment="development") == 1
        assert sample("ledger_reconciliation_ambiguities", environment="development", join="identity") == 2

    def test_track_duration_observes(self):
        """Test the context manager records one observation"""
        before = sample("ledger_import_duration_seconds_count", kind="migration")

        with track_duration(import_duration_seconds, kind="migration"):
            pass

        assert sample("ledger_import_duration_seconds_count", kind="migration") == before + 1

    def test_exposition(self):
        """Test the registry renders in text format"""
        assert b"ledger_imports_total" in generate_metrics()
