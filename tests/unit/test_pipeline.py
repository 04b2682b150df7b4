"""
Unit tests for the import pipeline in dry-run mode (no database).
"""

import re

import pytest
from datetime import datetime, timezone

from migration_ledger.batch.pipeline import ImportPipeline, new_batch_id
from migration_ledger.batch.progress import CancellationToken, ImportProgressReporter
from migration_ledger.core.errors import (
    DataTypeMismatchError,
    ImportCancelledError,
    MissingMarkerError,
    WorkbookReadError,
)
from migration_ledger.core.models import DataKind, IdentityGroupRecord

FIXED_TIME = datetime(2024, 5, 1, 12, 30, 45, tzinfo=timezone.utc)


@pytest.fixture
def pipeline():
    return ImportPipeline(clock=lambda: FIXED_TIME)


@pytest.mark.unit
class TestBatchId:
    """Tests for batch id generation"""

    def test_batch_id_format(self):
        """Test <Kind>_Import_<timestamp>_<8 hex chars>"""
        batch_id = new_batch_id(DataKind.IDENTITY_GROUP, FIXED_TIME)
        assert re.fullmatch(r"AD_Import_20240501_123045_[0-9a-f]{8}", batch_id)

    def test_batch_ids_unique(self):
        """Test two batches in the same second still differ"""
        assert new_batch_id(DataKind.HR, FIXED_TIME) != new_batch_id(DataKind.HR, FIXED_TIME)


@pytest.mark.unit
class TestImportPipelineDryRun:
    """Tests for row classification without a store"""

    def test_rows_are_partitioned(self, pipeline, make_workbook):
        """Test valid, invalid, duplicate and blank rows add up to all data rows"""
        path = make_workbook(
            [
                ["AD Group", "System Account", "Application Name", "OTAP", "Owner"],
                ["GRP1", "user1", "App A", "P", "Alice"],
                ["GRP1", "user2", "App A", "p", None],
                [None, None, None, None, None],
                ["GRP1", "user1", "App A", "P", None],
                [None, "user4", "App B", "A", None],
            ],
            preamble=[["AD group export"]],
        )

        result = pipeline.import_data(DataKind.IDENTITY_GROUP, path)

        assert result.total_rows == 5
        assert result.valid_count == 2
        assert result.blank_rows == 1
        assert [d.row_number for d in result.duplicate_rows] == [7]
        assert [f.row_number for f in result.invalid_rows] == [8]
        assert result.invalid_rows[0].message == "Row 8: Missing AD Group"
        assert result.is_balanced
        assert result.committed is False

    def test_records_are_stamped(self, pipeline, make_workbook):
        """Test accepted records carry batch id, timestamp, row number and extra columns"""
        path = make_workbook(
            [
                ["AD Group", "System Account", "OTAP", "Owner"],
                ["GRP1", "user1", "p", "Alice"],
            ]
        )

        result = pipeline.import_data("identity_group", path)
        record = result.records[0]

        assert isinstance(record, IdentityGroupRecord)
        assert record.batch_id == result.batch_id
        assert result.batch_id.startswith("AD_Import_20240501_123045_")
        assert record.imported_at == FIXED_TIME
        assert record.row_number == 3
        assert record.environment == "P"
        assert record.extra == {"Owner": "Alice"}

    def test_warnings_collected(self, pipeline, make_workbook):
        """Test warning-severity failures are reported per row"""
        path = make_workbook([["AD Group", "System Account", "OTAP"], ["GRP1", "user1", "Z"]])

        result = pipeline.import_data(DataKind.IDENTITY_GROUP, path)

        assert result.valid_count == 1
        assert result.warnings == ["Row 3: OTAP 'Z' is not one of O, T, A, P"]

    def test_dates_from_cells(self, pipeline, make_workbook):
        """Test date cells and day-first date text both parse"""
        path = make_workbook(
            [
                ["System Account", "Department", "Leave Date"],
                ["user1", "Finance", datetime(2023, 6, 30)],
                ["user2", "Finance", "01-01-2020"],
                ["user3", "IT", None],
            ]
        )

        result = pipeline.import_data(DataKind.HR, path)

        assert [str(r.leave_date) for r in result.records] == ["2023-06-30", "2020-01-01", "None"]

    def test_missing_marker(self, make_workbook):
        """Test a sheet without marker aborts and reports failure"""
        reporter = ImportProgressReporter()
        pipeline = ImportPipeline(reporter=reporter)
        path = make_workbook([["AD Group", "System Account"], ["GRP1", "user1"]], marker=False)

        with pytest.raises(MissingMarkerError):
            pipeline.import_data(DataKind.IDENTITY_GROUP, path)

        assert not reporter.is_processing
        assert reporter.current_operation.startswith("Import failed")

    def test_data_type_mismatch(self, pipeline, make_workbook):
        """Test importing an HR sheet as AD data is refused"""
        path = make_workbook([["System Account", "Department", "Division"], ["user1", "Finance", "East"]])

        with pytest.raises(DataTypeMismatchError):
            pipeline.import_data(DataKind.IDENTITY_GROUP, path)

    def test_unreadable_file(self, pipeline, tmp_path):
        """Test a corrupt workbook is a structural error"""
        path = tmp_path / "corrupt.xlsx"
        path.write_bytes(b"PK not really a zip")

        with pytest.raises(WorkbookReadError):
            pipeline.import_data(DataKind.HR, path)

    def test_combined_not_importable(self, pipeline, make_workbook):
        """Test combined records cannot be imported from a sheet"""
        with pytest.raises(ValueError):
            pipeline.import_data(DataKind.COMBINED, make_workbook([["x"]]))

    def test_cancelled_import(self, make_workbook):
        """Test a cancelled token aborts the import"""
        reporter = ImportProgressReporter()
        pipeline = ImportPipeline(reporter=reporter)
        token = CancellationToken()
        token.cancel()
        path = make_workbook([["System Account"], ["user1"]])

        with pytest.raises(ImportCancelledError):
            pipeline.import_data(DataKind.HR, path, cancel_token=token)

        assert reporter.current_operation == "Import cancelled"

    def test_progress_events(self, make_workbook):
        """Test phases are published in order and progress never decreases"""
        reporter = ImportProgressReporter()
        events = []
        reporter.subscribe(events.append)
        path = make_workbook([["Application Name", "Package Status"]] + [[f"App {i}", "Ready"] for i in range(250)])

        result = ImportPipeline(reporter=reporter).import_data(DataKind.PACKAGE, path)

        progress = [e.progress for e in events]
        assert progress == sorted(progress)
        assert progress[-1] == 1.0
        assert any(e.operation.startswith("Phase 4/5: Processing row 201 of 250") for e in events)
        assert events[-1].operation == "Import complete! 250 valid, 0 invalid, 0 duplicates"
        assert reporter.valid_records(DataKind.PACKAGE) == result.records

    def test_processing_updates_every_hundred_rows(self, make_workbook):
        """Test processing updates fall at data offsets 0, 100 and 200 of a 250-row sheet"""
        reporter = ImportProgressReporter()
        events = []
        reporter.subscribe(events.append)
        path = make_workbook([["Application Name", "Package Status"]] + [[f"App {i}", "Ready"] for i in range(250)])

        ImportPipeline(reporter=reporter).import_data(DataKind.PACKAGE, path)

        processing = [e for e in events if e.operation.startswith("Phase 4/5: Processing row")]
        assert [e.rows_processed for e in processing] == [0, 100, 200]
        assert all(e.total_rows == 250 for e in processing)
        assert [e.progress for e in processing] == sorted(e.progress for e in processing)
        assert processing[0].progress < processing[-1].progress

    def test_large_sheets_update_every_fifty_rows(self, make_workbook, monkeypatch):
        """Test sheets above the large-sheet threshold report twice as often"""
        monkeypatch.setattr(ImportPipeline, "LARGE_SHEET_ROWS", 200)
        reporter = ImportProgressReporter()
        events = []
        reporter.subscribe(events.append)
        path = make_workbook([["Application Name", "Package Status"]] + [[f"App {i}", "Ready"] for i in range(250)])

        ImportPipeline(reporter=reporter).import_data(DataKind.PACKAGE, path)

        processing = [e for e in events if e.operation.startswith("Phase 4/5: Processing row")]
        assert [e.rows_processed for e in processing] == [0, 50, 100, 150, 200]
        assert [e.progress for e in events] == sorted(e.progress for e in events)

    def test_progress_interval_threshold(self):
        """Test the interval switches from 100 to 50 above 10,000 rows"""
        pipeline = ImportPipeline()

        assert pipeline.progress_interval(250) == 100
        assert pipeline.progress_interval(10_000) == 100
        assert pipeline.progress_interval(10_001) == 50
