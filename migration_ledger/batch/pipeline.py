"""
Import pipeline orchestration.

Coordinates the flow: read worksheet -> resolve header -> validate -> deduplicate -> append
"""

import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, TYPE_CHECKING

from migration_ledger.batch.dedup import Deduplicator
from migration_ledger.batch import progress as phases
from migration_ledger.batch.progress import CancellationToken, ImportProgressReporter
from migration_ledger.batch.readers import WorksheetReader
from migration_ledger.core.errors import ImportCancelledError
from migration_ledger.core.models import (
    DataKind,
    DuplicateRow,
    ImportResult,
    RowFailure,
    SourceRecord,
    is_absent,
)
from migration_ledger.core.rules import RecordValidator, RuleConfigLoader
from migration_ledger.core.schema import ColumnMap, HeaderResolver
from migration_ledger.observability.logger import get_logger, log_operation
from migration_ledger.observability.metrics import (
    import_duration_seconds,
    record_import_failure,
    record_import_outcome,
    track_duration,
)

if TYPE_CHECKING:
    from migration_ledger.warehouse.record_store import RecordStore

logger = get_logger(__name__)

Source = str | Path | IO[bytes]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_batch_id(kind: DataKind, at: datetime) -> str:
    """Batch id of the form <Kind>_Import_<yyyyMMdd_HHmmss>_<8 hex chars>."""
    return f"{kind.label}_Import_{at:%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:8]}"


class ImportPipeline:
    """
    Imports one workbook of one data kind.

    Flow:
    1. Read the first worksheet
    2. Find the start marker and the header row, map columns
    3. Validate each data row against the kind's rules
    4. Deduplicate accepted records on their natural key
    5. Append accepted records to the store in one transaction

    Without a store the run is a dry run: rows are classified but nothing is
    persisted.
    """

    # Sheets above this many data rows report progress more often
    LARGE_SHEET_ROWS = 10_000

    def __init__(
        self,
        store: "RecordStore | None" = None,
        reporter: ImportProgressReporter | None = None,
        validation_rules_path: str | Path | None = None,
        record_validator: RecordValidator | None = None,
        reader: WorksheetReader | None = None,
        check_kind: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            store: Record store receiving accepted records (None for dry runs)
            reporter: Progress reporter (a private one is created if None)
            validation_rules_path: YAML rules replacing the packaged defaults
            record_validator: Prebuilt validator, takes precedence over the rules path
            reader: Worksheet reader
            check_kind: Abort when the sheet looks like a different data kind
            clock: Source of import timestamps
        """
        self.store = store
        self.reporter = reporter or ImportProgressReporter()
        self.reader = reader or WorksheetReader()
        self.check_kind = check_kind
        self.clock = clock

        if record_validator is not None:
            self.record_validator = record_validator
        elif validation_rules_path is not None:
            self.record_validator = RecordValidator(RuleConfigLoader(validation_rules_path).load_rules())
        else:
            self.record_validator = RecordValidator()

    @property
    def dry_run(self) -> bool:
        return self.store is None

    def progress_interval(self, total_rows: int) -> int:
        """Data rows between two processing updates."""
        return 50 if total_rows > self.LARGE_SHEET_ROWS else 100

    def import_data(
        self,
        kind: DataKind | str,
        source: Source,
        cancel_token: CancellationToken | None = None,
    ) -> ImportResult:
        """
        Import a workbook.

        Args:
            kind: Data kind the workbook holds
            source: Path or binary file object of the workbook
            cancel_token: Checked at every progress update

        Returns:
            ImportResult partitioning every data row into valid, invalid,
            duplicate or blank

        Raises:
            StructuralImportError: Unreadable workbook, no worksheet, no marker or no header
            DataTypeMismatchError: The sheet holds another data kind
            ImportCancelledError: The token was cancelled; nothing is committed
        """
        kind = DataKind.parse(kind)
        if not kind.importable:
            raise ValueError(f"{kind.label} data cannot be imported")

        imported_at = self.clock()
        batch_id = new_batch_id(kind, imported_at)
        token = cancel_token or CancellationToken()

        self.reporter.start(kind)
        self.reporter.update("Phase 1/5: Initializing import...", phases.INITIALIZE)

        try:
            with log_operation(
                f"Import {kind.label} data",
                logger=logger,
                kind=kind.value,
                batch_id=batch_id,
                dry_run=self.dry_run,
            ), track_duration(import_duration_seconds, kind=kind.value):
                result = self._run(kind, source, batch_id, imported_at, token)
        except ImportCancelledError as e:
            self.reporter.fail("Import cancelled")
            record_import_failure(kind.value, e, status="cancelled")
            raise
        except Exception as e:
            self.reporter.fail(f"Import failed: {e}")
            record_import_failure(kind.value, e)
            raise

        self.reporter.finish(
            f"Import complete! {result.valid_count} valid, {len(result.invalid_rows)} invalid, "
            f"{len(result.duplicate_rows)} duplicates"
        )
        return result

    def _run(
        self,
        kind: DataKind,
        source: Source,
        batch_id: str,
        imported_at: datetime,
        token: CancellationToken,
    ) -> ImportResult:
        self.reporter.update("Phase 2/5: Loading Excel file...", phases.LOAD_START)
        token.raise_if_cancelled()
        rows = self.reader.read_rows(source)
        self.reporter.update("Phase 2/5: Worksheet loaded", phases.LOAD_READ)
        self.reporter.update(f"Phase 2/5: Read {len(rows)} rows", phases.LOAD_DONE)
        token.raise_if_cancelled()

        self.reporter.update("Phase 3/5: Analyzing headers...", phases.ANALYZE_START)
        column_map = HeaderResolver(kind, check_kind=self.check_kind).resolve(rows)
        self.reporter.update(
            f"Phase 3/5: Found header at row {column_map.header_row_number}", phases.ANALYZE_DONE
        )

        data_rows = rows[column_map.header_index + 1:]
        records, invalid, duplicates, blank, warnings = self._process_rows(
            kind, data_rows, column_map, token
        )

        self.reporter.update("Phase 5/5: Finalizing import...", phases.FINALIZE)
        for record in records:
            record.batch_id = batch_id
            record.imported_at = imported_at

        committed = False
        if self.store is not None:
            self.reporter.update(f"Phase 5/5: Saving {len(records)} records...", phases.SAVING)
            token.raise_if_cancelled(len(data_rows))
            self.store.append(kind, records, batch_id=batch_id, imported_at=imported_at)
            committed = True

        result = ImportResult(
            kind=kind,
            batch_id=batch_id,
            total_rows=len(data_rows),
            records=records,
            invalid_rows=invalid,
            duplicate_rows=duplicates,
            blank_rows=blank,
            warnings=warnings,
            committed=committed,
        )
        record_import_outcome(
            kind.value,
            result.valid_count,
            len(invalid),
            len(duplicates),
            blank,
            status="committed" if committed else "dry_run",
        )
        self.reporter.record_outcome(kind, records, invalid, duplicates)
        logger.info(
            f"{kind.label} import: {result.valid_count} valid, {len(invalid)} invalid, "
            f"{len(duplicates)} duplicates, {blank} blank",
            extra=result.summary(),
        )
        return result

    def _process_rows(
        self,
        kind: DataKind,
        data_rows: list[list[str]],
        column_map: ColumnMap,
        token: CancellationToken,
    ) -> tuple[list[SourceRecord], list[RowFailure], list[DuplicateRow], int, list[str]]:
        total = len(data_rows)
        interval = self.progress_interval(total)
        deduplicator = Deduplicator(kind)

        records: list[SourceRecord] = []
        invalid: list[RowFailure] = []
        duplicates: list[DuplicateRow] = []
        warnings: list[str] = []
        blank = 0

        for offset, row in enumerate(data_rows):
            if offset % interval == 0:
                token.raise_if_cancelled(offset)
                self.reporter.update(
                    f"Phase 4/5: Processing row {offset + 1} of {total}",
                    phases.ROWS_START + phases.ROWS_SPAN * offset / total,
                    rows_processed=offset,
                    total_rows=total,
                )

            row_number = column_map.header_row_number + offset + 1
            if all(is_absent(cell) for cell in row):
                blank += 1
                continue

            outcome = self.record_validator.validate_row(
                kind, row_number, column_map.raw_fields(row), column_map.extra_values(row)
            )
            warnings.extend(f"Row {row_number}: {w}" for w in outcome.warnings)
            if not outcome.passed:
                invalid.append(RowFailure(row_number=row_number, reasons=outcome.reasons))
                continue

            duplicate = deduplicator.check(outcome.record, row_number)
            if duplicate is not None:
                duplicates.append(duplicate)
                continue

            records.append(outcome.record)

        token.raise_if_cancelled(total)
        return records, invalid, duplicates, blank, warnings
