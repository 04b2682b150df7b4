"""
Reconciliation service: rebuilds the combined table of one environment.
"""

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from migration_ledger.batch.pipeline import new_batch_id, utc_now
from migration_ledger.core.models import DataKind
from migration_ledger.observability.logger import get_logger, log_operation
from migration_ledger.observability.metrics import (
    reconciliation_duration_seconds,
    record_reconciliation,
    track_duration,
)

from .builder import CombinedRecordBuilder, ReconciliationResult

if TYPE_CHECKING:
    from migration_ledger.warehouse.combined_store import CombinedRecordStore
    from migration_ledger.warehouse.record_store import RecordStore

logger = get_logger(__name__)


class ReconciliationService:
    """
    Reads every primitive record, joins them and swaps the combined table.

    The snapshot is read in one transaction and the combined table is
    replaced in another, so readers never observe a partial rebuild.
    """

    def __init__(
        self,
        record_store: "RecordStore",
        combined_store: "CombinedRecordStore",
        builder: CombinedRecordBuilder | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.record_store = record_store
        self.combined_store = combined_store
        self.builder = builder or CombinedRecordBuilder()
        self.clock = clock

    def rebuild(self) -> ReconciliationResult:
        """
        Regenerate all combined records.

        Returns:
            ReconciliationResult with the written records and data-quality findings
        """
        environment = self.record_store.environment.value
        imported_at = self.clock()
        batch_id = new_batch_id(DataKind.COMBINED, imported_at)

        with log_operation(
            "Rebuild combined records", logger=logger, environment=environment, batch_id=batch_id
        ), track_duration(reconciliation_duration_seconds, environment=environment):
            snapshot = self.record_store.snapshot()
            result = self.builder.build(snapshot, imported_at=imported_at, batch_id=batch_id)
            written = self.combined_store.replace_all(result.records)

        record_reconciliation(
            environment,
            written,
            result.ambiguities,
            len(result.unmatched_accounts),
        )
        logger.info(
            f"Rebuilt {written} combined records",
            extra={"environment": environment, **result.summary()},
        )
        return result
