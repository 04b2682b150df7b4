"""
Warehouse facade: every ledger operation for one environment behind one object.
"""

from datetime import date
from pathlib import Path
from typing import IO, Any

from migration_ledger.batch.pipeline import ImportPipeline
from migration_ledger.batch.progress import CancellationToken, ImportProgressReporter
from migration_ledger.core.models import CombinedRecord, DataKind, ImportResult, SourceRecord
from migration_ledger.core.rules import RecordValidator
from migration_ledger.reconcile.builder import ReconciliationResult
from migration_ledger.reconcile.redirects import RedirectPolicy
from migration_ledger.reconcile.service import ReconciliationService
from migration_ledger.scoring import GroupLevel, GroupProgress, ProgressScoringEngine, ScoringFilter
from migration_ledger.observability.logger import get_logger

from .combined_store import CombinedRecordStore
from .connection import DatabaseConnectionPool
from .environment import Environment, writer_lock
from .query import QueryOperator, QueryService
from .record_store import RecordStore
from .schema_mgmt import SchemaManager

logger = get_logger(__name__)


class Warehouse:
    """
    Imports, reconciliation, maintenance and queries for one environment.

    Writers (imports, rebuilds, clears, point updates, reinitialize) hold the
    environment's writer lock, so only one runs at a time per environment.
    Reads do not take the lock.
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        environment: Environment | str | None = None,
        reporter: ImportProgressReporter | None = None,
        record_validator: RecordValidator | None = None,
        redirect_policy: RedirectPolicy = RedirectPolicy.DIRECT,
    ):
        """
        Args:
            pool: Open database connection pool
            environment: Target environment (default: LEDGER_ENVIRONMENT or development)
            reporter: Progress reporter shared with observers
            record_validator: Validator used by imports (default: packaged rules)
            redirect_policy: Will-be chain policy used by progress scoring
        """
        self.pool = pool
        self.environment = Environment.parse(environment) if environment else Environment.default()
        self.reporter = reporter or ImportProgressReporter()

        self.schema = SchemaManager(pool)
        self.records = RecordStore(pool, self.environment)
        self.combined = CombinedRecordStore(pool, self.environment)
        self.queries = QueryService(pool, self.environment)
        self.pipeline = ImportPipeline(
            store=self.records, reporter=self.reporter, record_validator=record_validator
        )
        self.reconciliation = ReconciliationService(self.records, self.combined)
        self.scoring = ProgressScoringEngine(redirect_policy)
        self._lock = writer_lock(self.environment)

    def initialize(self) -> None:
        """Create the environment's schema and tables if needed."""
        self.schema.ensure_schema(self.environment)

    # Writers

    def import_data(
        self,
        kind: DataKind | str,
        source: str | Path | IO[bytes],
        cancel_token: CancellationToken | None = None,
    ) -> ImportResult:
        """Import a workbook and append its valid records."""
        with self._lock:
            return self.pipeline.import_data(kind, source, cancel_token)

    def reconcile(self) -> ReconciliationResult:
        """Rebuild combined records from every persisted primitive record."""
        with self._lock:
            return self.reconciliation.rebuild()

    def clear(self, kind: DataKind | str) -> int:
        """Delete all records of a kind (combined included). Returns rows removed."""
        kind = DataKind.parse(kind)
        with self._lock:
            if kind is DataKind.COMBINED:
                return self.combined.clear()
            return self.records.clear(kind)

    def reinitialize(self) -> None:
        """Drop and recreate every table of the environment."""
        with self._lock:
            self.schema.reinitialize(self.environment)

    def update_field(self, identity_group: str, account_id: str, field: str, value: Any) -> None:
        with self._lock:
            self.combined.update_field(identity_group, account_id, field, value)

    def update_package_status(self, identity_group: str, account_id: str, status: str) -> None:
        with self._lock:
            self.combined.update_package_status(identity_group, account_id, status)

    def update_package_readiness_date(self, identity_group: str, account_id: str, value: date | str | None) -> None:
        with self._lock:
            self.combined.update_package_readiness_date(identity_group, account_id, value)

    def update_test_status(self, identity_group: str, account_id: str, status: str) -> None:
        with self._lock:
            self.combined.update_test_status(identity_group, account_id, status)

    def update_test_readiness_date(self, identity_group: str, account_id: str, value: date | str | None) -> None:
        with self._lock:
            self.combined.update_test_readiness_date(identity_group, account_id, value)

    def update_migration_cluster(self, identity_group: str, account_id: str, cluster: str) -> None:
        with self._lock:
            self.combined.update_migration_cluster(identity_group, account_id, cluster)

    def update_department_simple(self, identity_group: str, account_id: str, value: str) -> None:
        with self._lock:
            self.combined.update_department_simple(identity_group, account_id, value)

    # Readers

    def fetch(self, kind: DataKind | str) -> list[SourceRecord] | list[CombinedRecord]:
        kind = DataKind.parse(kind)
        if kind is DataKind.COMBINED:
            return self.combined.fetch_all()
        return self.records.fetch_all(kind)

    def query(
        self,
        kind: DataKind | str,
        field: str,
        operator: QueryOperator | str,
        value: Any = None,
        limit: int | None = None,
    ) -> list[SourceRecord] | list[CombinedRecord]:
        return self.queries.query(kind, field, operator, value, limit=limit)

    def progress(
        self,
        level: GroupLevel | str = GroupLevel.DEPARTMENT,
        scoring_filter: ScoringFilter | None = None,
    ) -> tuple[list[GroupProgress], GroupProgress]:
        """
        Group progress of the current combined records.

        Returns:
            (groups ordered by name, application-weighted total)
        """
        groups = self.scoring.group_progress(self.combined.fetch_all(), GroupLevel(level), scoring_filter)
        return groups, self.scoring.aggregate(groups)

    def status(self) -> dict[str, dict[str, Any]]:
        """Record counts and latest import time per kind."""
        report: dict[str, dict[str, Any]] = {}
        for kind in DataKind.importable_kinds():
            report[kind.value] = {
                "records": self.records.count(kind),
                "latest_import": self.records.latest_import(kind),
            }
        report[DataKind.COMBINED.value] = {"records": self.combined.count(), "latest_import": None}
        return report
