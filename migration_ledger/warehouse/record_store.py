"""
Append-only storage of primitive import records, one table per data kind.
"""

from collections.abc import Sequence
from datetime import datetime

from psycopg import sql
from psycopg.types.json import Jsonb

from migration_ledger.core.models import RECORD_TYPES, DataKind, SourceRecord
from migration_ledger.observability.logger import get_logger
from migration_ledger.observability.metrics import increment_counter, warehouse_writes_total
from migration_ledger.reconcile.builder import SourceSnapshot

from .connection import DatabaseConnectionPool
from .environment import Environment
from .schema_mgmt import TABLE_NAMES, data_columns, table_identifier

logger = get_logger(__name__)

_SNAPSHOT_FIELDS = {
    DataKind.IDENTITY_GROUP: "identity_groups",
    DataKind.HR: "persons",
    DataKind.PACKAGE: "packages",
    DataKind.TEST: "tests",
    DataKind.MIGRATION: "migrations",
    DataKind.CLUSTER: "clusters",
}


def _importable(kind: DataKind) -> DataKind:
    kind = DataKind.parse(kind)
    if not kind.importable:
        raise ValueError(f"{kind.label} records are not stored in a record table")
    return kind


class RecordStore:
    """
    Stores primitive records of one environment.

    Imports append; nothing is overwritten until clear() is called.
    """

    def __init__(self, pool: DatabaseConnectionPool, environment: Environment):
        """
        Args:
            pool: Database connection pool
            environment: Environment whose tables are used
        """
        self.pool = pool
        self.environment = environment

    def _insert_statement(self, kind: DataKind) -> sql.Composed:
        columns = data_columns(kind)
        return sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values})").format(
            table=table_identifier(self.environment, kind),
            columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
            values=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )

    def append(
        self,
        kind: DataKind,
        records: Sequence[SourceRecord],
        batch_id: str | None = None,
        imported_at: datetime | None = None,
    ) -> int:
        """
        Append records in a single transaction.

        Args:
            kind: Data kind of the records
            records: Records to insert, in worksheet order
            batch_id: Used for records without their own batch id
            imported_at: Used for records without their own timestamp

        Returns:
            Number of records written

        Raises:
            ValueError: If a record has no batch id or timestamp
        """
        kind = _importable(kind)
        if not records:
            return 0

        params = []
        for record in records:
            row_batch = record.batch_id or batch_id
            row_time = record.imported_at or imported_at
            if row_batch is None or row_time is None:
                raise ValueError("Every stored record needs a batch_id and imported_at")
            values = [getattr(record, name) for name in RECORD_TYPES[kind].column_names()]
            params.append((*values, Jsonb(record.extra), row_batch, row_time))

        self.pool.execute_batch(self._insert_statement(kind), params)
        increment_counter(
            warehouse_writes_total,
            len(params),
            environment=self.environment.value,
            table=TABLE_NAMES[kind],
            operation="append",
        )
        logger.info(
            f"Appended {len(params)} {kind.label} records",
            extra={"environment": self.environment.value, "kind": kind.value, "batch_id": batch_id},
        )
        return len(params)

    def _select(self, kind: DataKind) -> sql.Composed:
        return sql.SQL("SELECT * FROM {table} ORDER BY id").format(
            table=table_identifier(self.environment, kind)
        )

    def fetch_all(self, kind: DataKind) -> list[SourceRecord]:
        """All records of a kind in persisted order."""
        kind = _importable(kind)
        model = RECORD_TYPES[kind]
        return [model.model_validate(row) for row in self.pool.execute_query(self._select(kind))]

    def snapshot(self) -> SourceSnapshot:
        """
        Read every record table in one REPEATABLE READ transaction.
        """
        lists = {}
        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SET TRANSACTION ISOLATION LEVEL REPEATABLE READ")
                for kind, attribute in _SNAPSHOT_FIELDS.items():
                    cur.execute(self._select(kind))
                    model = RECORD_TYPES[kind]
                    lists[attribute] = [model.model_validate(row) for row in cur.fetchall()]
            conn.commit()
        return SourceSnapshot(**lists)

    def count(self, kind: DataKind) -> int:
        kind = _importable(kind)
        rows = self.pool.execute_query(
            sql.SQL("SELECT COUNT(*) AS n FROM {table}").format(table=table_identifier(self.environment, kind))
        )
        return rows[0]["n"]

    def latest_import(self, kind: DataKind) -> datetime | None:
        """Timestamp of the most recent batch of a kind, None if the table is empty."""
        kind = _importable(kind)
        rows = self.pool.execute_query(
            sql.SQL("SELECT MAX(imported_at) AS latest FROM {table}").format(
                table=table_identifier(self.environment, kind)
            )
        )
        return rows[0]["latest"]

    def batches(self, kind: DataKind) -> list[dict]:
        """Imported batches of a kind, oldest first, with their record counts."""
        kind = _importable(kind)
        return self.pool.execute_query(
            sql.SQL(
                "SELECT batch_id, MIN(imported_at) AS imported_at, COUNT(*) AS records "
                "FROM {table} GROUP BY batch_id ORDER BY MIN(imported_at), batch_id"
            ).format(table=table_identifier(self.environment, kind))
        )

    def clear(self, kind: DataKind) -> int:
        """Delete every record of a kind. Returns the number of rows removed."""
        kind = _importable(kind)
        deleted = self.pool.execute_command(
            sql.SQL("DELETE FROM {table}").format(table=table_identifier(self.environment, kind))
        )
        increment_counter(
            warehouse_writes_total,
            deleted,
            environment=self.environment.value,
            table=TABLE_NAMES[kind],
            operation="clear",
        )
        logger.warning(
            f"Cleared {deleted} {kind.label} records",
            extra={"environment": self.environment.value, "kind": kind.value},
        )
        return deleted
