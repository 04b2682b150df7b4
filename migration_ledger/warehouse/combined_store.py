"""
Storage of combined records: full replacement on rebuild, point updates for maintenance.
"""

from collections.abc import Sequence
from datetime import date

from psycopg import sql

from migration_ledger.core.errors import RecordNotFoundError
from migration_ledger.core.models import CanonicalField, CombinedRecord, DataKind
from migration_ledger.core.validators import parse_date
from migration_ledger.observability.logger import get_logger
from migration_ledger.observability.metrics import increment_counter, warehouse_writes_total

from .connection import DatabaseConnectionPool
from .environment import Environment
from .schema_mgmt import data_columns, table_identifier

logger = get_logger(__name__)

F = CanonicalField

# Fields maintenance tooling may patch on a single combined row
UPDATABLE_FIELDS = {
    F.PACKAGE_STATUS: str,
    F.PACKAGE_READINESS_DATE: date,
    F.TEST_STATUS: str,
    F.TEST_READINESS_DATE: date,
    F.MIGRATION_CLUSTER: str,
    F.DEPARTMENT_SIMPLE: str,
}


class CombinedRecordStore:
    """
    Combined records of one environment, unique on (identity_group, account_id).
    """

    def __init__(self, pool: DatabaseConnectionPool, environment: Environment):
        self.pool = pool
        self.environment = environment
        self.table = table_identifier(environment, DataKind.COMBINED)

    def replace_all(self, records: Sequence[CombinedRecord]) -> int:
        """
        Swap the full set of combined records in one transaction.

        Readers see either the previous set or the new one, never a mix.

        Returns:
            Number of records written
        """
        columns = data_columns(DataKind.COMBINED)
        insert = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values})").format(
            table=self.table,
            columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
            values=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )
        params = [tuple(getattr(record, name) for name in columns) for record in records]

        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql.SQL("DELETE FROM {table}").format(table=self.table))
                if params:
                    cur.executemany(insert, params)
            conn.commit()

        increment_counter(
            warehouse_writes_total,
            len(params),
            environment=self.environment.value,
            table="combined_records",
            operation="replace",
        )
        return len(params)

    def fetch_all(self) -> list[CombinedRecord]:
        rows = self.pool.execute_query(
            sql.SQL("SELECT * FROM {table} ORDER BY identity_group, account_id").format(table=self.table)
        )
        return [CombinedRecord.model_validate(row) for row in rows]

    def get(self, identity_group: str, account_id: str) -> CombinedRecord | None:
        rows = self.pool.execute_query(
            sql.SQL("SELECT * FROM {table} WHERE identity_group = %s AND account_id = %s").format(
                table=self.table
            ),
            (identity_group, account_id),
        )
        return CombinedRecord.model_validate(rows[0]) if rows else None

    def count(self) -> int:
        rows = self.pool.execute_query(sql.SQL("SELECT COUNT(*) AS n FROM {table}").format(table=self.table))
        return rows[0]["n"]

    def clear(self) -> int:
        deleted = self.pool.execute_command(sql.SQL("DELETE FROM {table}").format(table=self.table))
        logger.warning(
            f"Cleared {deleted} combined records", extra={"environment": self.environment.value}
        )
        return deleted

    def update_field(
        self,
        identity_group: str,
        account_id: str,
        field: CanonicalField | str,
        value: str | date | None,
    ) -> None:
        """
        Patch one field of one combined row.

        Args:
            identity_group: AD group of the row
            account_id: System account of the row
            field: One of UPDATABLE_FIELDS
            value: New value; date fields accept dates or date text, None clears

        Raises:
            ValueError: If the field is not updatable or a date cannot be parsed
            RecordNotFoundError: If no row has the given key
        """
        field = CanonicalField(field)
        if field not in UPDATABLE_FIELDS:
            allowed = ", ".join(f.value for f in UPDATABLE_FIELDS)
            raise ValueError(f"Field '{field.value}' cannot be updated. Updatable fields: {allowed}")

        if UPDATABLE_FIELDS[field] is date and value is not None and not isinstance(value, date):
            parsed = parse_date(value)
            if parsed is None:
                raise ValueError(f"{field.display_name} '{value}' is not a valid date")
            value = parsed

        updated = self.pool.execute_command(
            sql.SQL("UPDATE {table} SET {column} = %s WHERE identity_group = %s AND account_id = %s").format(
                table=self.table,
                column=sql.Identifier(field.value),
            ),
            (value, identity_group, account_id),
        )
        if updated == 0:
            raise RecordNotFoundError(identity_group, account_id)

        increment_counter(
            warehouse_writes_total,
            1,
            environment=self.environment.value,
            table="combined_records",
            operation="update",
        )
        logger.info(
            f"Updated {field.display_name}",
            extra={
                "environment": self.environment.value,
                "identity_group": identity_group,
                "account_id": account_id,
                "field": field.value,
            },
        )

    def update_package_status(self, identity_group: str, account_id: str, status: str) -> None:
        self.update_field(identity_group, account_id, F.PACKAGE_STATUS, status)

    def update_package_readiness_date(self, identity_group: str, account_id: str, value: date | str | None) -> None:
        self.update_field(identity_group, account_id, F.PACKAGE_READINESS_DATE, value)

    def update_test_status(self, identity_group: str, account_id: str, status: str) -> None:
        self.update_field(identity_group, account_id, F.TEST_STATUS, status)

    def update_test_readiness_date(self, identity_group: str, account_id: str, value: date | str | None) -> None:
        self.update_field(identity_group, account_id, F.TEST_READINESS_DATE, value)

    def update_migration_cluster(self, identity_group: str, account_id: str, cluster: str) -> None:
        self.update_field(identity_group, account_id, F.MIGRATION_CLUSTER, cluster)

    def update_department_simple(self, identity_group: str, account_id: str, value: str) -> None:
        self.update_field(identity_group, account_id, F.DEPARTMENT_SIMPLE, value)
