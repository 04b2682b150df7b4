"""
Schema management for ledger environments.

Table layouts are derived from the record models: one column per model
field, DATE for date fields, TEXT otherwise.
"""

from psycopg import sql

from migration_ledger.core.models import (
    DATE_FIELDS,
    RECORD_TYPES,
    CombinedRecord,
    DataKind,
)
from migration_ledger.observability.logger import get_logger

from .connection import DatabaseConnectionPool
from .environment import Environment

logger = get_logger(__name__)

TABLE_NAMES = {
    DataKind.IDENTITY_GROUP: "identity_group_records",
    DataKind.HR: "person_records",
    DataKind.PACKAGE: "package_status_records",
    DataKind.TEST: "test_status_records",
    DataKind.MIGRATION: "migration_records",
    DataKind.CLUSTER: "cluster_records",
    DataKind.COMBINED: "combined_records",
}

INDEXED_COLUMNS = {
    DataKind.IDENTITY_GROUP: ("identity_group", "account_id"),
    DataKind.HR: ("account_id",),
    DataKind.PACKAGE: ("application_name",),
    DataKind.TEST: ("application_name",),
    DataKind.MIGRATION: ("application_name",),
    DataKind.CLUSTER: ("department",),
    DataKind.COMBINED: ("application_name",),
}

_DATE_COLUMNS = {field.value for field in DATE_FIELDS}


def table_identifier(environment: Environment, kind: DataKind) -> sql.Identifier:
    return sql.Identifier(environment.schema, TABLE_NAMES[kind])


def column_type(name: str) -> str:
    if name in _DATE_COLUMNS:
        return "DATE"
    if name == "imported_at":
        return "TIMESTAMPTZ"
    return "TEXT"


def model_for(kind: DataKind):
    return CombinedRecord if kind is DataKind.COMBINED else RECORD_TYPES[kind]


def data_columns(kind: DataKind) -> list[str]:
    """Columns written for a kind, in table order (excluding id)."""
    if kind is DataKind.COMBINED:
        return CombinedRecord.column_names()
    return RECORD_TYPES[kind].column_names() + ["extra", "batch_id", "imported_at"]


def table_ddl(environment: Environment, kind: DataKind) -> sql.Composed:
    model = model_for(kind)
    definitions = [sql.SQL("id BIGSERIAL PRIMARY KEY")]
    for name in model.column_names():
        field = model.model_fields[name]
        not_null = field.is_required() or field.default is not None
        definitions.append(
            sql.SQL("{} {}{}").format(
                sql.Identifier(name),
                sql.SQL(column_type(name)),
                sql.SQL(" NOT NULL" if not_null else ""),
            )
        )

    if kind is DataKind.COMBINED:
        definitions.append(sql.SQL("UNIQUE (identity_group, account_id)"))
    else:
        definitions.extend([
            sql.SQL("extra JSONB NOT NULL DEFAULT '{}'::jsonb"),
            sql.SQL("batch_id TEXT NOT NULL"),
            sql.SQL("imported_at TIMESTAMPTZ NOT NULL"),
        ])

    return sql.SQL("CREATE TABLE IF NOT EXISTS {table} ({definitions})").format(
        table=table_identifier(environment, kind),
        definitions=sql.SQL(", ").join(definitions),
    )


def index_ddl(environment: Environment, kind: DataKind) -> sql.Composed:
    columns = INDEXED_COLUMNS[kind]
    return sql.SQL("CREATE INDEX IF NOT EXISTS {name} ON {table} ({columns})").format(
        name=sql.Identifier(f"idx_{TABLE_NAMES[kind]}_{'_'.join(columns)}"),
        table=table_identifier(environment, kind),
        columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
    )


class SchemaManager:
    """
    Creates, verifies and drops environment schemas.

    Every operation runs in a single transaction, so an environment is either
    fully created or left untouched.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Args:
            pool: Database connection pool
        """
        self.pool = pool

    def _create_statements(self, environment: Environment) -> list[sql.Composable]:
        statements: list[sql.Composable] = [
            sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(environment.schema))
        ]
        for kind in TABLE_NAMES:
            statements.append(table_ddl(environment, kind))
            statements.append(index_ddl(environment, kind))
        return statements

    def ensure_schema(self, environment: Environment) -> None:
        """Create the environment's schema and tables if they do not exist."""
        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                for statement in self._create_statements(environment):
                    cur.execute(statement)
            conn.commit()
        logger.debug("Environment schema ready", extra={"environment": environment.value})

    def reinitialize(self, environment: Environment) -> None:
        """Drop and recreate every table of the environment."""
        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("DROP SCHEMA IF EXISTS {} CASCADE").format(sql.Identifier(environment.schema))
                )
                for statement in self._create_statements(environment):
                    cur.execute(statement)
            conn.commit()
        logger.warning("Environment reinitialized", extra={"environment": environment.value})

    def drop_schema(self, environment: Environment) -> None:
        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("DROP SCHEMA IF EXISTS {} CASCADE").format(sql.Identifier(environment.schema))
                )
            conn.commit()

    def schema_exists(self, environment: Environment) -> bool:
        rows = self.pool.execute_query(
            "SELECT 1 FROM information_schema.schemata WHERE schema_name = %s",
            (environment.schema,),
        )
        return bool(rows)

    def list_tables(self, environment: Environment) -> list[str]:
        rows = self.pool.execute_query(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = %s ORDER BY table_name",
            (environment.schema,),
        )
        return [row["table_name"] for row in rows]
