"""
Arguments and helpers shared by the ledger command-line tools.
"""

import argparse
from datetime import datetime

from migration_ledger.core.rules import RecordValidator, RuleConfigLoader
from migration_ledger.warehouse.connection import DatabaseConnectionPool


def add_database_arguments(parser: argparse.ArgumentParser) -> None:
    """Database connection and environment options; unset values fall back to DB_* variables."""
    parser.add_argument("--db-host", default=None, help="Database host (default: DB_HOST or localhost)")
    parser.add_argument("--db-port", type=int, default=None, help="Database port (default: DB_PORT or 5432)")
    parser.add_argument("--db-name", default=None, help="Database name (default: DB_NAME or migration_ledger)")
    parser.add_argument("--db-user", default=None, help="Database user (default: DB_USER or ledger)")
    parser.add_argument("--db-password", default=None, help="Database password (default: DB_PASSWORD)")
    parser.add_argument(
        "--environment",
        default=None,
        help="Target environment: development, test, acceptance or production "
        "(default: LEDGER_ENVIRONMENT or development)",
    )


def create_pool(args) -> DatabaseConnectionPool:
    """Open a connection pool from parsed command-line arguments."""
    pool = DatabaseConnectionPool(
        host=args.db_host,
        port=args.db_port,
        database=args.db_name,
        user=args.db_user,
        password=args.db_password,
    )
    pool.open()
    return pool


def create_validator(rules_path: str | None) -> RecordValidator | None:
    if not rules_path:
        return None
    return RecordValidator(RuleConfigLoader(rules_path).load_rules())


def format_timestamp(ts: datetime | None) -> str:
    """Format timestamp for display."""
    return ts.strftime("%Y-%m-%d %H:%M:%S") if ts else "N/A"


def format_percentage(value: float | None) -> str:
    return "N/A" if value is None else f"{value:.1f}%"
