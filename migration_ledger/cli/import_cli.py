"""
Command-line interface for spreadsheet imports and reconciliation.

Usage:
    python -m migration_ledger.cli.import_cli import --kind <kind> --input <file.xlsx> [options]
    python -m migration_ledger.cli.import_cli reconcile [options]
"""

import argparse
import sys
from pathlib import Path

from migration_ledger.batch.pipeline import ImportPipeline
from migration_ledger.batch.progress import ImportProgressReporter, ProgressEvent
from migration_ledger.core.errors import MigrationLedgerError
from migration_ledger.core.models import DataKind, ImportResult
from migration_ledger.observability.logger import get_logger
from migration_ledger.warehouse.ledger import Warehouse

from .common import add_database_arguments, create_pool, create_validator

logger = get_logger(__name__)

MAX_LISTED_ROWS = 20


def log_progress(event: ProgressEvent) -> None:
    logger.debug(
        event.operation,
        extra={"progress": round(event.progress, 2), "rows_processed": event.rows_processed},
    )


def report_import(result: ImportResult) -> None:
    logger.info("=" * 60)
    logger.info("IMPORT COMPLETE" if result.committed else "DRY RUN COMPLETE")
    logger.info("=" * 60)
    logger.info(f"Data kind: {result.kind.label}")
    logger.info(f"Batch: {result.batch_id}")
    logger.info(f"Data rows: {result.total_rows}")
    logger.info(f"Valid records: {result.valid_count}")
    logger.info(f"Invalid rows: {len(result.invalid_rows)}")
    logger.info(f"Duplicate rows: {len(result.duplicate_rows)}")
    logger.info(f"Blank rows: {result.blank_rows}")
    logger.info("=" * 60)

    for failure in result.invalid_rows[:MAX_LISTED_ROWS]:
        logger.warning(failure.message)
    for duplicate in result.duplicate_rows[:MAX_LISTED_ROWS]:
        logger.warning(duplicate.message)
    hidden = max(0, len(result.invalid_rows) - MAX_LISTED_ROWS) + max(0, len(result.duplicate_rows) - MAX_LISTED_ROWS)
    if hidden > 0:
        logger.warning(f"... {hidden} more rejected rows not shown")
    for warning in result.warnings:
        logger.warning(warning)


def import_command(args):
    """
    Execute an import.

    Args:
        args: Command-line arguments
    """
    logger.info(f"Starting {args.kind} import")
    logger.info(f"Input file: {args.input}")

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input file not found: {args.input}")
        sys.exit(1)

    reporter = ImportProgressReporter()
    reporter.subscribe(log_progress)

    try:
        validator = create_validator(args.validation_rules)
        if args.dry_run:
            logger.info("DRY RUN MODE: No data will be written to database")
            pipeline = ImportPipeline(reporter=reporter, record_validator=validator)
            result = pipeline.import_data(args.kind, input_path)
            report_import(result)
            return
    except MigrationLedgerError as e:
        logger.error(f"Import rejected: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error during import: {e}", exc_info=True)
        sys.exit(1)

    logger.info("Initializing database connection...")
    pool = None
    try:
        pool = create_pool(args)
        warehouse = Warehouse(
            pool,
            environment=args.environment,
            reporter=reporter,
            record_validator=validator,
        )
        warehouse.initialize()
        result = warehouse.import_data(args.kind, input_path)
        report_import(result)

        if args.reconcile:
            reconcile_and_report(warehouse)

    except MigrationLedgerError as e:
        logger.error(f"Import rejected: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error during import: {e}", exc_info=True)
        sys.exit(1)
    finally:
        if pool is not None:
            pool.close()


def reconcile_and_report(warehouse: Warehouse) -> None:
    result = warehouse.reconcile()

    logger.info("=" * 60)
    logger.info(f"RECONCILIATION COMPLETE ({warehouse.environment.label})")
    logger.info("=" * 60)
    logger.info(f"Combined records: {len(result.records)}")
    logger.info(f"Accounts without HR data: {len(result.unmatched_accounts)}")
    logger.info(f"Departments without cluster: {len(result.unmatched_departments)}")
    for join, count in sorted(result.ambiguities.items()):
        if count:
            logger.info(f"Ambiguous {join} matches (first kept): {count}")
    for issue in result.redirect_issues:
        logger.warning(issue.message)
    logger.info("=" * 60)


def reconcile_command(args):
    """
    Rebuild combined records.

    Args:
        args: Command-line arguments
    """
    logger.info("Starting reconciliation")
    pool = None
    try:
        pool = create_pool(args)
        warehouse = Warehouse(pool, environment=args.environment)
        warehouse.initialize()
        reconcile_and_report(warehouse)
    except MigrationLedgerError as e:
        logger.error(f"Reconciliation failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error during reconciliation: {e}", exc_info=True)
        sys.exit(1)
    finally:
        if pool is not None:
            pool.close()


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Migration ledger spreadsheet import",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import the AD group export into the test environment
  python -m migration_ledger.cli.import_cli import --kind identity_group \\
      --input data/ad_groups.xlsx --environment test

  # Validate an HR export without writing anything
  python -m migration_ledger.cli.import_cli import --kind hr --input data/hr.xlsx --dry-run

  # Import package status and rebuild combined records afterwards
  python -m migration_ledger.cli.import_cli import --kind package --input data/packages.xlsx --reconcile

  # Rebuild combined records
  python -m migration_ledger.cli.import_cli reconcile --environment acceptance
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    import_parser = subparsers.add_parser("import", help="Import a spreadsheet")
    import_parser.add_argument(
        "--kind",
        required=True,
        choices=[kind.value for kind in DataKind.importable_kinds()],
        help="Kind of data the spreadsheet holds",
    )
    import_parser.add_argument("--input", required=True, help="Path to the .xlsx file")
    import_parser.add_argument(
        "--validation-rules",
        default=None,
        help="Path to validation rules YAML file (default: packaged rules)",
    )
    import_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate data without writing to database",
    )
    import_parser.add_argument(
        "--reconcile",
        action="store_true",
        help="Rebuild combined records after a successful import",
    )
    add_database_arguments(import_parser)

    reconcile_parser = subparsers.add_parser("reconcile", help="Rebuild combined records")
    add_database_arguments(reconcile_parser)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "import":
        import_command(args)
    elif args.command == "reconcile":
        reconcile_command(args)


if __name__ == "__main__":
    main()
