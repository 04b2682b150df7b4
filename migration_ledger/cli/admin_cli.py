"""
Admin CLI for maintaining and inspecting the migration ledger.

Usage:
    python -m migration_ledger.cli.admin_cli clear --kind <kind> [options]
    python -m migration_ledger.cli.admin_cli reinitialize --yes [options]
    python -m migration_ledger.cli.admin_cli update-field --group <ad group> --account <account> \
        --field <field> --value <value> [options]
    python -m migration_ledger.cli.admin_cli query --kind <kind> --field <field> --operator <op> [--value <v>]
    python -m migration_ledger.cli.admin_cli progress-report [--level department|division|cluster] [options]
    python -m migration_ledger.cli.admin_cli status [options]
"""

import argparse
import sys
from datetime import date

from migration_ledger.core.errors import MigrationLedgerError
from migration_ledger.core.models import CombinedRecord, DataKind
from migration_ledger.observability.logger import get_logger
from migration_ledger.reconcile.redirects import RedirectPolicy
from migration_ledger.scoring import GroupLevel, GroupProgress, ScoringFilter
from migration_ledger.warehouse.combined_store import UPDATABLE_FIELDS
from migration_ledger.warehouse.ledger import Warehouse
from migration_ledger.warehouse.query import QueryOperator

from .common import add_database_arguments, create_pool, format_percentage, format_timestamp

logger = get_logger(__name__)


def run_with_warehouse(args, action, failure: str):
    """Open a pool, build the environment's warehouse, run action(warehouse, args) and close."""
    pool = None
    try:
        pool = create_pool(args)
        warehouse = Warehouse(pool, environment=args.environment)
        warehouse.initialize()
        action(warehouse, args)
    except (MigrationLedgerError, ValueError) as e:
        logger.error(f"{failure}: {e}")
        print(f"\nError: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"{failure}: {e}", exc_info=True)
        print(f"\nError: {e}")
        sys.exit(1)
    finally:
        if pool is not None:
            pool.close()


def clear(warehouse: Warehouse, args) -> None:
    kind = DataKind.parse(args.kind)
    removed = warehouse.clear(kind)
    print(f"\nCleared {removed} {kind.label} record(s) from {warehouse.environment.label}.")


def clear_command(args):
    """
    Delete all records of one kind.

    Args:
        args: Command line arguments
    """
    logger.info(f"Clearing {args.kind} records")
    run_with_warehouse(args, clear, "Error clearing records")


def reinitialize(warehouse: Warehouse, args) -> None:
    warehouse.reinitialize()
    print(f"\nReinitialized every table of {warehouse.environment.label}.")


def reinitialize_command(args):
    """
    Drop and recreate the environment's tables.

    Args:
        args: Command line arguments
    """
    if not args.yes:
        print("\nReinitializing deletes every record of the environment. Re-run with --yes to confirm.")
        sys.exit(1)
    logger.info("Reinitializing environment")
    run_with_warehouse(args, reinitialize, "Error reinitializing environment")


def update_field(warehouse: Warehouse, args) -> None:
    value = None if args.clear_value else args.value
    warehouse.update_field(args.group, args.account, args.field, value)
    print(f"\nUpdated {args.field} of {args.group} / {args.account}.")


def update_field_command(args):
    """
    Patch one field of one combined record.

    Args:
        args: Command line arguments
    """
    if args.value is None and not args.clear_value:
        print("\nError: --value or --clear-value is required")
        sys.exit(1)
    logger.info(f"Updating {args.field} for {args.group} / {args.account}")
    run_with_warehouse(args, update_field, "Error updating record")


def print_records(records, fields: list[str]) -> None:
    widths = {name: max(len(name), 12) for name in fields}
    print("  ".join(f"{name:<{widths[name]}}" for name in fields))
    print("-" * (sum(widths.values()) + 2 * len(fields)))
    for record in records:
        values = []
        for name in fields:
            value = getattr(record, name, None)
            values.append(f"{'' if value is None else str(value):<{widths[name]}}")
        print("  ".join(values))


def query(warehouse: Warehouse, args) -> None:
    kind = DataKind.parse(args.kind)
    records = warehouse.query(kind, args.field, args.operator, args.value, limit=args.limit)

    print(f"\n{'=' * 80}")
    print(f"QUERY: {kind.label} where {args.field} {args.operator}{f' {args.value!r}' if args.value else ''}")
    print(f"{'=' * 80}\n")
    print(f"Matches: {len(records)}\n")
    if not records:
        return

    model = CombinedRecord if kind is DataKind.COMBINED else type(records[0])
    fields = args.columns.split(",") if args.columns else [
        name for name in model.column_names() if name not in ("extra", "imported_at")
    ][:6]
    print_records(records, [name.strip() for name in fields])
    print(f"\n{'=' * 80}\n")


def query_command(args):
    """
    Run a single-condition query.

    Args:
        args: Command line arguments
    """
    logger.info(f"Querying {args.kind} records")
    run_with_warehouse(args, query, "Error running query")


def print_group(group: GroupProgress) -> None:
    print(
        f"{group.name[:30]:<30} {group.applications:>6} {group.users:>7} "
        f"{format_percentage(group.package_progress):>9} {format_percentage(group.test_progress):>9} "
        f"{format_percentage(group.readiness_progress):>10}  {group.readiness_text}"
    )


def progress_report(warehouse: Warehouse, args) -> None:
    scoring_filter = ScoringFilter(
        exclude_redirected_and_out_of_scope=args.exclude_redirected,
        exclude_left=args.exclude_left,
        as_of=date.fromisoformat(args.as_of) if args.as_of else None,
        environments=frozenset(code.strip().upper() for code in args.otap.split(",")) if args.otap else None,
        redirect_policy=RedirectPolicy.FOLLOW_CHAIN if args.follow_chains else RedirectPolicy.DIRECT,
    )
    level = GroupLevel(args.level)
    groups, total = warehouse.progress(level, scoring_filter)

    print(f"\n{'=' * 100}")
    print(f"PROGRESS REPORT by {level.value} ({warehouse.environment.label})")
    print(f"{'=' * 100}\n")
    print(f"{'Group':<30} {'Apps':>6} {'Users':>7} {'Package':>9} {'Test':>9} {'Readiness':>10}  Status")
    print(f"{'-' * 100}")
    for group in groups:
        print_group(group)
    print(f"{'-' * 100}")
    print_group(total)
    if total.readiness_stage is not None:
        print(f"\nOverall readiness stage: {total.readiness_stage.label}")
    if total.latest_package_date or total.latest_test_date:
        print(f"Latest package readiness date: {total.latest_package_date or 'N/A'}")
        print(f"Latest test readiness date: {total.latest_test_date or 'N/A'}")
    print(f"\n{'=' * 100}\n")


def progress_report_command(args):
    """
    Display migration progress per group.

    Args:
        args: Command line arguments
    """
    logger.info(f"Generating progress report by {args.level}")
    run_with_warehouse(args, progress_report, "Error generating progress report")


def status(warehouse: Warehouse, args) -> None:
    report = warehouse.status()

    print(f"\n{'=' * 60}")
    print(f"LEDGER STATUS ({warehouse.environment.label})")
    print(f"{'=' * 60}\n")
    print(f"{'Kind':<20} {'Records':>10}  Latest import")
    print(f"{'-' * 60}")
    for kind_name, entry in report.items():
        kind = DataKind(kind_name)
        print(f"{kind.label:<20} {entry['records']:>10}  {format_timestamp(entry['latest_import'])}")
    print(f"\n{'=' * 60}\n")


def status_command(args):
    """
    Display record counts per kind.

    Args:
        args: Command line arguments
    """
    logger.info("Getting ledger status")
    run_with_warehouse(args, status, "Error getting ledger status")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Migration ledger administration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Remove every HR record of the test environment
  python -m migration_ledger.cli.admin_cli clear --kind hr --environment test

  # Mark a package as ready
  python -m migration_ledger.cli.admin_cli update-field --group GRP1 --account user1 \\
      --field package_status --value Ready

  # Accounts that left before a date
  python -m migration_ledger.cli.admin_cli query --kind combined --field "Leave Date" \\
      --operator before --value 2024-01-01

  # Department progress without redirected and out-of-scope applications
  python -m migration_ledger.cli.admin_cli progress-report --level department --exclude-redirected
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    clear_parser = subparsers.add_parser("clear", help="Delete all records of a kind")
    clear_parser.add_argument(
        "--kind",
        required=True,
        choices=[kind.value for kind in DataKind],
        help="Kind to clear (combined clears the reconciled records)",
    )
    add_database_arguments(clear_parser)

    reinit_parser = subparsers.add_parser("reinitialize", help="Drop and recreate the environment's tables")
    reinit_parser.add_argument("--yes", action="store_true", help="Confirm deletion of every record")
    add_database_arguments(reinit_parser)

    update_parser = subparsers.add_parser("update-field", help="Update one field of a combined record")
    update_parser.add_argument("--group", required=True, help="AD group of the record")
    update_parser.add_argument("--account", required=True, help="System account of the record")
    update_parser.add_argument(
        "--field",
        required=True,
        choices=[field.value for field in UPDATABLE_FIELDS],
        help="Field to update",
    )
    update_parser.add_argument("--value", default=None, help="New value (dates as YYYY-MM-DD)")
    update_parser.add_argument("--clear-value", action="store_true", help="Set the field to empty")
    add_database_arguments(update_parser)

    query_parser = subparsers.add_parser("query", help="Query records with one condition")
    query_parser.add_argument("--kind", required=True, choices=[kind.value for kind in DataKind])
    query_parser.add_argument("--field", required=True, help="Field display name or column name")
    query_parser.add_argument(
        "--operator",
        required=True,
        choices=[op.value for op in QueryOperator],
        help="Comparison operator",
    )
    query_parser.add_argument("--value", default=None, help="Comparison value")
    query_parser.add_argument("--limit", type=int, default=100, help="Maximum rows (default: 100)")
    query_parser.add_argument("--columns", default=None, help="Comma-separated columns to display")
    add_database_arguments(query_parser)

    progress_parser = subparsers.add_parser("progress-report", help="Display migration progress per group")
    progress_parser.add_argument(
        "--level",
        default=GroupLevel.DEPARTMENT.value,
        choices=[level.value for level in GroupLevel],
        help="Grouping level (default: department)",
    )
    progress_parser.add_argument(
        "--exclude-redirected",
        action="store_true",
        help="Exclude out-of-scope applications and applications with a will-be redirect",
    )
    progress_parser.add_argument("--exclude-left", action="store_true", help="Exclude accounts that have left")
    progress_parser.add_argument("--as-of", default=None, help="Reference date for --exclude-left (YYYY-MM-DD)")
    progress_parser.add_argument("--otap", default=None, help="Comma-separated OTAP codes to include, e.g. P,A")
    progress_parser.add_argument(
        "--follow-chains",
        action="store_true",
        help="Follow will-be chains to their final application",
    )
    add_database_arguments(progress_parser)

    status_parser = subparsers.add_parser("status", help="Display record counts per kind")
    add_database_arguments(status_parser)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "clear": clear_command,
        "reinitialize": reinitialize_command,
        "update-field": update_field_command,
        "query": query_command,
        "progress-report": progress_report_command,
        "status": status_command,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
