"""
Prometheus metrics collection for migration-ledger

Import outcomes, reconciliation data quality and store sizes, kept in a
dedicated registry so tests and embedding applications stay isolated.
"""
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# IMPORT METRICS
# =======================

# Rows processed counter
rows_processed_total = Counter(
    name="ledger_rows_processed_total",
    documentation="Total number of data rows processed by imports",
    labelnames=["kind", "status"],  # status: valid, invalid, duplicate, blank
    registry=REGISTRY,
)

# Import duration histogram
import_duration_seconds = Histogram(
    name="ledger_import_duration_seconds",
    documentation="Time spent importing one workbook in seconds",
    labelnames=["kind"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
    registry=REGISTRY,
)

# Imports counter
imports_total = Counter(
    name="ledger_imports_total",
    documentation="Total number of imports by outcome",
    labelnames=["kind", "status"],  # status: committed, dry_run, failed, cancelled
    registry=REGISTRY,
)

# Import failures by error class
import_failures_total = Counter(
    name="ledger_import_failures_total",
    documentation="Total number of aborted imports",
    labelnames=["kind", "error_type"],
    registry=REGISTRY,
)

# Validation failures counter
validation_failures_total = Counter(
    name="ledger_validation_failures_total",
    documentation="Total number of validation rule failures",
    labelnames=["kind", "rule_type", "field_name"],
    registry=REGISTRY,
)

# =======================
# RECONCILIATION METRICS
# =======================

reconciliation_duration_seconds = Histogram(
    name="ledger_reconciliation_duration_seconds",
    documentation="Time spent rebuilding combined records in seconds",
    labelnames=["environment"],
    buckets=[0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY,
)

reconciliation_ambiguities = Gauge(
    name="ledger_reconciliation_ambiguities",
    documentation="Extra candidate records ignored by first-match joins in the last rebuild",
    labelnames=["environment", "join"],
    registry=REGISTRY,
)

unmatched_accounts = Gauge(
    name="ledger_unmatched_accounts",
    documentation="Identity rows without an HR match in the last rebuild",
    labelnames=["environment"],
    registry=REGISTRY,
)

combined_records_total = Gauge(
    name="ledger_combined_records",
    documentation="Number of combined records after the last rebuild",
    labelnames=["environment"],
    registry=REGISTRY,
)

# =======================
# WAREHOUSE METRICS
# =======================

warehouse_writes_total = Counter(
    name="ledger_warehouse_writes_total",
    documentation="Total number of rows written to the store",
    labelnames=["environment", "table", "operation"],  # operation: append, replace, update, clear
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(import_duration_seconds, kind="hr"):
            # do work
            pass
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    counter.labels(**labels).inc(value)


def set_gauge(gauge: Gauge, value: float, **labels) -> None:
    gauge.labels(**labels).set(value)


# =======================
# LEDGER-SPECIFIC HELPERS
# =======================

def record_import_outcome(
    kind: str,
    valid_rows: int,
    invalid_rows: int,
    duplicate_rows: int,
    blank_rows: int,
    status: str,
) -> None:
    """
    Record the row partition and outcome of one import.

    Args:
        kind: Data kind value
        valid_rows: Rows accepted
        invalid_rows: Rows failing validation
        duplicate_rows: Rows rejected as duplicates
        blank_rows: Rows skipped as blank
        status: committed or dry_run
    """
    increment_counter(rows_processed_total, valid_rows, kind=kind, status="valid")
    increment_counter(rows_processed_total, invalid_rows, kind=kind, status="invalid")
    increment_counter(rows_processed_total, duplicate_rows, kind=kind, status="duplicate")
    increment_counter(rows_processed_total, blank_rows, kind=kind, status="blank")
    increment_counter(imports_total, 1, kind=kind, status=status)


def record_import_failure(kind: str, error: Exception, status: str = "failed") -> None:
    """Count an aborted import; status is failed or cancelled."""
    increment_counter(import_failures_total, 1, kind=kind, error_type=type(error).__name__)
    increment_counter(imports_total, 1, kind=kind, status=status)


def record_validation_failure(kind: str, rule_type: str, field_name: str) -> None:
    increment_counter(validation_failures_total, 1, kind=kind, rule_type=rule_type, field_name=field_name)


def record_reconciliation(
    environment: str,
    record_count: int,
    ambiguities: dict[str, int],
    unmatched: int,
) -> None:
    """
    Publish data-quality gauges of a reconciliation rebuild.

    Args:
        environment: Environment name
        record_count: Combined records written
        ambiguities: Ignored extra candidates per join
        unmatched: Identity rows without HR match
    """
    set_gauge(combined_records_total, record_count, environment=environment)
    set_gauge(unmatched_accounts, unmatched, environment=environment)
    for join, count in ambiguities.items():
        set_gauge(reconciliation_ambiguities, count, environment=environment, join=join)
