"""
Import progress publication and cancellation.

The pipeline pushes immutable ProgressEvent messages to subscribers; pollers
read a consistent snapshot. Both are safe to use from other threads.
"""

import threading
from collections.abc import Callable
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from migration_ledger.core.errors import ImportCancelledError
from migration_ledger.core.models import DataKind, DuplicateRow, RowFailure, SourceRecord
from migration_ledger.observability.logger import get_logger

logger = get_logger(__name__)

# Phase boundaries of an import, as fractions of the whole run
INITIALIZE = 0.05
LOAD_START = 0.10
LOAD_READ = 0.40
LOAD_DONE = 0.50
ANALYZE_START = 0.60
ANALYZE_DONE = 0.65
ROWS_START = 0.72
ROWS_SPAN = 0.18
FINALIZE = 0.90
SAVING = 0.95
COMPLETE = 1.0


class ProgressEvent(BaseModel):
    """
    One immutable progress message.

    Attributes:
        kind: Kind being imported (None after reset)
        operation: Human-readable phase description
        progress: Fraction in [0, 1], non-decreasing within an import
        is_processing: False once the import finished, failed or was reset
    """

    model_config = ConfigDict(frozen=True)

    kind: DataKind | None
    operation: str
    progress: float = Field(..., ge=0.0, le=1.0)
    is_processing: bool
    rows_processed: int = 0
    total_rows: int = 0
    emitted_at: datetime = Field(default_factory=datetime.now)


class ProgressSnapshot(BaseModel):
    """Consistent copy of the reporter's state for pollers."""

    model_config = ConfigDict(frozen=True)

    is_processing: bool
    current_operation: str
    progress_value: float
    selected_kind: DataKind | None
    valid_counts: dict[DataKind, int]
    invalid_counts: dict[DataKind, int]
    duplicate_counts: dict[DataKind, int]


class CancellationToken:
    """Cooperative cancellation flag checked by the pipeline between row batches."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, rows_processed: int = 0) -> None:
        if self._event.is_set():
            raise ImportCancelledError(rows_processed)


Subscriber = Callable[[ProgressEvent], None]


class ImportProgressReporter:
    """
    Import-scoped progress state plus per-kind result buckets.

    Progress never decreases within one import and is clamped to [0, 1].
    Subscriber callbacks run on the importing thread; an exception raised by
    a subscriber is logged and does not abort the import.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []
        self._is_processing = False
        self._operation = ""
        self._progress = 0.0
        self._selected_kind: DataKind | None = None
        self._valid: dict[DataKind, list[SourceRecord]] = {}
        self._invalid: dict[DataKind, list[RowFailure]] = {}
        self._duplicates: dict[DataKind, list[DuplicateRow]] = {}

    # Subscription

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for progress events.

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, event: ProgressEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("Progress subscriber failed", extra={"operation": event.operation})

    # State transitions

    def start(self, kind: DataKind) -> None:
        """Begin an import: clear the kind's buckets and reset progress."""
        with self._lock:
            self._is_processing = True
            self._selected_kind = kind
            self._progress = 0.0
            self._operation = "Initializing import..."
            self._valid[kind] = []
            self._invalid[kind] = []
            self._duplicates[kind] = []
            event = self._event_locked()
        self._publish(event)

    def update(
        self,
        operation: str,
        progress: float,
        rows_processed: int = 0,
        total_rows: int = 0,
    ) -> ProgressEvent:
        """
        Publish a phase update. Lower progress values than the current one are ignored.
        """
        with self._lock:
            self._operation = operation
            self._progress = max(self._progress, min(1.0, max(0.0, progress)))
            event = self._event_locked(rows_processed, total_rows)
        self._publish(event)
        return event

    def record_outcome(
        self,
        kind: DataKind,
        valid: list[SourceRecord],
        invalid: list[RowFailure],
        duplicates: list[DuplicateRow],
    ) -> None:
        with self._lock:
            self._valid[kind] = list(valid)
            self._invalid[kind] = list(invalid)
            self._duplicates[kind] = list(duplicates)

    def finish(self, operation: str = "Import complete!") -> None:
        with self._lock:
            self._operation = operation
            self._progress = 1.0
            self._is_processing = False
            event = self._event_locked()
        self._publish(event)

    def fail(self, message: str) -> None:
        """End the import without completing it; progress stays where it was."""
        with self._lock:
            self._operation = message
            self._is_processing = False
            event = self._event_locked()
        self._publish(event)

    def reset(self) -> None:
        """Clear all buckets and stop processing."""
        with self._lock:
            self._is_processing = False
            self._operation = ""
            self._progress = 0.0
            self._selected_kind = None
            self._valid.clear()
            self._invalid.clear()
            self._duplicates.clear()
            event = self._event_locked()
        self._publish(event)

    def _event_locked(self, rows_processed: int = 0, total_rows: int = 0) -> ProgressEvent:
        return ProgressEvent(
            kind=self._selected_kind,
            operation=self._operation,
            progress=self._progress,
            is_processing=self._is_processing,
            rows_processed=rows_processed,
            total_rows=total_rows,
        )

    # Read access

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._is_processing

    @property
    def current_operation(self) -> str:
        with self._lock:
            return self._operation

    @property
    def progress_value(self) -> float:
        with self._lock:
            return self._progress

    @property
    def selected_kind(self) -> DataKind | None:
        with self._lock:
            return self._selected_kind

    def valid_records(self, kind: DataKind) -> list[SourceRecord]:
        with self._lock:
            return list(self._valid.get(kind, []))

    def invalid_rows(self, kind: DataKind) -> list[RowFailure]:
        with self._lock:
            return list(self._invalid.get(kind, []))

    def duplicate_rows(self, kind: DataKind) -> list[DuplicateRow]:
        with self._lock:
            return list(self._duplicates.get(kind, []))

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return ProgressSnapshot(
                is_processing=self._is_processing,
                current_operation=self._operation,
                progress_value=self._progress,
                selected_kind=self._selected_kind,
                valid_counts={k: len(v) for k, v in self._valid.items()},
                invalid_counts={k: len(v) for k, v in self._invalid.items()},
                duplicate_counts={k: len(v) for k, v in self._duplicates.items()},
            )
