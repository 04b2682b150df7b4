"""
Within-import deduplication on natural keys.
"""

from migration_ledger.core.models import DataKind, DuplicateRow, SourceRecord
from migration_ledger.observability.logger import get_logger

logger = get_logger(__name__)


class Deduplicator:
    """
    Tracks the natural keys accepted so far in one import.

    The first record with a key is kept; later records with the same key are
    reported as DuplicateRow and never merged.
    """

    def __init__(self, kind: DataKind):
        self.kind = kind
        self._seen: dict[tuple[str, ...], int] = {}

    def __len__(self) -> int:
        return len(self._seen)

    def check(self, record: SourceRecord, row_number: int) -> DuplicateRow | None:
        """
        Register a record's key.

        Args:
            record: A record that passed validation
            row_number: 1-based worksheet row of the record

        Returns:
            None when the key is new, otherwise the DuplicateRow to report
        """
        key = record.natural_key
        first_row = self._seen.get(key)
        if first_row is None:
            self._seen[key] = row_number
            return None

        described = " and ".join(
            f"{field.display_name} '{value}'" for field, value in zip(record.key_fields, key)
        )
        message = f"Row {row_number}: Duplicate {described} (first seen in row {first_row})"
        logger.debug(message, extra={"kind": self.kind.value})
        return DuplicateRow(row_number=row_number, key=key, message=message)

    def reset(self) -> None:
        self._seen.clear()
