"""
Exception hierarchy for migration-ledger.

Structural and data-type-mismatch errors abort an import as a whole. Per-row
problems are reported as data (RowFailure, DuplicateRow), never raised.
"""


class MigrationLedgerError(Exception):
    """Base class for all errors raised by migration-ledger."""


class StructuralImportError(MigrationLedgerError):
    """The workbook cannot be imported at all; nothing is committed."""


class NoWorksheetError(StructuralImportError):
    """Raised when a workbook contains zero worksheets."""

    def __init__(self, source: str = "workbook"):
        self.source = source
        super().__init__(f"No worksheet found in {source}")


class WorkbookReadError(StructuralImportError):
    """Raised when a file cannot be opened as a spreadsheet."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Unable to read workbook {source}: {reason}")


class MissingMarkerError(StructuralImportError):
    """Raised when no 'start data below' marker row exists."""

    def __init__(self):
        super().__init__("Could not find 'start data below' marker row")


class MissingHeaderError(StructuralImportError):
    """Raised when no header row with the kind's key column follows the marker."""

    def __init__(self, kind: str, key_column: str):
        self.kind = kind
        self.key_column = key_column
        super().__init__(
            f"Could not find header row containing '{key_column}' column for {kind} data"
        )


class DataTypeMismatchError(MigrationLedgerError):
    """
    Raised when the sheet looks like a different data kind than requested.

    Warning-class error: the import is aborted but callers can tell it apart
    from structural failures.

    Attributes:
        requested: Kind the caller asked to import
        detected: Kind inferred from the header row
    """

    def __init__(self, requested: str, detected: str):
        self.requested = requested
        self.detected = detected
        super().__init__(
            f"This file appears to contain {detected} data, but {requested} data was selected"
        )


class ImportCancelledError(MigrationLedgerError):
    """Raised when an import is cancelled through its CancellationToken."""

    def __init__(self, rows_processed: int = 0):
        self.rows_processed = rows_processed
        super().__init__(f"Import cancelled after {rows_processed} rows")


class InvalidQueryError(MigrationLedgerError):
    """Raised for unknown query fields or operators not allowed for a field type."""


class RecordNotFoundError(MigrationLedgerError):
    """Raised when a point update targets a combined record that does not exist."""

    def __init__(self, identity_group: str, account_id: str):
        self.identity_group = identity_group
        self.account_id = account_id
        super().__init__(
            f"No combined record for identity group '{identity_group}' and account '{account_id}'"
        )


class UnknownEnvironmentError(MigrationLedgerError):
    """Raised when an environment name is not one of the configured environments."""

    def __init__(self, name: str, known: list[str]):
        self.name = name
        super().__init__(f"Unknown environment '{name}'. Expected one of: {', '.join(known)}")
