"""
Outcome models of a single import run (ephemeral, not persisted).
"""

from pydantic import BaseModel, Field

from .data_kind import DataKind
from .records import SourceRecord


class RowFailure(BaseModel):
    """
    A data row that failed validation.

    Attributes:
        row_number: 1-based worksheet row number
        reasons: Human-readable reasons, in rule order
    """

    row_number: int = Field(..., ge=1)
    reasons: list[str] = Field(..., min_length=1)

    @property
    def message(self) -> str:
        return f"Row {self.row_number}: {', '.join(self.reasons)}"


class DuplicateRow(BaseModel):
    """A valid row whose natural key was already seen earlier in the same import."""

    row_number: int = Field(..., ge=1)
    key: tuple[str, ...]
    message: str


class ImportResult(BaseModel):
    """
    Partition of an import's data rows.

    valid_count + len(invalid_rows) + len(duplicate_rows) + blank_rows == total_rows

    Attributes:
        kind: Imported data kind
        batch_id: Identifier stamped on every appended record
        total_rows: Data rows after the header row
        records: Accepted records in worksheet order
        committed: False for dry runs
    """

    kind: DataKind
    batch_id: str
    total_rows: int = Field(..., ge=0)
    records: list[SourceRecord] = Field(default_factory=list)
    invalid_rows: list[RowFailure] = Field(default_factory=list)
    duplicate_rows: list[DuplicateRow] = Field(default_factory=list)
    blank_rows: int = Field(0, ge=0)
    warnings: list[str] = Field(default_factory=list)
    committed: bool = False

    @property
    def valid_count(self) -> int:
        return len(self.records)

    @property
    def is_balanced(self) -> bool:
        return (
            self.valid_count + len(self.invalid_rows) + len(self.duplicate_rows) + self.blank_rows
            == self.total_rows
        )

    def summary(self) -> dict:
        return {
            "kind": self.kind.value,
            "batch_id": self.batch_id,
            "total_rows": self.total_rows,
            "valid": self.valid_count,
            "invalid": len(self.invalid_rows),
            "duplicates": len(self.duplicate_rows),
            "blank": self.blank_rows,
            "committed": self.committed,
        }
