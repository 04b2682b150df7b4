"""
Header resolution: locate the data-start marker and header row, map header
cells to canonical fields and infer which data kind a sheet holds.
"""

from collections.abc import Sequence

from pydantic import BaseModel, Field

from migration_ledger.core.errors import (
    DataTypeMismatchError,
    MissingHeaderError,
    MissingMarkerError,
)
from migration_ledger.core.models import NOT_AVAILABLE, CanonicalField, DataKind, is_absent
from migration_ledger.observability.logger import get_logger

from .synonyms import KEY_FIELDS, LOOKUP, SIGNATURES, SYNONYMS, normalize_header

logger = get_logger(__name__)

MARKERS = ("=startdatabelow=", "===startdatabelow===", "start data below")
_COMPACT_MARKERS = tuple("".join(marker.split()) for marker in MARKERS)


class ColumnMap(BaseModel):
    """
    Where each column lives in the worksheet.

    Attributes:
        header_index: 0-based index of the header row
        fields: Canonical field -> 0-based column index
        extra_columns: Unknown header text -> 0-based column index
    """

    header_index: int = Field(..., ge=0)
    fields: dict[CanonicalField, int] = Field(default_factory=dict)
    extra_columns: dict[str, int] = Field(default_factory=dict)

    @property
    def header_row_number(self) -> int:
        """1-based worksheet row number of the header."""
        return self.header_index + 1

    def value(self, row: Sequence[str], field: CanonicalField) -> str:
        """Cell for a field, or N/A when the column is absent or out of range."""
        index = self.fields.get(field)
        if index is None or index >= len(row):
            return NOT_AVAILABLE
        return row[index]

    def raw_fields(self, row: Sequence[str]) -> dict[CanonicalField, str]:
        return {field: self.value(row, field) for field in self.fields}

    def extra_values(self, row: Sequence[str]) -> dict[str, str]:
        return {
            name: row[index]
            for name, index in self.extra_columns.items()
            if index < len(row) and not is_absent(row[index])
        }


def is_marker_row(row: Sequence[str]) -> bool:
    text = " ".join(cell for cell in row if not is_absent(cell)).lower()
    compact = "".join(text.split())
    return any(marker in text for marker in MARKERS) or any(
        marker in compact for marker in _COMPACT_MARKERS
    )


def find_marker(rows: Sequence[Sequence[str]]) -> int:
    """
    Index of the first marker row.

    Raises:
        MissingMarkerError: If no row carries the marker
    """
    for index, row in enumerate(rows):
        if is_marker_row(row):
            return index
    raise MissingMarkerError()


def recognized_fields(kind: DataKind, row: Sequence[str]) -> set[CanonicalField]:
    table = LOOKUP[kind]
    found = set()
    for cell in row:
        if is_absent(cell):
            continue
        field = table.get(normalize_header(cell))
        if field is not None:
            found.add(field)
    return found


def infer_kind(row: Sequence[str], preferred: DataKind | None = None) -> DataKind | None:
    """
    Infer the data kind of a header row from its signature columns.

    Every kind whose signature matches is scored by how many of the row's cells
    its synonym table recognizes. The best score wins; on a tie the preferred
    kind wins if it is among the best, otherwise the row is ambiguous.

    Returns:
        The inferred kind, or None when no signature matches or the row is ambiguous
    """
    recognized = {kind: recognized_fields(kind, row) for kind in SIGNATURES}
    present = set().union(*recognized.values())

    scores: dict[DataKind, int] = {}
    for kind, signature in SIGNATURES.items():
        fields = recognized[kind]
        if signature.matches(fields, present):
            scores[kind] = len(fields)
    if not scores:
        return None
    best = max(scores.values())
    leaders = [kind for kind, score in scores.items() if score == best]
    if preferred in leaders:
        return preferred
    if len(leaders) == 1:
        return leaders[0]
    return None


class HeaderResolver:
    """
    Resolves the column layout of a worksheet for one data kind.

    Usage:
        column_map = HeaderResolver(DataKind.HR).resolve(rows)
    """

    def __init__(self, kind: DataKind, check_kind: bool = True):
        """
        Args:
            kind: Data kind the caller wants to import
            check_kind: Raise DataTypeMismatchError when the sheet looks like another kind
        """
        if kind not in SYNONYMS:
            raise ValueError(f"{kind.value} data cannot be imported from a spreadsheet")
        self.kind = kind
        self.check_kind = check_kind
        self.key_field = KEY_FIELDS[kind]

    def find_header(self, rows: Sequence[Sequence[str]], marker_index: int) -> int:
        """
        Index of the first row after the marker that contains the key column.

        Raises:
            DataTypeMismatchError: If no such row exists but another kind's header does
            MissingHeaderError: If no header row can be found at all
        """
        for index in range(marker_index + 1, len(rows)):
            if self.key_field in recognized_fields(self.kind, rows[index]):
                return index

        if self.check_kind:
            for index in range(marker_index + 1, len(rows)):
                detected = infer_kind(rows[index])
                if detected is not None and detected is not self.kind:
                    raise DataTypeMismatchError(self.kind.label, detected.label)

        raise MissingHeaderError(self.kind.label, self.key_field.display_name)

    def map_columns(self, header: Sequence[str], header_index: int) -> ColumnMap:
        """Map every header cell to a canonical field or pass it through as extra."""
        table = LOOKUP[self.kind]
        column_map = ColumnMap(header_index=header_index)
        for position, cell in enumerate(header):
            if is_absent(cell):
                continue
            field = table.get(normalize_header(cell))
            if field is None:
                column_map.extra_columns.setdefault(cell.strip(), position)
            elif field in column_map.fields:
                logger.warning(
                    f"Column '{cell.strip()}' duplicates {field.display_name}; keeping the first",
                    extra={"kind": self.kind.value, "column": position},
                )
            else:
                column_map.fields[field] = position
        return column_map

    def resolve(self, rows: Sequence[Sequence[str]]) -> ColumnMap:
        """
        Locate marker and header rows and build the column map.

        Raises:
            MissingMarkerError: If no marker row exists
            MissingHeaderError: If no header row follows the marker
            DataTypeMismatchError: If the header belongs to another data kind
        """
        marker_index = find_marker(rows)
        header_index = self.find_header(rows, marker_index)
        header = rows[header_index]

        if self.check_kind:
            detected = infer_kind(header, preferred=self.kind)
            if detected is not None and detected is not self.kind:
                raise DataTypeMismatchError(self.kind.label, detected.label)

        column_map = self.map_columns(header, header_index)
        logger.debug(
            "Resolved header row",
            extra={
                "kind": self.kind.value,
                "marker_row": marker_index + 1,
                "header_row": column_map.header_row_number,
                "mapped": sorted(f.value for f in column_map.fields),
                "extra_columns": sorted(column_map.extra_columns),
            },
        )
        return column_map
