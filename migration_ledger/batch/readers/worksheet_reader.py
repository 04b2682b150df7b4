"""
Worksheet reader - turns the first worksheet of an .xlsx workbook into rows of cell strings.
"""

from datetime import date, datetime, time
from pathlib import Path
from typing import IO, Any
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from migration_ledger.core.errors import NoWorksheetError, WorkbookReadError
from migration_ledger.core.models import NOT_AVAILABLE
from migration_ledger.observability.logger import get_logger

logger = get_logger(__name__)


def cell_text(value: Any) -> str:
    """
    Render a cell value as text; empty cells become N/A.

    Whole floats lose their ".0", dates render as ISO dates and datetimes at
    midnight render as dates.
    """
    if value is None:
        return NOT_AVAILABLE
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text if text else NOT_AVAILABLE


class WorksheetReader:
    """
    Reads the first worksheet of a workbook.

    openpyxl resolves shared strings and, in data-only mode, returns cached
    formula results instead of formulas.
    """

    def __init__(self, read_only: bool = True):
        self.read_only = read_only

    def open(self, source: str | Path | IO[bytes]) -> Workbook:
        """
        Open a workbook.

        Raises:
            WorkbookReadError: If the file is missing or not a valid workbook
        """
        name = str(source) if isinstance(source, (str, Path)) else getattr(source, "name", "workbook")
        try:
            return load_workbook(source, read_only=self.read_only, data_only=True)
        except (InvalidFileException, BadZipFile, OSError, KeyError, ValueError) as e:
            raise WorkbookReadError(name, str(e) or type(e).__name__) from e

    def rows_from_workbook(self, workbook: Workbook) -> list[list[str]]:
        """
        Rows of the first worksheet, padded to the widest row.

        Raises:
            NoWorksheetError: If the workbook has no worksheets
        """
        if not workbook.worksheets:
            raise NoWorksheetError()

        sheet = workbook.worksheets[0]
        rows = [[cell_text(value) for value in row] for row in sheet.iter_rows(values_only=True)]

        width = max((len(row) for row in rows), default=0)
        for row in rows:
            if len(row) < width:
                row.extend([NOT_AVAILABLE] * (width - len(row)))

        logger.debug(
            "Read worksheet",
            extra={"sheet": sheet.title, "rows": len(rows), "columns": width},
        )
        return rows

    def read_rows(self, source: str | Path | IO[bytes]) -> list[list[str]]:
        """
        Read all rows of the first worksheet of a workbook file.

        Args:
            source: Path or binary file object of an .xlsx workbook

        Returns:
            Rows of cell strings; empty cells are N/A

        Raises:
            WorkbookReadError: If the file cannot be opened
            NoWorksheetError: If the workbook has no worksheets
        """
        workbook = self.open(source)
        try:
            return self.rows_from_workbook(workbook)
        finally:
            workbook.close()
