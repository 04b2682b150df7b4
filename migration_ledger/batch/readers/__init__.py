"""
Spreadsheet readers for import workbooks.
"""

from .worksheet_reader import WorksheetReader, cell_text

__all__ = ["WorksheetReader", "cell_text"]
