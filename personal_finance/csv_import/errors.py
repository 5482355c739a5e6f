"""
Exceptions raised by the CSV import.
"""

from pathlib import Path
from typing import Optional

from personal_finance.export.options import CSVField


class CSVImportError(Exception):
    """Base class for import failures."""

    pass


class ImportReadError(CSVImportError):
    """Raised when the CSV file cannot be read or decoded."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class ImportMappingError(CSVImportError, ValueError):
    """Raised when required columns are unassigned or a column does not exist."""

    pass


class ImportStoreError(CSVImportError):
    """Raised when the ledger store cannot be read or written."""

    pass


class ImportRowError(CSVImportError):
    """
    A single row that cannot be imported.

    Collected in the import result; never aborts the import.
    """

    def __init__(self, message: str, field: Optional[CSVField] = None, raw_value: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field
        self.raw_value = raw_value
