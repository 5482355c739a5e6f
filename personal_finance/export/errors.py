"""
Exceptions raised by the export pipeline.
"""

from pathlib import Path
from typing import Optional


class ExportError(Exception):
    """Base class for export failures."""

    pass


class TransactionFetchError(ExportError):
    """Raised when the transaction store cannot be queried."""

    pass


class ExportWriteError(ExportError):
    """
    Raised when the CSV file cannot be written.

    The message is meant to be shown to the user as is.
    """

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class InvalidExportOptions(ExportError, ValueError):
    """Raised for unknown fields, date formats or conti in user input."""

    pass
