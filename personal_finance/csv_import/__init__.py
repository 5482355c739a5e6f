"""
CSV import of transactions, the counterpart of the export.

Parsing and column detection are pure; the service resolves conti and
categories and writes to the store.
"""

from personal_finance.csv_import.options import ImportOptions
from personal_finance.csv_import.parser import CSVParseResult, detect_column_mapping, parse_csv_content
from personal_finance.csv_import.service import ImportResult, ImportService

__all__ = [
    "ImportOptions",
    "ImportService",
    "ImportResult",
    "CSVParseResult",
    "detect_column_mapping",
    "parse_csv_content",
]
