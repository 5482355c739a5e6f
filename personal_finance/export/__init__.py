"""
CSV export functionality for ledger transactions.

Filtering and serialization are pure; the service adds store access and
file writing.
"""

from personal_finance.export.csv_exporter import TransactionCSVExporter
from personal_finance.export.filtering import count_matching, filter_transactions
from personal_finance.export.options import CSVDateFormat, CSVField, CSVFieldSection, ExportOptions
from personal_finance.export.snapshot import TransactionSnapshot

__all__ = [
    "TransactionCSVExporter",
    "TransactionSnapshot",
    "ExportOptions",
    "CSVField",
    "CSVFieldSection",
    "CSVDateFormat",
    "filter_transactions",
    "count_matching",
]
