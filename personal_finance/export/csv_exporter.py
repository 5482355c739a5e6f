"""
CSV Exporter for transaction data.

Turns filtered transactions into CSV text and writes it to the export
directory.

CSV Format:
- UTF-8 (configurable)
- Comma separator (configurable per export)
- Dot as decimal separator, two decimals, signed amounts
- Date format: any CSVDateFormat pattern
- LF line terminator
"""

import contextlib
import csv
import io
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from personal_finance.core.config import settings
from personal_finance.core.currency import format_amount
from personal_finance.core.logging import get_logger
from personal_finance.core.time import format_filename_timestamp, format_pattern
from personal_finance.export.errors import ExportWriteError
from personal_finance.export.options import CSVDateFormat, CSVField, ExportOptions
from personal_finance.export.snapshot import TransactionSnapshot

logger = get_logger(__name__)

LINE_TERMINATOR = "\n"

# Rows are rendered with CRLF so that csv quotes both CR and LF inside values,
# then re-terminated with LINE_TERMINATOR.
_QUOTING_TERMINATOR = "\r\n"


class TransactionCSVExporter:
    """
    Serializes transaction snapshots as CSV and writes export files.

    ``serialize`` is a pure transform; only ``write`` touches the disk.
    """

    def __init__(
        self,
        output_dir: Optional[Path] = None,
        encoding: Optional[str] = None,
        locale: Optional[str] = None,
    ):
        """
        Initialize CSV exporter.

        Args:
            output_dir: Directory where CSV files will be saved
                (defaults to EXPORT_DIR, then the system temp directory)
            encoding: File encoding (defaults to EXPORT_ENCODING)
            locale: Locale for month and weekday names in dates
        """
        if output_dir is None:
            output_dir = settings.export_dir or tempfile.gettempdir()
        self.output_dir = Path(output_dir)
        self.encoding = encoding or settings.export_encoding
        self.locale = locale or settings.locale

    def _format_decimal(self, value: Any) -> str:
        """
        Format a monetary value as fixed-point text.

        Args:
            value: Numeric value to format

        Returns:
            Text such as ``-20.00``
        """
        return format_amount(value)

    def _format_date(self, date: Optional[datetime], date_format: CSVDateFormat) -> str:
        """
        Format a date with the selected pattern.

        Args:
            date: Datetime to format
            date_format: Pattern to apply

        Returns:
            Formatted date string
        """
        if date is None:
            return ""
        return format_pattern(date, date_format.pattern, locale=self.locale)

    def _export_value(
        self,
        field: CSVField,
        transaction: TransactionSnapshot,
        options: ExportOptions,
    ) -> str:
        """Cell value of ``field`` for ``transaction``."""
        if field is CSVField.TRANSACTION_TYPE:
            return transaction.type.display_name if transaction.type else ""
        if field is CSVField.AMOUNT:
            return self._format_decimal(transaction.signed_amount)
        if field in (CSVField.SOURCE_CURRENCY, CSVField.TARGET_CURRENCY):
            return transaction.currency
        if field is CSVField.EXCHANGE_RATE:
            return "1"
        if field is CSVField.SOURCE_ACCOUNT:
            return transaction.from_conto_name or ""
        if field is CSVField.TARGET_ACCOUNT:
            return transaction.to_conto_name or ""
        if field is CSVField.CATEGORY:
            return transaction.category_name or ""
        if field is CSVField.PAYEE:
            return ""
        if field is CSVField.DATE:
            return self._format_date(transaction.date, options.date_format)
        if field is CSVField.NOTES:
            return transaction.notes or ""
        if field is CSVField.DESCRIPTION:
            return transaction.description or ""

        raise ValueError(f"Unhandled CSV field: {field!r}")

    def header_row(self, options: ExportOptions) -> list[str]:
        """Header labels in column order."""
        return [field.label for field in options.ordered_fields]

    def rows(
        self,
        transactions: Iterable[TransactionSnapshot],
        options: ExportOptions,
    ) -> list[list[str]]:
        """Data rows in column order, one per transaction."""
        fields = options.ordered_fields
        return [
            [self._export_value(field, transaction, options) for field in fields]
            for transaction in transactions
        ]

    def serialize(
        self,
        transactions: Iterable[TransactionSnapshot],
        options: ExportOptions,
    ) -> str:
        """
        Render already filtered transactions as CSV text.

        Values containing the delimiter, a quote or a line break are quoted
        and inner quotes doubled. The same input always yields the same text.

        Args:
            transactions: Transactions in output order
            options: Export options (fields, header, date format, delimiter)

        Returns:
            CSV content
        """
        row_buffer = io.StringIO()
        writer = csv.writer(
            row_buffer,
            delimiter=options.delimiter,
            quoting=csv.QUOTE_MINIMAL,
            lineterminator=_QUOTING_TERMINATOR,
        )
        output = io.StringIO()

        def write_row(row: list[str]) -> None:
            row_buffer.seek(0)
            row_buffer.truncate()
            writer.writerow(row)
            output.write(row_buffer.getvalue()[: -len(_QUOTING_TERMINATOR)])
            output.write(LINE_TERMINATOR)

        if options.include_header:
            write_row(self.header_row(options))
        for row in self.rows(transactions, options):
            write_row(row)

        return output.getvalue()

    @staticmethod
    def generate_filename(
        account_name: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> str:
        """
        File name for an export.

        Args:
            account_name: Name of the exported account; spaces become hyphens
            timestamp: Export time (defaults to now)

        Returns:
            Name such as ``Conto-Principale-2024-01-05T14-30-00.csv``
        """
        name = account_name.strip().replace(" ", "-") if account_name and account_name.strip() else "Export"
        return f"{name}-{format_filename_timestamp(timestamp)}.csv"

    def write(self, content: str, filename: str) -> Path:
        """
        Write CSV content to the export directory.

        The file is written next to its final name first and then moved into
        place, so a failed write never leaves a truncated export behind.

        Args:
            content: CSV text
            filename: Target file name

        Returns:
            Path to created CSV file

        Raises:
            ExportWriteError: If the directory or file cannot be written
        """
        filepath = self.output_dir / filename
        partial_path = filepath.with_name(filepath.name + ".part")

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            with open(partial_path, "w", encoding=self.encoding, newline="") as f:
                f.write(content)
            os.replace(partial_path, filepath)
        except (OSError, UnicodeError) as e:
            with contextlib.suppress(OSError):
                partial_path.unlink(missing_ok=True)
            logger.error(f"CSV export failed: {filepath} ({e})")
            raise ExportWriteError(
                f"Errore durante l'esportazione: {e}", path=filepath
            ) from e

        logger.info(f"CSV exported: {filepath} ({content.count(LINE_TERMINATOR)} lines)")
        return filepath
