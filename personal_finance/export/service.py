"""
Export orchestration: fetch from the store, filter, serialize, write.
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from personal_finance.core.logging import audit_logger, get_logger
from personal_finance.db import repository
from personal_finance.export.csv_exporter import TransactionCSVExporter
from personal_finance.export.errors import ExportWriteError, TransactionFetchError
from personal_finance.export.filtering import filter_transactions
from personal_finance.export.options import ExportOptions
from personal_finance.export.snapshot import TransactionSnapshot

logger = get_logger(__name__)


class ExportResult(BaseModel):
    """Outcome of a completed export."""

    model_config = ConfigDict(frozen=True)

    path: Path
    filename: str
    row_count: int


class ExportService:
    """
    Runs exports against the ledger store.

    One call handles one export; the service keeps no state between calls.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        exporter: Optional[TransactionCSVExporter] = None,
    ) -> None:
        self.session_factory = session_factory
        self.exporter = exporter or TransactionCSVExporter()

    def fetch_transactions(self, options: ExportOptions) -> list[TransactionSnapshot]:
        """
        Load the transactions inside the date bounds, newest first.

        Raises:
            TransactionFetchError: If the store query fails
        """
        try:
            with self.session_factory() as session:
                rows = repository.transactions_in_range(
                    session, options.date_from, options.date_to
                )
                return [TransactionSnapshot.from_model(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error fetching transactions: {e}")
            audit_logger.log_fetch_failed(
                e,
                date_from=str(options.date_from),
                date_to=str(options.date_to),
            )
            raise TransactionFetchError(f"Impossibile leggere le transazioni: {e}") from e

    def select_transactions(self, options: ExportOptions) -> list[TransactionSnapshot]:
        """Fetched transactions after the account filter, in export order."""
        return filter_transactions(self.fetch_transactions(options), options)

    def count(self, options: ExportOptions) -> int:
        """Live count of transactions matching ``options``."""
        return len(self.select_transactions(options))

    def build_csv(self, options: ExportOptions) -> tuple[str, int]:
        """
        CSV content for ``options``.

        Returns:
            Tuple of (content, number of data rows)
        """
        transactions = self.select_transactions(options)
        return self.exporter.serialize(transactions, options), len(transactions)

    def export(
        self,
        options: ExportOptions,
        account_name: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> ExportResult:
        """
        Build the CSV and write it to the export directory.

        Args:
            options: Export options
            account_name: Used in the file name
            timestamp: Used in the file name (defaults to now)

        Returns:
            Export result with the file path

        Raises:
            TransactionFetchError: If the store query fails
            ExportWriteError: If the file cannot be written
        """
        content, row_count = self.build_csv(options)
        filename = self.exporter.generate_filename(account_name, timestamp)

        try:
            path = self.exporter.write(content, filename)
        except ExportWriteError as e:
            audit_logger.log_export_failed(filename, e)
            raise

        audit_logger.log_export_completed(
            filename,
            row_count,
            [field.label for field in options.ordered_fields],
            conti=len(options.conto_ids),
            include_header=options.include_header,
            date_format=options.date_format.pattern,
        )
        return ExportResult(path=path, filename=filename, row_count=row_count)

    async def export_async(
        self,
        options: ExportOptions,
        account_name: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> ExportResult:
        """Run ``export`` in a worker thread so the event loop stays responsive."""
        return await asyncio.to_thread(self.export, options, account_name, timestamp)
