"""
Unit tests for the export service against a SQLite store.
"""

import asyncio
import logging
from datetime import date, datetime
from decimal import Decimal

import pytest

from personal_finance.db.session import get_engine, make_session_factory
from personal_finance.db.models import TransactionType
from personal_finance.export.csv_exporter import TransactionCSVExporter
from personal_finance.export.errors import ExportWriteError, TransactionFetchError
from personal_finance.export.options import CSVDateFormat, CSVField, ExportOptions
from personal_finance.export.service import ExportService


@pytest.fixture
def service(session_factory, tmp_path) -> ExportService:
    return ExportService(session_factory, TransactionCSVExporter(tmp_path / "exports"))


@pytest.fixture
def january_conto_a(ledger) -> ExportOptions:
    return ExportOptions(
        date_from=date(2024, 1, 1),
        date_to=date(2024, 1, 31),
        conto_ids={ledger["conto_a"]},
        include_fields={CSVField.DATE, CSVField.AMOUNT},
        date_format=CSVDateFormat.ISO8601_DATE_ONLY,
    )


class TestFetch:
    """Store access."""

    def test_fetch_resolves_names(self, service, ledger):
        transactions = service.fetch_transactions(ExportOptions())

        assert [tx.date for tx in transactions] == [
            datetime(2024, 2, 1, 8, 0),
            datetime(2024, 1, 10, 12, 0),
            datetime(2024, 1, 5, 9, 30),
            datetime(2023, 12, 31, 18, 0),
        ]

        transfer = transactions[0]
        assert transfer.type is TransactionType.TRANSFER
        assert transfer.from_conto_name == "Conto A"
        assert transfer.to_conto_name == "Conto B"
        assert transfer.currency == "EUR"

        expense = transactions[2]
        assert expense.amount == Decimal("20.00")
        assert expense.signed_amount == Decimal("-20.00")
        assert expense.category_name == "Spesa"

    def test_fetch_applies_date_bounds_only(self, service, ledger):
        options = ExportOptions(date_from=date(2024, 1, 1), date_to=date(2024, 1, 31), conto_ids={ledger["conto_a"]})

        assert len(service.fetch_transactions(options)) == 2
        assert service.count(options) == 1

    def test_fetch_error_is_raised(self, tmp_path, caplog):
        # Database without tables
        engine = get_engine(f"sqlite:///{tmp_path / 'empty.db'}", echo=False)
        service = ExportService(make_session_factory(engine), TransactionCSVExporter(tmp_path))

        with caplog.at_level(logging.ERROR, logger="audit"):
            with pytest.raises(TransactionFetchError) as exc_info:
                service.fetch_transactions(ExportOptions())

        assert "Impossibile leggere le transazioni" in str(exc_info.value)
        assert any(getattr(record, "event", None) == "fetch_failed" for record in caplog.records)
        engine.dispose()


class TestExport:
    """Full export runs."""

    def test_build_csv(self, service, january_conto_a):
        content, rows = service.build_csv(january_conto_a)

        assert content == "Data,Importo\n2024-01-05,-20.00\n"
        assert rows == 1

    def test_count_all_conti(self, service, ledger):
        options = ExportOptions(date_from=date(2024, 1, 1), date_to=date(2024, 1, 31))
        assert service.count(options) == 2

    def test_export_writes_file(self, service, january_conto_a, tmp_path, caplog):
        with caplog.at_level(logging.INFO, logger="audit"):
            result = service.export(
                january_conto_a,
                account_name="Conto Principale",
                timestamp=datetime(2024, 2, 2, 10, 0, 0),
            )

        assert result.filename == "Conto-Principale-2024-02-02T10-00-00.csv"
        assert result.path == tmp_path / "exports" / result.filename
        assert result.row_count == 1
        assert result.path.read_text(encoding="utf-8") == "Data,Importo\n2024-01-05,-20.00\n"

        completed = [r for r in caplog.records if getattr(r, "event", None) == "export_completed"]
        assert len(completed) == 1
        assert completed[0].row_count == 1
        assert completed[0].fields == ["Data", "Importo"]

    def test_export_without_matches_writes_header(self, service, ledger):
        options = ExportOptions(
            date_from=date(2030, 1, 1),
            include_fields={CSVField.DATE, CSVField.AMOUNT},
        )

        result = service.export(options, timestamp=datetime(2030, 1, 2))

        assert result.row_count == 0
        assert result.filename.startswith("Export-")
        assert result.path.read_text(encoding="utf-8") == "Data,Importo\n"

    def test_export_write_error(self, session_factory, ledger, tmp_path, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        service = ExportService(session_factory, TransactionCSVExporter(blocker))

        with caplog.at_level(logging.ERROR, logger="audit"):
            with pytest.raises(ExportWriteError):
                service.export(ExportOptions())

        assert any(getattr(record, "event", None) == "export_failed" for record in caplog.records)

    def test_export_async(self, service, january_conto_a):
        result = asyncio.run(service.export_async(january_conto_a, account_name="Personale"))

        assert result.row_count == 1
        assert result.path.exists()
        assert result.filename.startswith("Personale-")
