"""
Unit tests for CSV export functionality.

Tests the TransactionCSVExporter with snapshot data to ensure correct CSV generation.
"""

import csv
import io
import tempfile
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest

from personal_finance.db.models import TransactionType
from personal_finance.export.csv_exporter import TransactionCSVExporter
from personal_finance.export.errors import ExportWriteError
from personal_finance.export.filtering import filter_transactions
from personal_finance.export.options import CSVDateFormat, CSVField, ExportOptions
from personal_finance.export.snapshot import TransactionSnapshot


class TestCSVExporter:
    """Test suite for CSV export functionality."""

    @pytest.fixture
    def temp_dir(self):
        """Create temporary directory for test outputs."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.fixture
    def exporter(self, temp_dir):
        """Create exporter instance with temp directory."""
        return TransactionCSVExporter(temp_dir, locale="it_IT")

    @pytest.fixture
    def dinner(self):
        """Transaction whose text needs escaping."""
        return TransactionSnapshot(
            date=datetime(2024, 1, 20, 21, 0),
            amount=Decimal("42.50"),
            type=TransactionType.EXPENSE,
            from_conto_name="Contanti",
            category_name="Tempo libero",
            description="Cena, amici",
            notes='Pizzeria "Da Mario"',
            currency="EUR",
        )

    def test_format_decimal(self, exporter):
        """Amounts use a dot and two decimals."""
        assert exporter._format_decimal(Decimal("19.9")) == "19.90"
        assert exporter._format_decimal(Decimal("-20")) == "-20.00"
        assert exporter._format_decimal(Decimal("1234.565")) == "1234.57"
        assert exporter._format_decimal(None) == "0.00"

    def test_format_date(self, exporter):
        """Dates follow the selected pattern."""
        when = datetime(2024, 1, 5, 14, 30, 0)
        assert exporter._format_date(when, CSVDateFormat.ISO8601_DATE_ONLY) == "2024-01-05"
        assert exporter._format_date(when, CSVDateFormat.EU_SLASH) == "05/01/2024 14:30"
        assert exporter._format_date(when, CSVDateFormat.ISO8601_OFFSET) == "2024-01-05T14:30:00+01:00"
        assert exporter._format_date(None, CSVDateFormat.ISO8601) == ""

    def test_reference_example(self, exporter, sample_snapshots):
        """January export of Conto A with date and amount only."""
        options = ExportOptions(
            date_from=date(2024, 1, 1),
            date_to=date(2024, 1, 31),
            conto_ids={sample_snapshots[0].from_conto_id},
            include_fields={CSVField.DATE, CSVField.AMOUNT},
            include_header=True,
            date_format="yyyy-MM-dd",
        )

        content = exporter.serialize(filter_transactions(sample_snapshots, options), options)

        assert content == "Data,Importo\n2024-01-05,-20.00\n"

    def test_header_lists_selected_fields_in_fixed_order(self, exporter):
        """Header carries one label per selected field, independent of selection order."""
        options = ExportOptions(include_fields=[CSVField.AMOUNT, CSVField.DATE, CSVField.NOTES])
        assert exporter.header_row(options) == ["Data", "Importo", "Note"]

        options = ExportOptions()
        header = exporter.header_row(options)
        assert len(header) == len(CSVField)
        assert header == sorted(field.label for field in CSVField)

    def test_no_header(self, exporter, sample_snapshots):
        """Without header the first line is data."""
        options = ExportOptions(
            include_header=False,
            include_fields={CSVField.DATE, CSVField.AMOUNT},
            date_format=CSVDateFormat.ISO8601_DATE_ONLY,
        )

        content = exporter.serialize(sample_snapshots, options)

        assert content.splitlines() == ["2024-01-05,-20.00", "2024-01-10,15.00"]

    def test_empty_input(self, exporter):
        """Empty input yields the header line only, or nothing."""
        options = ExportOptions(include_fields={CSVField.DATE, CSVField.AMOUNT})
        assert exporter.serialize([], options) == "Data,Importo\n"

        options.include_header = False
        assert exporter.serialize([], options) == ""

    def test_escaping(self, exporter, dinner):
        """Delimiters and quotes force quoting; inner quotes are doubled."""
        options = ExportOptions(
            include_header=False,
            include_fields={CSVField.DESCRIPTION, CSVField.NOTES},
        )

        content = exporter.serialize([dinner], options)

        assert content == '"Cena, amici","Pizzeria ""Da Mario"""\n'

        rows = list(csv.reader(io.StringIO(content)))
        assert rows == [["Cena, amici", 'Pizzeria "Da Mario"']]

    def test_line_break_in_value_is_quoted(self, exporter):
        """Multi-line notes stay in one cell."""
        tx = TransactionSnapshot(date=datetime(2024, 1, 1), amount=Decimal("1"), notes="riga 1\nriga 2")
        options = ExportOptions(include_header=False, include_fields={CSVField.NOTES})

        assert exporter.serialize([tx], options) == '"riga 1\nriga 2"\n'

    def test_carriage_return_in_value_is_quoted(self, exporter):
        """A lone CR is a line break too and must not split the row."""
        tx = TransactionSnapshot(date=datetime(2024, 1, 1), amount=Decimal("1"), notes="a\rb")
        options = ExportOptions(include_header=False, include_fields={CSVField.NOTES, CSVField.AMOUNT})

        content = exporter.serialize([tx], options)

        assert content == '1.00,"a\rb"\n'
        rows = list(csv.reader(io.StringIO(content, newline="")))
        assert rows == [["1.00", "a\rb"]]

    def test_custom_delimiter(self, exporter, dinner):
        """Only the active delimiter triggers quoting."""
        options = ExportOptions(
            include_header=False,
            include_fields={CSVField.DESCRIPTION, CSVField.AMOUNT},
            delimiter=";",
        )

        assert exporter.serialize([dinner], options) == "Cena, amici;-42.50\n"

    def test_field_values(self, exporter, dinner):
        """Type, currencies, exchange rate and assignment columns."""
        options = ExportOptions(include_fields=set(CSVField), include_header=True)

        content = exporter.serialize([dinner], options)
        reader = csv.DictReader(io.StringIO(content))
        row = next(reader)

        assert row["Tipo"] == "Spesa"
        assert row["Importo"] == "-42.50"
        assert row["Valuta di origine"] == "EUR"
        assert row["Valuta di destinazione"] == "EUR"
        assert row["Tasso di cambio"] == "1"
        assert row["Conto (Da)"] == "Contanti"
        assert row["Conto (A)"] == ""
        assert row["Categoria"] == "Tempo libero"
        assert row["Beneficiario"] == ""
        assert row["Descrizione"] == "Cena, amici"
        assert row["Note"] == 'Pizzeria "Da Mario"'

    def test_untyped_amount_keeps_sign(self, exporter):
        """Snapshots without a type are exported with the sign they carry."""
        tx = TransactionSnapshot(date=datetime(2024, 1, 1), amount=Decimal("-7.5"))
        options = ExportOptions(include_header=False, include_fields={CSVField.AMOUNT})

        assert exporter.serialize([tx], options) == "-7.50\n"

    def test_serialize_is_deterministic(self, exporter, sample_snapshots, dinner):
        """Same input, same output."""
        options = ExportOptions(date_format=CSVDateFormat.LONG_WEEKDAY)
        transactions = sample_snapshots + [dinner]

        assert exporter.serialize(transactions, options) == exporter.serialize(transactions, options)

    def test_generate_filename(self):
        """File names carry the account name and the export time."""
        when = datetime(2024, 1, 5, 14, 30, 0)

        assert (
            TransactionCSVExporter.generate_filename("Conto Principale", when)
            == "Conto-Principale-2024-01-05T14-30-00.csv"
        )
        assert TransactionCSVExporter.generate_filename(None, when) == "Export-2024-01-05T14-30-00.csv"
        assert TransactionCSVExporter.generate_filename("  ", when) == "Export-2024-01-05T14-30-00.csv"

    def test_write_creates_file(self, exporter, temp_dir):
        """Content is written as is, without leftovers."""
        content = "Data,Importo\n2024-01-05,-20.00\n"

        path = exporter.write(content, "Export-2024-01-05T14-30-00.csv")

        assert path.exists()
        assert path.parent == temp_dir
        assert path.read_text(encoding="utf-8") == content
        assert list(temp_dir.glob("*.part")) == []

    def test_write_creates_missing_directory(self, temp_dir):
        """The export directory is created on demand."""
        exporter = TransactionCSVExporter(temp_dir / "nested" / "exports")

        path = exporter.write("Note\nè così\n", "test.csv")

        assert path.read_text(encoding="utf-8") == "Note\nè così\n"

    def test_write_failure_raises_export_write_error(self, temp_dir):
        """An unwritable directory is reported with a readable message."""
        blocker = temp_dir / "not-a-directory"
        blocker.write_text("x")
        exporter = TransactionCSVExporter(blocker)

        with pytest.raises(ExportWriteError) as exc_info:
            exporter.write("Data\n", "test.csv")

        assert "Errore durante l'esportazione" in str(exc_info.value)
        assert exc_info.value.path == blocker / "test.csv"

    def test_write_encoding_error(self, temp_dir):
        """Characters the encoding cannot represent fail the write."""
        exporter = TransactionCSVExporter(temp_dir, encoding="ascii")

        with pytest.raises(ExportWriteError):
            exporter.write("Descrizione\ncaffè\n", "test.csv")

        assert list(temp_dir.iterdir()) == []
