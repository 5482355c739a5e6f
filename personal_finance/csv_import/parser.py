"""
Pure CSV parsing for the import: rows, column detection, amounts, dates.

Nothing here touches the store; ``ImportService`` does.
"""

import csv
import io
from collections import Counter
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, ConfigDict

from personal_finance.core.time import parse_pattern
from personal_finance.csv_import.errors import ImportMappingError
from personal_finance.csv_import.options import ImportOptions
from personal_finance.db.models import TransactionType
from personal_finance.export.options import DATE_FALLBACK_ORDER, CSVDateFormat, CSVField

ColumnMapping = dict[CSVField, int]

# Header keywords per field, most specific first
FIELD_KEYWORDS: dict[CSVField, tuple[str, ...]] = {
    CSVField.TRANSACTION_TYPE: ("tipo", "type", "transaction type", "tipo transazione"),
    CSVField.AMOUNT: ("importo", "amount", "valore", "value", "somma", "totale"),
    CSVField.SOURCE_CURRENCY: ("valuta origine", "source currency", "currency from"),
    CSVField.TARGET_CURRENCY: ("valuta destinazione", "target currency", "currency to"),
    CSVField.EXCHANGE_RATE: ("tasso", "exchange", "rate", "cambio"),
    CSVField.SOURCE_ACCOUNT: ("conto da", "conto origine", "from account", "source account", "conto"),
    CSVField.TARGET_ACCOUNT: ("conto a", "conto destinazione", "to account", "target account"),
    CSVField.CATEGORY: ("categoria", "category", "cat"),
    CSVField.PAYEE: ("beneficiario", "payee", "destinatario", "pagatore"),
    CSVField.DATE: ("data", "date", "giorno", "quando"),
    CSVField.NOTES: ("note", "notes", "commento", "memo"),
    CSVField.DESCRIPTION: ("descrizione", "description", "desc", "titolo", "oggetto"),
}

_TYPE_WORDS = (
    (TransactionType.INCOME, ("entrata", "income", "ricavo")),
    (TransactionType.TRANSFER, ("trasferimento", "transfer", "giroconto")),
    (TransactionType.EXPENSE, ("spesa", "expense", "uscita")),
)

_AMOUNT_NOISE = (" ", "\u00a0", "\u20ac", "$", "'")


class CSVParseResult(BaseModel):
    """Header labels and data rows of a CSV file; cells are stripped."""

    model_config = ConfigDict(frozen=True)

    headers: list[str]
    rows: list[list[str]]

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.headers)

    def value(self, row: int, column: int) -> Optional[str]:
        if row >= len(self.rows) or column >= len(self.rows[row]):
            return None
        return self.rows[row][column]

    def column_index(self, header: str) -> Optional[int]:
        """Index of the column labelled ``header`` (case-insensitive)."""
        wanted = header.strip().casefold()
        for index, label in enumerate(self.headers):
            if label.casefold() == wanted:
                return index
        return None


class AccountValue(BaseModel):
    """Distinct value of an account column and how many rows carry it."""

    model_config = ConfigDict(frozen=True)

    value: str
    row_count: int


class PreviewRow(BaseModel):
    """One parsed row as shown before importing."""

    model_config = ConfigDict(frozen=True)

    row_number: int
    date: Optional[datetime] = None
    amount: Optional[Decimal] = None
    type: Optional[str] = None
    category: Optional[str] = None
    conto: Optional[str] = None
    description: Optional[str] = None
    error: Optional[str] = None

    @property
    def has_error(self) -> bool:
        return self.error is not None


def parse_csv_content(content: str, options: Optional[ImportOptions] = None) -> CSVParseResult:
    """
    Split CSV text into headers and rows.

    Quoted cells may contain the delimiter, quotes and line breaks. Blank
    lines are skipped. Without a header row the columns are named
    ``Colonna 1``, ``Colonna 2``...
    """
    options = options or ImportOptions()
    reader = csv.reader(io.StringIO(content.lstrip("\ufeff"), newline=""), delimiter=options.delimiter)
    lines = [[value.strip() for value in row] for row in reader if any(value.strip() for value in row)]

    if not lines:
        return CSVParseResult(headers=[], rows=[])

    if options.has_header:
        return CSVParseResult(headers=lines[0], rows=lines[1:])

    width = max(len(row) for row in lines)
    return CSVParseResult(headers=[f"Colonna {i + 1}" for i in range(width)], rows=lines)


def row_number(index: int, options: ImportOptions) -> int:
    """1-based line number of data row ``index`` in the file."""
    return index + (2 if options.has_header else 1)


# Multi-account files


def extract_unique_account_values(result: CSVParseResult, column: int) -> list[AccountValue]:
    """Distinct non-empty values of ``column``, most frequent first."""
    counts = Counter(row[column] for row in result.rows if column < len(row) and row[column])
    return [
        AccountValue(value=value, row_count=count)
        for value, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


def filter_rows(result: CSVParseResult, column: int, value: str) -> CSVParseResult:
    """Keep the rows whose ``column`` equals ``value``."""
    rows = [row for row in result.rows if column < len(row) and row[column] == value.strip()]
    return CSVParseResult(headers=result.headers, rows=rows)


def apply_account_filter(result: CSVParseResult, options: ImportOptions) -> CSVParseResult:
    """
    Apply ``filter_column``/``filter_value`` from the options, if set.

    Raises:
        ImportMappingError: If the filter column does not exist
    """
    if not options.filter_column or options.filter_value is None:
        return result

    column = result.column_index(options.filter_column)
    if column is None:
        raise ImportMappingError(f"Colonna non trovata: {options.filter_column}")
    return filter_rows(result, column, options.filter_value)


# Column mapping


def detect_column_mapping(headers: list[str]) -> ColumnMapping:
    """
    Guess the column of each field from the header labels.

    Exact labels and field names win; otherwise the first header containing
    one of the field's keywords is used. A column is assigned at most once.
    """
    lowered = [header.strip().casefold() for header in headers]
    mapping: ColumnMapping = {}

    for field in CSVField:
        for index, header in enumerate(lowered):
            if index not in mapping.values() and header in (field.value.casefold(), field.name.casefold()):
                mapping[field] = index
                break

    for field in CSVField:
        if field in mapping:
            continue
        for keyword in FIELD_KEYWORDS[field]:
            index = next(
                (i for i, header in enumerate(lowered) if i not in mapping.values() and keyword in header),
                None,
            )
            if index is not None:
                mapping[field] = index
                break

    return mapping


def validate_mapping(mapping: ColumnMapping) -> list[str]:
    """Messages for required fields without a column."""
    return [
        f"Il campo '{field.label}' è obbligatorio ma non assegnato"
        for field in CSVField
        if field.is_required and field not in mapping
    ]


def cell(row: list[str], mapping: ColumnMapping, field: CSVField) -> Optional[str]:
    """Value of ``field`` in ``row``, or None if unmapped or out of range."""
    index = mapping.get(field)
    if index is None or index >= len(row):
        return None
    return row[index]


# Values


def parse_amount(text: str) -> Optional[Decimal]:
    """
    Parse an amount written with either decimal convention.

    Currency signs, spaces and apostrophes are ignored. When both ``,`` and
    ``.`` appear, the last one is the decimal separator.

    Examples:
        >>> parse_amount("1.234,56 €")
        Decimal('1234.56')
        >>> parse_amount("-20.00")
        Decimal('-20.00')
    """
    cleaned = text.strip()
    for noise in _AMOUNT_NOISE:
        cleaned = cleaned.replace(noise, "")

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        cleaned = cleaned.replace(",", ".")

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_date(text: str, date_format: CSVDateFormat, locale: Optional[str] = None) -> Optional[datetime]:
    """Parse with ``date_format``, then with the fallback patterns in order."""
    candidates = [date_format, *(f for f in DATE_FALLBACK_ORDER if f is not date_format)]
    for candidate in candidates:
        try:
            return parse_pattern(text, candidate.pattern, locale=locale)
        except ValueError:
            continue
    return None


def determine_transaction_type(row: list[str], amount: Decimal, mapping: ColumnMapping) -> TransactionType:
    """
    Transaction type of a row.

    An explicit type column wins. Rows with both conto columns filled are
    transfers. Otherwise the sign decides: negative amounts are expenses.
    """
    type_text = (cell(row, mapping, CSVField.TRANSACTION_TYPE) or "").casefold()
    for transaction_type, words in _TYPE_WORDS:
        if any(word in type_text for word in words):
            return transaction_type

    if cell(row, mapping, CSVField.SOURCE_ACCOUNT) and cell(row, mapping, CSVField.TARGET_ACCOUNT):
        return TransactionType.TRANSFER

    return TransactionType.INCOME if amount >= 0 else TransactionType.EXPENSE


def generate_preview(
    result: CSVParseResult,
    mapping: ColumnMapping,
    options: ImportOptions,
    max_rows: int = 10,
) -> list[PreviewRow]:
    """Parse the first ``max_rows`` rows for display; errors are reported, not raised."""
    previews = []
    for index, row in enumerate(result.rows[:max_rows]):
        error = None

        date_text = cell(row, mapping, CSVField.DATE)
        parsed_date = parse_date(date_text, options.date_format) if date_text is not None else None
        if date_text is None:
            error = "Data mancante"
        elif parsed_date is None:
            error = f"Data non valida: {date_text}"

        amount_text = cell(row, mapping, CSVField.AMOUNT)
        amount = parse_amount(amount_text) if amount_text is not None else None
        if amount_text is None:
            error = "Importo mancante"
        elif amount is None:
            error = f"Importo non valido: {amount_text}"

        previews.append(PreviewRow(
            row_number=row_number(index, options),
            date=parsed_date,
            amount=amount,
            type=cell(row, mapping, CSVField.TRANSACTION_TYPE),
            category=cell(row, mapping, CSVField.CATEGORY),
            conto=cell(row, mapping, CSVField.SOURCE_ACCOUNT),
            description=cell(row, mapping, CSVField.DESCRIPTION),
            error=error,
        ))

    return previews
