"""
Import orchestration: read the file, resolve rows, write transactions.
"""

import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Callable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from personal_finance.core.currency import round_currency
from personal_finance.core.logging import audit_logger, get_logger
from personal_finance.csv_import.errors import ImportMappingError, ImportReadError, ImportRowError, ImportStoreError
from personal_finance.csv_import.options import ImportOptions
from personal_finance.csv_import.parser import (
    ColumnMapping,
    CSVParseResult,
    apply_account_filter,
    cell,
    determine_transaction_type,
    parse_amount,
    parse_csv_content,
    parse_date,
    row_number,
    validate_mapping,
)
from personal_finance.db import repository
from personal_finance.db.models import Account, Category, Conto, Transaction, TransactionType
from personal_finance.db.session import session_scope
from personal_finance.export.options import CSVField

logger = get_logger(__name__)

# Existing transactions within this distance of an imported row can be duplicates
DUPLICATE_TIME_TOLERANCE = timedelta(minutes=5)
DUPLICATE_AMOUNT_TOLERANCE = Decimal("0.01")

ProgressCallback = Callable[[int, int], None]


class ImportIssue(BaseModel):
    """A row that was not imported and why."""

    model_config = ConfigDict(frozen=True)

    row_number: int
    message: str
    field: Optional[CSVField] = None
    raw_value: Optional[str] = None


class ImportResult(BaseModel):
    """Outcome of an import."""

    model_config = ConfigDict(frozen=True)

    total_rows: int
    imported_count: int = 0
    duplicates_skipped: int = 0
    zero_amounts_skipped: int = 0
    errors: list[ImportIssue] = Field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return self.duplicates_skipped + self.zero_amounts_skipped

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def success_rate(self) -> float:
        if self.total_rows == 0:
            return 0.0
        return self.imported_count / self.total_rows


def _same_name(a: Optional[str], b: Optional[str]) -> bool:
    return a is not None and b is not None and a.strip().casefold() == b.strip().casefold()


class ImportService:
    """
    Imports CSV rows as transactions of one account.

    Row problems are collected in the result; the rows that parse are
    committed together at the end.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def parse_file(self, path: Path, options: ImportOptions) -> CSVParseResult:
        """
        Read and split a CSV file, applying the account filter of ``options``.

        Raises:
            ImportReadError: If the file cannot be read or decoded
            ImportMappingError: If the filter column does not exist
        """
        try:
            with open(path, encoding=options.encoding, newline="") as f:
                content = f.read()
        except (OSError, UnicodeError, LookupError) as e:
            logger.error(f"CSV import read failed: {path} ({e})")
            raise ImportReadError(f"Impossibile leggere il file: {e}", path=Path(path)) from e

        return apply_account_filter(parse_csv_content(content, options), options)

    def import_transactions(
        self,
        result: CSVParseResult,
        mapping: ColumnMapping,
        options: ImportOptions,
        account_id: uuid.UUID,
        progress_callback: Optional[ProgressCallback] = None,
        source: str = "",
    ) -> ImportResult:
        """
        Create transactions from parsed rows.

        Amounts are stored unsigned with the type from
        ``determine_transaction_type``. With ``ignore_duplicates`` a row
        matching an existing transaction (date within five minutes, same
        amount and description) is skipped.

        Raises:
            ImportMappingError: If amount or date have no column
            ImportStoreError: If the account is missing or the store fails
        """
        problems = validate_mapping(mapping)
        if problems:
            raise ImportMappingError("; ".join(problems))

        try:
            with session_scope(self.session_factory) as session:
                account = session.get(Account, account_id)
                if account is None:
                    raise ImportStoreError(f"Libro non trovato: {account_id}")
                outcome = self._import_rows(session, account, result, mapping, options, progress_callback)
        except SQLAlchemyError as e:
            logger.error(f"CSV import failed: {e}")
            audit_logger.log_import_failed(source, e)
            raise ImportStoreError(f"Impossibile salvare le transazioni: {e}") from e

        logger.info(
            f"CSV import: {outcome.imported_count} imported, "
            f"{outcome.skipped_count} skipped, {outcome.error_count} errors"
        )
        audit_logger.log_import_completed(
            source,
            outcome.imported_count,
            skipped=outcome.skipped_count,
            errors=outcome.error_count,
            total_rows=outcome.total_rows,
        )
        return outcome

    def _import_rows(
        self,
        session: Session,
        account: Account,
        result: CSVParseResult,
        mapping: ColumnMapping,
        options: ImportOptions,
        progress_callback: Optional[ProgressCallback],
    ) -> ImportResult:
        conti = list(repository.list_conti(session, account.id))
        existing = list(repository.transactions_in_range(session))
        created_categories: dict[str, Category] = {}

        imported = duplicates = zeros = 0
        errors: list[ImportIssue] = []

        for index, row in enumerate(result.rows):
            if progress_callback is not None:
                progress_callback(index + 1, result.row_count)

            try:
                amount, date = self._required_values(row, mapping, options)

                if options.ignore_zero_amounts and amount == 0:
                    zeros += 1
                    continue

                description = cell(row, mapping, CSVField.DESCRIPTION) or None
                if options.ignore_duplicates and self._is_duplicate(date, amount, description, existing):
                    duplicates += 1
                    continue

                transaction_type = determine_transaction_type(row, amount, mapping)
                transaction = Transaction(
                    amount=round_currency(abs(amount)),
                    type=transaction_type,
                    date=date,
                    description=description,
                    notes=cell(row, mapping, CSVField.NOTES) or None,
                    category=self._find_or_create_category(row, mapping, account, created_categories, options),
                )
                self._assign_conti(transaction, row, mapping, conti, options, amount)
                session.add(transaction)
                imported += 1

            except ImportRowError as e:
                errors.append(ImportIssue(
                    row_number=row_number(index, options),
                    message=str(e),
                    field=e.field,
                    raw_value=e.raw_value,
                ))

        return ImportResult(
            total_rows=result.row_count,
            imported_count=imported,
            duplicates_skipped=duplicates,
            zero_amounts_skipped=zeros,
            errors=errors,
        )

    @staticmethod
    def _required_values(row: list[str], mapping: ColumnMapping, options: ImportOptions) -> tuple[Decimal, datetime]:
        amount_text = cell(row, mapping, CSVField.AMOUNT)
        if amount_text is None:
            raise ImportRowError(f"Campo obbligatorio mancante: {CSVField.AMOUNT.label}", field=CSVField.AMOUNT)
        amount = parse_amount(amount_text)
        if amount is None:
            raise ImportRowError(f"Importo non valido: {amount_text}", field=CSVField.AMOUNT, raw_value=amount_text)

        date_text = cell(row, mapping, CSVField.DATE)
        if date_text is None:
            raise ImportRowError(f"Campo obbligatorio mancante: {CSVField.DATE.label}", field=CSVField.DATE)
        date = parse_date(date_text, options.date_format)
        if date is None:
            raise ImportRowError(f"Data non valida: {date_text}", field=CSVField.DATE, raw_value=date_text)

        return amount, date

    @staticmethod
    def _is_duplicate(
        date: datetime,
        amount: Decimal,
        description: Optional[str],
        existing: Sequence[Transaction],
    ) -> bool:
        return any(
            abs(transaction.date - date) <= DUPLICATE_TIME_TOLERANCE
            and abs(transaction.amount - abs(amount)) < DUPLICATE_AMOUNT_TOLERANCE
            and transaction.description == description
            for transaction in existing
        )

    @staticmethod
    def _find_or_create_category(
        row: list[str],
        mapping: ColumnMapping,
        account: Account,
        created: dict[str, Category],
        options: ImportOptions,
    ) -> Optional[Category]:
        name = cell(row, mapping, CSVField.CATEGORY)
        if not name:
            return None

        key = name.casefold()
        if key in created:
            return created[key]
        for category in account.categories:
            if _same_name(category.name, name):
                return category

        if not options.create_missing_categories:
            return None

        category = Category(name=name)
        account.categories.append(category)
        created[key] = category
        logger.debug(f"Category created during import: {name}")
        return category

    @staticmethod
    def _conto_by_name(conti: Sequence[Conto], name: Optional[str]) -> Optional[Conto]:
        return next((conto for conto in conti if _same_name(conto.name, name)), None)

    def _assign_conti(
        self,
        transaction: Transaction,
        row: list[str],
        mapping: ColumnMapping,
        conti: Sequence[Conto],
        options: ImportOptions,
        amount: Decimal,
    ) -> None:
        """
        Link the transaction to its conti.

        Expenses leave one conto and incomes enter one: the default conto
        if set, else the conto named in the row (incomes look at the
        destination column first), else the account's first conto.
        Transfers use both conto columns; when neither names a known conto
        the sign of the amount picks the side of the single conto.
        """
        if options.default_conto_id is not None:
            conto = next((c for c in conti if c.id == options.default_conto_id), None)
        else:
            fields = [CSVField.SOURCE_ACCOUNT, CSVField.TARGET_ACCOUNT]
            if transaction.type == TransactionType.INCOME:
                fields.reverse()
            named = (self._conto_by_name(conti, cell(row, mapping, field)) for field in fields)
            conto = next((c for c in named if c is not None), conti[0] if conti else None)

        if transaction.type == TransactionType.EXPENSE:
            transaction.from_conto = conto
        elif transaction.type == TransactionType.INCOME:
            transaction.to_conto = conto
        else:
            source = self._conto_by_name(conti, cell(row, mapping, CSVField.SOURCE_ACCOUNT))
            target = self._conto_by_name(conti, cell(row, mapping, CSVField.TARGET_ACCOUNT))
            if source is None and target is None:
                if amount < 0:
                    source = conto
                else:
                    target = conto
            transaction.from_conto = source
            transaction.to_conto = target

