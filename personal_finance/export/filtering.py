"""
Selection of the transactions that go into an export.
"""

from datetime import datetime
from typing import Iterable, Optional, Protocol, TypeVar
from uuid import UUID

from personal_finance.core.time import to_naive_local
from personal_finance.export.options import ExportOptions


class Filterable(Protocol):
    date: datetime
    from_conto_id: Optional[UUID]
    to_conto_id: Optional[UUID]


T = TypeVar("T", bound=Filterable)


def matches_date_range(transaction: Filterable, options: ExportOptions) -> bool:
    """Both bounds are inclusive; a missing bound does not restrict."""
    tx_date = to_naive_local(transaction.date)

    if options.date_from is not None and tx_date < options.date_from:
        return False
    if options.date_to is not None and tx_date > options.date_to:
        return False
    return True


def matches_conti(transaction: Filterable, options: ExportOptions) -> bool:
    """
    Account membership test.

    An empty selection matches everything. Otherwise the source or the
    destination conto must be selected; a missing id never matches.
    """
    if not options.conto_ids:
        return True

    if transaction.from_conto_id is not None and transaction.from_conto_id in options.conto_ids:
        return True
    if transaction.to_conto_id is not None and transaction.to_conto_id in options.conto_ids:
        return True
    return False


def filter_transactions(transactions: Iterable[T], options: ExportOptions) -> list[T]:
    """
    Transactions to export, most recent first.

    Transactions sharing a date keep their input order.

    Args:
        transactions: All candidate transactions, in any order
        options: Export options

    Returns:
        Filtered transactions sorted by date descending
    """
    selected = [
        tx for tx in transactions
        if matches_date_range(tx, options) and matches_conti(tx, options)
    ]
    # sorted() stays stable with reverse=True
    return sorted(selected, key=lambda tx: to_naive_local(tx.date), reverse=True)


def count_matching(transactions: Iterable[Filterable], options: ExportOptions) -> int:
    """Number of transactions an export with ``options`` would contain."""
    return len(filter_transactions(transactions, options))
