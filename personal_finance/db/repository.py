"""
Queries against the ledger store.

The export only needs a date predicate from the database; account
membership is evaluated in Python afterwards.
"""

import uuid
from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from personal_finance.db.models import Account, Conto, Transaction


def transactions_in_range(
    session: Session,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> Sequence[Transaction]:
    """
    Transactions within the inclusive date bounds, newest first.

    Related conti (with their account) and categories are loaded eagerly so
    the results can be snapshotted after the session closes.

    Args:
        session: Open session
        date_from: Lower bound, or None for no bound
        date_to: Upper bound, or None for no bound

    Returns:
        Matching transactions
    """
    stmt = (
        select(Transaction)
        .options(
            selectinload(Transaction.from_conto).selectinload(Conto.account),
            selectinload(Transaction.to_conto).selectinload(Conto.account),
            selectinload(Transaction.category),
        )
        .order_by(Transaction.date.desc())
    )

    if date_from is not None:
        stmt = stmt.where(Transaction.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Transaction.date <= date_to)

    return session.execute(stmt).scalars().all()


def list_conti(session: Session, account_id: Optional[uuid.UUID] = None) -> Sequence[Conto]:
    """
    Conti ordered by name, with transactions loaded for balance computation.

    Args:
        session: Open session
        account_id: Restrict to one account
    """
    stmt = (
        select(Conto)
        .options(
            selectinload(Conto.account),
            selectinload(Conto.incoming_transactions),
            selectinload(Conto.outgoing_transactions),
        )
        .order_by(Conto.name)
    )
    if account_id is not None:
        stmt = stmt.where(Conto.account_id == account_id)

    return session.execute(stmt).scalars().all()


def find_conti(session: Session, refs: Iterable[str]) -> tuple[list[Conto], list[str]]:
    """
    Resolve conti given by id or by (case-insensitive) name.

    Args:
        session: Open session
        refs: UUID strings or conto names

    Returns:
        Tuple of (resolved conti, references that matched nothing)
    """
    conti = list_conti(session)
    by_id = {str(conto.id): conto for conto in conti}
    by_name = {conto.name.casefold(): conto for conto in conti}

    found: list[Conto] = []
    missing: list[str] = []
    for ref in refs:
        conto = by_id.get(ref.strip().lower()) or by_name.get(ref.strip().casefold())
        if conto is None:
            missing.append(ref)
        elif conto not in found:
            found.append(conto)

    return found, missing


def get_account_by_name(session: Session, name: str) -> Optional[Account]:
    """Account with the given name, if any."""
    stmt = select(Account).where(Account.name == name)
    return session.execute(stmt).scalars().first()


def first_account(session: Session) -> Optional[Account]:
    """Oldest account; the default selection when none is given."""
    stmt = select(Account).order_by(Account.created_at, Account.name)
    return session.execute(stmt).scalars().first()
