"""
Demo ledger for trying out the export without real data.
"""

import random
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from personal_finance.core.logging import get_logger
from personal_finance.core.time import months_ago, now, to_naive_local
from personal_finance.db.models import Account, Category, Conto, ContoType, Transaction, TransactionType

logger = get_logger(__name__)

DEMO_CATEGORIES = [
    ("Stipendio", "#4CAF50", "banknote"),
    ("Casa", "#795548", "house"),
    ("Spesa", "#FF9800", "cart"),
    ("Trasporti", "#2196F3", "car"),
    ("Abbonamenti", "#00BCD4", "tv"),
    ("Tempo libero", "#E91E63", "gamecontroller"),
    ("Risparmi", "#9C27B0", "banknote"),
]


def seed_demo_data(
    session: Session,
    months: int = 3,
    seed: Optional[int] = None,
    reference: Optional[datetime] = None,
) -> Account:
    """
    Create a "Demo" account with three conti and ``months`` months of activity.

    Args:
        session: Open session (flushed, not committed)
        months: Number of months of transactions, ending at ``reference``
        seed: Random seed for reproducible amounts and days
        reference: Last month to generate (defaults to now)

    Returns:
        The created account
    """
    rng = random.Random(seed)
    reference = to_naive_local(reference or now())

    account = Account(name="Demo", currency="EUR")
    checking = Conto(name="Conto Corrente", type=ContoType.CHECKING, initial_balance=Decimal("2500"))
    cash = Conto(name="Contanti", type=ContoType.CASH, initial_balance=Decimal("200"))
    savings = Conto(name="Risparmi", type=ContoType.SAVINGS, initial_balance=Decimal("5000"))
    account.conti.extend([checking, cash, savings])

    categories = {}
    for name, color, icon in DEMO_CATEGORIES:
        category = Category(name=name, color=color, icon=icon)
        account.categories.append(category)
        categories[name] = category

    session.add(account)

    def add(
        tx_type: TransactionType,
        amount: str,
        when: datetime,
        description: str,
        category: str,
        from_conto: Optional[Conto] = None,
        to_conto: Optional[Conto] = None,
        notes: Optional[str] = None,
    ) -> None:
        session.add(
            Transaction(
                type=tx_type,
                amount=Decimal(amount),
                date=when,
                description=description,
                notes=notes,
                from_conto=from_conto,
                to_conto=to_conto,
                category=categories[category],
            )
        )

    count = 0
    for offset in range(months - 1, -1, -1):
        month_start = months_ago(offset, reference).replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        def day(low: int, high: int, hour: int = 9) -> datetime:
            return month_start.replace(day=rng.randint(low, high), hour=hour)

        label = month_start.strftime("%m/%Y")

        add(TransactionType.INCOME, "1850.00", day(1, 3), f"Stipendio {label}", "Stipendio", to_conto=checking)
        add(TransactionType.EXPENSE, "750.00", day(4, 6), "Affitto", "Casa", from_conto=checking)
        add(TransactionType.EXPENSE, "12.99", day(7, 10), "Abbonamento streaming", "Abbonamenti", from_conto=checking)
        add(TransactionType.EXPENSE, "39.00", day(1, 5), "Abbonamento metro", "Trasporti", from_conto=checking)
        count += 4

        for week in range(4):
            amount = f"{rng.uniform(35, 120):.2f}"
            add(
                TransactionType.EXPENSE,
                amount,
                day(1 + week * 7, 7 + week * 7, hour=18),
                "Spesa supermercato",
                "Spesa",
                from_conto=checking,
            )
            count += 1

        add(
            TransactionType.EXPENSE,
            f"{rng.uniform(10, 60):.2f}",
            day(10, 25, hour=21),
            "Cena, amici",
            "Tempo libero",
            from_conto=cash,
            notes='Pizzeria "Da Mario"',
        )
        add(TransactionType.TRANSFER, "150.00", day(5, 6, hour=12), "Prelievo", "Risparmi", from_conto=checking, to_conto=cash)
        add(TransactionType.TRANSFER, "300.00", day(25, 28, hour=12), "Accantonamento", "Risparmi", from_conto=checking, to_conto=savings)
        count += 3

    session.flush()
    logger.info("Demo data created", extra={"account": account.name, "transactions": count})
    return account
