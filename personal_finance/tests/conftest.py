"""
Pytest configuration and fixtures.
"""

import uuid
from datetime import datetime
from decimal import Decimal

import pytest

from personal_finance.core.config import settings
from personal_finance.db.models import Account, Category, Conto, ContoType, Transaction, TransactionType
from personal_finance.db.session import get_engine, init_database, make_session_factory, session_scope
from personal_finance.export.snapshot import TransactionSnapshot


CONTO_A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
CONTO_B = uuid.UUID("00000000-0000-0000-0000-00000000000b")


@pytest.fixture
def database_url(tmp_path) -> str:
    """SQLite file database inside the test's temp directory."""
    return f"sqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
def engine(database_url):
    """Engine with all tables created."""
    engine = get_engine(database_url, echo=False)
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory bound to the test engine."""
    return make_session_factory(engine)


@pytest.fixture
def ledger(session_factory) -> dict:
    """
    Account "Personale" with two conti and four transactions.

    - 2023-12-31 expense 5.00 from Conto A
    - 2024-01-05 expense 20.00 from Conto A
    - 2024-01-10 income 15.00 to Conto B
    - 2024-02-01 transfer 100.00 from Conto A to Conto B
    """
    with session_scope(session_factory) as session:
        account = Account(name="Personale", currency="EUR")
        conto_a = Conto(id=CONTO_A, name="Conto A", type=ContoType.CHECKING, initial_balance=Decimal("100"))
        conto_b = Conto(id=CONTO_B, name="Conto B", type=ContoType.SAVINGS, initial_balance=Decimal("0"))
        account.conti.extend([conto_a, conto_b])
        groceries = Category(name="Spesa")
        account.categories.append(groceries)
        session.add(account)

        session.add_all([
            Transaction(
                type=TransactionType.EXPENSE,
                amount=Decimal("5.00"),
                date=datetime(2023, 12, 31, 18, 0),
                description="Panetteria",
                from_conto=conto_a,
                category=groceries,
            ),
            Transaction(
                type=TransactionType.EXPENSE,
                amount=Decimal("20.00"),
                date=datetime(2024, 1, 5, 9, 30),
                description="Supermercato",
                from_conto=conto_a,
                category=groceries,
            ),
            Transaction(
                type=TransactionType.INCOME,
                amount=Decimal("15.00"),
                date=datetime(2024, 1, 10, 12, 0),
                description="Rimborso",
                to_conto=conto_b,
            ),
            Transaction(
                type=TransactionType.TRANSFER,
                amount=Decimal("100.00"),
                date=datetime(2024, 2, 1, 8, 0),
                description="Giroconto",
                from_conto=conto_a,
                to_conto=conto_b,
            ),
        ])

        # Primary keys are generated on flush
        session.flush()
        account_id = account.id

    return {"account_id": account_id, "conto_a": CONTO_A, "conto_b": CONTO_B}


@pytest.fixture
def sample_snapshots() -> list[TransactionSnapshot]:
    """Expense from A on 5 January and income to B on 10 January 2024."""
    return [
        TransactionSnapshot(
            date=datetime(2024, 1, 5, 9, 30),
            amount=Decimal("20.00"),
            type=TransactionType.EXPENSE,
            from_conto_id=CONTO_A,
            from_conto_name="Conto A",
            description="Supermercato",
            currency="EUR",
        ),
        TransactionSnapshot(
            date=datetime(2024, 1, 10, 12, 0),
            amount=Decimal("15.00"),
            type=TransactionType.INCOME,
            to_conto_id=CONTO_B,
            to_conto_name="Conto B",
            description="Rimborso",
            currency="EUR",
        ),
    ]


@pytest.fixture
def use_database(monkeypatch, database_url) -> str:
    """Point the configured DATABASE_URL at the test database."""
    monkeypatch.setattr(settings, "database_url", database_url)
    return database_url
