"""
Unit tests for store queries and demo data.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select

from personal_finance.db import repository
from personal_finance.db.demo import DEMO_CATEGORIES, seed_demo_data
from personal_finance.db.models import Conto, Transaction, TransactionType
from personal_finance.db.session import session_scope


class TestTransactionsInRange:
    """Date-bounded query."""

    def test_all_newest_first(self, session_factory, ledger):
        with session_factory() as session:
            rows = repository.transactions_in_range(session)

        assert [row.date for row in rows] == sorted((row.date for row in rows), reverse=True)
        assert len(rows) == 4

    def test_inclusive_bounds(self, session_factory, ledger):
        with session_factory() as session:
            rows = repository.transactions_in_range(
                session,
                datetime(2024, 1, 5, 9, 30),
                datetime(2024, 1, 10, 12, 0),
            )

            assert [row.description for row in rows] == ["Rimborso", "Supermercato"]

    def test_relations_loaded_after_close(self, session_factory, ledger):
        with session_factory() as session:
            rows = repository.transactions_in_range(session, datetime(2024, 2, 1))

        transfer = rows[0]
        assert transfer.from_conto.name == "Conto A"
        assert transfer.to_conto.account.name == "Personale"
        assert transfer.category is None


class TestConti:
    """Conto lookups."""

    def test_list_conti_with_balance(self, session_factory, ledger):
        with session_factory() as session:
            conti = repository.list_conti(session)

            assert [conto.name for conto in conti] == ["Conto A", "Conto B"]
            # A: 100 - 5 - 20 - 100, B: 0 + 15 + 100
            assert conti[0].balance == Decimal("-25.00")
            assert conti[1].balance == Decimal("115.00")
            assert conti[0].account.total_balance == Decimal("90.00")

    def test_list_conti_for_account(self, session_factory, ledger):
        with session_factory() as session:
            assert len(repository.list_conti(session, ledger["account_id"])) == 2

    def test_find_conti_by_name_and_id(self, session_factory, ledger):
        with session_factory() as session:
            found, missing = repository.find_conti(
                session,
                ["conto a", str(ledger["conto_b"]), "Conto A", "Carta"],
            )

        assert [conto.id for conto in found] == [ledger["conto_a"], ledger["conto_b"]]
        assert missing == ["Carta"]

    def test_accounts(self, session_factory, ledger):
        with session_factory() as session:
            assert repository.first_account(session).name == "Personale"
            assert repository.get_account_by_name(session, "Personale").id == ledger["account_id"]
            assert repository.get_account_by_name(session, "Altro") is None


class TestDemoData:
    """Demo ledger."""

    def test_seed_demo_data(self, session_factory):
        with session_scope(session_factory) as session:
            account = seed_demo_data(session, months=2, seed=7, reference=datetime(2024, 3, 15))
            account_id = account.id

        with session_factory() as session:
            conti = repository.list_conti(session, account_id)
            total = session.scalar(select(func.count()).select_from(Transaction))
            transfers = session.scalar(
                select(func.count()).select_from(Transaction).where(Transaction.type == TransactionType.TRANSFER)
            )
            first, last = session.execute(select(func.min(Transaction.date), func.max(Transaction.date))).one()

        assert sorted(conto.name for conto in conti) == ["Contanti", "Conto Corrente", "Risparmi"]
        assert total == 2 * 11
        assert transfers == 4
        assert first >= datetime(2024, 2, 1)
        assert last < datetime(2024, 4, 1)

    def test_seed_is_reproducible(self, session_factory):
        with session_scope(session_factory) as session:
            seed_demo_data(session, months=1, seed=3, reference=datetime(2024, 3, 15))
        with session_scope(session_factory) as session:
            seed_demo_data(session, months=1, seed=3, reference=datetime(2024, 3, 15))

        with session_factory() as session:
            amounts = session.execute(
                select(Conto.name, Transaction.amount)
                .join(Conto, Transaction.from_conto_id == Conto.id)
                .where(Conto.name == "Contanti")
            ).all()

        assert len(amounts) == 2
        assert amounts[0][1] == amounts[1][1]

    def test_demo_categories(self, session_factory):
        with session_scope(session_factory) as session:
            account = seed_demo_data(session, months=1, seed=1)
            assert len(account.categories) == len(DEMO_CATEGORIES)
