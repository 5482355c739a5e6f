"""
Database models for the personal-finance ledger.

All models use SQLAlchemy 2.0 declarative base with type hints.
An account ("libro") owns conti (wallets) and categories; transactions move
money out of a conto (``from_conto``), into a conto (``to_conto``) or both.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from personal_finance.db.base import Base, TimestampMixin


class ContoType(str, enum.Enum):
    """Kind of wallet."""

    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    INVESTMENT = "investment"
    CASH = "cash"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return {
            ContoType.CHECKING: "Conto Corrente",
            ContoType.SAVINGS: "Conto Risparmio",
            ContoType.CREDIT: "Carta di Credito",
            ContoType.INVESTMENT: "Investimenti",
            ContoType.CASH: "Contanti",
            ContoType.OTHER: "Altro",
        }[self]

    @property
    def icon(self) -> str:
        return {
            ContoType.CHECKING: "creditcard",
            ContoType.SAVINGS: "banknote",
            ContoType.CREDIT: "creditcard.fill",
            ContoType.INVESTMENT: "chart.line.uptrend.xyaxis",
            ContoType.CASH: "dollarsign.circle",
            ContoType.OTHER: "questionmark.circle",
        }[self]


class TransactionType(str, enum.Enum):
    """Direction of a transaction."""

    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"

    @property
    def display_name(self) -> str:
        return {
            TransactionType.INCOME: "Entrata",
            TransactionType.EXPENSE: "Spesa",
            TransactionType.TRANSFER: "Trasferimento",
        }[self]


class Account(Base, TimestampMixin):
    """
    Top-level ledger ("libro").
    """

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    conti: Mapped[list["Conto"]] = relationship(
        back_populates="account", cascade="all"
    )
    categories: Mapped[list["Category"]] = relationship(
        back_populates="account", cascade="all"
    )

    @property
    def active_conti(self) -> list["Conto"]:
        return [conto for conto in self.conti if conto.is_active]

    @property
    def total_balance(self) -> Decimal:
        return sum((conto.balance for conto in self.conti), Decimal("0"))


class Conto(Base, TimestampMixin):
    """
    Wallet belonging to an account.

    Balance is derived from the initial balance and the transactions
    flowing in and out; it is never stored.
    """

    __tablename__ = "conti"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[ContoType] = mapped_column(
        Enum(ContoType, native_enum=False, length=20), nullable=False, default=ContoType.CHECKING
    )
    initial_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(9), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    account: Mapped[Optional[Account]] = relationship(back_populates="conti")
    outgoing_transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="from_conto",
        foreign_keys="Transaction.from_conto_id",
        cascade="all",
    )
    incoming_transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="to_conto",
        foreign_keys="Transaction.to_conto_id",
        cascade="all",
    )

    @property
    def balance(self) -> Decimal:
        incoming = sum((t.amount for t in self.incoming_transactions), Decimal("0"))
        outgoing = sum((t.amount for t in self.outgoing_transactions), Decimal("0"))
        return (self.initial_balance or Decimal("0")) + incoming - outgoing


class Category(Base, TimestampMixin):
    """
    Spending/income category.
    """

    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(9), nullable=False, default="#007AFF")
    icon: Mapped[str] = mapped_column(String(50), nullable=False, default="tag")

    account: Mapped[Optional[Account]] = relationship(back_populates="categories")


class Transaction(Base, TimestampMixin):
    """
    Money movement between conti.

    ``amount`` is stored unsigned; the direction comes from ``type``.
    Expenses use ``from_conto``, incomes ``to_conto``, transfers both.
    """

    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, native_enum=False, length=20), nullable=False, index=True
    )
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    from_conto_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("conti.id", ondelete="CASCADE"), nullable=True, index=True
    )
    to_conto_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("conti.id", ondelete="CASCADE"), nullable=True, index=True
    )
    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )

    from_conto: Mapped[Optional[Conto]] = relationship(
        back_populates="outgoing_transactions", foreign_keys=[from_conto_id]
    )
    to_conto: Mapped[Optional[Conto]] = relationship(
        back_populates="incoming_transactions", foreign_keys=[to_conto_id]
    )
    category: Mapped[Optional[Category]] = relationship()

    __table_args__ = (
        Index("idx_transactions_date_type", "date", "type"),
    )

    @property
    def display_amount(self) -> Decimal:
        if self.type == TransactionType.EXPENSE:
            return -self.amount
        return self.amount

    @property
    def is_transfer(self) -> bool:
        return self.type == TransactionType.TRANSFER
