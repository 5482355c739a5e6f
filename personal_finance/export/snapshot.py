"""
Immutable transaction value used by the export pipeline.

Decouples filtering and serialization from ORM objects and sessions.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from personal_finance.core.config import settings
from personal_finance.db.models import Transaction, TransactionType


class TransactionSnapshot(BaseModel):
    """Read-only copy of a transaction with the related names resolved."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    date: datetime
    amount: Decimal
    type: Optional[TransactionType] = None
    from_conto_id: Optional[uuid.UUID] = None
    to_conto_id: Optional[uuid.UUID] = None
    from_conto_name: Optional[str] = None
    to_conto_name: Optional[str] = None
    category_name: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    currency: str = Field(default_factory=lambda: settings.base_currency)

    @property
    def signed_amount(self) -> Decimal:
        """Expenses are negative; untyped snapshots keep the sign they carry."""
        if self.type == TransactionType.EXPENSE:
            return -abs(self.amount)
        return self.amount

    @classmethod
    def from_model(cls, transaction: Transaction) -> "TransactionSnapshot":
        """
        Snapshot an ORM transaction.

        The related conti, their account and the category must be loaded.
        """
        from_conto = transaction.from_conto
        to_conto = transaction.to_conto

        currency = settings.base_currency
        for conto in (from_conto, to_conto):
            if conto is not None and conto.account is not None:
                currency = conto.account.currency
                break

        return cls(
            id=transaction.id,
            date=transaction.date,
            amount=transaction.amount,
            type=transaction.type,
            from_conto_id=transaction.from_conto_id,
            to_conto_id=transaction.to_conto_id,
            from_conto_name=from_conto.name if from_conto else None,
            to_conto_name=to_conto.name if to_conto else None,
            category_name=transaction.category.name if transaction.category else None,
            description=transaction.description,
            notes=transaction.notes,
            currency=currency,
        )
