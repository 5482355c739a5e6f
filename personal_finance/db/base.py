"""
Declarative base for the ledger models.

Constraint names follow a fixed convention so that SQLite and PostgreSQL
schemas stay comparable.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, MetaData, Numeric
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all ledger models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    # Money columns default to two decimals; datetimes are naive local time
    type_annotation_map = {
        Decimal: Numeric(12, 2),
        datetime: DateTime(timezone=False),
    }

    __tablename__: str

    def __repr__(self) -> str:
        name = getattr(self, "name", None)
        label = f" {name!r}" if name else ""
        return f"<{type(self).__name__} {getattr(self, 'id', None)}{label}>"


class TimestampMixin:
    """Creation and last-update times, set by the database."""

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
