"""
Engine and session helpers.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from personal_finance.core.config import settings
from personal_finance.core.logging import get_logger
from personal_finance.db.base import Base

# Register models on the metadata
from personal_finance.db import models  # noqa: F401

logger = get_logger(__name__)


def get_engine(db_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Create an engine for the configured database.

    The parent directory of a SQLite file is created on demand.

    Args:
        db_url: SQLAlchemy database URL (defaults to settings)
        echo: Echo SQL statements (defaults to settings)

    Returns:
        SQLAlchemy engine
    """
    db_url = db_url or settings.database_url

    if db_url.startswith("sqlite:///") and ":memory:" not in db_url:
        db_file = Path(db_url.replace("sqlite:///", "", 1))
        db_file.parent.mkdir(parents=True, exist_ok=True)

    return create_engine(db_url, echo=settings.database_echo if echo is None else echo)


def init_database(engine: Engine) -> None:
    """
    Create all tables that do not exist yet.

    Args:
        engine: SQLAlchemy engine
    """
    Base.metadata.create_all(engine)
    logger.info("Database initialized", extra={"url": engine.url.render_as_string()})


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory bound to ``engine``; objects stay usable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """
    Transactional scope: commit on success, roll back on error.

    Args:
        factory: Session factory

    Yields:
        Open session
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
