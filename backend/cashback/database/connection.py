"""
Database engine and session management.

Uses settings.database_url (SQLite by default, any SQLAlchemy URL otherwise).
The engine is created lazily and cached; tests point it at a temporary file
with reset_engine_for_test().
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from cashback.config import settings
from cashback.utils.errors import PersistenceError
from cashback.utils.logger import get_logger

logger = get_logger(__name__)

Base = declarative_base()

_engine = None
_SessionLocal: Optional[sessionmaker] = None
_database_url: Optional[str] = None


def get_database_url() -> str:
    return _database_url or settings.database_url


def get_engine():
    """Create or return the cached engine."""
    global _engine
    if _engine is None:
        url = get_database_url()
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        try:
            _engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        except (SQLAlchemyError, ImportError) as e:
            # ImportError: the URL names a DBAPI driver that is not installed
            raise PersistenceError(f"Database unavailable: {e}") from e
        logger.info("database_engine_created", url=url.split("?")[0].split("//")[-1])
    return _engine


def get_session_factory() -> sessionmaker:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


@contextmanager
def session_scope() -> Iterator[Session]:
    """Single unit of work. Commits on success, rolls back on error."""
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f"Database error: {e}") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create all tables that do not exist yet."""
    # Imported for the side effect of registering the mapped classes.
    from cashback.database import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=get_engine())
    except SQLAlchemyError as e:
        raise PersistenceError(f"Could not initialise database: {e}") from e


def is_database_available() -> bool:
    """True when a trivial query succeeds."""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, PersistenceError) as e:
        logger.warning("database_unavailable", error=str(e))
        return False


def reset_engine_for_test(url: Optional[str] = None) -> None:
    """Dispose the cached engine and optionally switch to another URL."""
    global _engine, _SessionLocal, _database_url
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
    _database_url = url
