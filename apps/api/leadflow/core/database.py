from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from leadflow.core.config import get_settings
from leadflow.errors import TransientStoreError


class Base(DeclarativeBase):
    pass


engine = create_engine(get_settings().database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def store_errors(session: Session, operation: str) -> Iterator[None]:
    """Run a unit of work, rolling the session back on any failure.

    Connectivity failures surface as TransientStoreError; everything else is re-raised as is.
    """

    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        session.rollback()
        raise TransientStoreError(f"{operation} failed", details={"error": str(exc)[:500]}) from exc
    except Exception:
        session.rollback()
        raise
