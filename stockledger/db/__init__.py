"""Database package: engine, session factory, init_db(), reset_db(), get_session()."""

import threading
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stockledger.config import DATABASE_ECHO, DATABASE_URL
from stockledger.db.base import Base

# Import all models so Base.metadata has all tables
from stockledger.db.models import (  # noqa: F401
    BomLine,
    BomVersion,
    Brand,
    Company,
    Component,
    DefectAlert,
    DefectThreshold,
    FinishedGoodsBalance,
    FinishedGoodsLine,
    ForecastConfig,
    InventoryBalance,
    Location,
    Lot,
    LotBalance,
    Sku,
    Transaction,
    TransactionLine,
)
from stockledger.utils.logger import get_logger

logger = get_logger("stockledger.db")

_init_lock = threading.Lock()
_engine: Engine | None = None
_SessionLocal: sessionmaker | None = None


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def _get_engine(url: str) -> Engine:
    """Create engine with check_same_thread=False for use from executor threads."""
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if _is_memory_sqlite(url):
            # One shared connection, otherwise every checkout sees an empty database
            return create_engine(url, echo=DATABASE_ECHO, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(url, echo=DATABASE_ECHO, connect_args=connect_args)
    return create_engine(url, echo=DATABASE_ECHO, pool_pre_ping=True)


def init_db(database_url: Optional[str] = None) -> None:
    """Create engine and tables if not done yet. Safe to call repeatedly."""
    global _engine, _SessionLocal
    with _init_lock:
        if _SessionLocal is not None:
            return
        url = database_url or DATABASE_URL
        _engine = _get_engine(url)
        Base.metadata.create_all(bind=_engine)
        _SessionLocal = sessionmaker(bind=_engine, autocommit=False, autoflush=False)
        logger.info("db.init", dialect=_engine.dialect.name)


def reset_db(database_url: Optional[str] = None) -> None:
    """Dispose the current engine and start over on database_url (tests use 'sqlite://')."""
    global _engine, _SessionLocal
    with _init_lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _SessionLocal = None
    init_db(database_url)


def get_engine() -> Engine:
    init_db()
    return _engine


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Context manager yielding a DB session. Commits on success, rolls back on any exception."""
    init_db()
    session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
