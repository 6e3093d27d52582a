"""
Engine and session management for the invoicing database.

PostgreSQL is the production backend and runs at READ COMMITTED; the
services take ``SELECT ... FOR UPDATE`` on the user row while allocating
an invoice number and on the invoice row while recording a payment.

SQLite URLs work for tests and local runs.  pysqlite's implicit
transaction handling is switched off so that ``begin_nested()`` issues
real SAVEPOINTs, and in-memory databases share one connection.

The module keeps one process-wide engine, set by ``init_engine_from_url``.
The accessors raise ``RuntimeError`` until it has been called.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from invoflow_kernel.logging_config import get_logger

logger = get_logger("db.engine")

IN_MEMORY_SQLITE_URLS = frozenset({"sqlite://", "sqlite:///:memory:"})

POSTGRES_POOL_DEFAULTS: dict[str, Any] = {
    "pool_size": 10,
    "max_overflow": 10,
    "pool_pre_ping": True,
    "pool_timeout": 30,
    "pool_recycle": 1800,
}

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _sqlite_engine(database_url: str, echo: bool) -> Engine:
    options: dict[str, Any] = {"echo": echo}
    if database_url in IN_MEMORY_SQLITE_URLS:
        options.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
    engine = create_engine(database_url, **options)

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def build_engine(database_url: str, echo: bool = False, **pool_options: Any) -> Engine:
    """
    Create an engine for ``database_url`` without touching module state.

    ``pool_options`` override ``POSTGRES_POOL_DEFAULTS`` and are ignored for
    SQLite.
    """
    if database_url.startswith("sqlite"):
        return _sqlite_engine(database_url, echo)

    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        isolation_level="READ COMMITTED",
        **{**POSTGRES_POOL_DEFAULTS, **pool_options},
    )


def init_engine_from_url(database_url: str, echo: bool = False, **pool_options: Any) -> Engine:
    """Install the process-wide engine; a second call replaces the first."""
    global _engine, _SessionFactory

    _engine = build_engine(database_url, echo=echo, **pool_options)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name, "echo": echo})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The factory the batch scheduler uses to open one session per tick."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Commit on a clean exit; roll back and re-raise otherwise.

    Usage:
        with session_scope() as session:
            build_services(session).invoices.send_invoice(user_id, invoice_id)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from invoflow_kernel.db.base import Base
    import invoflow_kernel.models  # noqa: F401  registers every table

    return Base.metadata


def create_tables(engine: Engine | None = None) -> None:
    _metadata().create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """Drop every invoicing table.  Tests and local resets only."""
    _metadata().drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose the process-wide engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


atexit.register(reset_engine)
