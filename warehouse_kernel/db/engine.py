"""
Module: warehouse_kernel.db.engine
Responsibility: Build the process-wide SQLAlchemy engine and session factory
    and provide the transactional scope callers wrap stock work in.
Architecture position: Kernel > DB.  Imports db/base.py; imports models/
    only inside ``create_tables`` so every table is registered.

Invariants enforced:
    - PostgreSQL (production) runs READ COMMITTED on a pre-pinged QueuePool.
    - SQLite (local use and the test-suite) enforces foreign keys and lets
      SQLAlchemy emit BEGIN itself, so SAVEPOINTs nest as they do on
      PostgreSQL.  Deleting a reserved inventory record and rolling back a
      single batch item both rely on this.
    - Services never commit; ``session_scope`` is the one place that does.

Failure modes:
    - RuntimeError from get_engine/get_session/get_session_factory before
      ``init_engine_from_url``.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from warehouse_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

POSTGRES_POOL_DEFAULTS: dict[str, Any] = {
    "pool_size": 20,
    "max_overflow": 10,
    "pool_pre_ping": True,
    "pool_timeout": 30,
    "pool_recycle": 1800,
}

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None
_atexit_registered = False


def install_sqlite_pragmas(engine: Engine) -> Engine:
    """Turn on foreign keys and SQLAlchemy-managed BEGIN for a SQLite engine."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # pysqlite would otherwise open transactions itself and break SAVEPOINT
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def create_sqlite_engine(database_url: str = "sqlite://", echo: bool = False) -> Engine:
    return install_sqlite_pragmas(create_engine(database_url, echo=echo))


def is_sqlite_url(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def init_engine_from_url(database_url: str, echo: bool = False, **pool_options: Any) -> Engine:
    """
    Create the process-wide engine and session factory.

    ``pool_options`` override ``POSTGRES_POOL_DEFAULTS`` and are ignored for
    SQLite.  Calling again replaces the previous engine (it is disposed).
    """
    global _engine, _session_factory, _atexit_registered

    if _engine is not None:
        _engine.dispose()

    if is_sqlite_url(database_url):
        engine = create_sqlite_engine(database_url, echo=echo)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            isolation_level="READ COMMITTED",
            **{**POSTGRES_POOL_DEFAULTS, **pool_options},
        )

    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    if not _atexit_registered:
        atexit.register(reset_engine)
        _atexit_registered = True

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": engine.dialect.name, "echo": echo},
    )
    return engine


def _require_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _session_factory


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """A new Session; the caller owns it and must close it."""
    return _require_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that manage one Session per worker or request."""
    return _require_factory()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on normal exit, roll back and re-raise on error, always close.

    Usage:
        with session_scope() as session:
            StockMutator(session).deduct(item_id, TierQuantity(level3=5))
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception as exc:
        session.rollback()
        logger.warning(
            "transaction_rolled_back",
            extra={"error_type": type(exc).__name__},
            exc_info=True,
        )
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create every kernel table on ``engine`` (default: the process engine)."""
    from warehouse_kernel.db.base import Base
    import warehouse_kernel.models  # noqa: F401  (registers tables)

    Base.metadata.create_all(engine or get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables(engine: Engine | None = None) -> None:
    """Drop every kernel table. Test and local use only."""
    from warehouse_kernel.db.base import Base

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
