"""
Module: datagen_kernel.db.engine
Responsibility: Engine and session construction for the persistence adapter,
    the customer directory and the SQL checkpoint store.  Engines are built
    per orchestrator and passed down explicitly; there is no module-level
    engine.

Invariants enforced:
    - SAVEPOINTs work on every supported backend.  pysqlite defers BEGIN and
      breaks SAVEPOINT semantics, so SQLite engines emit their own BEGIN
      (the SQLAlchemy-documented recipe); per-section persistence isolation
      depends on it.
    - SQLite connections may be used from the controller worker thread.
    - PostgreSQL engines use a pre-pinged, recycled QueuePool.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from datagen_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def _install_sqlite_savepoint_support(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _is_memory_sqlite(database_url: str) -> bool:
    return ":memory:" in database_url or database_url.rstrip("/") == "sqlite:"


def create_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 5,
) -> Engine:
    """Engine for ``database_url``.

    In-memory SQLite gets a StaticPool so every session, on any thread, sees
    the same database.
    """
    if database_url.startswith("sqlite"):
        options: dict = {"connect_args": {"check_same_thread": False}}
        if _is_memory_sqlite(database_url):
            options["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **options)
        _install_sqlite_savepoint_support(engine)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_recycle=1800,
        )

    logger.info(
        "db_engine_created",
        extra={"dialect": engine.dialect.name, "echo": echo},
    )
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Commit on success, roll back and re-raise on error, always close."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    """Create every engine table that does not exist yet."""
    from datagen_kernel.db.base import Base
    import datagen_batch.models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.debug(
        "db_tables_ensured",
        extra={"tables": sorted(Base.metadata.tables)},
    )
