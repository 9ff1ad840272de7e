import logging
from contextlib import contextmanager
from typing import Any
from typing import Iterator

from sqlalchemy import Engine
from sqlalchemy import create_engine
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from notesync.config import get_settings
from notesync.errors import StorageError

logger = logging.getLogger(__name__)

_settings = get_settings()


# Create Base class
Base = declarative_base()


def make_engine(db_url: str, **kwargs) -> Engine:
    """Create a SQLAlchemy engine with the given URL and options.

    Args:
        db_url: Database connection URL
        **kwargs: Additional arguments for create_engine

    Returns:
        A SQLAlchemy Engine instance
    """
    connect_args = kwargs.pop("connect_args", {})
    if "sqlite" in db_url:
        if "check_same_thread" not in connect_args:
            connect_args["check_same_thread"] = False
        connect_args.setdefault("timeout", 30)
        # A single shared connection keeps an in-memory database alive
        # across sessions.
        if ":memory:" in db_url:
            kwargs.setdefault("poolclass", StaticPool)

    engine = create_engine(db_url, connect_args=connect_args, **kwargs)

    if engine.dialect.name == "sqlite":
        # pysqlite issues its own BEGIN lazily, which breaks SAVEPOINT
        # handling; let SQLAlchemy emit BEGIN itself.
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):  # noqa: ARG001
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


def make_sessionmaker(engine: Engine) -> sessionmaker:
    """Create a sessionmaker bound to the given engine.

    ``expire_on_commit=False`` keeps attributes readable after a commit so
    routers can serialise rows once the service layer has committed.
    """

    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


# Default engine and sessionmaker instances for app usage.  Tests overwrite
# ``notesync.database.default_session_factory`` or the ``get_db`` dependency.

_resolved_db_url = _settings.database_url or ("sqlite:///:memory:" if _settings.testing else "sqlite:///./notesync.db")

default_engine = make_engine(_resolved_db_url)
default_session_factory = make_sessionmaker(default_engine)


def get_session_factory() -> sessionmaker:
    """Return the application-wide session factory."""

    return default_session_factory


def get_db(session_factory: Any = None) -> Iterator[Session]:
    """Dependency provider for database sessions.

    Args:
        session_factory: Optional custom session factory

    Yields:
        SQLAlchemy Session object
    """
    factory = session_factory or get_session_factory()
    db = factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def db_session(session_factory: Any = None):
    """Database session context manager for scripts and background work.

    Commits on success, rolls back on error and always closes.

    Usage:
        with db_session() as db:
            crud.create_note(db, owner_id=user.id, title="t", content="c")
    """
    factory = session_factory or get_session_factory()
    session = factory()

    try:
        yield session
        session.commit()
        logger.debug("Database session committed successfully")

    except Exception as e:
        session.rollback()
        logger.error(f"Database session rolled back due to error: {e}")
        raise

    finally:
        session.close()


def commit_or_raise(db: Session, operation: str) -> None:
    """Commit *db*; on a database error roll back and raise ``StorageError``."""

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Commit failed during {operation}: {exc}")
        raise StorageError(operation, exc) from exc


def initialize_database(engine: Engine = None) -> None:
    """Create all tables on *engine* (defaults to the application engine)."""

    # Import models so they are registered with Base before create_all.
    from notesync.models.models import Category  # noqa: F401
    from notesync.models.models import Note  # noqa: F401
    from notesync.models.models import User  # noqa: F401
    from notesync.models.sync import SyncRecord  # noqa: F401

    target_engine = engine or default_engine
    Base.metadata.create_all(bind=target_engine)
