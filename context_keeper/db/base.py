"""Database configuration and the Store handle for context-keeper."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# Default to a local SQLite database when DATABASE_URL is not provided.
DEFAULT_DATABASE_URL = "sqlite:///./context_keeper.db"


def _ensure_sync_driver(url: URL) -> URL:
    """Force a synchronous driver for Alembic and the ORM engine."""

    if url.drivername.startswith("postgresql+"):
        # Normalize any async driver variants to psycopg (sync)
        if any(token in url.drivername for token in ("async", "aiopg")):
            url = url.set(drivername="postgresql+psycopg")
    elif url.drivername.startswith("sqlite+"):
        if "aiosqlite" in url.drivername:
            url = url.set(drivername="sqlite")

    return url


def get_database_url(raw_url: Optional[str] = None) -> str:
    """Return a database URL with a guaranteed synchronous driver."""

    url = make_url(raw_url or DEFAULT_DATABASE_URL)
    # str(url) would mask the password with ***
    return _ensure_sync_driver(url).render_as_string(hide_password=False)


def _is_memory_sqlite(url: URL) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def _install_sqlite_hooks(engine: Engine, journal_wal: bool) -> None:
    """Make every SQLite transaction take the write lock up front.

    pysqlite defers BEGIN until the first write, so a read-then-write
    (sequence assignment, job claim) could interleave with another writer.
    Emitting BEGIN IMMEDIATE ourselves serializes writers for the whole
    transaction.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # noqa: ANN001
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if journal_wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):  # noqa: ANN001
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_store_engine(database_url: str, busy_timeout: float = 30.0) -> Engine:
    """Create an engine configured for the queue's transactional needs."""
    url = make_url(get_database_url(database_url))

    if url.get_backend_name() == "sqlite":
        if _is_memory_sqlite(url):
            # One shared connection so every session sees the same database
            engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
            _install_sqlite_hooks(engine, journal_wal=False)
        else:
            engine = create_engine(
                url,
                connect_args={"check_same_thread": False, "timeout": busy_timeout},
            )
            _install_sqlite_hooks(engine, journal_wal=True)
        return engine

    # PostgreSQL configuration for production
    return create_engine(
        url,
        pool_size=20,
        max_overflow=30,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


class Store:
    """Explicit handle on the relational store.

    Every component receives a Store instead of reaching for a module-level
    engine, so tests can run against isolated databases side by side.

    Usage:
        store = Store("sqlite:///./context_keeper.db")
        with store.session_scope() as db:
            JobQueue(db).enqueue("sanitize_async", {"messageId": "..."})
    """

    def __init__(self, database_url: str = DEFAULT_DATABASE_URL, busy_timeout: float = 30.0):
        self.database_url = get_database_url(database_url)
        self.engine = create_store_engine(self.database_url, busy_timeout=busy_timeout)
        self._session_factory = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    @classmethod
    def from_settings(cls, settings) -> "Store":  # noqa: ANN001
        return cls(settings.database_url, busy_timeout=settings.database_busy_timeout_seconds)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope: commit on success, roll back on error."""
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create_all(self) -> None:
        """Create all tables. Alembic migrations are the production path."""
        # Import all models to ensure they're registered with Base
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
