"""SQLAlchemy base configuration shared by the API and worker processes."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker, scoped_session, Session
from sqlalchemy.pool import StaticPool

from config.settings import DATABASE_URL

SQLITE_BUSY_TIMEOUT_SECONDS = 15


class Base(DeclarativeBase):
    """Base class for all ORM models."""


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _sqlite_file(database_url: str) -> str:
    """Database path for file-backed SQLite URLs, else an empty string."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return ""
    return url.database


def _enable_wal(dbapi_connection, _record) -> None:
    # Readers (API) must not block the writer (worker) on the shared file.
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
    finally:
        cursor.close()


def create_sqlalchemy_engine(database_url: str = DATABASE_URL) -> Engine:
    """Create an engine; SQLite files are opened in WAL mode with a busy timeout."""
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    connect_args = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS}
    path = _sqlite_file(database_url)
    if not path:
        return create_engine(database_url, connect_args=connect_args, poolclass=StaticPool)

    Path(path).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)
    event.listen(engine, "connect", _enable_wal)
    return engine


_ENGINES: dict[str, Engine] = {}
_SESSION_FACTORIES: dict[str, scoped_session] = {}


def get_engine(database_url: str = DATABASE_URL) -> Engine:
    engine = _ENGINES.get(database_url)
    if engine is None:
        engine = create_sqlalchemy_engine(database_url)
        _ENGINES[database_url] = engine
    return engine


def get_session_factory(database_url: str = DATABASE_URL) -> scoped_session:
    factory = _SESSION_FACTORIES.get(database_url)
    if factory is None:
        factory = scoped_session(
            sessionmaker(bind=get_engine(database_url), autoflush=False, expire_on_commit=False)
        )
        _SESSION_FACTORIES[database_url] = factory
    return factory


@contextmanager
def session_scope(factory: Callable[[], Session]) -> Iterator[Session]:
    """Commit on success, roll back on error, always close."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def dispose_engine(database_url: str = DATABASE_URL) -> None:
    """Drop cached connections for a database URL."""
    factory = _SESSION_FACTORIES.pop(database_url, None)
    if factory is not None:
        factory.remove()
    engine = _ENGINES.pop(database_url, None)
    if engine is not None:
        engine.dispose()
