"""Engine, session factory and schema bootstrap for labelflow.

SQLite (the default) serves development and tests; production points
DATABASE_URL at PostgreSQL and applies Alembic migrations.
"""

import logging
import os
from contextlib import contextmanager
from typing import Iterator

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./labelflow.db")


def _is_sqlite_url(database_url: str) -> bool:
    return (database_url or "").startswith("sqlite")


def _is_memory_sqlite(database_url: str) -> bool:
    return _is_sqlite_url(database_url) and (":memory:" in database_url or database_url.rstrip("/") == "sqlite:")


def get_engine_kwargs(database_url: str) -> dict:
    """create_engine keyword arguments for a URL (no connection is made)."""
    kwargs: dict = {
        "echo": os.getenv("DEBUG", "False").lower() == "true",
        "pool_pre_ping": True,
    }
    if _is_sqlite_url(database_url):
        # Request handlers and jobs may share a connection across threads.
        kwargs["connect_args"] = {"check_same_thread": False}
        return kwargs

    kwargs["pool_size"] = int(os.getenv("DB_POOL_SIZE", "5"))
    kwargs["max_overflow"] = int(os.getenv("DB_MAX_OVERFLOW", "5"))
    kwargs["pool_timeout"] = int(os.getenv("DB_POOL_TIMEOUT_SEC", "30"))
    return kwargs


def _install_sqlite_pragmas(engine: Engine, wal: bool) -> None:
    # Documents and tasks reference cases; SQLite only enforces that with foreign_keys on.
    @event.listens_for(engine, "connect")
    def set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def build_engine(database_url: str) -> Engine:
    engine = create_engine(database_url, **get_engine_kwargs(database_url))
    if _is_sqlite_url(database_url):
        _install_sqlite_pragmas(engine, wal=not _is_memory_sqlite(database_url))
    return engine


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Iterator[Session]:
    """Request-scoped session (FastAPI dependency)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for one unit of work outside a request (jobs, scripts).

    Anything left uncommitted is rolled back when the block raises.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """Create or migrate the workflow schema.

    PostgreSQL with RUN_MIGRATIONS=true runs `alembic upgrade head`; every
    other setup uses `create_all`, which also creates the partial unique index
    guarding pending tasks.
    """
    from labelflow.database import models  # noqa: F401

    if os.getenv("RUN_MIGRATIONS", "False").lower() == "true" and not _is_sqlite_url(DATABASE_URL):
        from alembic import command
        from alembic.config import Config

        alembic_cfg = Config(os.getenv("ALEMBIC_INI", "alembic.ini"))
        alembic_cfg.set_main_option("sqlalchemy.url", DATABASE_URL)
        logger.info("Applying Alembic migrations")
        command.upgrade(alembic_cfg, "head")
        return

    Base.metadata.create_all(bind=engine)
