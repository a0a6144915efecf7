"""
Database Engine and Units of Work

Resolves the database URL, builds the engine (pooled PostgreSQL or local
SQLite) and hands out transactional sessions to the phrase store.

Environment:
- DATABASE_URL: PostgreSQL URL (hosted); takes priority
- SQLITE_PATH:  local SQLite file when DATABASE_URL is unset
- SQL_DEBUG:    "true" echoes SQL statements
"""

import os
import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from .models import Base

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_PATH = "seed_phrases_dev.db"
_IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def get_database_url() -> str:
    """DATABASE_URL when set (postgres:// rewritten for SQLAlchemy), else a SQLite file."""
    url = os.getenv("DATABASE_URL")
    if not url:
        path = os.getenv("SQLITE_PATH", DEFAULT_SQLITE_PATH)
        logger.warning(f"DATABASE_URL not set, falling back to SQLite at {path}")
        return f"sqlite:///{path}"

    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": os.getenv("SQL_DEBUG", "false").lower() == "true"}

    if url.startswith("postgresql"):
        options.update(
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
            pool_pre_ping=True,
        )
    else:
        options["connect_args"] = {"check_same_thread": False}
        if url in _IN_MEMORY_URLS:
            # In-memory databases live on a single shared connection
            options["poolclass"] = StaticPool
    return options


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_engine(url: Optional[str] = None) -> Engine:
    """Build an engine for url (default: get_database_url())."""
    url = url or get_database_url()
    engine = create_engine(url, **_engine_options(url))

    if engine.dialect.name == "sqlite":
        _enable_sqlite_foreign_keys(engine)
    logger.info(f"Created {engine.dialect.name} engine")
    return engine


# =============================================================================
# PROCESS-WIDE DEFAULTS (lazy)
# =============================================================================

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def make_session_factory(engine: Engine) -> sessionmaker:
    # Rows are read after commit when converted to records
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = make_session_factory(get_engine())
    return _session_factory


@contextmanager
def get_db_context(session_factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    One unit of work: commit on success, roll back and re-raise on error.

    Usage:
        with get_db_context() as db:
            db.add(row)
    """
    db = (session_factory or get_session_factory())()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# =============================================================================
# SCHEMA
# =============================================================================

def init_db(engine: Optional[Engine] = None, drop_all: bool = False) -> None:
    """Create missing tables; drop_all=True rebuilds from scratch."""
    engine = engine or get_engine()
    if drop_all:
        logger.warning("Dropping all tables")
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    logger.info(f"Schema ready: {', '.join(sorted(Base.metadata.tables))}")


def check_db_connection(engine: Optional[Engine] = None) -> bool:
    """True if a trivial query succeeds."""
    try:
        with (engine or get_engine()).connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
    return True
