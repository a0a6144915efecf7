"""
Seed Phrase Database Layer

Sessions, candidate phrases and their scores.

Usage:
    from src.database import init_db, PhraseStore

    # Initialize database
    init_db()

    # Create a session (stores the seed as the first candidate)
    store = PhraseStore()
    session = store.create_session("cold brew coffee")

    # Read back everything harvested so far
    candidates = store.read_all(session.id)
"""

# Models
from .models import (
    Base,
    SeedSession,
    CandidatePhrase,
    PhraseScore,
    SessionStatus,
)

# Session management
from .session import (
    get_database_url,
    create_db_engine,
    get_engine,
    make_session_factory,
    get_session_factory,
    get_db_context,
    init_db,
    check_db_connection,
)

# Repository
from .repository import PhraseStore, get_session_stats

__all__ = [
    # Models
    "Base",
    "SeedSession",
    "CandidatePhrase",
    "PhraseScore",
    "SessionStatus",
    # Session
    "get_database_url",
    "create_db_engine",
    "get_engine",
    "make_session_factory",
    "get_session_factory",
    "get_db_context",
    "init_db",
    "check_db_connection",
    # Repository
    "PhraseStore",
    "get_session_stats",
]
