"""
Pytest Configuration and Shared Fixtures

Provides common fixtures and configuration for all test modules.
"""

import random
import pytest
from typing import Callable, Dict, List, Optional, Union

from src.collector import Pacer, SuggestionSourceError
from src.database import PhraseStore, create_db_engine, init_db, make_session_factory
from src.models import CandidateRecord, GenerationMethod
from src.utils.config import Settings


# ============================================================================
# Fake Suggestion Source
# ============================================================================

Response = Union[List[str], Exception]


class FakeSuggestionClient:
    """
    In-memory suggestion source.

    responses maps a query to its suggestions (or to an exception to raise).
    Unlisted queries fall back to `default(query)`. With fail_after=N the
    source answers N queries and then fails every one after.
    """

    name = "fake"
    estimated_cost_per_call = 0.0

    def __init__(
        self,
        responses: Optional[Dict[str, Response]] = None,
        default: Optional[Callable[[str], List[str]]] = None,
        supports_batch: bool = False,
        fail_all: bool = False,
        fail_after: Optional[int] = None,
    ):
        self.responses = responses or {}
        self.default = default or (lambda query: [])
        self.supports_batch = supports_batch
        self.fail_all = fail_all
        self.fail_after = fail_after
        self.answered = 0
        self.calls: List[str] = []
        self.batch_calls: List[List[str]] = []

    def _lookup(self, query: str) -> List[str]:
        if self.fail_all or (self.fail_after is not None and self.answered >= self.fail_after):
            raise SuggestionSourceError(f"source down for '{query}'", status_code=503)
        self.answered += 1
        result = self.responses.get(query)
        if isinstance(result, Exception):
            raise result
        if result is None:
            result = self.default(query)
        return list(result)

    async def fetch(self, query: str) -> List[str]:
        self.calls.append(query)
        return self._lookup(query)

    async def fetch_many(self, queries):
        self.batch_calls.append(list(queries))
        return {q: self._lookup(q) for q in queries}

    async def close(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def suffix_suggestions(query: str) -> List[str]:
    """Two unique, relevant suggestions per query."""
    return [f"{query} tips", f"{query} ideas"]


@pytest.fixture
def fake_client() -> FakeSuggestionClient:
    return FakeSuggestionClient(default=suffix_suggestions)


@pytest.fixture
def make_client():
    """Build a FakeSuggestionClient; unlisted queries get suffix suggestions."""
    def _make(responses=None, default=suffix_suggestions, **kwargs) -> FakeSuggestionClient:
        return FakeSuggestionClient(responses=responses, default=default, **kwargs)
    return _make


# ============================================================================
# Pacing
# ============================================================================

class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def recording_pacer(recording_sleep) -> Pacer:
    """Production bounds, no real waiting."""
    return Pacer(rng=random.Random(7), sleep=recording_sleep)


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database per test."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> PhraseStore:
    return PhraseStore(session_factory)


# ============================================================================
# Settings
# ============================================================================

@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        SUGGESTION_SOURCE="google",
        REFERENCE_YEAR=2026,
        MAX_CONSECUTIVE_FAILURES=3,
        SIGNAL_BATCH_SIZE=6,
        DEMAND_JITTER=2,
    )


# ============================================================================
# Candidate Builders
# ============================================================================

def build_candidate(
    text: str,
    method: GenerationMethod = GenerationMethod.AZ,
    position: int = 1,
    id: Optional[str] = None,
    session_id: str = "session-1",
    is_hidden: bool = False,
    parent_id: Optional[str] = None,
) -> CandidateRecord:
    return CandidateRecord(
        id=id or text.replace(" ", "-"),
        session_id=session_id,
        display_text=text.title(),
        normalized_text=text,
        generation_method=method,
        position=position,
        is_hidden=is_hidden,
        parent_id=parent_id,
    )


@pytest.fixture
def make_candidate():
    return build_candidate
