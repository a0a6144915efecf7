"""
Seed Phrase Engine - Data Models

Shared plain records passed between the collector, scoring and the
phrase store. Persistence models live in src.database.models.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional


class GenerationMethod(Enum):
    """How a candidate phrase entered the session."""
    SEED = "seed"
    TOP10 = "top10"
    AZ = "az"
    PREFIX = "prefix"
    CHILD = "child"


@dataclass
class SuggestionBatch:
    """
    One query and the suggestions it returned, strongest first.

    Never persisted. A failed or timed-out call is represented as an
    empty batch with failed=True.
    """
    query: str
    suggestions: List[str] = field(default_factory=list)
    failed: bool = False
    parent_id: Optional[str] = None
    duration: float = 0.0


@dataclass
class SessionSnapshot:
    """Read-only view of a session row."""
    id: str
    seed_text: str
    seed_normalized: str
    status: str = "created"
    candidate_count: int = 0
    ecosystem_score: Optional[int] = None
    seed_score: Optional[int] = None
    language: str = "en"
    country: str = "US"


@dataclass
class CandidateRecord:
    """A harvested phrase attached to a session."""
    session_id: str
    display_text: str
    normalized_text: str
    generation_method: GenerationMethod
    position: int
    id: Optional[str] = None
    tag: str = "no_tag"
    tag_source: Optional[str] = None
    parent_id: Optional[str] = None
    is_hidden: bool = False


@dataclass
class SessionAggregate:
    """Session-wide statistics, resolved once before per-phrase scoring."""
    candidate_count: int
    word_frequency: Dict[str, int] = field(default_factory=dict)


@dataclass
class PhraseSignals:
    """What the suggestion source returned when queried with the phrase itself."""
    suggestion_count: int
    exact_match_pct: int
    topic_match_pct: int


@dataclass
class ScoreRecord:
    """Per-phrase score fields written back to the store."""
    phrase_id: str
    ecosystem_score: int
    density_score: int
    relevancy_score: int
    inheritance_bonus: int
    anchor_boost: int
    length_adjustment: int
    demand_score: int
    opportunity_score: int
    match_strength: str
    opportunity_label: str
    is_super_topic: bool = False
    suggestion_count: int = 0
    exact_match_pct: int = 0
    topic_match_pct: int = 0
