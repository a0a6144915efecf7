"""
SQLAlchemy Models for the Seed Phrase Engine

Design Principles:
1. One session per seed phrase
2. Candidate phrases are never deleted, only hidden
3. Tags and scores are recomputed in place, not versioned
4. Normalized text is unique within a session

Generic column types only, so the same schema runs on PostgreSQL and
SQLite.
"""

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Text,
    ForeignKey, Enum, Index, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from src.models import GenerationMethod

Base = declarative_base()


def _uuid() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class SessionStatus(enum.Enum):
    """Lifecycle of a harvesting + scoring session"""
    CREATED = "created"
    EXPANDING = "expanding"
    EXPANDED = "expanded"
    SCORING = "scoring"
    SCORED = "scored"
    FAILED = "failed"


# =============================================================================
# CORE TABLES
# =============================================================================

class SeedSession(Base):
    """One harvesting + scoring run for a seed phrase"""
    __tablename__ = "seed_sessions"

    id = Column(String(36), primary_key=True, default=_uuid)

    # Seed
    seed_text = Column(String(255), nullable=False)
    seed_normalized = Column(String(255), nullable=False)
    language = Column(String(10), default="en")
    country = Column(String(10), default="US")

    # Derived (recomputed whenever candidates change)
    status = Column(Enum(SessionStatus), default=SessionStatus.CREATED, nullable=False)
    candidate_count = Column(Integer, default=0)
    ecosystem_score = Column(Integer)
    seed_score = Column(Integer)
    error_message = Column(Text)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    phrases = relationship("CandidatePhrase", back_populates="session", cascade="all, delete-orphan")


class CandidatePhrase(Base):
    """A harvested, normalized, filtered phrase"""
    __tablename__ = "candidate_phrases"

    id = Column(String(36), primary_key=True, default=_uuid)
    session_id = Column(String(36), ForeignKey("seed_sessions.id"), nullable=False)

    # Text
    display_text = Column(String(500), nullable=False)
    normalized_text = Column(String(500), nullable=False)

    # Origin
    generation_method = Column(Enum(GenerationMethod), nullable=False)
    position = Column(Integer, nullable=False, default=0)  # rank within origin phase
    parent_phrase_id = Column(String(36), ForeignKey("candidate_phrases.id"), nullable=True)

    # Classification
    tag = Column(String(20), default="no_tag", nullable=False)
    tag_source = Column(String(500))  # normalized anchor that produced the tag

    is_hidden = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    session = relationship("SeedSession", back_populates="phrases")
    score = relationship("PhraseScore", back_populates="phrase", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("session_id", "normalized_text", name="uq_phrase_session_normalized"),
        Index("idx_phrase_session_method", "session_id", "generation_method"),
        CheckConstraint(
            "tag IN ('top_10', 't10_child', 't10_related', 'no_tag')",
            name="check_phrase_tag",
        ),
    )


class PhraseScore(Base):
    """Score fields for one phrase; overwritten on every scoring pass"""
    __tablename__ = "phrase_scores"

    phrase_id = Column(String(36), ForeignKey("candidate_phrases.id"), primary_key=True)
    session_id = Column(String(36), ForeignKey("seed_sessions.id"), nullable=False)

    # Demand components
    ecosystem_score = Column(Integer, default=0)
    density_score = Column(Integer, default=0)
    relevancy_score = Column(Integer, default=0)
    inheritance_bonus = Column(Integer, default=0)
    anchor_boost = Column(Integer, default=0)
    length_adjustment = Column(Integer, default=0)
    demand_score = Column(Integer, default=0)

    # Opportunity
    opportunity_score = Column(Integer, default=0)
    opportunity_label = Column(String(20))
    is_super_topic = Column(Boolean, default=False)
    match_strength = Column(String(10))

    # Signals the scores were computed from
    suggestion_count = Column(Integer, default=0)
    exact_match_pct = Column(Integer, default=0)
    topic_match_pct = Column(Integer, default=0)

    scored_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    phrase = relationship("CandidatePhrase", back_populates="score")

    __table_args__ = (
        Index("idx_score_session_demand", "session_id", "demand_score"),
        CheckConstraint("demand_score >= 0", name="check_demand_non_negative"),
        CheckConstraint(
            "opportunity_score >= 0 AND opportunity_score <= 100",
            name="check_opportunity_range",
        ),
    )
