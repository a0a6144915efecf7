"""
Repository Layer - Phrase Store

Clean interface over the session, candidate and score tables.
Handles all SQLAlchemy complexity internally and hands plain records
(src.models) back to the collector, scoring and the API.

Usage:
    store = PhraseStore()
    session = store.create_session("cold brew coffee")
    store.insert_many(session.id, records)
    aggregate = store.read_session_aggregate(session.id)
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import sessionmaker

from src.models import (
    CandidateRecord,
    GenerationMethod,
    ScoreRecord,
    SessionAggregate,
    SessionSnapshot,
)
from src.scoring.aggregator import build_session_aggregate
from src.utils.text import normalize_phrase
from .models import SeedSession, CandidatePhrase, PhraseScore, SessionStatus
from .session import get_db_context

logger = logging.getLogger(__name__)


# =============================================================================
# ROW CONVERSION
# =============================================================================

def _session_to_snapshot(row: SeedSession) -> SessionSnapshot:
    return SessionSnapshot(
        id=row.id,
        seed_text=row.seed_text,
        seed_normalized=row.seed_normalized,
        status=row.status.value,
        candidate_count=row.candidate_count or 0,
        ecosystem_score=row.ecosystem_score,
        seed_score=row.seed_score,
        language=row.language,
        country=row.country,
    )


def _phrase_to_record(row: CandidatePhrase) -> CandidateRecord:
    return CandidateRecord(
        id=row.id,
        session_id=row.session_id,
        display_text=row.display_text,
        normalized_text=row.normalized_text,
        generation_method=row.generation_method,
        position=row.position,
        tag=row.tag,
        tag_source=row.tag_source,
        parent_id=row.parent_phrase_id,
        is_hidden=row.is_hidden,
    )


def _score_to_record(row: PhraseScore) -> ScoreRecord:
    return ScoreRecord(
        phrase_id=row.phrase_id,
        ecosystem_score=row.ecosystem_score,
        density_score=row.density_score,
        relevancy_score=row.relevancy_score,
        inheritance_bonus=row.inheritance_bonus,
        anchor_boost=row.anchor_boost,
        length_adjustment=row.length_adjustment,
        demand_score=row.demand_score,
        opportunity_score=row.opportunity_score,
        match_strength=row.match_strength,
        opportunity_label=row.opportunity_label,
        is_super_topic=row.is_super_topic,
        suggestion_count=row.suggestion_count,
        exact_match_pct=row.exact_match_pct,
        topic_match_pct=row.topic_match_pct,
    )


class PhraseStore:
    """
    Session-scoped candidate store.

    Every method opens its own unit of work, committed on success and
    rolled back on error.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        """
        Args:
            session_factory: SQLAlchemy sessionmaker (defaults to the global one)
        """
        self._session_factory = session_factory

    def _db(self):
        return get_db_context(self._session_factory)

    # =========================================================================
    # SESSIONS
    # =========================================================================

    def create_session(self, seed_text: str, language: str = "en", country: str = "US") -> SessionSnapshot:
        """
        Create a session and store its seed as the first candidate.

        Raises:
            ValueError: Seed is blank after normalization
        """
        seed_text = (seed_text or "").strip()
        normalized = normalize_phrase(seed_text)
        if not normalized:
            raise ValueError("A seed phrase is required")

        with self._db() as db:
            session = SeedSession(
                seed_text=seed_text,
                seed_normalized=normalized,
                language=language,
                country=country,
                status=SessionStatus.CREATED,
                candidate_count=0,
            )
            db.add(session)
            db.flush()

            db.add(CandidatePhrase(
                session_id=session.id,
                display_text=seed_text,
                normalized_text=normalized,
                generation_method=GenerationMethod.SEED,
                position=0,
            ))
            db.flush()

            logger.info(f"Created session {session.id} for seed '{seed_text}'")
            return _session_to_snapshot(session)

    def get_session(self, session_id: str) -> Optional[SessionSnapshot]:
        with self._db() as db:
            row = db.get(SeedSession, session_id)
            return _session_to_snapshot(row) if row else None

    def list_sessions(self, limit: int = 50) -> List[SessionSnapshot]:
        """Most recent sessions first."""
        with self._db() as db:
            rows = (
                db.query(SeedSession)
                .order_by(SeedSession.created_at.desc())
                .limit(limit)
                .all()
            )
            return [_session_to_snapshot(r) for r in rows]

    def set_session_status(
        self,
        session_id: str,
        status: SessionStatus,
        error_message: Optional[str] = None,
    ) -> None:
        """Update session status"""
        with self._db() as db:
            row = db.get(SeedSession, session_id)
            if row:
                row.status = status
                row.error_message = error_message
                if status == SessionStatus.FAILED:
                    logger.error(f"Session {session_id} failed: {error_message}")

    def update_session_stats(
        self,
        session_id: str,
        candidate_count: int,
        ecosystem_score: int,
        seed_score: int,
    ) -> None:
        """Write the derived session values after candidates change."""
        with self._db() as db:
            row = db.get(SeedSession, session_id)
            if row:
                row.candidate_count = candidate_count
                row.ecosystem_score = ecosystem_score
                row.seed_score = seed_score
                row.updated_at = datetime.utcnow()

    # =========================================================================
    # CANDIDATES
    # =========================================================================

    def read_all(self, session_id: str, include_hidden: bool = False) -> List[CandidateRecord]:
        """All candidates of a session in insertion order."""
        with self._db() as db:
            query = db.query(CandidatePhrase).filter(CandidatePhrase.session_id == session_id)
            if not include_hidden:
                query = query.filter(CandidatePhrase.is_hidden.is_(False))
            rows = query.order_by(CandidatePhrase.created_at, CandidatePhrase.position).all()
            return [_phrase_to_record(r) for r in rows]

    def get_phrase(self, phrase_id: str) -> Optional[CandidateRecord]:
        with self._db() as db:
            row = db.get(CandidatePhrase, phrase_id)
            return _phrase_to_record(row) if row else None

    def insert_many(self, session_id: str, records: Iterable[CandidateRecord]) -> List[CandidateRecord]:
        """
        Store new candidates, skipping any whose normalized text is already
        in the session (hidden phrases included).

        Returns:
            The records actually inserted, with ids assigned
        """
        inserted: List[CandidateRecord] = []

        with self._db() as db:
            existing = {
                text for (text,) in db.query(CandidatePhrase.normalized_text)
                .filter(CandidatePhrase.session_id == session_id)
                .all()
            }

            for record in records:
                if not record.normalized_text or record.normalized_text in existing:
                    continue
                existing.add(record.normalized_text)

                row = CandidatePhrase(
                    session_id=session_id,
                    display_text=record.display_text,
                    normalized_text=record.normalized_text,
                    generation_method=record.generation_method,
                    position=record.position,
                    parent_phrase_id=record.parent_id,
                    tag=record.tag,
                    tag_source=record.tag_source,
                    is_hidden=record.is_hidden,
                )
                db.add(row)
                db.flush()
                inserted.append(_phrase_to_record(row))

        if inserted:
            logger.debug(f"Stored {len(inserted)} phrases for session {session_id}")
        return inserted

    def hide_phrase(self, phrase_id: str, hidden: bool = True) -> Optional[CandidateRecord]:
        """
        Hide (or unhide) a candidate. Hidden phrases stay in the session
        for deduplication but drop out of aggregates and scoring.

        Raises:
            ValueError: Attempt to hide the seed row
        """
        with self._db() as db:
            row = db.get(CandidatePhrase, phrase_id)
            if row is None:
                return None
            if row.generation_method == GenerationMethod.SEED:
                raise ValueError("The seed phrase cannot be hidden")
            row.is_hidden = hidden
            logger.info(f"Phrase {phrase_id} {'hidden' if hidden else 'restored'}")
            return _phrase_to_record(row)

    def update_tags(self, assignments: Dict[str, Tuple[str, Optional[str]]]) -> int:
        """
        Write classification results.

        Args:
            assignments: phrase id -> (tag value, source anchor)

        Returns:
            Number of rows updated
        """
        updated = 0
        with self._db() as db:
            for phrase_id, (tag, source) in assignments.items():
                row = db.get(CandidatePhrase, phrase_id)
                if row:
                    row.tag = tag
                    row.tag_source = source
                    updated += 1
        return updated

    def read_session_aggregate(self, session_id: str) -> SessionAggregate:
        """Session size and word frequency over visible, non-seed candidates."""
        return build_session_aggregate(self.read_all(session_id, include_hidden=False))

    # =========================================================================
    # SCORES
    # =========================================================================

    def update_score(self, session_id: str, score: ScoreRecord) -> None:
        self.update_scores(session_id, [score])

    def update_scores(self, session_id: str, scores: Iterable[ScoreRecord]) -> int:
        """Insert or overwrite score rows. Returns the number written."""
        written = 0
        with self._db() as db:
            for score in scores:
                row = db.get(PhraseScore, score.phrase_id)
                if row is None:
                    row = PhraseScore(phrase_id=score.phrase_id, session_id=session_id)
                    db.add(row)

                row.ecosystem_score = score.ecosystem_score
                row.density_score = score.density_score
                row.relevancy_score = score.relevancy_score
                row.inheritance_bonus = score.inheritance_bonus
                row.anchor_boost = score.anchor_boost
                row.length_adjustment = score.length_adjustment
                row.demand_score = score.demand_score
                row.opportunity_score = score.opportunity_score
                row.opportunity_label = score.opportunity_label
                row.is_super_topic = score.is_super_topic
                row.match_strength = score.match_strength
                row.suggestion_count = score.suggestion_count
                row.exact_match_pct = score.exact_match_pct
                row.topic_match_pct = score.topic_match_pct
                row.scored_at = datetime.utcnow()
                written += 1

        logger.info(f"Stored {written} scores for session {session_id}")
        return written

    def read_scores(self, session_id: str) -> Dict[str, ScoreRecord]:
        """phrase id -> ScoreRecord for every scored phrase of the session"""
        with self._db() as db:
            rows = db.query(PhraseScore).filter(PhraseScore.session_id == session_id).all()
            return {r.phrase_id: _score_to_record(r) for r in rows}


def get_session_stats(store: PhraseStore, session_id: str) -> Dict[str, int]:
    """Get count summary for a session"""
    candidates = store.read_all(session_id, include_hidden=True)
    by_method: Dict[str, int] = {}
    for c in candidates:
        by_method[c.generation_method.value] = by_method.get(c.generation_method.value, 0) + 1
    return {
        "total": len(candidates),
        "hidden": len([c for c in candidates if c.is_hidden]),
        "scored": len(store.read_scores(session_id)),
        **by_method,
    }
