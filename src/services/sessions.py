"""
Seed Session Service

Orchestrates the seed phrase workflow:
1. Session creation (seed stored as the first candidate)
2. Harvesting phases (top10, az, prefix, child)
3. Tagging against the top10 anchors
4. Signal collection and demand / opportunity scoring
5. Hiding phrases and keeping session statistics current
"""

import logging
import random
from typing import Any, Callable, Dict, List, Optional, Sequence

from src.collector import (
    ExpansionConfig,
    ExpansionController,
    ExpansionProgress,
    ExpansionReport,
    Pacer,
    SeedSignal,
    SignalCollector,
    SourceUnavailableError,
    SuggestionClient,
    create_client,
    validate_seed,
)
from src.database.models import SessionStatus
from src.database.repository import PhraseStore
from src.models import CandidateRecord, GenerationMethod, SessionSnapshot
from src.scoring import (
    ScoringCalibration,
    ScoringReport,
    classify_batch,
    get_ecosystem_score,
    get_seed_score,
    get_tag_distribution,
    score_candidates,
)

logger = logging.getLogger(__name__)


class ScoringInputError(ValueError):
    """Scoring requested for a missing or empty session."""


class SessionNotFoundError(LookupError):
    """Session or phrase id does not exist."""


def get_anchor_texts(candidates: Sequence[CandidateRecord]) -> List[str]:
    """Top10 phrases in rank order."""
    anchors = sorted(
        (c for c in candidates if c.generation_method == GenerationMethod.TOP10),
        key=lambda c: c.position,
    )
    return [c.normalized_text for c in anchors]


class SessionService:
    """Service for seed session operations."""

    def __init__(
        self,
        store: Optional[PhraseStore] = None,
        client_factory: Optional[Callable[[], SuggestionClient]] = None,
        pacer_factory: Optional[Callable[[], Pacer]] = None,
        settings=None,
        calibration: Optional[ScoringCalibration] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize session service.

        Args:
            store: Phrase store (defaults to the global database)
            client_factory: Builds a suggestion client per run
            pacer_factory: Builds a pacer per run
            settings: Settings instance (defaults to get_settings())
            calibration: Scoring constants (defaults to Settings switches)
            rng: Random source for shuffling and demand jitter
        """
        if settings is None:
            from src.utils.config import get_settings
            settings = get_settings()

        self.settings = settings
        self.store = store or PhraseStore()
        self._client_factory = client_factory or (lambda: create_client(settings))
        self._pacer_factory = pacer_factory or (lambda: Pacer.from_settings(settings))
        self.calibration = calibration or ScoringCalibration.from_settings(settings)
        self.rng = rng or random.Random()

    # =========================================================================
    # SESSIONS
    # =========================================================================

    def create_session(
        self,
        seed_text: str,
        language: Optional[str] = None,
        country: Optional[str] = None,
    ) -> SessionSnapshot:
        return self.store.create_session(
            seed_text,
            language=language or self.settings.SUGGEST_LANGUAGE,
            country=country or self.settings.SUGGEST_COUNTRY,
        )

    def require_session(self, session_id: str) -> SessionSnapshot:
        session = self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return session

    def list_phrases(self, session_id: str, include_hidden: bool = False) -> List[Dict[str, Any]]:
        """Candidates with their latest scores, ready for display."""
        self.require_session(session_id)
        scores = self.store.read_scores(session_id)
        phrases = []
        for c in self.store.read_all(session_id, include_hidden=include_hidden):
            score = scores.get(c.id)
            phrases.append({
                "id": c.id,
                "display_text": c.display_text,
                "normalized_text": c.normalized_text,
                "generation_method": c.generation_method.value,
                "position": c.position,
                "tag": c.tag,
                "tag_source": c.tag_source,
                "parent_id": c.parent_id,
                "is_hidden": c.is_hidden,
                "demand_score": score.demand_score if score else None,
                "opportunity_score": score.opportunity_score if score else None,
                "opportunity_label": score.opportunity_label if score else None,
                "is_super_topic": score.is_super_topic if score else False,
            })
        return phrases

    def hide_phrase(self, phrase_id: str, hidden: bool = True) -> CandidateRecord:
        """Hide or restore a phrase, then recompute session statistics."""
        record = self.store.hide_phrase(phrase_id, hidden=hidden)
        if record is None:
            raise SessionNotFoundError(f"Phrase not found: {phrase_id}")
        self.refresh_stats(record.session_id)
        return record

    def refresh_stats(self, session_id: str) -> SessionSnapshot:
        aggregate = self.store.read_session_aggregate(session_id)
        ecosystem = get_ecosystem_score(aggregate.candidate_count, self.calibration)
        self.store.update_session_stats(
            session_id,
            candidate_count=aggregate.candidate_count,
            ecosystem_score=ecosystem,
            seed_score=get_seed_score(ecosystem, self.calibration),
        )
        return self.require_session(session_id)

    # =========================================================================
    # HARVESTING
    # =========================================================================

    def _expansion_config(self) -> ExpansionConfig:
        return ExpansionConfig(
            max_child_parents=self.settings.MAX_CHILD_PARENTS,
            batch_size=self.settings.APIFY_BATCH_SIZE,
            max_consecutive_failures=self.settings.MAX_CONSECUTIVE_FAILURES,
            reference_year=self.settings.get_reference_year(),
        )

    async def run_expansion(
        self,
        session_id: str,
        phases: Optional[Sequence[str]] = None,
        parent_phrase_ids: Optional[Sequence[str]] = None,
        on_progress: Optional[Callable[[ExpansionProgress], None]] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> ExpansionReport:
        """
        Run harvesting phases for a session.

        Raises:
            SessionNotFoundError: Unknown session
            ExpansionInputError: Invalid phase or parent request
            SourceUnavailableError: Suggestion source kept failing (report attached)
        """
        self.require_session(session_id)
        self.store.set_session_status(session_id, SessionStatus.EXPANDING)

        async with self._client_factory() as client:
            controller = ExpansionController(
                client,
                self.store,
                pacer=self._pacer_factory(),
                config=self._expansion_config(),
                rng=self.rng,
                calibration=self.calibration,
            )
            try:
                report = await controller.harvest(
                    session_id,
                    phases=phases,
                    parent_phrase_ids=parent_phrase_ids,
                    on_progress=on_progress,
                    should_stop=should_stop,
                )
            except SourceUnavailableError as e:
                # The controller already refreshed stats
                self.store.set_session_status(session_id, SessionStatus.FAILED, str(e))
                raise
            except ValueError:
                self.store.set_session_status(session_id, SessionStatus.CREATED)
                raise

        self.store.set_session_status(session_id, SessionStatus.EXPANDED)
        return report

    async def check_seed_signal(self, seed_text: str) -> SeedSignal:
        """Rate a seed from its own suggestions; nothing is stored."""
        async with self._client_factory() as client:
            return await validate_seed(client, seed_text, reference_year=self.settings.get_reference_year())

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================

    def classify_session(self, session_id: str) -> Dict[str, int]:
        """
        Tag every non-seed phrase against the session's top10 anchors.

        Hidden phrases are tagged too, so restoring one needs no re-run.

        Returns:
            Tag distribution
        """
        self.require_session(session_id)
        candidates = [
            c for c in self.store.read_all(session_id, include_hidden=True)
            if c.generation_method != GenerationMethod.SEED
        ]
        anchors = get_anchor_texts(candidates)
        results = classify_batch([c.normalized_text for c in candidates], anchors)

        self.store.update_tags({
            c.id: (r.tag.value, r.source_anchor)
            for c, r in zip(candidates, results)
        })

        distribution = get_tag_distribution(results)
        logger.info(f"Classified {len(results)} phrases for session {session_id}: {distribution}")
        return distribution

    # =========================================================================
    # SCORING
    # =========================================================================

    async def score_session(
        self,
        session_id: str,
        on_progress: Optional[Callable[[int, int], None]] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> ScoringReport:
        """
        Collect signals for every visible phrase and score them.

        Session aggregates are resolved once, before any phrase is scored.

        Raises:
            ScoringInputError: Unknown session or no candidates
        """
        session = self.store.get_session(session_id)
        if session is None:
            raise ScoringInputError(f"Session not found: {session_id}")

        candidates = self.store.read_all(session_id, include_hidden=False)
        aggregate = self.store.read_session_aggregate(session_id)
        if aggregate.candidate_count == 0:
            raise ScoringInputError(f"Session {session_id} has no candidates to score")

        self.classify_session(session_id)
        self.store.set_session_status(session_id, SessionStatus.SCORING)

        async with self._client_factory() as client:
            collector = SignalCollector(
                client,
                pacer=self._pacer_factory(),
                batch_size=self.settings.SIGNAL_BATCH_SIZE,
                max_phrases=self.settings.SIGNAL_MAX_PHRASES,
            )
            signals = await collector.collect(candidates, should_stop=should_stop, on_progress=on_progress)

        records, report = score_candidates(
            session.seed_text,
            candidates,
            get_anchor_texts(candidates),
            signals,
            aggregate,
            calibration=self.calibration,
            rng=self.rng,
            session_id=session_id,
        )
        self.store.update_scores(session_id, records)
        self.store.update_session_stats(
            session_id,
            candidate_count=report.candidate_count,
            ecosystem_score=report.ecosystem_score,
            seed_score=report.ceiling,
        )
        self.store.set_session_status(session_id, SessionStatus.SCORED)
        return report
