"""
Session Scoring Engine

Runs one batch scoring pass over a session's candidates:

1. Resolve session aggregates (size, ecosystem tier, ceiling, word
   frequency) exactly once.
2. Score each visible phrase independently: tag/match strength against the
   anchor set, demand, then opportunity.
3. Report the distribution, ceiling and skipped phrases.

The pass is pure: no I/O, no suspension points. Re-running it with the
same inputs and the same random source reproduces the same scores.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Sequence, Tuple

from src.models import (
    CandidateRecord,
    GenerationMethod,
    PhraseSignals,
    ScoreRecord,
    SessionAggregate,
)
from .helpers import ScoringCalibration, DEFAULT_CALIBRATION
from .classifier import classify_phrase, prepare_anchors
from .demand import (
    DemandAnalysis,
    build_demand_context,
    calculate_demand_score,
    get_demand_summary,
)
from .opportunity import (
    OpportunityAnalysis,
    calculate_opportunity_score,
    get_opportunity_summary,
)

logger = logging.getLogger(__name__)

_EMPTY_SIGNALS = PhraseSignals(suggestion_count=0, exact_match_pct=0, topic_match_pct=0)


@dataclass
class ScoringReport:
    """Outcome of a scoring pass, reported even when some phrases are skipped."""
    session_id: Optional[str]
    candidate_count: int
    ecosystem_score: int
    ceiling: int
    scored: int = 0
    skipped: List[str] = field(default_factory=list)
    demand_distribution: Dict[str, int] = field(default_factory=dict)
    opportunity_distribution: Dict[str, int] = field(default_factory=dict)
    super_topic_count: int = 0
    avg_demand: float = 0
    avg_opportunity: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "candidate_count": self.candidate_count,
            "ecosystem_score": self.ecosystem_score,
            "ceiling": self.ceiling,
            "scored": self.scored,
            "skipped": len(self.skipped),
            "skipped_phrase_ids": list(self.skipped),
            "demand_distribution": dict(self.demand_distribution),
            "opportunity_distribution": dict(self.opportunity_distribution),
            "super_topic_count": self.super_topic_count,
            "avg_demand": self.avg_demand,
            "avg_opportunity": self.avg_opportunity,
        }


def score_candidates(
    seed_text: str,
    candidates: Sequence[CandidateRecord],
    anchors: Sequence[str],
    signals: Dict[str, PhraseSignals],
    aggregate: SessionAggregate,
    calibration: Optional[ScoringCalibration] = None,
    rng: Optional[random.Random] = None,
    session_id: Optional[str] = None,
) -> Tuple[List[ScoreRecord], ScoringReport]:
    """
    Score every visible candidate of a session.

    Args:
        seed_text: Session seed phrase
        candidates: All candidates (hidden ones are skipped)
        anchors: Top10-phase phrases, strongest first
        signals: phrase id -> PhraseSignals; phrases without signals are skipped
        aggregate: Session size and word frequency, read-only
        calibration: Constant set
        rng: Random source for demand jitter

    Returns:
        (score records, scoring report)
    """
    cal = calibration or DEFAULT_CALIBRATION
    context = build_demand_context(seed_text, aggregate, cal)
    prepared = prepare_anchors(anchors)
    ranks = {anchor: i for i, anchor in enumerate(prepared)}

    records: List[ScoreRecord] = []
    demand_analyses: List[DemandAnalysis] = []
    opportunity_analyses: List[OpportunityAnalysis] = []
    skipped: List[str] = []

    for candidate in candidates:
        is_seed = candidate.generation_method == GenerationMethod.SEED
        phrase_signals = signals.get(candidate.id)
        if candidate.is_hidden or (phrase_signals is None and not is_seed):
            skipped.append(candidate.id)
            continue
        phrase_signals = phrase_signals or _EMPTY_SIGNALS

        tag_result = classify_phrase(candidate.normalized_text, prepared, ranks)
        demand = calculate_demand_score(
            candidate.normalized_text,
            phrase_signals,
            context,
            match_strength=tag_result.match_strength,
            is_seed=is_seed,
            calibration=cal,
            rng=rng,
        )
        opportunity = calculate_opportunity_score(
            candidate.normalized_text,
            phrase_signals,
            demand.demand_score,
            cal,
        )
        demand_analyses.append(demand)
        opportunity_analyses.append(opportunity)

        records.append(ScoreRecord(
            phrase_id=candidate.id,
            ecosystem_score=demand.ecosystem_score,
            density_score=demand.density_score,
            relevancy_score=demand.relevancy_score,
            inheritance_bonus=demand.inheritance_bonus,
            anchor_boost=demand.anchor_boost,
            length_adjustment=demand.length_adjustment,
            demand_score=demand.demand_score,
            opportunity_score=opportunity.opportunity_score,
            match_strength=demand.match_strength.value,
            opportunity_label=opportunity.label.value,
            is_super_topic=opportunity.is_super_topic,
            suggestion_count=phrase_signals.suggestion_count,
            exact_match_pct=phrase_signals.exact_match_pct,
            topic_match_pct=phrase_signals.topic_match_pct,
        ))

    demand_summary = get_demand_summary(demand_analyses, ceiling=context.seed_score)
    opportunity_summary = get_opportunity_summary(opportunity_analyses)

    report = ScoringReport(
        session_id=session_id,
        candidate_count=context.candidate_count,
        ecosystem_score=context.ecosystem_score,
        ceiling=context.seed_score,
        scored=len(records),
        skipped=skipped,
        demand_distribution=demand_summary["distribution"],
        opportunity_distribution=opportunity_summary["label_distribution"],
        super_topic_count=opportunity_summary["super_topic_count"],
        avg_demand=demand_summary["avg_demand"],
        avg_opportunity=opportunity_summary["avg_opportunity_score"],
    )

    logger.info(
        f"Scored {report.scored} phrases (skipped {len(skipped)}), "
        f"ceiling={report.ceiling}, super topics={report.super_topic_count}"
    )
    return records, report
