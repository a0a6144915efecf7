"""
Demand Score Calculator

Estimates audience demand for a phrase relative to its session. The seed
phrase sets the ceiling; every other phrase is scored from its own
suggestion signals and capped below that ceiling.

Formula:
    SeedScore = min(92, Ecosystem × 3)

    Demand = clamp(
        0,
        SeedScore - CapOffset(match_strength),
        Ecosystem + Density + Relevancy + InheritanceBonus
            + AnchorBoost + LengthAdjustment + Jitter
    )

Scores are session-relative: the same phrase scored in a larger session
can legitimately score higher.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, Any, Iterable, List, Optional, Set

from src.models import PhraseSignals, SessionAggregate
from src.utils.text import (
    FILLER_WORDS,
    normalize_phrase,
    split_words,
    get_significant_words,
)
from .helpers import (
    MatchStrength,
    RelevancyBand,
    DemandBand,
    ScoringCalibration,
    DEFAULT_CALIBRATION,
    get_ecosystem_score,
    get_seed_score,
    get_density_score,
    get_relevancy_band,
    get_anchor_boost_for_frequency,
    get_length_adjustment,
    get_demand_band,
    clamp,
)

logger = logging.getLogger(__name__)


@dataclass
class DemandContext:
    """Session-level inputs, resolved once before any phrase is scored."""
    seed_text: str
    candidate_count: int
    ecosystem_score: int
    seed_score: int
    word_frequency: Dict[str, int] = field(default_factory=dict)
    seed_words: Set[str] = field(default_factory=set)


@dataclass
class DemandAnalysis:
    """Complete demand analysis for a phrase."""
    phrase: str
    demand_score: int
    demand_band: DemandBand

    # Score components
    ecosystem_score: int
    density_score: int
    relevancy_score: int
    relevancy_band: RelevancyBand
    inheritance_bonus: int
    anchor_boost: int
    length_adjustment: int
    jitter: int

    # Ceiling
    match_strength: MatchStrength
    cap: int
    raw_score: int
    is_seed: bool = False


# ============================================================================
# SESSION CONTEXT
# ============================================================================

def build_demand_context(
    seed_text: str,
    aggregate: SessionAggregate,
    calibration: Optional[ScoringCalibration] = None,
) -> DemandContext:
    """
    Resolve the session ceiling and frequency table.

    Args:
        seed_text: The session's seed phrase
        aggregate: Candidate count and word frequency from the aggregator

    Returns:
        DemandContext shared by every phrase in the pass
    """
    cal = calibration or DEFAULT_CALIBRATION
    ecosystem = get_ecosystem_score(aggregate.candidate_count, cal)
    seed_score = get_seed_score(ecosystem, cal)

    logger.info(
        f"Demand context for '{seed_text}': size={aggregate.candidate_count}, "
        f"ecosystem={ecosystem}, ceiling={seed_score}"
    )

    return DemandContext(
        seed_text=seed_text,
        candidate_count=aggregate.candidate_count,
        ecosystem_score=ecosystem,
        seed_score=seed_score,
        word_frequency=dict(aggregate.word_frequency),
        seed_words=set(split_words(seed_text)),
    )


# ============================================================================
# PHRASE SIGNALS
# ============================================================================

def calculate_phrase_signals(phrase: str, suggestions: Iterable[str]) -> PhraseSignals:
    """
    Derive match statistics from the suggestions a phrase itself returned.

    exact: suggestion starts with the phrase (normalized)
    topic: suggestion contains every significant word of the phrase
    """
    normalized = normalize_phrase(phrase)
    key_words = get_significant_words(normalized)
    normalized_suggestions = [normalize_phrase(s) for s in suggestions]
    normalized_suggestions = [s for s in normalized_suggestions if s]

    total = len(normalized_suggestions)
    if total == 0 or not normalized:
        return PhraseSignals(suggestion_count=total, exact_match_pct=0, topic_match_pct=0)

    exact = sum(1 for s in normalized_suggestions if s.startswith(normalized))
    if key_words:
        topic = sum(
            1 for s in normalized_suggestions
            if all(word in set(s.split(" ")) for word in key_words)
        )
    else:
        topic = exact

    return PhraseSignals(
        suggestion_count=total,
        exact_match_pct=round(exact / total * 100),
        topic_match_pct=round(topic / total * 100),
    )


# ============================================================================
# COMPONENTS
# ============================================================================

def calculate_anchor_boost(
    phrase: str,
    context: DemandContext,
    calibration: Optional[ScoringCalibration] = None,
) -> int:
    """
    Bonus for words that recur across the whole session.

    Seed words, filler words and short words are ignored; each remaining
    word adds the bonus for its frequency band. The sum is capped.
    """
    cal = calibration or DEFAULT_CALIBRATION
    boost = 0
    for word in set(split_words(phrase)):
        if len(word) < cal.anchor_min_word_length:
            continue
        if word in context.seed_words or word in FILLER_WORDS:
            continue
        boost += get_anchor_boost_for_frequency(context.word_frequency.get(word, 0), cal)
    return min(boost, cal.anchor_boost_cap)


def _combine_bonuses(inheritance: int, anchor_boost: int, cal: ScoringCalibration):
    """Apply both bonuses, or only one when configured as exclusive."""
    if cal.combine_anchor_and_inheritance:
        return inheritance, anchor_boost
    if inheritance > 0:
        return inheritance, 0
    return 0, anchor_boost


def _draw_jitter(rng: Optional[random.Random], amplitude: int) -> int:
    """Symmetric, zero-mean integer jitter in [-amplitude, amplitude]."""
    if amplitude <= 0:
        return 0
    generator = rng or random
    return generator.randint(-amplitude, amplitude)


# ============================================================================
# DEMAND SCORE
# ============================================================================

def calculate_demand_score(
    phrase: str,
    signals: PhraseSignals,
    context: DemandContext,
    match_strength: MatchStrength = MatchStrength.NONE,
    is_seed: bool = False,
    calibration: Optional[ScoringCalibration] = None,
    rng: Optional[random.Random] = None,
) -> DemandAnalysis:
    """
    Calculate the demand score for one phrase.

    Args:
        phrase: Candidate phrase
        signals: Suggestion count and match percentages for the phrase
        context: Resolved session context
        match_strength: Strength of the phrase's best anchor match
        is_seed: The seed phrase scores exactly SeedScore
        calibration: Constant set (defaults to production calibration)
        rng: Random source for jitter (inject for reproducible runs)

    Returns:
        DemandAnalysis with component breakdown
    """
    cal = calibration or DEFAULT_CALIBRATION
    normalized = normalize_phrase(phrase)

    density = get_density_score(signals.suggestion_count, cal)
    band = get_relevancy_band(signals.exact_match_pct, signals.topic_match_pct, cal)
    relevancy = cal.relevancy_points[band]
    length_adjustment = get_length_adjustment(len(split_words(normalized)), cal)

    if is_seed:
        return DemandAnalysis(
            phrase=normalized,
            demand_score=context.seed_score,
            demand_band=get_demand_band(context.seed_score),
            ecosystem_score=context.ecosystem_score,
            density_score=density,
            relevancy_score=relevancy,
            relevancy_band=band,
            inheritance_bonus=0,
            anchor_boost=0,
            length_adjustment=length_adjustment,
            jitter=0,
            match_strength=MatchStrength.STRONG,
            cap=context.seed_score,
            raw_score=context.seed_score,
            is_seed=True,
        )

    inheritance, anchor_boost = _combine_bonuses(
        cal.inheritance_bonus[match_strength],
        calculate_anchor_boost(normalized, context, cal),
        cal,
    )
    jitter = _draw_jitter(rng, cal.jitter)

    raw = (
        context.ecosystem_score
        + density
        + relevancy
        + inheritance
        + anchor_boost
        + length_adjustment
    )
    cap = max(0, context.seed_score - cal.cap_offsets[match_strength])
    demand = clamp(raw + jitter, 0, cap)

    return DemandAnalysis(
        phrase=normalized,
        demand_score=demand,
        demand_band=get_demand_band(demand),
        ecosystem_score=context.ecosystem_score,
        density_score=density,
        relevancy_score=relevancy,
        relevancy_band=band,
        inheritance_bonus=inheritance,
        anchor_boost=anchor_boost,
        length_adjustment=length_adjustment,
        jitter=jitter,
        match_strength=match_strength,
        cap=cap,
        raw_score=raw,
    )


def get_demand_summary(
    analyses: List[DemandAnalysis],
    ceiling: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Summarize a batch of demand analyses.

    Returns:
        Distribution by band, ceiling and averages
    """
    if not analyses:
        return {
            "total": 0,
            "distribution": {band.value: 0 for band in DemandBand},
            "ceiling": ceiling or 0,
            "avg_demand": 0,
            "capped": 0,
        }

    distribution = {band.value: 0 for band in DemandBand}
    for a in analyses:
        distribution[a.demand_band.value] += 1

    if ceiling is None:
        seeds = [a for a in analyses if a.is_seed]
        ceiling = seeds[0].cap if seeds else 0

    return {
        "total": len(analyses),
        "distribution": distribution,
        "ceiling": ceiling,
        "avg_demand": round(sum(a.demand_score for a in analyses) / len(analyses), 1),
        "capped": len([a for a in analyses if not a.is_seed and a.raw_score + a.jitter > a.cap]),
    }
