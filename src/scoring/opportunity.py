"""
Opportunity Score Calculator

Calculates a composite score (0-100) representing how open a phrase is,
independently of how much demand it has:

1. Low Competition Signal (0-35) - few suggestions already start with it
2. Long-Tail Bonus (0-22) - peaks at 5-6 words
3. Evergreen Intent Bonus (0-25) - learning/problem/action/... anchors
4. Demand Validation (2-15) - enough suggestions to be a real query

Formula:
    Opportunity = clamp(0, 100,
        LowCompetition + LongTail + EvergreenIntent + DemandValidation
    )

Classification:
    SuperTopic iff Demand >= 50 and Opportunity >= 90, otherwise a label
    from the opportunity score alone.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from src.models import PhraseSignals
from src.utils.text import normalize_phrase, count_words
from .helpers import (
    INTENT_ANCHORS,
    OpportunityLabel,
    ScoringCalibration,
    DEFAULT_CALIBRATION,
    get_low_competition_signal,
    get_long_tail_bonus,
    get_demand_validation,
    get_opportunity_label,
    clamp,
)

logger = logging.getLogger(__name__)


@dataclass
class IntentMatch:
    """First anchor matched within an intent category."""
    category: str
    anchor: str
    weight: int


@dataclass
class OpportunityAnalysis:
    """Complete opportunity analysis for a phrase."""
    phrase: str
    opportunity_score: int
    label: OpportunityLabel

    # Score components
    low_competition: int
    long_tail_bonus: int
    evergreen_bonus: int
    demand_validation: int

    # Inputs
    word_count: int
    exact_match_pct: int
    suggestion_count: int
    demand_score: int
    intent_matches: List[IntentMatch] = field(default_factory=list)

    @property
    def is_super_topic(self) -> bool:
        return self.label == OpportunityLabel.SUPER_TOPIC


# Whole-word patterns, built once per anchor
_ANCHOR_PATTERNS: Dict[str, "re.Pattern"] = {}


def _anchor_pattern(anchor: str):
    pattern = _ANCHOR_PATTERNS.get(anchor)
    if pattern is None:
        pattern = re.compile(r"(?<!\w)" + re.escape(normalize_phrase(anchor)) + r"(?!\w)")
        _ANCHOR_PATTERNS[anchor] = pattern
    return pattern


def detect_intent_anchors(
    phrase: str,
    calibration: Optional[ScoringCalibration] = None,
) -> List[IntentMatch]:
    """
    Scan a phrase against the categorized intent anchors.

    Only the first matching anchor per category counts. Categories without
    an evergreen weight are ignored.
    """
    cal = calibration or DEFAULT_CALIBRATION
    normalized = normalize_phrase(phrase)
    matches = []

    for category, anchors in INTENT_ANCHORS.items():
        weight = cal.evergreen_weights.get(category)
        if weight is None:
            continue
        for anchor in anchors:
            if _anchor_pattern(anchor).search(normalized):
                matches.append(IntentMatch(category=category, anchor=anchor, weight=weight))
                break

    return matches


def calculate_evergreen_bonus(
    phrase: str,
    calibration: Optional[ScoringCalibration] = None,
) -> int:
    cal = calibration or DEFAULT_CALIBRATION
    total = sum(m.weight for m in detect_intent_anchors(phrase, cal))
    return min(total, cal.evergreen_cap)


def calculate_opportunity_score(
    phrase: str,
    signals: PhraseSignals,
    demand_score: int,
    calibration: Optional[ScoringCalibration] = None,
) -> OpportunityAnalysis:
    """
    Calculate the opportunity score for a phrase.

    Args:
        phrase: Candidate phrase
        signals: Suggestion count and exact-match percent for the phrase
        demand_score: Final demand score, used only for SuperTopic

    Returns:
        OpportunityAnalysis with component breakdown and label
    """
    cal = calibration or DEFAULT_CALIBRATION
    normalized = normalize_phrase(phrase)
    word_count = count_words(normalized)

    low_competition = get_low_competition_signal(signals.exact_match_pct, cal)
    long_tail = get_long_tail_bonus(word_count, cal)
    intent_matches = detect_intent_anchors(normalized, cal)
    evergreen = min(sum(m.weight for m in intent_matches), cal.evergreen_cap)
    validation = get_demand_validation(signals.suggestion_count, cal)

    score = clamp(low_competition + long_tail + evergreen + validation, 0, 100)
    label = get_opportunity_label(score, demand_score, cal)

    return OpportunityAnalysis(
        phrase=normalized,
        opportunity_score=score,
        label=label,
        low_competition=low_competition,
        long_tail_bonus=long_tail,
        evergreen_bonus=evergreen,
        demand_validation=validation,
        word_count=word_count,
        exact_match_pct=signals.exact_match_pct,
        suggestion_count=signals.suggestion_count,
        demand_score=demand_score,
        intent_matches=intent_matches,
    )


def get_opportunity_summary(analyses: List[OpportunityAnalysis]) -> Dict[str, Any]:
    """
    Generate summary statistics from a batch of opportunity analyses.

    Args:
        analyses: List of OpportunityAnalysis results

    Returns:
        Summary dict with label distribution and top phrases
    """
    label_counts = {label.value: 0 for label in OpportunityLabel}
    if not analyses:
        return {
            "total_phrases": 0,
            "avg_opportunity_score": 0,
            "label_distribution": label_counts,
            "super_topic_count": 0,
            "top_phrases": [],
        }

    for a in analyses:
        label_counts[a.label.value] += 1

    ranked = sorted(analyses, key=lambda a: (a.opportunity_score, a.demand_score), reverse=True)
    scores = [a.opportunity_score for a in analyses]

    return {
        "total_phrases": len(analyses),
        "avg_opportunity_score": round(sum(scores) / len(scores), 1),
        "max_opportunity_score": max(scores),
        "label_distribution": label_counts,
        "super_topic_count": label_counts[OpportunityLabel.SUPER_TOPIC.value],
        "top_phrases": [
            {
                "phrase": a.phrase,
                "opportunity": a.opportunity_score,
                "demand": a.demand_score,
                "label": a.label.value,
            }
            for a in ranked[:10]
        ],
    }


def get_super_topics(analyses: List[OpportunityAnalysis], limit: int = 20) -> List[OpportunityAnalysis]:
    """SuperTopics, strongest combined score first."""
    super_topics = [a for a in analyses if a.is_super_topic]
    super_topics.sort(key=lambda a: a.opportunity_score + a.demand_score, reverse=True)
    return super_topics[:limit]
