"""
Scoring Module for the Seed Phrase Engine

Scores every candidate phrase of a session on two independent axes:

1. **Demand Score** (0-SeedScore)
   Session-relative audience demand. The seed phrase defines the ceiling;
   every other phrase is capped below it by a margin that depends on how
   strongly it follows the anchor set.
   Components: Ecosystem, Density, Relevancy, Inheritance, Anchor Boost,
   Length Adjustment

2. **Opportunity Score** (0-100)
   How open the phrase is to new content.
   Components: Low Competition, Long Tail, Evergreen Intent, Demand Validation

3. **Tags**
   TOP_10 / T10_CHILD / T10_RELATED / NO_TAG relative to the top10 anchors.

Example Usage:
    from src.scoring import (
        build_demand_context,
        calculate_demand_score,
        calculate_opportunity_score,
        calculate_phrase_signals,
        MatchStrength,
    )
    from src.models import SessionAggregate

    context = build_demand_context(
        "content creation",
        SessionAggregate(candidate_count=582, word_frequency={"tips": 14}),
    )
    signals = calculate_phrase_signals("content creation tips", suggestions)

    demand = calculate_demand_score(
        "content creation tips", signals, context,
        match_strength=MatchStrength.MODERATE,
    )
    opportunity = calculate_opportunity_score(
        "content creation tips", signals, demand.demand_score,
    )
    print(f"Demand: {demand.demand_score} / ceiling {context.seed_score}")
    print(f"Opportunity: {opportunity.opportunity_score} ({opportunity.label.value})")
"""

# Helper utilities and constants
from .helpers import (
    # Enums
    MatchStrength,
    RelevancyBand,
    DemandBand,
    OpportunityLabel,

    # Calibration
    ScoringCalibration,
    DEFAULT_CALIBRATION,
    INTENT_ANCHORS,

    # Band lookups
    get_ecosystem_score,
    get_seed_score,
    get_density_score,
    get_relevancy_band,
    get_match_strength,
    get_anchor_boost_for_frequency,
    get_length_adjustment,
    get_low_competition_signal,
    get_long_tail_bonus,
    get_demand_validation,
    get_opportunity_label,
    get_demand_band,
)

# Tag classification
from .classifier import (
    PhraseTag,
    TagResult,
    prepare_anchors,
    classify_phrase,
    classify_batch,
    best_anchor_overlap,
    get_tag_distribution,
)

# Session aggregation
from .aggregator import (
    build_word_frequency,
    build_session_aggregate,
    get_top_words,
)

# Demand scoring
from .demand import (
    DemandContext,
    DemandAnalysis,
    build_demand_context,
    calculate_phrase_signals,
    calculate_anchor_boost,
    calculate_demand_score,
    get_demand_summary,
)

# Opportunity scoring
from .opportunity import (
    IntentMatch,
    OpportunityAnalysis,
    detect_intent_anchors,
    calculate_evergreen_bonus,
    calculate_opportunity_score,
    get_opportunity_summary,
    get_super_topics,
)

# Session pass
from .engine import (
    ScoringReport,
    score_candidates,
)

__all__ = [
    # Helpers
    "MatchStrength",
    "RelevancyBand",
    "DemandBand",
    "OpportunityLabel",
    "ScoringCalibration",
    "DEFAULT_CALIBRATION",
    "INTENT_ANCHORS",
    "get_ecosystem_score",
    "get_seed_score",
    "get_density_score",
    "get_relevancy_band",
    "get_match_strength",
    "get_anchor_boost_for_frequency",
    "get_length_adjustment",
    "get_low_competition_signal",
    "get_long_tail_bonus",
    "get_demand_validation",
    "get_opportunity_label",
    "get_demand_band",

    # Classifier
    "PhraseTag",
    "TagResult",
    "prepare_anchors",
    "classify_phrase",
    "classify_batch",
    "best_anchor_overlap",
    "get_tag_distribution",

    # Aggregator
    "build_word_frequency",
    "build_session_aggregate",
    "get_top_words",

    # Demand
    "DemandContext",
    "DemandAnalysis",
    "build_demand_context",
    "calculate_phrase_signals",
    "calculate_anchor_boost",
    "calculate_demand_score",
    "get_demand_summary",

    # Opportunity
    "IntentMatch",
    "OpportunityAnalysis",
    "detect_intent_anchors",
    "calculate_evergreen_bonus",
    "calculate_opportunity_score",
    "get_opportunity_summary",
    "get_super_topics",

    # Engine
    "ScoringReport",
    "score_candidates",
]

__version__ = "1.0.0"
