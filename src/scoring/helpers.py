"""
Scoring Helper Functions and Constants

Contains the calibration tables, classification enums and band lookups
used across demand and opportunity scoring.

All tables are gathered in ScoringCalibration so a session can be scored
with an alternative constant set without touching the formulas.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


# ============================================================================
# CLASSIFICATION ENUMS
# ============================================================================

class MatchStrength(Enum):
    """How closely a phrase follows its best anchor."""
    STRONG = "strong"       # 3+ shared significant words, or is an anchor
    MODERATE = "moderate"   # 2 shared words
    WEAK = "weak"           # 1 shared word
    NONE = "none"           # no overlap


class RelevancyBand(Enum):
    """Share of a phrase's own suggestions that follow it."""
    MOSTLY_EXACT = "mostly_exact"
    MIXED = "mixed"
    MOSTLY_TOPIC = "mostly_topic"
    LOW = "low"


class DemandBand(Enum):
    """Demand score distribution bands."""
    EXTREME = "extreme"     # 85+
    HIGH = "high"           # 65-84
    MODERATE = "moderate"   # 40-64
    LOW = "low"             # 20-39
    VERY_LOW = "very_low"   # <20


class OpportunityLabel(Enum):
    """Opportunity classification."""
    SUPER_TOPIC = "super_topic"
    EXCELLENT = "excellent"
    GREAT = "great"
    GOOD = "good"
    DECENT = "decent"
    MODERATE = "moderate"
    LIMITED = "limited"
    WEAK = "weak"


# ============================================================================
# DEFAULT TABLES
# ============================================================================

# (minimum session size, points), checked top-down
ECOSYSTEM_TIERS: List[Tuple[int, int]] = [
    (600, 30),
    (500, 27),
    (400, 24),
    (300, 20),
    (200, 15),
    (100, 10),
]

# Index = number of suggestions the phrase itself returned (14+ uses last)
DENSITY_TABLE: List[int] = [0, 3, 6, 10, 14, 17, 20, 23, 26, 29, 32, 34, 36, 38, 40]

RELEVANCY_POINTS: Dict[RelevancyBand, int] = {
    RelevancyBand.MOSTLY_EXACT: 29,
    RelevancyBand.MIXED: 20,
    RelevancyBand.MOSTLY_TOPIC: 12,
    RelevancyBand.LOW: 5,
}

INHERITANCE_BONUS: Dict[MatchStrength, int] = {
    MatchStrength.STRONG: 20,
    MatchStrength.MODERATE: 12,
    MatchStrength.WEAK: 6,
    MatchStrength.NONE: 0,
}

# Points below SeedScore a phrase of this strength may reach
CAP_OFFSETS: Dict[MatchStrength, int] = {
    MatchStrength.STRONG: 2,
    MatchStrength.MODERATE: 4,
    MatchStrength.WEAK: 7,
    MatchStrength.NONE: 15,
}

# (minimum occurrences across the session, bonus per word)
ANCHOR_BOOST_BANDS: List[Tuple[int, int]] = [
    (20, 12),
    (15, 10),
    (10, 7),
    (6, 4),
    (3, 2),
]

LENGTH_ADJUSTMENTS: Dict[int, int] = {
    1: -6,
    2: -3,
    3: 0,
    4: 3,
    5: 4,
    6: 3,
    7: 0,
    8: -2,
}

# (maximum exact-match percent, points), checked top-down
LOW_COMPETITION_BANDS: List[Tuple[int, int]] = [
    (0, 35),
    (15, 30),
    (30, 22),
    (50, 15),
    (70, 8),
]

LONG_TAIL_BONUS: Dict[int, int] = {
    1: 0,
    2: 0,
    3: 5,
    4: 12,
    5: 20,
    6: 22,
    7: 18,
    8: 15,
}

EVERGREEN_WEIGHTS: Dict[str, int] = {
    "learning": 14,
    "problem": 12,
    "action": 10,
    "discovery": 8,
    "specific": 6,
    "buyer": 5,
}

# (minimum suggestion count, points)
DEMAND_VALIDATION_BANDS: List[Tuple[int, int]] = [
    (12, 15),
    (10, 13),
    (8, 11),
    (6, 8),
    (4, 5),
]

OPPORTUNITY_LABEL_BANDS: List[Tuple[int, OpportunityLabel]] = [
    (85, OpportunityLabel.EXCELLENT),
    (75, OpportunityLabel.GREAT),
    (65, OpportunityLabel.GOOD),
    (55, OpportunityLabel.DECENT),
    (45, OpportunityLabel.MODERATE),
    (35, OpportunityLabel.LIMITED),
]

DEMAND_BANDS: List[Tuple[int, DemandBand]] = [
    (85, DemandBand.EXTREME),
    (65, DemandBand.HIGH),
    (40, DemandBand.MODERATE),
    (20, DemandBand.LOW),
]


# ============================================================================
# INTENT ANCHORS
# ============================================================================

INTENT_ANCHORS: Dict[str, List[str]] = {
    "learning": [
        "how to", "how do", "how can", "how does", "how is",
        "tutorial", "tutorials", "guide", "guides", "learn", "learning",
        "beginner", "beginners", "basics", "basic",
        "introduction", "intro", "explained", "explanation",
        "tips", "tricks", "course", "class", "lesson", "lessons",
        "step by step", "steps", "for dummies",
        "made easy", "made simple", "complete guide", "ultimate guide",
        "masterclass", "training",
    ],
    "buyer": [
        "best", "top", "review", "reviews",
        "vs", "versus", "comparison", "compare",
        "worth it", "worth buying", "should i", "should you",
        "buy", "buying", "purchase", "cheap", "affordable", "budget",
        "premium", "alternative", "alternatives",
        "recommendation", "recommendations", "recommend",
    ],
    "problem": [
        "fix", "fixed", "fixing", "solve", "solved", "solving", "solution",
        "help", "issue", "issues", "problem", "problems",
        "error", "errors", "not working", "doesnt work", "wont work",
        "broken", "stuck", "cant",
        "trouble", "troubleshoot", "troubleshooting",
        "why is", "why does", "why wont", "stop", "prevent", "avoid",
    ],
    "discovery": [
        "what is", "what are", "what does", "meaning", "definition", "define",
        "difference between", "difference", "why do",
        "who is", "who are", "when to", "when should",
        "where to", "where can", "which", "which is better",
        "explain", "understand", "understanding",
    ],
    "action": [
        "start", "starting", "get started", "getting started",
        "create", "creating", "creation", "make", "making",
        "build", "building", "setup", "set up", "setting up",
        "install", "installing", "installation",
        "download", "use", "using",
        "grow", "growing", "growth", "improve", "improving", "improvement",
        "increase", "boost", "maximize", "optimize", "optimizing",
    ],
    "specific": [
        "for youtube", "on youtube", "youtube",
        "for instagram", "on instagram", "instagram",
        "for tiktok", "on tiktok", "tiktok",
        "for beginners", "for experts",
        "at home", "from home", "without",
        "free", "paid", "fast", "quick", "quickly",
        "easy", "simple", "easily", "simply",
        "online", "offline", "mobile", "desktop", "first time",
    ],
}


# ============================================================================
# CALIBRATION
# ============================================================================

@dataclass
class ScoringCalibration:
    """
    One coherent set of scoring constants.

    Every table can be overridden per instance; the defaults above are the
    calibration used in production.
    """
    ecosystem_tiers: List[Tuple[int, int]] = field(default_factory=lambda: list(ECOSYSTEM_TIERS))
    ecosystem_floor: int = 5
    seed_multiplier: int = 3
    seed_cap: int = 92

    density_table: List[int] = field(default_factory=lambda: list(DENSITY_TABLE))

    relevancy_points: Dict[RelevancyBand, int] = field(default_factory=lambda: dict(RELEVANCY_POINTS))
    mostly_exact_threshold: int = 70
    mixed_threshold: int = 40
    mostly_topic_threshold: int = 70

    inheritance_bonus: Dict[MatchStrength, int] = field(default_factory=lambda: dict(INHERITANCE_BONUS))
    cap_offsets: Dict[MatchStrength, int] = field(default_factory=lambda: dict(CAP_OFFSETS))

    anchor_boost_bands: List[Tuple[int, int]] = field(default_factory=lambda: list(ANCHOR_BOOST_BANDS))
    anchor_boost_cap: int = 15
    anchor_min_word_length: int = 3
    combine_anchor_and_inheritance: bool = True

    length_adjustments: Dict[int, int] = field(default_factory=lambda: dict(LENGTH_ADJUSTMENTS))
    long_phrase_adjustment: int = -5  # more than 8 words

    jitter: int = 2

    low_competition_bands: List[Tuple[int, int]] = field(default_factory=lambda: list(LOW_COMPETITION_BANDS))
    low_competition_floor: int = 3
    long_tail_bonus: Dict[int, int] = field(default_factory=lambda: dict(LONG_TAIL_BONUS))
    long_tail_over_max: int = 12  # more than 8 words
    evergreen_weights: Dict[str, int] = field(default_factory=lambda: dict(EVERGREEN_WEIGHTS))
    evergreen_cap: int = 25
    demand_validation_bands: List[Tuple[int, int]] = field(default_factory=lambda: list(DEMAND_VALIDATION_BANDS))
    demand_validation_floor: int = 2

    super_topic_min_demand: int = 50
    super_topic_min_opportunity: int = 90

    def __post_init__(self):
        for strength in MatchStrength:
            if self.cap_offsets.get(strength, 0) < 1:
                raise ValueError(f"Cap offset for {strength.value} must be at least 1")
        if not self.density_table:
            raise ValueError("Density table cannot be empty")
        if self.jitter < 0:
            raise ValueError("Jitter amplitude cannot be negative")

    @classmethod
    def from_settings(cls, settings) -> "ScoringCalibration":
        """Build the default calibration with the switches exposed in Settings."""
        return cls(
            combine_anchor_and_inheritance=settings.COMBINE_ANCHOR_AND_INHERITANCE,
            jitter=settings.DEMAND_JITTER,
        )


DEFAULT_CALIBRATION = ScoringCalibration()


# ============================================================================
# BAND LOOKUPS
# ============================================================================

def _lookup_at_least(value: float, bands: List[Tuple[int, int]], floor: int) -> int:
    for minimum, points in bands:
        if value >= minimum:
            return points
    return floor


def get_ecosystem_score(session_size: int, calibration: Optional[ScoringCalibration] = None) -> int:
    """
    Map total candidate count to a coarse popularity tier.

    Args:
        session_size: Number of candidate phrases in the session

    Returns:
        Ecosystem points (5-30 with default calibration)
    """
    cal = calibration or DEFAULT_CALIBRATION
    return _lookup_at_least(session_size, cal.ecosystem_tiers, cal.ecosystem_floor)


def get_seed_score(ecosystem_score: int, calibration: Optional[ScoringCalibration] = None) -> int:
    """Session ceiling: min(cap, ecosystem x multiplier)."""
    cal = calibration or DEFAULT_CALIBRATION
    return min(cal.seed_cap, ecosystem_score * cal.seed_multiplier)


def get_density_score(suggestion_count: int, calibration: Optional[ScoringCalibration] = None) -> int:
    """
    Points for how many suggestions a phrase itself returns.

    Non-decreasing with diminishing returns; counts past the end of the
    table use the last entry.
    """
    cal = calibration or DEFAULT_CALIBRATION
    if suggestion_count <= 0:
        return cal.density_table[0]
    index = min(suggestion_count, len(cal.density_table) - 1)
    return cal.density_table[index]


def get_relevancy_band(
    exact_match_pct: float,
    topic_match_pct: float,
    calibration: Optional[ScoringCalibration] = None,
) -> RelevancyBand:
    """
    Classify a phrase's own suggestions.

    Exact matches are checked first, so a phrase with both high exact and
    high topic share lands in the exact bands.
    """
    cal = calibration or DEFAULT_CALIBRATION
    if exact_match_pct >= cal.mostly_exact_threshold:
        return RelevancyBand.MOSTLY_EXACT
    elif exact_match_pct >= cal.mixed_threshold:
        return RelevancyBand.MIXED
    elif topic_match_pct >= cal.mostly_topic_threshold:
        return RelevancyBand.MOSTLY_TOPIC
    else:
        return RelevancyBand.LOW


def get_match_strength(overlap: int) -> MatchStrength:
    """Match strength from the number of significant words shared with an anchor."""
    if overlap >= 3:
        return MatchStrength.STRONG
    elif overlap == 2:
        return MatchStrength.MODERATE
    elif overlap == 1:
        return MatchStrength.WEAK
    else:
        return MatchStrength.NONE


def get_anchor_boost_for_frequency(frequency: int, calibration: Optional[ScoringCalibration] = None) -> int:
    cal = calibration or DEFAULT_CALIBRATION
    return _lookup_at_least(frequency, cal.anchor_boost_bands, 0)


def get_length_adjustment(word_count: int, calibration: Optional[ScoringCalibration] = None) -> int:
    """Additive adjustment favouring 4-6 word phrases."""
    cal = calibration or DEFAULT_CALIBRATION
    if word_count > max(cal.length_adjustments):
        return cal.long_phrase_adjustment
    return cal.length_adjustments.get(word_count, 0)


def get_low_competition_signal(exact_match_pct: float, calibration: Optional[ScoringCalibration] = None) -> int:
    """
    Inverse-banded signal: fewer existing exact matches means less saturation.

    Non-increasing in exact_match_pct.
    """
    cal = calibration or DEFAULT_CALIBRATION
    for maximum, points in cal.low_competition_bands:
        if exact_match_pct <= maximum:
            return points
    return cal.low_competition_floor


def get_long_tail_bonus(word_count: int, calibration: Optional[ScoringCalibration] = None) -> int:
    cal = calibration or DEFAULT_CALIBRATION
    if word_count > max(cal.long_tail_bonus):
        return cal.long_tail_over_max
    return cal.long_tail_bonus.get(word_count, 0)


def get_demand_validation(suggestion_count: int, calibration: Optional[ScoringCalibration] = None) -> int:
    cal = calibration or DEFAULT_CALIBRATION
    return _lookup_at_least(suggestion_count, cal.demand_validation_bands, cal.demand_validation_floor)


def get_opportunity_label(
    opportunity_score: int,
    demand_score: int,
    calibration: Optional[ScoringCalibration] = None,
) -> OpportunityLabel:
    """
    Classify a phrase from both axes.

    SuperTopic requires high demand and very high opportunity; every other
    label depends on the opportunity score alone.
    """
    cal = calibration or DEFAULT_CALIBRATION
    if demand_score >= cal.super_topic_min_demand and opportunity_score >= cal.super_topic_min_opportunity:
        return OpportunityLabel.SUPER_TOPIC
    for minimum, label in OPPORTUNITY_LABEL_BANDS:
        if opportunity_score >= minimum:
            return label
    return OpportunityLabel.WEAK


def get_demand_band(demand_score: int) -> DemandBand:
    for minimum, band in DEMAND_BANDS:
        if demand_score >= minimum:
            return band
    return DemandBand.VERY_LOW


def clamp(value: float, low: int, high: int) -> int:
    """Clamp and round to an int score."""
    return int(max(low, min(high, round(value))))
