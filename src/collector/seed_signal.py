"""
Seed Signal Check

Quick read on how much genuine search interest a seed has, before a
session is built on it. One suggestion call for the bare seed; each
suggestion is sorted into brand/company noise or a real topic, and the
topic count decides the strength:

- strong:    5+ topic suggestions
- moderate:  3-4
- weak:      1-2
- very_weak: none

When brand suggestions outnumber topic suggestions, strong and moderate
drop one level.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from src.utils.text import normalize_phrase
from .client import SuggestionClient
from .orchestrator import ExpansionInputError

logger = logging.getLogger(__name__)

MIN_SEED_LENGTH = 2


class SignalStrength(Enum):
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"
    VERY_WEAK = "very_weak"


# =============================================================================
# PATTERN TABLES
# =============================================================================

# Companies, firms and shops: suggestions people use to find a business
BRAND_PATTERNS = [
    re.compile(r"\b(law\s*(group|firm|office)|lawyer|attorney)\b", re.IGNORECASE),
    re.compile(r"\b(insurance|insur)\b", re.IGNORECASE),
    re.compile(r"\b(company|companies|corp|inc|llc|ltd|group|services|solutions|agency)\b", re.IGNORECASE),
    re.compile(r"\b(bank|banking|financial\s*services)\b", re.IGNORECASE),
    re.compile(r"\b(store|shop|mart|outlet)\b", re.IGNORECASE),
    re.compile(r"\b(realty|real\s*estate\s*(group|company))\b", re.IGNORECASE),
]

# Questions, formats and comparisons: someone looking for content
TOPIC_PATTERNS = [
    re.compile(r"\b(how\s*to|what\s*is|why|when|where|who)\b", re.IGNORECASE),
    re.compile(r"\b(guide|tutorial|tips|tricks|basics|101|explained|for\s*beginners)\b", re.IGNORECASE),
    re.compile(r"\b(best|top|worst|vs|versus|compared|review)\b", re.IGNORECASE),
    re.compile(r"\b(ideas|examples|strategies|steps|ways)\b", re.IGNORECASE),
    re.compile(r"\b(mistakes|problems|issues|challenges)\b", re.IGNORECASE),
    re.compile(r"\b(new|latest|updated)\b", re.IGNORECASE),
]

_YEAR = re.compile(r"(?<!\d)(20\d{2})(?!\d)")

SIGNAL_THRESHOLDS = [
    (5, SignalStrength.STRONG),
    (3, SignalStrength.MODERATE),
    (1, SignalStrength.WEAK),
]

SIGNAL_MESSAGES = {
    SignalStrength.STRONG: (
        "Strong Search Demand",
        "People are actively searching for this topic. Great seed to explore!",
    ),
    SignalStrength.MODERATE: (
        "Good Search Demand",
        "There's genuine interest in this topic. You'll find opportunities here.",
    ),
    SignalStrength.WEAK: (
        "Limited Demand",
        "Most results are brands or companies, not topic searches. Consider broadening.",
    ),
    SignalStrength.VERY_WEAK: (
        "Very Niche Topic",
        "Few people are searching for this. Consider a broader or different angle.",
    ),
}


@dataclass
class SeedSignal:
    """Suggestion-based strength reading for one seed."""
    seed: str
    suggestion_count: int
    exact_match_count: int
    topic_match_count: int
    brand_match_count: int
    strength: SignalStrength
    message: str
    explanation: str
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seed": self.seed,
            "suggestion_count": self.suggestion_count,
            "exact_match_count": self.exact_match_count,
            "topic_match_count": self.topic_match_count,
            "brand_match_count": self.brand_match_count,
            "signal_strength": self.strength.value,
            "message": self.message,
            "explanation": self.explanation,
            "suggestions": list(self.suggestions),
        }


# =============================================================================
# CLASSIFICATION
# =============================================================================

def is_brand_suggestion(suggestion: str) -> bool:
    return any(pattern.search(suggestion) for pattern in BRAND_PATTERNS)


def mentions_recent_year(suggestion: str, reference_year: Optional[int]) -> bool:
    """True for the reference year or the one before it."""
    if reference_year is None:
        return False
    return any(int(y) in (reference_year - 1, reference_year) for y in _YEAR.findall(suggestion))


def is_topic_suggestion(suggestion: str, seed: str, reference_year: Optional[int] = None) -> bool:
    """
    Topic patterns, a recent year, or the seed extended by non-brand words.

    Extensions count whether the seed leads the suggestion or its words
    appear anywhere in it.
    """
    if any(pattern.search(suggestion) for pattern in TOPIC_PATTERNS):
        return True
    if mentions_recent_year(suggestion, reference_year):
        return True

    if is_brand_suggestion(suggestion):
        return False
    normalized = normalize_phrase(suggestion)
    seed_normalized = normalize_phrase(seed)
    if normalized.startswith(seed_normalized):
        return True
    return all(word in normalized for word in seed_normalized.split(" "))


def get_signal_strength(topic_matches: int, brand_matches: int) -> SignalStrength:
    strength = SignalStrength.VERY_WEAK
    for minimum, level in SIGNAL_THRESHOLDS:
        if topic_matches >= minimum:
            strength = level
            break

    if brand_matches > topic_matches:
        if strength == SignalStrength.STRONG:
            return SignalStrength.MODERATE
        if strength == SignalStrength.MODERATE:
            return SignalStrength.WEAK
    return strength


def calculate_seed_signal(
    seed: str,
    suggestions: List[str],
    reference_year: Optional[int] = None,
) -> SeedSignal:
    """Sort the seed's own suggestions into brand and topic matches."""
    seed_normalized = normalize_phrase(seed)
    exact = topic = brand = 0

    for suggestion in suggestions:
        if normalize_phrase(suggestion).startswith(seed_normalized):
            exact += 1
        if is_brand_suggestion(suggestion):
            brand += 1
        elif is_topic_suggestion(suggestion, seed, reference_year):
            topic += 1

    strength = get_signal_strength(topic, brand)
    message, explanation = SIGNAL_MESSAGES[strength]
    return SeedSignal(
        seed=seed,
        suggestion_count=len(suggestions),
        exact_match_count=exact,
        topic_match_count=topic,
        brand_match_count=brand,
        strength=strength,
        message=message,
        explanation=explanation,
        suggestions=list(suggestions),
    )


async def validate_seed(
    client: SuggestionClient,
    seed: str,
    reference_year: Optional[int] = None,
) -> SeedSignal:
    """
    Fetch suggestions for a seed and rate its signal.

    Raises:
        ExpansionInputError: Seed shorter than MIN_SEED_LENGTH characters
        SuggestionSourceError: The source call failed
    """
    seed = (seed or "").strip()
    if len(seed) < MIN_SEED_LENGTH:
        raise ExpansionInputError(f"Seed phrase must be at least {MIN_SEED_LENGTH} characters")

    suggestions = await client.fetch(seed)
    signal = calculate_seed_signal(seed, suggestions, reference_year)
    logger.info(
        f"Seed signal for '{seed}': {signal.strength.value} "
        f"({signal.topic_match_count} topic, {signal.brand_match_count} brand of {signal.suggestion_count})"
    )
    return signal
