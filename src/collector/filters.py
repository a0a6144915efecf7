"""
Suggestion Normalizer / Filter

Screens raw suggestion strings before they become candidate phrases:
1. Normalize (matching form only)
2. Dedup against the session's seen set
3. Relevance: must contain a significant word of the seed
4. Staleness: no explicit year older than the reference year
5. Spam: no hashtags, no @-mentions, fewer than 3 emoji

The seen set is an explicit object rebuilt from persisted phrases at the
start of every harvesting run and passed down the call chain.
"""

import logging
import re
from enum import Enum
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from src.utils.text import normalize_phrase, get_significant_words, to_display_text

logger = logging.getLogger(__name__)

_YEAR = re.compile(r"(?<!\d)(20\d{2})(?!\d)")
_MENTION = re.compile(r"@\w+")
_EMOJI = re.compile("[\U0001F300-\U0001FAFF\u2600-\u26FF\u2700-\u27BF]")

SPAM_EMOJI_THRESHOLD = 3


class RejectReason(Enum):
    """Why a suggestion was not accepted."""
    EMPTY = "empty"
    DUPLICATE = "duplicate"
    IRRELEVANT = "irrelevant"
    STALE = "stale"
    SPAM = "spam"


@dataclass
class FilterDecision:
    """Outcome of screening one raw suggestion."""
    raw: str
    normalized: str
    display: str
    reason: Optional[RejectReason] = None

    @property
    def accepted(self) -> bool:
        return self.reason is None


class SeenPhrases:
    """Session-scoped set of normalized phrases already in the session."""

    def __init__(self, normalized: Optional[Iterable[str]] = None):
        self._seen: Set[str] = set()
        for phrase in normalized or []:
            self.add(phrase)

    @classmethod
    def from_session(cls, seed: str, phrases: Iterable[str]) -> "SeenPhrases":
        """Build from the seed plus every persisted phrase (hidden ones included)."""
        seen = cls(phrases)
        seen.add(seed)
        return seen

    def add(self, phrase: str) -> None:
        normalized = normalize_phrase(phrase)
        if normalized:
            self._seen.add(normalized)

    def __contains__(self, phrase: str) -> bool:
        return normalize_phrase(phrase) in self._seen

    def __len__(self) -> int:
        return len(self._seen)


# =============================================================================
# INDIVIDUAL CHECKS
# =============================================================================

def has_stale_year(text: str, reference_year: int) -> bool:
    """True if the text names a year (2000-2099) before reference_year."""
    return any(int(year) < reference_year for year in _YEAR.findall(text))


def is_spam(text: str) -> bool:
    """Hashtag markers, @-mentions, or three or more emoji."""
    if "#" in text:
        return True
    if _MENTION.search(text):
        return True
    return len(_EMOJI.findall(text)) >= SPAM_EMOJI_THRESHOLD


def is_relevant(normalized: str, significant_words: List[str]) -> bool:
    """
    True if the phrase contains any of the seed's significant words.

    With no significant words to test against, everything is relevant.
    """
    if not significant_words:
        return True
    return any(word in normalized for word in significant_words)


# =============================================================================
# FILTER
# =============================================================================

class PhraseFilter:
    """
    Screens suggestions for one seed.

    Usage:
        seen = SeenPhrases.from_session(seed, stored_phrases)
        phrase_filter = PhraseFilter(seed, reference_year=2026)
        decision = phrase_filter.check("Content Creation Tips", seen)
        if decision.accepted:
            store(decision.display, decision.normalized)
    """

    def __init__(self, seed: str, reference_year: int):
        self.seed = seed
        self.reference_year = reference_year
        self.significant_words = get_significant_words(seed)
        self.rejections: Dict[str, int] = {reason.value: 0 for reason in RejectReason}

    def evaluate(self, raw: str, seen: SeenPhrases) -> FilterDecision:
        """Decide on a suggestion without touching the seen set."""
        normalized = normalize_phrase(raw)
        decision = FilterDecision(raw=raw, normalized=normalized, display=to_display_text(normalized))

        if not normalized:
            decision.reason = RejectReason.EMPTY
        elif normalized in seen:
            decision.reason = RejectReason.DUPLICATE
        elif is_spam(raw):
            decision.reason = RejectReason.SPAM
        elif has_stale_year(raw, self.reference_year):
            decision.reason = RejectReason.STALE
        elif not is_relevant(normalized, self.significant_words):
            decision.reason = RejectReason.IRRELEVANT

        return decision

    def check(self, raw: str, seen: SeenPhrases) -> FilterDecision:
        """Decide on a suggestion; accepted phrases are added to the seen set."""
        decision = self.evaluate(raw, seen)
        if decision.accepted:
            seen.add(decision.normalized)
        else:
            self.rejections[decision.reason.value] += 1
            logger.debug(f"Rejected '{raw}': {decision.reason.value}")
        return decision

    def accept_batch(self, suggestions: Iterable[str], seen: SeenPhrases) -> List[FilterDecision]:
        """Screen a ranked batch, returning accepted decisions in rank order."""
        return [d for d in (self.check(s, seen) for s in suggestions) if d.accepted]
