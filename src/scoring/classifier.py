"""
Tag Classifier

Assigns every candidate phrase a relationship tag against the anchor set
(the ranked result of the top10 phase):

1. TOP_10       - phrase equals an anchor
2. T10_CHILD    - phrase starts with an anchor
3. T10_RELATED  - phrase contains an anchor
4. NO_TAG       - none of the above

Tags are evaluated in that priority order across ALL anchors, so the tag
never depends on the order anchors are supplied in. Only the recorded
source anchor needs a tie-break: longest anchor wins, then best position.
"""

import logging
from enum import Enum
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from src.utils.text import normalize_phrase, get_significant_words
from .helpers import MatchStrength, get_match_strength

logger = logging.getLogger(__name__)


class PhraseTag(Enum):
    """Relationship of a phrase to the anchor set."""
    TOP_10 = "top_10"
    T10_CHILD = "t10_child"
    T10_RELATED = "t10_related"
    NO_TAG = "no_tag"


@dataclass
class TagResult:
    """Classification of one phrase."""
    phrase: str
    tag: PhraseTag
    source_anchor: Optional[str]
    match_strength: MatchStrength
    overlap: int


def prepare_anchors(anchors: Sequence[str]) -> List[str]:
    """Normalize anchors, dropping empties and duplicates but keeping rank order."""
    prepared = []
    for anchor in anchors:
        normalized = normalize_phrase(anchor)
        if normalized and normalized not in prepared:
            prepared.append(normalized)
    return prepared


def _pick_source(candidates: List[str], ranks: Dict[str, int]) -> str:
    return min(candidates, key=lambda a: (-len(a), ranks[a]))


def classify_phrase(
    phrase: str,
    anchors: Sequence[str],
    anchor_ranks: Optional[Dict[str, int]] = None,
) -> TagResult:
    """
    Classify a phrase against an anchor set.

    Args:
        phrase: Candidate phrase (raw or normalized)
        anchors: Anchor phrases, strongest first
        anchor_ranks: Optional normalized anchor -> rank, used for tie-breaks
            when the caller has shuffled the anchors

    Returns:
        TagResult with tag, source anchor and match strength
    """
    normalized = normalize_phrase(phrase)
    prepared = prepare_anchors(anchors)
    if anchor_ranks is None:
        ranks = {anchor: i for i, anchor in enumerate(prepared)}
    else:
        ranks = {anchor: anchor_ranks.get(anchor, len(prepared) + i) for i, anchor in enumerate(prepared)}

    tag = PhraseTag.NO_TAG
    source = None
    if normalized:
        checks = [
            (PhraseTag.TOP_10, lambda a: normalized == a),
            (PhraseTag.T10_CHILD, lambda a: normalized.startswith(a)),
            (PhraseTag.T10_RELATED, lambda a: a in normalized),
        ]
        for candidate_tag, matches in checks:
            matched = [anchor for anchor in prepared if matches(anchor)]
            if matched:
                tag = candidate_tag
                source = _pick_source(matched, ranks)
                break

    overlap = best_anchor_overlap(normalized, prepared)
    strength = MatchStrength.STRONG if tag == PhraseTag.TOP_10 else get_match_strength(overlap)

    return TagResult(
        phrase=normalized,
        tag=tag,
        source_anchor=source,
        match_strength=strength,
        overlap=overlap,
    )


def best_anchor_overlap(phrase: str, anchors: Sequence[str]) -> int:
    """
    Largest number of significant words (3+ chars) shared with any anchor.

    Taking the maximum keeps the result independent of anchor order.
    """
    phrase_words = set(get_significant_words(phrase, min_length=3))
    if not phrase_words:
        return 0
    best = 0
    for anchor in anchors:
        anchor_words = set(get_significant_words(anchor, min_length=3))
        best = max(best, len(phrase_words & anchor_words))
    return best


def classify_batch(phrases: Sequence[str], anchors: Sequence[str]) -> List[TagResult]:
    """Classify many phrases against the same anchor set."""
    prepared = prepare_anchors(anchors)
    ranks = {anchor: i for i, anchor in enumerate(prepared)}
    results = [classify_phrase(p, prepared, ranks) for p in phrases]

    counts = get_tag_distribution(results)
    logger.debug(f"Classified {len(results)} phrases against {len(prepared)} anchors: {counts}")
    return results


def get_tag_distribution(results: Sequence[TagResult]) -> Dict[str, int]:
    distribution = {tag.value: 0 for tag in PhraseTag}
    for result in results:
        distribution[result.tag.value] += 1
    return distribution
