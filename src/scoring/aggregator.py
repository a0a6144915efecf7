"""
Session Aggregator

Computes the session-wide statistics scoring reads:
- Session size (visible, non-seed candidates)
- Corpus-wide word frequency table

Aggregates are resolved once per scoring pass, before any per-phrase score
is computed, and are treated as read-only afterwards.
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional

from src.models import CandidateRecord, GenerationMethod, SessionAggregate
from src.utils.text import split_words

logger = logging.getLogger(__name__)


def build_word_frequency(phrases: Iterable[str]) -> Dict[str, int]:
    """
    Count, for every word, how many phrases contain it.

    Each word counts at most once per phrase, so a phrase repeating a word
    does not inflate it.
    """
    counter: Counter = Counter()
    for phrase in phrases:
        counter.update(set(split_words(phrase)))
    return dict(counter)


def build_session_aggregate(candidates: Iterable[CandidateRecord]) -> SessionAggregate:
    """
    Summarize a session's candidate set.

    Hidden phrases are ignored. The seed row contributes neither to the
    size nor to the frequency table.
    """
    visible = [
        c for c in candidates
        if not c.is_hidden and c.generation_method != GenerationMethod.SEED
    ]
    frequency = build_word_frequency(c.normalized_text for c in visible)

    logger.debug(f"Session aggregate: {len(visible)} candidates, {len(frequency)} distinct words")
    return SessionAggregate(candidate_count=len(visible), word_frequency=frequency)


def get_top_words(
    aggregate: SessionAggregate,
    limit: int = 20,
    exclude: Optional[Iterable[str]] = None,
) -> List[Dict[str, int]]:
    """Most frequent words in the session, for reporting."""
    excluded = set(exclude or [])
    ranked = sorted(
        ((word, count) for word, count in aggregate.word_frequency.items() if word not in excluded),
        key=lambda item: (-item[1], item[0]),
    )
    return [{"word": word, "count": count} for word, count in ranked[:limit]]
