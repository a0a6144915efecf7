"""
Phrase Signal Collection

Queries the suggestion source with each candidate phrase itself and turns
the answer into the signals demand and opportunity scoring read:
- suggestion_count
- exact_match_pct (suggestions starting with the phrase)
- topic_match_pct (suggestions containing all its significant words)

Phrases are queried in small groups (6 by default), in parallel within a
group, with a randomized pause between groups. A failed query counts as
zero suggestions.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence

from src.models import CandidateRecord, GenerationMethod, PhraseSignals
from src.scoring.demand import calculate_phrase_signals
from .client import SuggestionClient, SuggestionSourceError
from .pacing import Pacer

logger = logging.getLogger(__name__)


def order_for_signals(candidates: Sequence[CandidateRecord]) -> List[CandidateRecord]:
    """Seed first, then anchors, then everything else in harvest order."""
    rank = {
        GenerationMethod.SEED: 0,
        GenerationMethod.TOP10: 1,
        GenerationMethod.AZ: 2,
        GenerationMethod.PREFIX: 3,
        GenerationMethod.CHILD: 4,
    }
    return sorted(candidates, key=lambda c: (rank[c.generation_method], c.position))


class SignalCollector:
    """Collects PhraseSignals for a session's visible phrases."""

    def __init__(
        self,
        client: SuggestionClient,
        pacer: Optional[Pacer] = None,
        batch_size: int = 6,
        max_phrases: int = 0,
    ):
        """
        Args:
            client: Suggestion source client
            pacer: Delay primitive between groups
            batch_size: Phrases per group
            max_phrases: Upper bound on phrases queried (0 = no limit)
        """
        self.client = client
        self.pacer = pacer or Pacer()
        self.batch_size = max(1, batch_size)
        self.max_phrases = max_phrases
        self.failed_queries = 0

    async def collect(
        self,
        candidates: Sequence[CandidateRecord],
        should_stop: Optional[Callable[[], bool]] = None,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> Dict[str, PhraseSignals]:
        """
        Collect signals for every visible candidate.

        Returns:
            phrase id -> PhraseSignals. Phrases beyond max_phrases, or not
            reached because of a stop request, are absent.
        """
        visible = order_for_signals([c for c in candidates if not c.is_hidden])
        if self.max_phrases > 0:
            visible = visible[:self.max_phrases]

        groups = [visible[i:i + self.batch_size] for i in range(0, len(visible), self.batch_size)]
        signals: Dict[str, PhraseSignals] = {}

        logger.info(f"Collecting signals for {len(visible)} phrases in {len(groups)} groups")

        for index, group in enumerate(groups):
            if should_stop and should_stop():
                logger.info(f"Signal collection stopped after {len(signals)} phrases")
                break

            suggestions = await self._fetch_group([c.normalized_text for c in group])
            for candidate, found in zip(group, suggestions):
                signals[candidate.id] = calculate_phrase_signals(candidate.normalized_text, found)

            if on_progress:
                on_progress(len(signals), len(visible))
            if index + 1 < len(groups):
                await self.pacer.between_batches()

        if self.failed_queries:
            logger.warning(f"{self.failed_queries} signal queries failed and were scored as empty")
        return signals

    async def _fetch_group(self, texts: List[str]) -> List[List[str]]:
        if self.client.supports_batch:
            try:
                results = await self.client.fetch_many(texts)
            except SuggestionSourceError as e:
                logger.warning(f"Bulk signal call failed for {len(texts)} phrases: {e}")
                self.failed_queries += len(texts)
                return [[] for _ in texts]
            return [results.get(text, []) for text in texts]

        results = await asyncio.gather(
            *[self.client.fetch(text) for text in texts],
            return_exceptions=True,
        )

        suggestions = []
        for text, result in zip(texts, results):
            if isinstance(result, Exception):
                logger.warning(f"Signal call failed for '{text}': {result}")
                self.failed_queries += 1
                suggestions.append([])
            else:
                suggestions.append(result)
        return suggestions
