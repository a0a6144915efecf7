"""
Expansion Phases

The closed set of harvesting phases, one handler each. A handler knows
which queries its phase issues and how to pace between them; the
controller only runs the queries and does the bookkeeping.

Call volume per phase (single-query source):
- top10:  1 call on the bare seed (becomes the anchor set)
- az:     26 calls, "{seed} {letter}", letters shuffled
- prefix: 18 calls, "{prefix} {seed}", prefixes shuffled
- child:  3 calls per parent (direct, "how to {parent}", "what does {parent}"),
          parents shuffled
"""

import logging
import random
import string
from enum import Enum
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from src.models import CandidateRecord, GenerationMethod
from .pacing import Pacer

logger = logging.getLogger(__name__)


SEMANTIC_PREFIXES: List[str] = [
    "how", "what", "why", "best", "tips", "can", "how to", "what is",
    "what does", "fix", "learn", "improve", "why does", "how does",
    "is it", "can you", "guide to", "should i",
]

CHILD_PREFIXES: List[str] = ["how to", "what does"]

# Extra pause after every N parents in the child phase
CHILD_EXTRA_PAUSE_EVERY = 3


class ExpansionPhase(Enum):
    """Harvesting phases, in the order a session runs them."""
    TOP10 = "top10"
    AZ = "az"
    PREFIX = "prefix"
    CHILD = "child"

    @property
    def generation_method(self) -> GenerationMethod:
        return GenerationMethod(self.value)


PHASE_ORDER: List[ExpansionPhase] = [
    ExpansionPhase.TOP10,
    ExpansionPhase.AZ,
    ExpansionPhase.PREFIX,
    ExpansionPhase.CHILD,
]


@dataclass
class PhaseQuery:
    """One query a phase will issue."""
    text: str
    parent_id: Optional[str] = None
    parent_index: int = 0


class PhaseHandler:
    """Base handler: builds queries and paces between them."""

    phase: ExpansionPhase
    requires_parents = False

    def build_queries(
        self,
        seed: str,
        parents: Sequence[CandidateRecord] = (),
        rng: Optional[random.Random] = None,
    ) -> List[PhaseQuery]:
        raise NotImplementedError

    async def pause_after(
        self,
        pacer: Pacer,
        calls_done: int,
        current: PhaseQuery,
        upcoming: Optional[PhaseQuery],
    ) -> float:
        """Pause before the next query; nothing after the last one."""
        if upcoming is None:
            return 0.0
        return await pacer.between_calls(calls_done)


class Top10Handler(PhaseHandler):
    phase = ExpansionPhase.TOP10

    def build_queries(self, seed, parents=(), rng=None):
        return [PhaseQuery(text=seed)]


class AzHandler(PhaseHandler):
    phase = ExpansionPhase.AZ

    def build_queries(self, seed, parents=(), rng=None):
        letters = list(string.ascii_lowercase)
        (rng or random).shuffle(letters)
        return [PhaseQuery(text=f"{seed} {letter}") for letter in letters]


class PrefixHandler(PhaseHandler):
    phase = ExpansionPhase.PREFIX

    def __init__(self, prefixes: Optional[Sequence[str]] = None):
        self.prefixes = list(prefixes or SEMANTIC_PREFIXES)

    def build_queries(self, seed, parents=(), rng=None):
        prefixes = list(self.prefixes)
        (rng or random).shuffle(prefixes)
        return [PhaseQuery(text=f"{prefix} {seed}") for prefix in prefixes]


class ChildHandler(PhaseHandler):
    phase = ExpansionPhase.CHILD
    requires_parents = True

    def __init__(self, templates: Optional[Sequence[str]] = None, extra_pause_every: int = CHILD_EXTRA_PAUSE_EVERY):
        self.templates = list(templates or CHILD_PREFIXES)
        self.extra_pause_every = extra_pause_every

    def build_queries(self, seed, parents=(), rng=None):
        ordered = list(parents)
        (rng or random).shuffle(ordered)

        queries = []
        for index, parent in enumerate(ordered):
            text = parent.normalized_text
            queries.append(PhaseQuery(text=text, parent_id=parent.id, parent_index=index))
            for template in self.templates:
                queries.append(PhaseQuery(text=f"{template} {text}", parent_id=parent.id, parent_index=index))
        return queries

    async def pause_after(self, pacer, calls_done, current, upcoming):
        if upcoming is None:
            return 0.0
        waited = await pacer.between_calls(calls_done)
        finished_parent = upcoming.parent_index != current.parent_index
        if finished_parent and self.extra_pause_every > 0 and upcoming.parent_index % self.extra_pause_every == 0:
            waited += await pacer.extra_pause()
        return waited


PHASE_HANDLERS: Dict[ExpansionPhase, PhaseHandler] = {
    ExpansionPhase.TOP10: Top10Handler(),
    ExpansionPhase.AZ: AzHandler(),
    ExpansionPhase.PREFIX: PrefixHandler(),
    ExpansionPhase.CHILD: ChildHandler(),
}


def get_phase_handler(phase) -> PhaseHandler:
    """
    Resolve a handler from an ExpansionPhase or its string value.

    Raises:
        ValueError: On an unknown phase
    """
    if not isinstance(phase, ExpansionPhase):
        phase = ExpansionPhase(str(phase).lower())
    return PHASE_HANDLERS[phase]
