"""
Collector Module

Harvests candidate phrases for a seed from an autocomplete-style
suggestion source:
- top10:  ranked suggestions for the bare seed (anchor set)
- az:     26 letter-suffixed queries
- prefix: semantic-prefix queries
- child:  anchors expanded one level deeper

Also collects the per-phrase signals used by scoring, and rates a
seed's own suggestions before a session is built on it.
"""

from .client import (
    RetryConfig,
    SuggestionSourceError,
    SourceUnavailableError,
    SuggestionClient,
    GoogleSuggestClient,
    ApifySuggestClient,
    MAX_SUGGESTIONS,
    parse_suggest_response,
    group_actor_rows,
    create_client,
)
from .pacing import Pacer
from .filters import (
    RejectReason,
    FilterDecision,
    SeenPhrases,
    PhraseFilter,
    has_stale_year,
    is_spam,
    is_relevant,
)
from .phases import (
    ExpansionPhase,
    PhaseQuery,
    PhaseHandler,
    Top10Handler,
    AzHandler,
    PrefixHandler,
    ChildHandler,
    PHASE_HANDLERS,
    PHASE_ORDER,
    SEMANTIC_PREFIXES,
    CHILD_PREFIXES,
    get_phase_handler,
)
from .orchestrator import (
    ExpansionInputError,
    ExpansionConfig,
    ExpansionProgress,
    ExpansionReport,
    PhaseResult,
    ExpansionController,
)
from .signals import SignalCollector, order_for_signals
from .seed_signal import (
    SignalStrength,
    SeedSignal,
    calculate_seed_signal,
    validate_seed,
)

__all__ = [
    # Client
    "RetryConfig",
    "SuggestionSourceError",
    "SourceUnavailableError",
    "SuggestionClient",
    "GoogleSuggestClient",
    "ApifySuggestClient",
    "MAX_SUGGESTIONS",
    "parse_suggest_response",
    "group_actor_rows",
    "create_client",
    # Pacing
    "Pacer",
    # Filters
    "RejectReason",
    "FilterDecision",
    "SeenPhrases",
    "PhraseFilter",
    "has_stale_year",
    "is_spam",
    "is_relevant",
    # Phases
    "ExpansionPhase",
    "PhaseQuery",
    "PhaseHandler",
    "Top10Handler",
    "AzHandler",
    "PrefixHandler",
    "ChildHandler",
    "PHASE_HANDLERS",
    "PHASE_ORDER",
    "SEMANTIC_PREFIXES",
    "CHILD_PREFIXES",
    "get_phase_handler",
    # Controller
    "ExpansionInputError",
    "ExpansionConfig",
    "ExpansionProgress",
    "ExpansionReport",
    "PhaseResult",
    "ExpansionController",
    # Signals
    "SignalCollector",
    "order_for_signals",
    # Seed signal
    "SignalStrength",
    "SeedSignal",
    "calculate_seed_signal",
    "validate_seed",
]
