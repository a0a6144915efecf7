"""
Seed Phrase Services Layer

Business logic that orchestrates the phrase store, the suggestion
source and scoring.
"""

from .sessions import (
    SessionService,
    ScoringInputError,
    SessionNotFoundError,
    get_anchor_texts,
)

__all__ = [
    "SessionService",
    "ScoringInputError",
    "SessionNotFoundError",
    "get_anchor_texts",
]
