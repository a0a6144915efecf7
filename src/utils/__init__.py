"""Utility modules for the seed phrase engine."""

from .config import Settings, get_settings
from .text import (
    STOP_WORDS,
    FILLER_WORDS,
    SPECIAL_WORDS,
    normalize_phrase,
    split_words,
    count_words,
    get_significant_words,
    to_display_text,
)

__all__ = [
    "Settings",
    "get_settings",
    "STOP_WORDS",
    "FILLER_WORDS",
    "SPECIAL_WORDS",
    "normalize_phrase",
    "split_words",
    "count_words",
    "get_significant_words",
    "to_display_text",
]
