"""
Phrase Text Utilities

Shared text handling used across harvesting, tagging and scoring:
- Normalization for matching (never for display)
- Significant-word extraction
- Display form (title case with brand/acronym exceptions)

Normalized text is the only form compared anywhere in the system, so every
matching path goes through normalize_phrase().
"""

import re
from typing import Dict, List, Set


# =============================================================================
# WORD LISTS
# =============================================================================

STOP_WORDS: Set[str] = {
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "shall", "can", "need", "dare", "ought",
    "used", "it", "its", "this", "that", "these", "those", "i", "you", "he",
    "she", "we", "they", "what", "which", "who", "whom", "how", "why", "when",
    "where", "all", "each", "every", "both", "few", "more", "most", "other",
    "some", "such", "no", "nor", "not", "only", "own", "same", "so", "than",
    "too", "very", "just", "also", "now", "here", "there", "then", "once",
}

# Question/connector words that carry no topical weight in frequency tables
FILLER_WORDS: Set[str] = {
    "how", "to", "what", "is", "why", "does", "can", "best", "will", "should",
    "when", "for", "the", "a", "an", "with", "and", "or", "in", "on", "at",
    "of", "vs",
}

SPECIAL_WORDS: Dict[str, str] = {
    "youtube": "YouTube",
    "iphone": "iPhone",
    "ipad": "iPad",
    "imac": "iMac",
    "ios": "iOS",
    "macos": "macOS",
    "tiktok": "TikTok",
    "linkedin": "LinkedIn",
    "facebook": "Facebook",
    "instagram": "Instagram",
    "twitter": "Twitter",
    "whatsapp": "WhatsApp",
    "chatgpt": "ChatGPT",
    "openai": "OpenAI",
    "ai": "AI",
    "seo": "SEO",
    "usa": "USA",
    "uk": "UK",
    "diy": "DIY",
    "pdf": "PDF",
    "html": "HTML",
    "css": "CSS",
    "api": "API",
    "url": "URL",
    "wifi": "WiFi",
    "tv": "TV",
    "vr": "VR",
    "ar": "AR",
    "3d": "3D",
    "2d": "2D",
}

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_NUMBER = re.compile(r"^\d+(\.\d+)?$")


# =============================================================================
# NORMALIZATION
# =============================================================================

def normalize_phrase(text: str) -> str:
    """
    Canonicalize a phrase for matching.

    Lowercases, strips punctuation and collapses whitespace. The result is
    stable: normalize_phrase(normalize_phrase(x)) == normalize_phrase(x).
    """
    if not text:
        return ""
    lowered = _PUNCTUATION.sub("", text.lower())
    return _WHITESPACE.sub(" ", lowered).strip()


def split_words(text: str) -> List[str]:
    """Split normalized text into words."""
    normalized = normalize_phrase(text)
    return normalized.split(" ") if normalized else []


def count_words(text: str) -> int:
    return len(split_words(text))


def get_significant_words(text: str, min_length: int = 2) -> List[str]:
    """
    Extract the content words of a phrase.

    Drops stop-words and tokens shorter than min_length. Numbers and version
    strings ("2", "4.5") are always kept, in normalized form ("45").

    Args:
        text: Raw or normalized phrase
        min_length: Minimum length for non-numeric words

    Returns:
        Significant words in phrase order, without duplicates
    """
    words = []
    for word in text.lower().split():
        token = normalize_phrase(word)
        if not token:
            continue
        if not _NUMBER.match(word) and (len(token) < min_length or token in STOP_WORDS):
            continue
        if token not in words:
            words.append(token)
    return words


# =============================================================================
# DISPLAY FORM
# =============================================================================

def to_display_text(text: str) -> str:
    """
    Render a phrase for storage/display.

    Word-by-word title case, with brand and acronym tokens taken from
    SPECIAL_WORDS. Only letter case changes, so the display form normalizes
    back to the same matching text.
    """
    words = []
    for word in _WHITESPACE.split(text.strip()):
        if not word:
            continue
        lowered = word.lower()
        if lowered in SPECIAL_WORDS:
            words.append(SPECIAL_WORDS[lowered])
        else:
            first = lowered[0].upper()
            if first.lower() != lowered[0]:
                # e.g. "ß" -> "SS" would not round-trip
                first = lowered[0]
            words.append(first + lowered[1:])
    return " ".join(words)
