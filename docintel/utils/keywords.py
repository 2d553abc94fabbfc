"""
Keyword extraction utilities - frequency-based keywords from document content.
"""
from typing import List, Dict
import re

# Common stop words to filter out
STOP_WORDS = {
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of', 'with',
    'by', 'is', 'are', 'was', 'were', 'be', 'been', 'have', 'has', 'had', 'do', 'does',
    'did', 'will', 'would', 'could', 'should', 'may', 'might', 'can', 'this', 'that',
    'these', 'those', 'from', 'they', 'them', 'their', 'there', 'then', 'than', 'when',
    'where', 'which', 'what', 'who', 'why', 'how'
}

_MIN_KEYWORD_LENGTH = 4
_MAX_KEYWORDS = 8
_TOKEN = re.compile(r"\b\w+\b")


def extract_keywords(text: str, limit: int = _MAX_KEYWORDS) -> List[str]:
    """
    Extract the most frequent non-stopword terms.

    Words are lower-cased whitespace tokens; only words of at least four
    characters count. Ties keep first-occurrence order so the result is
    deterministic.

    Args:
        text: Text content to analyze
        limit: Maximum number of keywords

    Returns:
        Keywords ordered by descending frequency
    """
    word_freq: Dict[str, int] = {}
    for word in (text or "").lower().split():
        if len(word) >= _MIN_KEYWORD_LENGTH and word not in STOP_WORDS:
            word_freq[word] = word_freq.get(word, 0) + 1

    # sorted() is stable, so equal counts stay in insertion order
    sorted_words = sorted(word_freq.items(), key=lambda x: x[1], reverse=True)
    return [word for word, _ in sorted_words[:limit]]


def tokenize(text: str) -> List[str]:
    """Lower-cased word tokens (letters, digits and underscore)."""
    return _TOKEN.findall((text or "").lower())
