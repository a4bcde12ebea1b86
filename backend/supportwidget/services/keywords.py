"""Keyword extraction for visitor queries."""

import re
from typing import FrozenSet, List

# Articles, prepositions, conjunctions, auxiliary verbs, wh-words and demonstratives
STOP_WORDS = frozenset({
    'a', 'an', 'the',
    'and', 'or', 'but',
    'in', 'on', 'at', 'to', 'for', 'of', 'with', 'by', 'from', 'about', 'into',
    'is', 'are', 'was', 'were', 'be', 'been', 'am',
    'have', 'has', 'had', 'do', 'does', 'did',
    'will', 'would', 'could', 'should', 'may', 'might', 'can', 'shall', 'must',
    'what', 'how', 'why', 'when', 'where', 'who', 'whom', 'which',
    'that', 'this', 'these', 'those',
})

_NON_WORD = re.compile(r'[^\w\s]')


def words(text: str) -> List[str]:
    """Lowercased words in order, punctuation dropped."""
    if not text or not isinstance(text, str):
        return []
    return _NON_WORD.sub(' ', text.lower()).split()


def tokenize(text: str, min_length: int = 2) -> FrozenSet[str]:
    """Lowercase, drop punctuation and keep unique tokens of at least min_length chars."""
    return frozenset(word for word in words(text) if len(word) >= min_length)


def extract_keywords(text: str) -> FrozenSet[str]:
    """
    Normalize free text into a deduplicated keyword set.

    Tokens shorter than 2 characters and stop-words are removed.
    Empty input yields an empty set.
    """
    return frozenset(word for word in tokenize(text, min_length=2) if word not in STOP_WORDS)
