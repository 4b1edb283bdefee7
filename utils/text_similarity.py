"""
Token-set similarity helpers shared by duplicate detection and theme clustering
"""
import re
from typing import Iterable, List, Set

_NON_WORD = re.compile(r'[^\w\s]')
_WHITESPACE = re.compile(r'\s+')
_PURE_NUMBER = re.compile(r'^\d+$')


def jaccard_similarity(tokens1: Iterable[str], tokens2: Iterable[str]) -> float:
    """
    |A ∩ B| / |A ∪ B| over the two token sets

    Two empty inputs have similarity 0.
    """
    set1 = set(tokens1)
    set2 = set(tokens2)
    union = set1 | set2
    if not union:
        return 0.0
    return len(set1 & set2) / len(union)


def word_set(text: str) -> Set[str]:
    """Whitespace-separated words of an already normalized text."""
    return set(_WHITESPACE.split(text.strip())) if text.strip() else set()


def normalize_for_tokens(text: str) -> str:
    """Lowercase, replace non-word characters with spaces, collapse whitespace."""
    lowered = _NON_WORD.sub(' ', (text or '').lower())
    return _WHITESPACE.sub(' ', lowered).strip()


def tokenize(text: str, stop_words: Set[str]) -> List[str]:
    """
    Meaningful tokens of a text, in order

    Drops stop words, pure numbers and tokens of two characters or less.
    """
    normalized = normalize_for_tokens(text)
    if not normalized:
        return []
    return [
        token for token in normalized.split(' ')
        if len(token) > 2 and token not in stop_words and not _PURE_NUMBER.match(token)
    ]
