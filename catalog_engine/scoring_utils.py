"""
Scoring Utilities Module
Version: 1.0

Pure text functions shared by the search index, the ranking engine and
consolidated search. Stateless, so they are easy to test and reuse.
"""
import re
from typing import List

_SEPARATORS = re.compile(r"[-_]")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """
    Normalize text for consistent indexing and searching.

    Lower-cases, turns '-' and '_' into spaces and strips everything
    that is not alphanumeric or whitespace.
    """
    text = _SEPARATORS.sub(" ", text.lower())
    return _NON_ALNUM.sub("", text).strip()


def tokenize(text: str, min_length: int = 2) -> List[str]:
    """
    Split text into searchable terms.

    Args:
        text: Raw text
        min_length: Terms shorter than this are dropped

    Returns:
        Terms in order of appearance (duplicates kept)
    """
    normalized = normalize_text(text)
    if not normalized:
        return []
    return [term for term in _WHITESPACE.split(normalized) if len(term) >= min_length]


def levenshtein_distance(a: str, b: str) -> int:
    """
    Classic dynamic-programming edit distance.

    Counts insertions, deletions and substitutions. Only two rows of the
    matrix are kept.
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, char_b in enumerate(b, start=1):
            if char_a == char_b:
                current[j] = previous[j - 1]
            else:
                current[j] = min(
                    previous[j - 1] + 1,  # substitution
                    current[j - 1] + 1,   # insertion
                    previous[j] + 1,      # deletion
                )
        previous = current

    return previous[len(b)]
