"""
Blended string similarity used to rank master entries.

score = 0.6 * normalized edit similarity + 0.4 * character-bigram Jaccard,
lifted to at least SUBSTRING_FLOOR when one string contains the other.
Character bigrams work better than whitespace tokens for Japanese terms.
"""
from __future__ import annotations
import math
from typing import Set

from rapidfuzz.distance import Levenshtein

from vetmatch.preprocess import normalize_match_text

EDIT_WEIGHT = 0.6
BIGRAM_WEIGHT = 0.4
SUBSTRING_FLOOR = 0.8


def round_half_up(value: float, digits: int) -> float:
    """Round half away from zero on ``value * 10**digits``."""
    factor = 10 ** digits
    return math.copysign(math.floor(abs(value) * factor + 0.5), value) / factor


def edit_score(a: str, b: str) -> float:
    """1 - levenshtein(a, b) / max(len(a), len(b)); 1.0 for two empty strings."""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / max_len


def char_bigrams(text: str) -> Set[str]:
    if not text:
        return set()
    if len(text) == 1:
        return {text}
    return {text[i:i + 2] for i in range(len(text) - 1)}


def bigram_score(a: str, b: str) -> float:
    """Jaccard similarity of the character bigram sets."""
    grams_a = char_bigrams(a)
    grams_b = char_bigrams(b)
    if not grams_a and not grams_b:
        return 1.0
    union = grams_a | grams_b
    return len(grams_a & grams_b) / len(union)


def score(query: str, candidate: str) -> float:
    """Similarity of ``query`` and ``candidate`` in [0, 1]."""
    q = normalize_match_text(query)
    c = normalize_match_text(candidate)

    if not q or not c:
        return 0.0
    if q == c:
        return 1.0

    base = EDIT_WEIGHT * edit_score(q, c) + BIGRAM_WEIGHT * bigram_score(q, c)

    # Compound medical terms, e.g. "肺炎" inside "肺炎細菌性"
    if q in c or c in q:
        return max(base, SUBSTRING_FLOOR)
    return base
