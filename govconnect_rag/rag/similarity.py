"""
Lexical similarity helpers shared by the re-ranker and the deduplicator.
"""

import logging
import math
import re

from govconnect_rag.shared.constants import (
    BIGRAM_PHRASE_BONUS,
    EXACT_PHRASE_BONUS,
    KEYWORD_MIN_TERM_LENGTH,
)

logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")


def word_set(text: str, min_length: int = KEYWORD_MIN_TERM_LENGTH) -> set[str]:
    """
    Token set used for Jaccard comparisons.

    Lowercased, punctuation replaced by spaces, split on whitespace, tokens
    shorter than `min_length` dropped.
    """
    cleaned = _PUNCTUATION.sub(" ", text.lower())
    return {token for token in cleaned.split() if len(token) >= min_length}


def jaccard(a: set[str], b: set[str]) -> float:
    """|A ∩ B| / |A ∪ B|; two empty sets have similarity 0."""
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def query_terms(query: str, min_length: int = KEYWORD_MIN_TERM_LENGTH) -> list[str]:
    """Lowercased whitespace tokens of the query, in order, short ones dropped."""
    return [w for w in query.lower().split() if len(w) >= min_length]


def keyword_score(
    content: str,
    query: str,
    exact_phrase_bonus: float = EXACT_PHRASE_BONUS,
    bigram_bonus: float = BIGRAM_PHRASE_BONUS,
) -> float:
    """
    BM25-flavoured lexical score of `content` for `query`.

    score = Σ log(1 + occurrences(term))   over query terms with len > 2
          + exact_phrase_bonus             if the whole query appears verbatim
          + bigram_bonus                   per consecutive term pair present

    Occurrences are counted as escaped substring matches. A term whose
    pattern cannot be compiled contributes nothing.
    """
    content_lower = content.lower()
    query_lower = query.lower()
    terms = query_terms(query)

    score = 0.0
    for term in terms:
        try:
            pattern = re.compile(re.escape(term))
        except re.error:
            logger.debug(f"Skipping uncompilable keyword term: {term!r}")
            continue
        count = len(pattern.findall(content_lower))
        if count:
            score += math.log(1 + count)

    if query_lower and query_lower in content_lower:
        score += exact_phrase_bonus

    for first, second in zip(terms, terms[1:]):
        if f"{first} {second}" in content_lower:
            score += bigram_bonus

    return score
