"""
Spam Guard
Regex screen run before any retrieval: flooding, symbol-only messages, links,
gambling/adult content and scam phrases.
"""

import re

from govconnect_rag.shared.constants import SPAM_MAX_LENGTH, SPAM_MIN_LENGTH

SPAM_PATTERNS = [
    re.compile(r"(.)\1{30,}"),  # 31+ repeats of one character
    re.compile(r"^[^\w\s]+$"),  # symbols only
    re.compile(r"(http|https|www\.|bit\.ly|t\.co|tinyurl)", re.IGNORECASE),
    re.compile(r"\b(viagra|casino|poker|judi|togel|slot|xxx|porn)\b", re.IGNORECASE),
    re.compile(r"\b(click\s+here|klik\s+disini|download\s+now|claim\s+now)\b", re.IGNORECASE),
    re.compile(
        r"\b(menang\s+jutaan|hadiah\s+milyar|transfer\s+sekarang|bonus\s+besar)\b",
        re.IGNORECASE,
    ),
]


def is_spam_message(message: str | None) -> bool:
    """
    Args:
        message: Raw citizen message

    Returns:
        True when the message should not be processed at all
    """
    if not message or len(message) < SPAM_MIN_LENGTH:
        return True
    if len(message) > SPAM_MAX_LENGTH:
        return True
    return any(pattern.search(message) for pattern in SPAM_PATTERNS)
