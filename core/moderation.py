"""Keyword-based moderation of listing text."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

BANNED_KEYWORDS: tuple[str, ...] = (
    # Explicit content
    "porn", "xxx", "nsfw", "nude", "sex",
    # Hate speech
    "hate", "racist", "nazi",
    # Violence
    "kill", "murder", "weapon", "gun", "explosive",
    # Scams
    "scam", "fraud", "stolen", "fake id", "counterfeit",
    # Drugs
    "drug", "cocaine", "heroin", "meth",
)

REJECTION_MESSAGE = (
    "Your listing contains inappropriate content and cannot be posted. "
    "Please review and try again."
)

_PATTERNS = [
    (keyword, re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE))
    for keyword in BANNED_KEYWORDS
]


@dataclass
class ModerationResult:
    is_allowed: bool
    flagged_words: list[str] = field(default_factory=list)
    message: str | None = None


def check_content(text: str) -> ModerationResult:
    """Flag every banned keyword that appears as a whole word in ``text``."""
    flagged = [keyword for keyword, pattern in _PATTERNS if pattern.search(text)]
    if flagged:
        logger.info("Content flagged for: %s", ", ".join(flagged))
        return ModerationResult(is_allowed=False, flagged_words=flagged, message=REJECTION_MESSAGE)
    return ModerationResult(is_allowed=True)


def moderate_listing(title: str, description: str) -> ModerationResult:
    """Check the title, then the description; the first rejection wins."""
    title_result = check_content(title)
    if not title_result.is_allowed:
        return title_result
    return check_content(description)
