"""Prompt builder that converts listing data into description prompts."""

from __future__ import annotations

import logging

from core.models import DescriptionRequest
from prompts.templates import (
    CATEGORY_LINE,
    DESCRIPTION_SYSTEM_PROMPT,
    IMAGE_INSTRUCTION,
    LOCATION_LINE,
    PRICE_LINE,
    TEXT_ONLY_INSTRUCTION,
    TITLE_LINE,
    USER_PROMPT_HEADER,
)

logger = logging.getLogger(__name__)


def format_listing_price(price: float) -> str:
    """Render a listing price the way the listing form shows it."""
    if price == 0:
        return "FREE"
    amount = int(price) if float(price).is_integer() else price
    return f"${amount} GYD"


def build_system_prompt() -> str:
    return DESCRIPTION_SYSTEM_PROMPT


def build_user_prompt(request: DescriptionRequest) -> str:
    """Build the user message for a description request."""
    lines = [
        USER_PROMPT_HEADER,
        TITLE_LINE.safe_substitute(title=request.title),
        CATEGORY_LINE.safe_substitute(category=request.category),
    ]

    if request.location:
        lines.append(LOCATION_LINE.safe_substitute(location=request.location))

    if request.price is not None:
        lines.append(PRICE_LINE.safe_substitute(price=format_listing_price(request.price)))

    instruction = IMAGE_INSTRUCTION if request.has_image else TEXT_ONLY_INSTRUCTION
    prompt = "\n".join(lines) + "\n\n" + instruction

    logger.debug("Built description prompt for %r: %s", request.title, prompt)
    return prompt
