"""Description generation pipeline: prompt building, image preparation and the provider call."""

from __future__ import annotations

import logging

from core.imaging import prepare_listing_image
from core.models import DescriptionRequest
from core.prompt_builder import build_system_prompt, build_user_prompt
from core.providers import DescriptionProvider

logger = logging.getLogger(__name__)


def generate_description(request: DescriptionRequest, provider: DescriptionProvider) -> str:
    """Generate a marketplace description for a single listing.

    Raises InvalidImageError for an unusable image and DescriptionError when the
    provider fails.
    """
    image = prepare_listing_image(request.image_base64, request.image_url)
    system_prompt = build_system_prompt()
    user_prompt = build_user_prompt(request)

    description, elapsed = provider.timed_describe(system_prompt, user_prompt, image)
    logger.info(
        "Generated description for %r via %s in %.2fs (%d chars, image=%s)",
        request.title, provider.provider_name, elapsed, len(description), image is not None,
    )
    return description
