"""Listing photo preparation before it is sent to a description provider."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from urllib.parse import urlparse

from PIL import Image, UnidentifiedImageError

from core.models import InvalidImageError, ListingImage

logger = logging.getLogger(__name__)

# Longest edge vision models accept without downscaling server-side
MAX_IMAGE_EDGE = 1568

SUPPORTED_MEDIA_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}


def decode_base64_image(image_base64: str) -> bytes:
    """Decode a base64 photo, accepting an optional ``data:`` URL prefix."""
    payload = image_base64.strip()
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError("imageBase64 is not valid base64 data") from e


def fit_within(image: Image.Image, max_edge: int = MAX_IMAGE_EDGE) -> Image.Image:
    """Downscale an image so its longest edge is at most ``max_edge`` pixels."""
    if max(image.size) <= max_edge:
        return image
    resized = image.copy()
    resized.thumbnail((max_edge, max_edge), Image.LANCZOS)
    return resized


def _encode(image: Image.Image, fmt: str) -> str:
    buf = io.BytesIO()
    if fmt == "JPEG":
        image.convert("RGB").save(buf, format="JPEG", quality=90)
    else:
        image.save(buf, format=fmt)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def prepare_base64_image(image_base64: str, max_edge: int = MAX_IMAGE_EDGE) -> ListingImage:
    """Validate an uploaded photo and normalise it for a vision model.

    The media type is taken from the image itself rather than trusted from the
    client. Oversized or unsupported images are re-encoded.
    """
    raw = decode_base64_image(image_base64)
    try:
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError("imageBase64 is not a readable image") from e

    fmt = image.format or "JPEG"
    media_type = Image.MIME.get(fmt, "")

    if media_type in SUPPORTED_MEDIA_TYPES and max(image.size) <= max_edge:
        return ListingImage(media_type=media_type, data=base64.b64encode(raw).decode("ascii"))

    target_fmt = "PNG" if fmt == "PNG" else "JPEG"
    resized = fit_within(image, max_edge)
    logger.info(
        "Re-encoded listing photo %s %dx%d -> %s %dx%d",
        fmt, image.width, image.height, target_fmt, resized.width, resized.height,
    )
    return ListingImage(media_type=Image.MIME[target_fmt], data=_encode(resized, target_fmt))


def prepare_listing_image(
    image_base64: str | None = None,
    image_url: str | None = None,
    max_edge: int = MAX_IMAGE_EDGE,
) -> ListingImage | None:
    """Return the image to attach to a description request, if any.

    An inline photo takes precedence over a URL.
    """
    if image_base64:
        return prepare_base64_image(image_base64, max_edge=max_edge)

    if image_url:
        parsed = urlparse(image_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidImageError(f"imageUrl must be an http(s) URL: {image_url!r}")
        return ListingImage(media_type="", url=image_url)

    return None
