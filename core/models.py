"""Data models for the Limin Market helpers."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Provenance(str, Enum):
    """How a location was determined. Values are the persisted tags."""

    DEVICE_SENSED = "gps"
    NETWORK_INFERRED = "ip"
    USER_SELECTED = "manual"
    DEFAULT = "default"


class LocationFailure(str, Enum):
    CAPABILITY_UNAVAILABLE = "capability_unavailable"
    DENIED_OR_TIMED_OUT = "denied_or_timed_out"
    NETWORK_FAILURE = "network_failure"
    MALFORMED_RESPONSE = "malformed_response"


class EventType(str, Enum):
    HOLIDAY = "holiday"
    FESTIVAL = "festival"
    COMMUNITY = "community"
    MARKETPLACE = "marketplace"


class Currency(str, Enum):
    GYD = "GYD"
    USD = "USD"


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float


@dataclass(frozen=True)
class DetectionResult:
    location: str
    method: Provenance

    def to_dict(self) -> dict[str, str]:
        return {"location": self.location, "method": self.method.value}


class GeolocationError(Exception):
    """A position source could not produce coordinates."""

    def __init__(self, reason: LocationFailure, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


class InvalidImageError(ValueError):
    """A listing photo could not be decoded or is not an image."""


class DescriptionError(RuntimeError):
    """The description provider failed or returned an unusable response."""


@dataclass
class DescriptionRequest:
    title: str
    category: str
    location: str | None = None
    price: float | None = None
    image_base64: str | None = None
    image_url: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> DescriptionRequest:
        """Build a request from the JSON body sent by the listing form.

        Raises ValueError when ``title`` or ``category`` is missing or empty.
        """
        title = payload.get("title")
        category = payload.get("category")
        if not title or not category:
            raise ValueError("Missing required fields: title and category")

        price = payload.get("price")
        if price is not None:
            if isinstance(price, bool) or not isinstance(price, (int, float)):
                raise ValueError("price must be a number")

        for key in ("imageBase64", "imageUrl"):
            value = payload.get(key)
            if value and not isinstance(value, str):
                raise ValueError(f"{key} must be a string")

        return cls(
            title=str(title),
            category=str(category),
            location=payload.get("location") or None,
            price=price,
            image_base64=payload.get("imageBase64") or None,
            image_url=payload.get("imageUrl") or None,
        )

    @property
    def has_image(self) -> bool:
        return bool(self.image_base64 or self.image_url)


@dataclass(frozen=True)
class ListingImage:
    """An image attached to a description request, ready for a provider."""

    media_type: str = "image/jpeg"
    data: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class CulturalEvent:
    id: str
    title: str
    description: str
    event_date: dt.date
    event_type: EventType
    is_featured: bool = False
    related_products_category: str | None = None
