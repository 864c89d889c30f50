"""Price filter state behind the two-handle range slider, and home feed price buckets."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any

HOT_DEAL_CEILING = 100
DOLLAR_ITEM_CEILING = 50


@dataclass(frozen=True)
class PriceRange:
    """A selected [low, high] window inside the slider bounds [minimum, maximum].

    The handles never cross: ``low`` stays at least one ``step`` below ``high``.
    """

    minimum: float
    maximum: float
    low: float
    high: float
    step: float = 1

    def __post_init__(self) -> None:
        if self.maximum <= self.minimum:
            raise ValueError("maximum must be greater than minimum")
        if self.step <= 0:
            raise ValueError("step must be positive")

    def with_low(self, value: float) -> PriceRange:
        return replace(self, low=min(value, self.high - self.step))

    def with_high(self, value: float) -> PriceRange:
        return replace(self, high=max(value, self.low + self.step))

    def percentage(self, value: float) -> float:
        """Position of ``value`` along the track, 0-100."""
        return (value - self.minimum) / (self.maximum - self.minimum) * 100

    @property
    def low_percentage(self) -> float:
        return self.percentage(self.low)

    @property
    def high_percentage(self) -> float:
        return self.percentage(self.high)

    def contains(self, price: float) -> bool:
        return self.low <= price <= self.high


def price_buckets(products: Iterable[Mapping[str, Any]]) -> dict[str, list[Mapping[str, Any]]]:
    """Split products into the home feed's hot deals, dollar items and free items."""
    buckets: dict[str, list[Mapping[str, Any]]] = {
        "hot_deals": [],
        "dollar_items": [],
        "free_items": [],
    }
    for product in products:
        price = product.get("price")
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            continue
        if price == 0:
            buckets["free_items"].append(product)
            continue
        if 0 < price < HOT_DEAL_CEILING:
            buckets["hot_deals"].append(product)
        if 0 < price <= DOLLAR_ITEM_CEILING:
            buckets["dollar_items"].append(product)
    return buckets
