"""Cultural events calendar for the home feed."""

from __future__ import annotations

import datetime as dt
import math
from collections.abc import Iterable

from core.models import CulturalEvent, EventType

UPCOMING_WINDOW_DAYS = 90
MAX_UPCOMING_EVENTS = 3
URGENT_WITHIN_DAYS = 7

CULTURAL_EVENTS: tuple[CulturalEvent, ...] = (
    CulturalEvent(
        id="1",
        title="Mashramani (Republic Day)",
        description="Guyana's Republic Day celebration with parades and festivities",
        event_date=dt.date(2026, 2, 23),
        event_type=EventType.HOLIDAY,
        is_featured=True,
        related_products_category="Clothing",
    ),
    CulturalEvent(
        id="2",
        title="Phagwah (Holi)",
        description="Hindu festival of colors celebrated with powder and water",
        event_date=dt.date(2026, 3, 14),
        event_type=EventType.HOLIDAY,
        is_featured=True,
        related_products_category="Party Supplies",
    ),
    CulturalEvent(
        id="3",
        title="Emancipation Day",
        description="Celebration of the emancipation of enslaved Africans",
        event_date=dt.date(2026, 8, 1),
        event_type=EventType.HOLIDAY,
        is_featured=True,
        related_products_category="Clothing",
    ),
    CulturalEvent(
        id="4",
        title="Caribana (Toronto)",
        description="Caribbean carnival festival in Toronto",
        event_date=dt.date(2026, 8, 1),
        event_type=EventType.FESTIVAL,
        is_featured=True,
        related_products_category="Clothing",
    ),
    CulturalEvent(
        id="5",
        title="West Indian American Day Carnival",
        description="Brooklyn's Labor Day parade and carnival",
        event_date=dt.date(2026, 9, 7),
        event_type=EventType.FESTIVAL,
        is_featured=True,
        related_products_category="Clothing",
    ),
    CulturalEvent(
        id="6",
        title="Diwali",
        description="Festival of lights celebrated by Hindu and Sikh communities",
        event_date=dt.date(2026, 10, 21),
        event_type=EventType.HOLIDAY,
        is_featured=True,
        related_products_category="Home Decor",
    ),
)

EVENT_ICONS: dict[EventType, str] = {
    EventType.HOLIDAY: "🎉",
    EventType.FESTIVAL: "🎊",
    EventType.COMMUNITY: "🤝",
    EventType.MARKETPLACE: "🛍️",
}
DEFAULT_EVENT_ICON = "📅"


def upcoming_events(
    events: Iterable[CulturalEvent] = CULTURAL_EVENTS,
    today: dt.date | None = None,
    window_days: int = UPCOMING_WINDOW_DAYS,
    limit: int = MAX_UPCOMING_EVENTS,
) -> list[CulturalEvent]:
    """Events from today through ``window_days`` ahead, in input order, capped at ``limit``."""
    today = today or dt.date.today()
    horizon = today + dt.timedelta(days=window_days)
    upcoming = [e for e in events if today <= e.event_date <= horizon]
    return upcoming[:limit]


def days_until(event_date: dt.date, now: dt.datetime | dt.date | None = None) -> int:
    """Whole days until the event, rounding any partial day up."""
    if now is None:
        now = dt.datetime.now()
    if not isinstance(now, dt.datetime):
        now = dt.datetime.combine(now, dt.time.min)
    start = dt.datetime.combine(event_date, dt.time.min)
    return math.ceil((start - now).total_seconds() / 86400)


def format_event_date(event_date: dt.date, now: dt.datetime | dt.date | None = None) -> str:
    days = days_until(event_date, now)
    if days == 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    if days < 7:
        return f"In {days} days"
    return f"{event_date:%b} {event_date.day}, {event_date.year}"


def is_urgent(event_date: dt.date, now: dt.datetime | dt.date | None = None) -> bool:
    return days_until(event_date, now) <= URGENT_WITHIN_DAYS


def event_icon(event_type: EventType | str) -> str:
    try:
        return EVENT_ICONS[EventType(event_type)]
    except ValueError:
        return DEFAULT_EVENT_ICON
