"""Location registry and nearest-location lookup."""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

from core.models import Coordinate

EARTH_RADIUS_KM = 6371.0

DEFAULT_LOCATION = "Georgetown, Guyana"

# Order matters: on equal distances the earlier entry wins.
LOCATION_COORDS: Mapping[str, Coordinate] = MappingProxyType({
    # Guyana
    "Georgetown, Guyana": Coordinate(6.8013, -58.1551),
    "New Amsterdam, Guyana": Coordinate(6.2491, -57.5168),
    "Linden, Guyana": Coordinate(5.9992, -58.3036),
    "Anna Regina, Guyana": Coordinate(7.2667, -58.5000),
    "Bartica, Guyana": Coordinate(6.4000, -58.6167),
    "Skeldon, Guyana": Coordinate(5.8833, -57.1333),
    "Rose Hall, Guyana": Coordinate(6.3000, -57.3000),
    "Mahaica, Guyana": Coordinate(6.4833, -57.9167),
    # New York
    "Queens, NY": Coordinate(40.7282, -73.7949),
    "Brooklyn, NY": Coordinate(40.6782, -73.9442),
    "Bronx, NY": Coordinate(40.8448, -73.8648),
    "Richmond Hill, NY": Coordinate(40.7007, -73.8315),
    "Ozone Park, NY": Coordinate(40.6760, -73.8438),
    "South Ozone Park, NY": Coordinate(40.6743, -73.8152),
    "Jamaica, NY": Coordinate(40.6916, -73.8062),
    "Schenectady, NY": Coordinate(42.8142, -73.9396),
    "Albany, NY": Coordinate(42.6526, -73.7562),
    "Yonkers, NY": Coordinate(40.9312, -73.8987),
    "Mount Vernon, NY": Coordinate(40.9126, -73.8376),
    "Staten Island, NY": Coordinate(40.5795, -74.1502),
    # Florida
    "Miami, FL": Coordinate(25.7617, -80.1918),
    "Fort Lauderdale, FL": Coordinate(26.1224, -80.1373),
    "Orlando, FL": Coordinate(28.5383, -81.3792),
    "Lauderhill, FL": Coordinate(26.1403, -80.2134),
    "Pembroke Pines, FL": Coordinate(26.0034, -80.2240),
    "Miramar, FL": Coordinate(25.9773, -80.3322),
    "Tampa, FL": Coordinate(27.9506, -82.4572),
    "Jacksonville, FL": Coordinate(30.3322, -81.6557),
    # Other US
    "Atlanta, GA": Coordinate(33.7490, -84.3880),
    "Houston, TX": Coordinate(29.7604, -95.3698),
    "Dallas, TX": Coordinate(32.7767, -96.7970),
    "Washington, DC": Coordinate(38.9072, -77.0369),
    "Charlotte, NC": Coordinate(35.2271, -80.8431),
    "Boston, MA": Coordinate(42.3601, -71.0589),
    "Philadelphia, PA": Coordinate(39.9526, -75.1652),
    "Chicago, IL": Coordinate(41.8781, -87.6298),
    "Los Angeles, CA": Coordinate(34.0522, -118.2437),
    "Baltimore, MD": Coordinate(39.2904, -76.6122),
    # Canada
    "Toronto, Canada": Coordinate(43.6532, -79.3832),
    "Brampton, Canada": Coordinate(43.7315, -79.7624),
    "Mississauga, Canada": Coordinate(43.5890, -79.6441),
    "Scarborough, Canada": Coordinate(43.7731, -79.2578),
    "Markham, Canada": Coordinate(43.8561, -79.3370),
    # UK
    "London, UK": Coordinate(51.5074, -0.1278),
    "Birmingham, UK": Coordinate(52.4862, -1.8904),
    "Manchester, UK": Coordinate(53.4808, -2.2426),
})


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # Rounding or out-of-range latitudes can push a outside [0, 1]; NaN passes through.
    if a > 1.0:
        a = 1.0
    elif a < 0.0:
        a = 0.0
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def find_closest(
    lat: float,
    lon: float,
    registry: Mapping[str, Coordinate] = LOCATION_COORDS,
    default: str = DEFAULT_LOCATION,
) -> tuple[str, float]:
    """Return the registry entry nearest to (lat, lon) and its distance in km.

    Entries are scanned once in registry order and a candidate only replaces
    the current best on a strictly smaller distance, so the first of several
    equidistant entries wins. Non-finite coordinates (NaN or infinite) have
    no distance to anything, so they get ``(default, inf)``.
    """
    closest = default
    min_distance = math.inf

    if not (math.isfinite(lat) and math.isfinite(lon)):
        return closest, min_distance

    for name, coords in registry.items():
        distance = haversine_km(lat, lon, coords.lat, coords.lon)
        if distance < min_distance:
            min_distance = distance
            closest = name

    return closest, min_distance


def find_closest_location(
    lat: float,
    lon: float,
    registry: Mapping[str, Coordinate] = LOCATION_COORDS,
    default: str = DEFAULT_LOCATION,
) -> str:
    """Return the name of the registry entry nearest to (lat, lon)."""
    name, _ = find_closest(lat, lon, registry=registry, default=default)
    return name


def load_registry(path: str | Path) -> Mapping[str, Coordinate]:
    """Load a registry from a JSON object, keeping the file's entry order.

    Each value is either ``{"lat": .., "lon": ..}`` or a ``[lat, lon]`` pair.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict) or not data:
        raise ValueError(f"Registry file {path} must contain a non-empty JSON object")

    entries: dict[str, Coordinate] = {}
    for name, value in data.items():
        if isinstance(value, dict):
            lat, lon = value.get("lat"), value.get("lon")
        elif isinstance(value, list) and len(value) == 2:
            lat, lon = value
        else:
            raise ValueError(f"Invalid coordinates for {name!r}: {value!r}")

        if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (lat, lon)):
            raise ValueError(f"Invalid coordinates for {name!r}: {value!r}")
        entries[name] = Coordinate(float(lat), float(lon))

    return MappingProxyType(entries)
