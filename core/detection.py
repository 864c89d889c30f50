"""Location detection workflow.

A detection run walks a fixed chain of sources and stops at the first that
produces a location:

1. a previously saved (location, method) pair in the injected store,
2. the device position source, bounded by an explicit timeout and max age,
3. an IP geolocation lookup over HTTP,
4. the default location, which is returned but never saved.

Each failure is logged and reported to the analytics collaborator, then the
chain moves on. Callers always get a DetectionResult back.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import os
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx

from core.analytics import DetectionAnalytics
from core.locations import DEFAULT_LOCATION, LOCATION_COORDS, find_closest_location
from core.models import (
    Coordinate,
    DetectionResult,
    GeolocationError,
    LocationFailure,
    Provenance,
)

logger = logging.getLogger(__name__)

LOCATION_KEY = "userLocation"
METHOD_KEY = "locationMethod"

DEFAULT_IP_GEOLOCATION_URL = "https://ipapi.co/json/"
SENSOR_TIMEOUT_S = 10.0
SENSOR_MAXIMUM_AGE_S = 3600.0
NETWORK_TIMEOUT_S = 5.0

PERSISTED_METHODS = frozenset({
    Provenance.DEVICE_SENSED,
    Provenance.NETWORK_INFERRED,
    Provenance.USER_SELECTED,
})


# ============================================================================
# Persistence
# ============================================================================


class LocationStore(ABC):
    """String key-value storage for the saved detection result."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemoryLocationStore(LocationStore):
    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileLocationStore(LocationStore):
    """Keeps saved values in a small JSON file, rewritten on every change."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Treating unreadable location store %s as empty: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


# ============================================================================
# Position sources
# ============================================================================


class DevicePositionSource(ABC):
    """The device's own geolocation capability."""

    @abstractmethod
    async def get_current_position(self, timeout_s: float, maximum_age_s: float) -> Coordinate:
        """Return the current position.

        Raises GeolocationError when the capability is missing, the user
        denied access, or no fix younger than ``maximum_age_s`` arrived
        within ``timeout_s``.
        """


class ReportedPositionSource(DevicePositionSource):
    """A position fix reported by the client, e.g. in a request body.

    The fix is rejected when it is older than the caller's maximum age.
    """

    def __init__(self, coordinate: Coordinate | None, recorded_at: float | None = None) -> None:
        self.coordinate = coordinate
        self.recorded_at = recorded_at if recorded_at is not None else time.time()

    async def get_current_position(self, timeout_s: float, maximum_age_s: float) -> Coordinate:
        if self.coordinate is None:
            raise GeolocationError(LocationFailure.DENIED_OR_TIMED_OUT, "client sent no position")

        age = time.time() - self.recorded_at
        if age > maximum_age_s:
            raise GeolocationError(
                LocationFailure.DENIED_OR_TIMED_OUT,
                f"position is {age:.0f}s old, max age is {maximum_age_s:.0f}s",
            )
        return self.coordinate


def parse_coordinates(data: Any) -> Coordinate:
    """Extract latitude/longitude from a geolocation service response body."""
    if not isinstance(data, dict):
        raise GeolocationError(LocationFailure.MALFORMED_RESPONSE, "response body is not an object")

    lat = data.get("latitude")
    lon = data.get("longitude")
    for name, value in (("latitude", lat), ("longitude", lon)):
        if value is None:
            raise GeolocationError(LocationFailure.MALFORMED_RESPONSE, f"missing {name}")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise GeolocationError(LocationFailure.MALFORMED_RESPONSE, f"invalid {name}: {value!r}")
        try:
            as_float = float(value)
        except OverflowError as e:
            raise GeolocationError(LocationFailure.MALFORMED_RESPONSE, f"{name} out of range") from e
        if not math.isfinite(as_float):
            raise GeolocationError(LocationFailure.MALFORMED_RESPONSE, f"invalid {name}: {value!r}")

    return Coordinate(float(lat), float(lon))


class IPGeolocator:
    """Looks up the caller's approximate position from their IP address."""

    def __init__(
        self,
        url: str | None = None,
        timeout_s: float = NETWORK_TIMEOUT_S,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url or os.environ.get("IP_GEOLOCATION_URL", "") or DEFAULT_IP_GEOLOCATION_URL
        self.timeout_s = timeout_s
        self._client = client

    async def _fetch(self) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(self.url, timeout=self.timeout_s)
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            return await client.get(self.url)

    async def locate(self) -> Coordinate:
        try:
            resp = await self._fetch()
            resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise GeolocationError(LocationFailure.NETWORK_FAILURE, str(e) or type(e).__name__) from e

        try:
            data = resp.json()
        except ValueError as e:
            raise GeolocationError(LocationFailure.MALFORMED_RESPONSE, "response is not JSON") from e

        return parse_coordinates(data)


# ============================================================================
# Workflow
# ============================================================================


class LocationDetector:
    """Resolves the user's marketplace location and remembers the answer."""

    def __init__(
        self,
        store: LocationStore,
        device: DevicePositionSource | None = None,
        network: IPGeolocator | None = None,
        registry: Mapping[str, Coordinate] = LOCATION_COORDS,
        default_location: str = DEFAULT_LOCATION,
        sensor_timeout_s: float = SENSOR_TIMEOUT_S,
        sensor_maximum_age_s: float = SENSOR_MAXIMUM_AGE_S,
        analytics: DetectionAnalytics | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        if default_location not in registry:
            raise ValueError(f"Default location {default_location!r} is not in the registry")
        self.store = store
        self.device = device
        self.network = network
        self.registry = registry
        self.default_location = default_location
        self.sensor_timeout_s = sensor_timeout_s
        self.sensor_maximum_age_s = sensor_maximum_age_s
        self.analytics = analytics
        self.log = log or logger

    async def detect(self) -> DetectionResult:
        """Run the detection chain and return the first location found."""
        saved = self.saved_result()
        if saved is not None:
            self.log.debug("Using saved location %s (%s)", saved.location, saved.method.value)
            self._record(saved, cached=True)
            return saved

        location = await self._try_device()
        if location is not None:
            return self._save(location, Provenance.DEVICE_SENSED)

        location = await self._try_network()
        if location is not None:
            return self._save(location, Provenance.NETWORK_INFERRED)

        result = DetectionResult(self.default_location, Provenance.DEFAULT)
        self.log.info("Location detection exhausted, using default %s", self.default_location)
        self._record(result)
        return result

    def saved_result(self) -> DetectionResult | None:
        location = self.store.get(LOCATION_KEY)
        method = self.store.get(METHOD_KEY)
        if not location or not method:
            return None

        try:
            provenance = Provenance(method)
        except ValueError:
            provenance = None
        if provenance not in PERSISTED_METHODS:
            self.log.warning("Ignoring saved location with unknown method %r", method)
            return None

        return DetectionResult(location, provenance)

    def save_manual_location(self, location: str) -> DetectionResult:
        """Record a location picked by the user, replacing any saved value."""
        if not location or not location.strip():
            raise ValueError("location must be a non-empty string")
        result = self._persist(location.strip(), Provenance.USER_SELECTED)
        self.log.info("Saved manually selected location %s", result.location)
        return result

    def clear_saved_location(self) -> None:
        self.store.delete(LOCATION_KEY)
        self.store.delete(METHOD_KEY)
        self.log.info("Cleared saved location")

    def _persist(self, location: str, method: Provenance) -> DetectionResult:
        self.store.set(LOCATION_KEY, location)
        self.store.set(METHOD_KEY, method.value)
        return DetectionResult(location, method)

    def _save(self, location: str, method: Provenance) -> DetectionResult:
        result = self._persist(location, method)
        self.log.info("Detected location %s via %s", location, method.value)
        self._record(result)
        return result

    def _resolve(self, coords: Coordinate) -> str:
        return find_closest_location(
            coords.lat, coords.lon, registry=self.registry, default=self.default_location,
        )

    async def _try_device(self) -> str | None:
        if self.device is None:
            self._failure("device", LocationFailure.CAPABILITY_UNAVAILABLE, "no position source")
            return None

        start = time.time()
        try:
            coords = await asyncio.wait_for(
                self.device.get_current_position(
                    timeout_s=self.sensor_timeout_s,
                    maximum_age_s=self.sensor_maximum_age_s,
                ),
                timeout=self.sensor_timeout_s,
            )
        except asyncio.TimeoutError:
            self._failure(
                "device",
                LocationFailure.DENIED_OR_TIMED_OUT,
                f"no position within {self.sensor_timeout_s:g}s",
            )
            return None
        except GeolocationError as e:
            self._failure("device", e.reason, e.detail)
            return None
        finally:
            self._timing("device", time.time() - start)

        return self._resolve(coords)

    async def _try_network(self) -> str | None:
        if self.network is None:
            self._failure("network", LocationFailure.CAPABILITY_UNAVAILABLE, "no IP geolocator")
            return None

        start = time.time()
        try:
            coords = await self.network.locate()
        except GeolocationError as e:
            self._failure("network", e.reason, e.detail)
            return None
        finally:
            self._timing("network", time.time() - start)

        return self._resolve(coords)

    def _failure(self, source: str, reason: LocationFailure, detail: str) -> None:
        if source == "network":
            self.log.error("IP geolocation failed (%s): %s", reason.value, detail)
        else:
            self.log.info("Device geolocation unavailable (%s): %s", reason.value, detail)
        if self.analytics is not None:
            self.analytics.record_failure(source, reason, detail)

    def _timing(self, source: str, elapsed_s: float) -> None:
        if self.analytics is not None:
            self.analytics.record_timing(source, elapsed_s)

    def _record(self, result: DetectionResult, cached: bool = False) -> None:
        if self.analytics is not None:
            self.analytics.record_detection(result, cached=cached)
