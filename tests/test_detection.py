from pathlib import Path
import asyncio
import json
import math
import sys
import time

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.analytics import DetectionAnalytics
from core.detection import (
    LOCATION_KEY,
    METHOD_KEY,
    DevicePositionSource,
    IPGeolocator,
    JsonFileLocationStore,
    LocationDetector,
    MemoryLocationStore,
    ReportedPositionSource,
    parse_coordinates,
)
from core.locations import DEFAULT_LOCATION
from core.models import (
    Coordinate,
    DetectionResult,
    GeolocationError,
    LocationFailure,
    Provenance,
)

BROOKLYN = Coordinate(40.6782, -73.9442)
TORONTO = Coordinate(43.6532, -79.3832)


class FakeDevice(DevicePositionSource):
    def __init__(self, coordinate=None, error=None, delay=0.0):
        self.coordinate = coordinate
        self.error = error
        self.delay = delay
        self.calls = []

    async def get_current_position(self, timeout_s, maximum_age_s):
        self.calls.append((timeout_s, maximum_age_s))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.coordinate


class FakeNetwork:
    def __init__(self, coordinate=None, error=None):
        self.coordinate = coordinate
        self.error = error
        self.calls = 0

    async def locate(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.coordinate


def denied():
    return FakeDevice(error=GeolocationError(LocationFailure.DENIED_OR_TIMED_OUT, "user denied"))


def offline():
    return FakeNetwork(error=GeolocationError(LocationFailure.NETWORK_FAILURE, "offline"))


def mock_geolocator(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return IPGeolocator(url="https://geo.test/json/", client=client)


# --- Workflow ---


def test_device_position_is_resolved_and_saved():
    store = MemoryLocationStore()
    device = FakeDevice(coordinate=BROOKLYN)
    network = FakeNetwork(coordinate=TORONTO)
    detector = LocationDetector(store, device=device, network=network)

    result = asyncio.run(detector.detect())

    assert result == DetectionResult("Brooklyn, NY", Provenance.DEVICE_SENSED)
    assert store.get(LOCATION_KEY) == "Brooklyn, NY"
    assert store.get(METHOD_KEY) == "gps"
    assert network.calls == 0


def test_device_receives_explicit_timeout_and_max_age():
    device = FakeDevice(coordinate=BROOKLYN)
    detector = LocationDetector(
        MemoryLocationStore(), device=device, sensor_timeout_s=3.0, sensor_maximum_age_s=60.0,
    )
    asyncio.run(detector.detect())
    assert device.calls == [(3.0, 60.0)]


def test_network_fallback_when_device_denied():
    store = MemoryLocationStore()
    detector = LocationDetector(store, device=denied(), network=FakeNetwork(coordinate=TORONTO))

    result = asyncio.run(detector.detect())

    assert result == DetectionResult("Toronto, Canada", Provenance.NETWORK_INFERRED)
    assert store.get(METHOD_KEY) == "ip"


def test_slow_device_times_out_and_falls_through():
    network = FakeNetwork(coordinate=TORONTO)
    analytics = DetectionAnalytics()
    detector = LocationDetector(
        MemoryLocationStore(),
        device=FakeDevice(coordinate=BROOKLYN, delay=1.0),
        network=network,
        sensor_timeout_s=0.01,
        analytics=analytics,
    )

    result = asyncio.run(detector.detect())

    assert result.method is Provenance.NETWORK_INFERRED
    assert network.calls == 1
    assert analytics.failures[0]["reason"] == LocationFailure.DENIED_OR_TIMED_OUT.value


def test_missing_device_counts_as_unavailable():
    analytics = DetectionAnalytics()
    detector = LocationDetector(
        MemoryLocationStore(), network=FakeNetwork(coordinate=TORONTO), analytics=analytics,
    )

    result = asyncio.run(detector.detect())

    assert result.location == "Toronto, Canada"
    assert analytics.failure_counts() == {LocationFailure.CAPABILITY_UNAVAILABLE.value: 1}


def test_default_is_returned_but_not_saved():
    store = MemoryLocationStore()
    device = denied()
    network = offline()
    detector = LocationDetector(store, device=device, network=network)

    first = asyncio.run(detector.detect())
    second = asyncio.run(detector.detect())

    assert first == DetectionResult(DEFAULT_LOCATION, Provenance.DEFAULT)
    assert second == first
    assert store.get(LOCATION_KEY) is None
    assert store.get(METHOD_KEY) is None
    assert len(device.calls) == 2
    assert network.calls == 2


def test_cached_result_skips_device_and_network():
    device = FakeDevice(coordinate=BROOKLYN)
    network = FakeNetwork(coordinate=TORONTO)
    detector = LocationDetector(MemoryLocationStore(), device=device, network=network)

    first = asyncio.run(detector.detect())
    second = asyncio.run(detector.detect())

    assert first == second
    assert len(device.calls) == 1
    assert network.calls == 0


def test_manual_selection_overrides_detection():
    device = FakeDevice(coordinate=BROOKLYN)
    network = FakeNetwork(coordinate=TORONTO)
    detector = LocationDetector(MemoryLocationStore(), device=device, network=network)

    asyncio.run(detector.detect())
    detector.save_manual_location("Linden, Guyana")
    result = asyncio.run(detector.detect())

    assert result == DetectionResult("Linden, Guyana", Provenance.USER_SELECTED)
    assert len(device.calls) == 1
    assert network.calls == 0


def test_manual_selection_rejects_blank_names():
    detector = LocationDetector(MemoryLocationStore())
    with pytest.raises(ValueError):
        detector.save_manual_location("  ")


def test_clear_resets_to_uncached_state():
    store = MemoryLocationStore()
    detector = LocationDetector(store, device=denied(), network=offline())
    detector.save_manual_location("Bartica, Guyana")

    detector.clear_saved_location()
    result = asyncio.run(detector.detect())

    assert detector.saved_result() is None
    assert result == DetectionResult(DEFAULT_LOCATION, Provenance.DEFAULT)


def test_unknown_saved_method_is_ignored():
    store = MemoryLocationStore({LOCATION_KEY: "Miami, FL", METHOD_KEY: "carrier-pigeon"})
    detector = LocationDetector(store, device=FakeDevice(coordinate=BROOKLYN))

    result = asyncio.run(detector.detect())

    assert result.location == "Brooklyn, NY"


def test_saved_location_without_method_is_a_miss():
    store = MemoryLocationStore({LOCATION_KEY: "Miami, FL"})
    detector = LocationDetector(store)
    assert detector.saved_result() is None


def test_default_location_must_be_in_registry():
    with pytest.raises(ValueError):
        LocationDetector(MemoryLocationStore(), default_location="Atlantis")


def test_analytics_summary_counts_methods_and_cache_hits():
    analytics = DetectionAnalytics()
    detector = LocationDetector(
        MemoryLocationStore(), device=FakeDevice(coordinate=BROOKLYN), analytics=analytics,
    )

    asyncio.run(detector.detect())
    asyncio.run(detector.detect())
    summary = analytics.get_summary()

    assert summary["total_detections"] == 2
    assert summary["cache_hits"] == 1
    assert summary["methods"] == {"gps": 2}
    assert summary["sources"]["device"]["attempts"] == 1


def test_network_failures_are_logged(caplog):
    detector = LocationDetector(MemoryLocationStore(), device=denied(), network=offline())
    with caplog.at_level("ERROR"):
        asyncio.run(detector.detect())
    assert "IP geolocation failed" in caplog.text


# --- Stores ---


def test_json_file_store_persists_between_instances(tmp_path):
    path = tmp_path / "state" / "location.json"
    LocationDetector(JsonFileLocationStore(path)).save_manual_location("Miramar, FL")

    result = LocationDetector(JsonFileLocationStore(path)).saved_result()

    assert result == DetectionResult("Miramar, FL", Provenance.USER_SELECTED)
    assert json.loads(path.read_text(encoding="utf-8")) == {
        LOCATION_KEY: "Miramar, FL",
        METHOD_KEY: "manual",
    }


def test_json_file_store_treats_corrupt_file_as_empty(tmp_path):
    path = tmp_path / "location.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonFileLocationStore(path).get(LOCATION_KEY) is None


# --- Position sources ---


def test_reported_position_within_max_age():
    source = ReportedPositionSource(BROOKLYN, recorded_at=time.time() - 10)
    assert asyncio.run(source.get_current_position(timeout_s=10, maximum_age_s=60)) == BROOKLYN


def test_reported_position_older_than_max_age_is_rejected():
    source = ReportedPositionSource(BROOKLYN, recorded_at=time.time() - 7200)
    with pytest.raises(GeolocationError) as excinfo:
        asyncio.run(source.get_current_position(timeout_s=10, maximum_age_s=3600))
    assert excinfo.value.reason is LocationFailure.DENIED_OR_TIMED_OUT


def test_ip_geolocator_parses_coordinates():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"city": "Georgetown", "latitude": 6.8, "longitude": -58.16})

    coords = asyncio.run(mock_geolocator(handler).locate())

    assert coords == Coordinate(6.8, -58.16)
    assert str(requests[0].url) == "https://geo.test/json/"


def test_ip_geolocator_non_2xx_is_network_failure():
    geolocator = mock_geolocator(lambda request: httpx.Response(429, json={"error": True}))
    with pytest.raises(GeolocationError) as excinfo:
        asyncio.run(geolocator.locate())
    assert excinfo.value.reason is LocationFailure.NETWORK_FAILURE


def test_ip_geolocator_transport_error_is_network_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GeolocationError) as excinfo:
        asyncio.run(mock_geolocator(handler).locate())
    assert excinfo.value.reason is LocationFailure.NETWORK_FAILURE


def test_ip_geolocator_invalid_json_is_malformed():
    geolocator = mock_geolocator(lambda request: httpx.Response(200, text="<html>busy</html>"))
    with pytest.raises(GeolocationError) as excinfo:
        asyncio.run(geolocator.locate())
    assert excinfo.value.reason is LocationFailure.MALFORMED_RESPONSE


def test_ip_geolocator_uses_env_url(monkeypatch):
    monkeypatch.setenv("IP_GEOLOCATION_URL", "https://example.test/geo")
    assert IPGeolocator().url == "https://example.test/geo"


@pytest.mark.parametrize(
    "body",
    [
        {"error": True, "reason": "RateLimited"},
        {"latitude": 6.8},
        {"latitude": "6.8", "longitude": "-58.1"},
        {"latitude": True, "longitude": -58.1},
        {"latitude": 10 ** 400, "longitude": 1},
        {"latitude": 6.8, "longitude": float("inf")},
        ["not", "an", "object"],
    ],
)
def test_parse_coordinates_rejects_malformed_bodies(body):
    with pytest.raises(GeolocationError) as excinfo:
        parse_coordinates(body)
    assert excinfo.value.reason is LocationFailure.MALFORMED_RESPONSE


def test_workflow_with_http_lookup_end_to_end():
    store = MemoryLocationStore()
    network = mock_geolocator(
        lambda request: httpx.Response(200, json={"latitude": 25.98, "longitude": -80.33})
    )
    detector = LocationDetector(store, device=denied(), network=network)

    result = asyncio.run(detector.detect())

    assert result == DetectionResult("Miramar, FL", Provenance.NETWORK_INFERRED)


def test_oversized_coordinate_from_lookup_falls_back_to_default():
    analytics = DetectionAnalytics()
    network = mock_geolocator(
        lambda request: httpx.Response(
            200,
            content=b'{"latitude": 1' + b"0" * 400 + b', "longitude": 1}',
            headers={"content-type": "application/json"},
        )
    )
    detector = LocationDetector(
        MemoryLocationStore(), device=denied(), network=network, analytics=analytics,
    )

    result = asyncio.run(detector.detect())

    assert result == DetectionResult(DEFAULT_LOCATION, Provenance.DEFAULT)
    assert analytics.failures[-1]["reason"] == LocationFailure.MALFORMED_RESPONSE.value


def test_malformed_lookup_url_is_a_network_failure():
    analytics = DetectionAnalytics()
    store = MemoryLocationStore()
    detector = LocationDetector(
        store, device=denied(), network=IPGeolocator(url="http://[::1"), analytics=analytics,
    )

    result = asyncio.run(detector.detect())

    assert result == DetectionResult(DEFAULT_LOCATION, Provenance.DEFAULT)
    assert analytics.failures[-1]["source"] == "network"
    assert analytics.failures[-1]["reason"] == LocationFailure.NETWORK_FAILURE.value
    assert store.get(LOCATION_KEY) is None


@pytest.mark.parametrize("coordinate", [Coordinate(math.inf, 0.0), Coordinate(6.8, -math.inf)])
def test_infinite_device_fix_resolves_to_default_name(coordinate):
    detector = LocationDetector(MemoryLocationStore(), device=FakeDevice(coordinate=coordinate))

    result = asyncio.run(detector.detect())

    assert result == DetectionResult(DEFAULT_LOCATION, Provenance.DEVICE_SENSED)
