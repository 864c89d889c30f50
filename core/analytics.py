"""Analytics and tracking for location detection runs."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from core.models import DetectionResult, LocationFailure


@dataclass
class DetectionAnalytics:
    """Collects outcomes and failures reported by a LocationDetector."""

    detection_log: list[dict[str, Any]] = field(default_factory=list)
    method_counts: dict[str, int] = field(default_factory=dict)
    source_times: dict[str, list[float]] = field(default_factory=dict)
    failures: list[dict[str, Any]] = field(default_factory=list)
    total_detections: int = 0
    session_start: float = field(default_factory=time.time)

    def record_detection(self, result: DetectionResult, cached: bool = False) -> None:
        """Record the result handed back to a caller."""
        self.total_detections += 1

        method = result.method.value
        self.method_counts[method] = self.method_counts.get(method, 0) + 1

        self.detection_log.append({
            "location": result.location,
            "method": method,
            "cached": cached,
            "timestamp": time.time(),
        })

    def record_timing(self, source: str, elapsed_s: float) -> None:
        if source not in self.source_times:
            self.source_times[source] = []
        self.source_times[source].append(elapsed_s)

    def record_failure(self, source: str, reason: LocationFailure, detail: str = "") -> None:
        self.failures.append({
            "source": source,
            "reason": reason.value,
            "detail": detail,
            "timestamp": time.time(),
        })

    @property
    def cache_hits(self) -> int:
        return sum(1 for entry in self.detection_log if entry["cached"])

    @property
    def session_duration(self) -> float:
        return time.time() - self.session_start

    def source_avg_time(self, source: str) -> float:
        times = self.source_times.get(source, [])
        if not times:
            return 0.0
        return sum(times) / len(times)

    def failure_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for failure in self.failures:
            counts[failure["reason"]] = counts.get(failure["reason"], 0) + 1
        return counts

    def get_summary(self) -> dict[str, Any]:
        return {
            "total_detections": self.total_detections,
            "cache_hits": self.cache_hits,
            "session_duration_s": round(self.session_duration, 2),
            "methods": dict(self.method_counts),
            "sources": {
                s: {
                    "attempts": len(self.source_times[s]),
                    "avg_time_s": round(self.source_avg_time(s), 3),
                }
                for s in self.source_times
            },
            "failures": self.failure_counts(),
        }

    def save(self, path: str | Path) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.get_summary(), f, indent=2)
