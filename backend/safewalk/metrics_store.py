from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from threading import Lock


@dataclass
class EndpointTiming:
    requests: int = 0
    errors: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def add(self, duration_ms: float, *, error: bool) -> None:
        self.requests += 1
        self.errors += int(error)
        self.total_ms += duration_ms
        self.max_ms = max(self.max_ms, duration_ms)

    def as_dict(self) -> dict[str, float | int]:
        return {
            "request_count": self.requests,
            "error_count": self.errors,
            "total_duration_ms": round(self.total_ms, 3),
            "avg_duration_ms": round(self.total_ms / self.requests, 3) if self.requests else 0.0,
            "max_duration_ms": round(self.max_ms, 3),
        }


@dataclass
class ModeTally:
    """Found routes for one routing mode."""

    found: int = 0
    total_distance_m: float = 0.0
    total_safety_score: float = 0.0

    def as_dict(self) -> dict[str, float | int]:
        return {
            "found": self.found,
            "avg_distance_m": round(self.total_distance_m / self.found, 2) if self.found else 0.0,
            "avg_safety_score": round(self.total_safety_score / self.found, 4) if self.found else 0.0,
        }


@dataclass
class _State:
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    endpoints: dict[str, EndpointTiming] = field(default_factory=dict)
    outcomes: Counter[str] = field(default_factory=Counter)
    modes: dict[str, ModeTally] = field(default_factory=dict)


class MetricsStore:
    """In-process request and route counters, safe to share across worker threads."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._state = _State()

    def record(self, endpoint: str, *, duration_ms: float, error: bool = False) -> None:
        name = endpoint.strip() or "unknown"
        with self._lock:
            timing = self._state.endpoints.setdefault(name, EndpointTiming())
            timing.add(max(float(duration_ms), 0.0), error=error)

    def record_route_outcome(
        self,
        outcome: str,
        *,
        mode: str | None = None,
        distance_m: float | None = None,
        safety_score: float | None = None,
    ) -> None:
        with self._lock:
            self._state.outcomes[outcome] += 1
            if mode is None or outcome != "found":
                return
            tally = self._state.modes.setdefault(mode, ModeTally())
            tally.found += 1
            tally.total_distance_m += float(distance_m or 0.0)
            tally.total_safety_score += float(safety_score or 0.0)

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            endpoints = {name: self._state.endpoints[name].as_dict() for name in sorted(self._state.endpoints)}
            return {
                "created_at": self._state.started_at,
                "total_requests": sum(t.requests for t in self._state.endpoints.values()),
                "total_errors": sum(t.errors for t in self._state.endpoints.values()),
                "endpoint_count": len(endpoints),
                "endpoints": endpoints,
                "route_outcomes": dict(sorted(self._state.outcomes.items())),
                "modes": {mode: self._state.modes[mode].as_dict() for mode in sorted(self._state.modes)},
            }

    def reset(self) -> None:
        with self._lock:
            self._state = _State()


METRICS = MetricsStore()


def record_request(endpoint: str, *, duration_ms: float, error: bool = False) -> None:
    METRICS.record(endpoint, duration_ms=duration_ms, error=error)


def record_route_outcome(
    outcome: str,
    *,
    mode: str | None = None,
    distance_m: float | None = None,
    safety_score: float | None = None,
) -> None:
    METRICS.record_route_outcome(outcome, mode=mode, distance_m=distance_m, safety_score=safety_score)


def metrics_snapshot() -> dict[str, object]:
    return METRICS.snapshot()


def reset_metrics() -> None:
    METRICS.reset()
