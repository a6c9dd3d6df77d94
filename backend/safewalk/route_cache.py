from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock

from .models import RouteResponse
from .route_engine import RouteMode
from .settings import settings


@dataclass(frozen=True)
class RouteCacheKey:
    graph_version: str
    start_id: str
    end_id: str
    mode: RouteMode

    def __str__(self) -> str:
        return f"{self.graph_version}|{self.start_id}|{self.end_id}|{self.mode.value}"


def route_cache_key(graph_version: str, start_id: str, end_id: str, mode: RouteMode | str) -> RouteCacheKey:
    return RouteCacheKey(graph_version, start_id, end_id, RouteMode(mode))


class RouteCacheStore:
    """LRU of route responses with a time-to-live.

    Responses are copied on the way in and out so callers can mutate what they
    get back without touching the cached value.
    """

    def __init__(self, *, ttl_s: int, max_entries: int) -> None:
        self._ttl_s = max(1, int(ttl_s))
        self._max_entries = max(1, int(max_entries))
        self._lock = Lock()
        self._entries: OrderedDict[RouteCacheKey, tuple[float, RouteResponse]] = OrderedDict()
        self._counters = {"hits": 0, "misses": 0, "evictions": 0, "expired": 0}

    def get(self, key: RouteCacheKey) -> RouteResponse | None:
        now = time.monotonic()
        with self._lock:
            item = self._entries.get(key)
            if item is not None and now - item[0] > self._ttl_s:
                del self._entries[key]
                self._counters["expired"] += 1
                item = None
            if item is None:
                self._counters["misses"] += 1
                return None
            self._entries.move_to_end(key)
            self._counters["hits"] += 1
            return item[1].model_copy(deep=True)

    def set(self, key: RouteCacheKey, value: RouteResponse) -> None:
        entry = (time.monotonic(), value.model_copy(deep=True))
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
                self._counters["evictions"] += 1

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {
                "size": len(self._entries),
                **self._counters,
                "ttl_s": self._ttl_s,
                "max_entries": self._max_entries,
            }


ROUTE_CACHE = RouteCacheStore(
    ttl_s=settings.route_cache_ttl_s,
    max_entries=settings.route_cache_max_entries,
)


def get_cached_route(key: RouteCacheKey) -> RouteResponse | None:
    return ROUTE_CACHE.get(key)


def set_cached_route(key: RouteCacheKey, value: RouteResponse) -> None:
    ROUTE_CACHE.set(key, value)


def clear_route_cache() -> int:
    return ROUTE_CACHE.clear()


def route_cache_stats() -> dict[str, int]:
    return ROUTE_CACHE.snapshot()
