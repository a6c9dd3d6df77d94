from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

from .geo import Coordinate
from .routing_errors import MalformedZoneError

ZoneContainment = Literal["bbox", "polygon"]


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def contains(self, c: Coordinate) -> bool:
        # Inclusive on every edge.
        return self.min_lat <= c.lat <= self.max_lat and self.min_lon <= c.lon <= self.max_lon


@dataclass(frozen=True)
class DangerZone:
    id: str
    name: str
    polygon: tuple[Coordinate, ...]
    risk_level: int
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "polygon", tuple(self.polygon))
        if len(self.polygon) < 3:
            raise MalformedZoneError(self.id, f"polygon needs at least 3 vertices, got {len(self.polygon)}")
        if isinstance(self.risk_level, bool) or not isinstance(self.risk_level, int):
            raise MalformedZoneError(self.id, f"risk level must be an integer, got {self.risk_level!r}")
        if not 1 <= self.risk_level <= 10:
            raise MalformedZoneError(self.id, f"risk level must be within 1..10, got {self.risk_level}")

    @property
    def bounding_box(self) -> BoundingBox:
        lats = [p.lat for p in self.polygon]
        lons = [p.lon for p in self.polygon]
        return BoundingBox(min_lat=min(lats), max_lat=max(lats), min_lon=min(lons), max_lon=max(lons))


def _on_segment(c: Coordinate, a: Coordinate, b: Coordinate, eps: float = 1e-12) -> bool:
    cross = (b.lon - a.lon) * (c.lat - a.lat) - (b.lat - a.lat) * (c.lon - a.lon)
    if abs(cross) > eps:
        return False
    return (
        min(a.lat, b.lat) - eps <= c.lat <= max(a.lat, b.lat) + eps
        and min(a.lon, b.lon) - eps <= c.lon <= max(a.lon, b.lon) + eps
    )


def point_in_polygon(c: Coordinate, polygon: Sequence[Coordinate]) -> bool:
    """Ray casting in lon/lat space. Points on the boundary count as inside."""
    n = len(polygon)
    inside = False
    for idx in range(n):
        a = polygon[idx]
        b = polygon[(idx + 1) % n]
        if _on_segment(c, a, b):
            return True
        if (a.lat > c.lat) != (b.lat > c.lat):
            lon_cross = a.lon + (c.lat - a.lat) * (b.lon - a.lon) / (b.lat - a.lat)
            if c.lon < lon_cross:
                inside = not inside
    return inside


def zone_contains(zone: DangerZone, c: Coordinate, *, containment: ZoneContainment = "bbox") -> bool:
    if not zone.bounding_box.contains(c):
        return False
    if containment == "polygon":
        return point_in_polygon(c, zone.polygon)
    return True


def is_in_danger(
    c: Coordinate,
    zones: Iterable[DangerZone],
    *,
    containment: ZoneContainment = "bbox",
) -> bool:
    """True when `c` falls inside any zone.

    The default `bbox` mode tests the axis-aligned bounding box of each polygon,
    which over-approximates non-rectangular zones. `polygon` mode tests true
    containment and can therefore penalise fewer edges.
    """
    return any(zone_contains(zone, c, containment=containment) for zone in zones)


def zones_containing(
    c: Coordinate,
    zones: Iterable[DangerZone],
    *,
    containment: ZoneContainment = "bbox",
) -> tuple[DangerZone, ...]:
    return tuple(zone for zone in zones if zone_contains(zone, c, containment=containment))
