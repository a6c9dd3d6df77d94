from __future__ import annotations

import math
from dataclasses import dataclass

from .routing_errors import InvalidCoordinateError

EARTH_RADIUS_M = 6_371_000.0


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float

    def __post_init__(self) -> None:
        lat, lon = self.lat, self.lon
        if isinstance(lat, bool) or isinstance(lon, bool):
            raise InvalidCoordinateError(lat, lon)
        try:
            lat_f = float(lat)
            lon_f = float(lon)
        except (TypeError, ValueError):
            raise InvalidCoordinateError(lat, lon) from None
        if not (math.isfinite(lat_f) and math.isfinite(lon_f)):
            raise InvalidCoordinateError(lat, lon)
        if not (-90.0 <= lat_f <= 90.0 and -180.0 <= lon_f <= 180.0):
            raise InvalidCoordinateError(lat, lon)
        object.__setattr__(self, "lat", lat_f)
        object.__setattr__(self, "lon", lon_f)


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in metres between two coordinates."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = phi2 - phi1
    dlambda = math.radians(b.lon - a.lon)
    h = (
        math.sin(dphi / 2.0) ** 2
        + (math.cos(phi1) * math.cos(phi2) * (math.sin(dlambda / 2.0) ** 2))
    )
    return 2.0 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(max(0.0, h))))
