from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        "unknown_node",
        "no_path",
        "malformed_zone",
        "invalid_coordinate",
        "duplicate_node",
        "unknown_connection_endpoint",
        "invalid_graph_asset",
        "graph_unavailable",
    }
)


@dataclass
class RoutingError(ValueError):
    reason_code: str
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


class UnknownNodeError(RoutingError):
    def __init__(self, node_id: str) -> None:
        super().__init__(
            reason_code="unknown_node",
            message=f"unknown node id: {node_id!r}",
            details={"node_id": node_id},
        )


class MalformedZoneError(RoutingError):
    def __init__(self, zone_id: str, message: str) -> None:
        super().__init__(
            reason_code="malformed_zone",
            message=f"danger zone {zone_id!r}: {message}",
            details={"zone_id": zone_id},
        )


class InvalidCoordinateError(RoutingError):
    def __init__(self, lat: float, lon: float) -> None:
        super().__init__(
            reason_code="invalid_coordinate",
            message=f"invalid coordinate lat={lat!r} lon={lon!r}",
            details={"lat": lat, "lon": lon},
        )


class GraphBuildError(RoutingError):
    pass


def normalize_reason_code(reason_code: str, *, default: str = "graph_unavailable") -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default
