from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .danger_zones import DangerZone, ZoneContainment
from .geo import Coordinate
from .routing_errors import GraphBuildError
from .routing_graph import Node, SafetyGraph, build_graph
from .safety_rules import RiskPolicyConfig, build_safety_policy
from .settings import settings


class AssetPoint(BaseModel):
    lat: float
    lon: float


class AssetNode(BaseModel):
    id: str = Field(..., min_length=1)
    label: str
    lat: float
    lon: float


class AssetZone(BaseModel):
    id: str = Field(..., min_length=1)
    name: str
    # Vertex count and risk range are checked by DangerZone so the failure
    # surfaces as a malformed zone rather than a schema error.
    polygon: list[AssetPoint]
    risk_level: int
    description: str = ""


class AssetRiskPolicy(BaseModel):
    danger_zone_weight: float = Field(default=10.0, ge=1.0)
    high_risk_node_ids: list[str] = Field(default_factory=list)
    high_risk_weight: float = Field(default=5.0, ge=1.0)
    medium_risk_node_ids: list[str] = Field(default_factory=list)
    medium_risk_weight: float = Field(default=4.0, ge=1.0)
    default_weight: float = Field(default=1.0, ge=1.0)

    def to_config(self) -> RiskPolicyConfig:
        return RiskPolicyConfig(
            danger_zone_weight=self.danger_zone_weight,
            high_risk_node_ids=tuple(self.high_risk_node_ids),
            high_risk_weight=self.high_risk_weight,
            medium_risk_node_ids=tuple(self.medium_risk_node_ids),
            medium_risk_weight=self.medium_risk_weight,
            default_weight=self.default_weight,
        )


class GraphAsset(BaseModel):
    version: str = "unknown"
    source: str = ""
    center: AssetPoint | None = None
    nodes: list[AssetNode]
    connections: list[tuple[str, str]]
    danger_zones: list[AssetZone] = Field(default_factory=list)
    risk_policy: AssetRiskPolicy = Field(default_factory=AssetRiskPolicy)


def parse_graph_asset(raw: Any) -> GraphAsset:
    try:
        return GraphAsset.model_validate(raw)
    except ValidationError as exc:
        raise GraphBuildError(
            reason_code="invalid_graph_asset",
            message=f"graph asset failed validation: {exc.error_count()} error(s)",
            details={"errors": exc.errors(include_url=False)},
        ) from exc


def read_graph_asset(path: Path) -> GraphAsset:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise GraphBuildError(
            reason_code="invalid_graph_asset",
            message=f"cannot read graph asset {path}: {exc}",
            details={"path": str(path)},
        ) from exc
    return parse_graph_asset(raw)


def graph_from_asset(asset: GraphAsset, *, containment: ZoneContainment = "bbox") -> SafetyGraph:
    nodes = [
        Node(id=item.id, label=item.label, coordinate=Coordinate(item.lat, item.lon))
        for item in asset.nodes
    ]
    zones = [
        DangerZone(
            id=item.id,
            name=item.name,
            polygon=tuple(Coordinate(p.lat, p.lon) for p in item.polygon),
            risk_level=item.risk_level,
            description=item.description,
        )
        for item in asset.danger_zones
    ]
    return build_graph(
        nodes,
        asset.connections,
        zones,
        policy=build_safety_policy(asset.risk_policy.to_config()),
        containment=containment,
        version=asset.version,
        source=asset.source or "asset",
    )


@lru_cache(maxsize=1)
def load_city_asset() -> GraphAsset:
    return read_graph_asset(Path(settings.graph_asset_path))


@lru_cache(maxsize=1)
def load_city_graph() -> SafetyGraph:
    asset = load_city_asset()
    containment: ZoneContainment = settings.zone_containment
    return graph_from_asset(asset, containment=containment)
