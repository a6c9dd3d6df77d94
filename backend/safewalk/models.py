from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from .route_engine import RouteMode


class LatLng(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class NodePayload(BaseModel):
    id: str
    label: str
    coordinate: LatLng


class DangerZonePayload(BaseModel):
    id: str
    name: str
    polygon: list[LatLng]
    risk_level: int = Field(..., ge=1, le=10)
    description: str = ""


class NodeListResponse(BaseModel):
    center: LatLng | None = None
    nodes: list[NodePayload]


class DangerZoneListResponse(BaseModel):
    zones: list[DangerZonePayload]
    containment: Literal["bbox", "polygon"] = "bbox"


class RouteRequest(BaseModel):
    start_id: str = Field(..., min_length=1)
    end_id: str = Field(..., min_length=1)
    mode: RouteMode = RouteMode.SAFEST

    @field_validator("start_id", "end_id")
    @classmethod
    def strip_ids(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("node id must not be blank")
        return stripped


class SegmentRiskPayload(BaseModel):
    node_id: str
    label: str
    risk: float


class RouteResponse(BaseModel):
    found: bool
    start_id: str
    end_id: str
    mode: RouteMode
    path: list[str] = Field(default_factory=list)
    coordinates: list[LatLng] = Field(default_factory=list)
    total_distance_m: float | None = None
    average_safety_score: float | None = None
    risk_band: Literal["Bajo", "Medio", "Alto"] | None = None
    segment_risk: list[SegmentRiskPayload] = Field(default_factory=list)
    reason_code: str | None = None


class SafetyAdvice(BaseModel):
    """Output contract of the advice generator."""

    summary: str
    tips: list[str] = Field(default_factory=list)
    source: Literal["model", "fallback"] = "model"


class RouteAdviceResponse(BaseModel):
    route: RouteResponse
    advice: SafetyAdvice | None = None


class GraphSummaryResponse(BaseModel):
    version: str
    source: str
    node_count: int
    directed_edge_count: int
    street_count: int
    danger_zone_count: int
    containment: str
    component_count: int
    largest_component_nodes: int
