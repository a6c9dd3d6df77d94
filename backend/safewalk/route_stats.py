from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from .routing_graph import SafetyGraph

START_LABEL = "Inicio"
LABEL_PREVIEW_CHARS = 10


@dataclass(frozen=True)
class RouteStats:
    total_distance_m: float
    average_safety_score: float
    edge_count: int
    skipped_pairs: int = 0


@dataclass(frozen=True)
class SegmentRisk:
    node_id: str
    label: str
    risk: float


def summarize_path(graph: SafetyGraph, path: Sequence[str]) -> RouteStats:
    """Recompute distance and mean safety weight from the traversed edges.

    Pairs with no edge in the graph are left out of both sums and of the
    count used for the average. With no traversed edge the average is 1.
    """
    total_distance = 0.0
    total_weight = 0.0
    edge_count = 0
    skipped = 0
    for idx in range(1, len(path)):
        edge = graph.edge(path[idx - 1], path[idx])
        if edge is None:
            skipped += 1
            continue
        total_distance += edge.distance_m
        total_weight += edge.safety_weight
        edge_count += 1
    return RouteStats(
        total_distance_m=total_distance,
        average_safety_score=(total_weight / edge_count) if edge_count else 1.0,
        edge_count=edge_count,
        skipped_pairs=skipped,
    )


def _preview_label(graph: SafetyGraph, node_id: str) -> str:
    node = graph.nodes.get(node_id)
    if node is None:
        return node_id
    return node.label[:LABEL_PREVIEW_CHARS] + "..."


def segment_risk_profile(graph: SafetyGraph, path: Sequence[str]) -> list[SegmentRisk]:
    """Risk per path point for charting: the weight of the edge arriving there."""
    out: list[SegmentRisk] = []
    for idx, node_id in enumerate(path):
        if idx == 0:
            out.append(SegmentRisk(node_id=node_id, label=START_LABEL, risk=1.0))
            continue
        edge = graph.edge(path[idx - 1], node_id)
        out.append(
            SegmentRisk(
                node_id=node_id,
                label=_preview_label(graph, node_id),
                risk=edge.safety_weight if edge is not None else 1.0,
            )
        )
    return out


RiskBand = Literal["Bajo", "Medio", "Alto"]
LOW_RISK_BELOW = 1.5
MEDIUM_RISK_BELOW = 4.0


def risk_band(average_safety_score: float) -> RiskBand:
    """Label shown next to a route's mean safety weight."""
    if average_safety_score < LOW_RISK_BELOW:
        return "Bajo"
    if average_safety_score < MEDIUM_RISK_BELOW:
        return "Medio"
    return "Alto"
