from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .logging_utils import log_event
from .route_stats import summarize_path
from .routing_errors import UnknownNodeError
from .routing_graph import GraphEdge, SafetyGraph
from .shortest_path import Adjacency, PathNotFoundError, dijkstra_shortest_path


class RouteMode(str, Enum):
    SHORTEST = "shortest"
    SAFEST = "safest"


EdgeCostFn = Callable[[GraphEdge], float]


def _distance_cost(edge: GraphEdge) -> float:
    return edge.distance_m


def _safety_scaled_cost(edge: GraphEdge) -> float:
    return edge.distance_m * edge.safety_weight


EDGE_COST_BY_MODE: dict[RouteMode, EdgeCostFn] = {
    RouteMode.SHORTEST: _distance_cost,
    RouteMode.SAFEST: _safety_scaled_cost,
}


@dataclass(frozen=True)
class RouteResult:
    path: tuple[str, ...]
    total_distance_m: float
    average_safety_score: float
    mode: RouteMode = RouteMode.SHORTEST
    # Optimisation cost under `mode`; not a distance.
    route_cost: float = 0.0

    @property
    def found(self) -> bool:
        return True


@dataclass(frozen=True)
class NoRoute:
    start_id: str
    end_id: str
    mode: RouteMode
    reason_code: str = "no_path"

    @property
    def found(self) -> bool:
        return False


def edge_cost(edge: GraphEdge, mode: RouteMode) -> float:
    return EDGE_COST_BY_MODE[RouteMode(mode)](edge)


def adjacency_cost_view(graph: SafetyGraph, mode: RouteMode) -> Adjacency:
    cost_fn = EDGE_COST_BY_MODE[RouteMode(mode)]
    return {
        node: tuple((edge.to, cost_fn(edge)) for edge in edges)
        for node, edges in graph.adjacency.items()
    }


def path_cost(graph: SafetyGraph, path: tuple[str, ...], mode: RouteMode) -> float:
    """Cost of an explicit path under `mode`; missing edges are skipped."""
    total = 0.0
    for idx in range(1, len(path)):
        edge = graph.edge(path[idx - 1], path[idx])
        if edge is not None:
            total += edge_cost(edge, mode)
    return total


def find_route(
    start_id: str,
    end_id: str,
    graph: SafetyGraph,
    mode: RouteMode | str = RouteMode.SHORTEST,
) -> RouteResult | NoRoute:
    """Resolve the cheapest path from `start_id` to `end_id` under `mode`.

    Raises `UnknownNodeError` for ids missing from the graph. An unreachable
    destination is reported as a `NoRoute` value.
    """
    route_mode = RouteMode(mode)
    for node_id in (start_id, end_id):
        if not graph.has_node(node_id):
            raise UnknownNodeError(node_id)

    if start_id == end_id:
        return RouteResult(path=(start_id,), total_distance_m=0.0, average_safety_score=1.0, mode=route_mode)

    if not graph.same_component(start_id, end_id):
        return _no_route(start_id, end_id, route_mode, detail="disconnected components")

    try:
        found = dijkstra_shortest_path(
            adjacency=adjacency_cost_view(graph, route_mode),
            start=start_id,
            goal=end_id,
        )
    except PathNotFoundError as exc:
        return _no_route(start_id, end_id, route_mode, detail=str(exc))

    stats = summarize_path(graph, found.nodes)
    log_event(
        "route_computed",
        start_id=start_id,
        end_id=end_id,
        mode=route_mode.value,
        hops=len(found.nodes) - 1,
        explored_states=found.explored_states,
        total_distance_m=round(stats.total_distance_m, 3),
        average_safety_score=round(stats.average_safety_score, 4),
    )
    return RouteResult(
        path=found.nodes,
        total_distance_m=stats.total_distance_m,
        average_safety_score=stats.average_safety_score,
        mode=route_mode,
        route_cost=found.cost,
    )


def _no_route(start_id: str, end_id: str, mode: RouteMode, *, detail: str) -> NoRoute:
    log_event(
        "route_not_found",
        level=logging.WARNING,
        start_id=start_id,
        end_id=end_id,
        mode=mode.value,
        detail=detail,
    )
    return NoRoute(start_id=start_id, end_id=end_id, mode=mode)
