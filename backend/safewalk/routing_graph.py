from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .danger_zones import DangerZone, ZoneContainment
from .geo import Coordinate, haversine_m
from .logging_utils import log_event
from .routing_errors import GraphBuildError
from .safety_rules import EdgeContext, SafetyPolicy, build_safety_policy


@dataclass(frozen=True)
class Node:
    id: str
    label: str
    coordinate: Coordinate


@dataclass(frozen=True)
class GraphEdge:
    source: str
    to: str
    distance_m: float
    safety_weight: float
    rule: str = "default"


@dataclass(frozen=True)
class SafetyGraph:
    version: str
    source: str
    nodes: dict[str, Node]
    adjacency: dict[str, tuple[GraphEdge, ...]]
    edge_index: dict[tuple[str, str], GraphEdge]
    zones: tuple[DangerZone, ...]
    containment: ZoneContainment
    component_by_node: dict[str, int]
    component_sizes: dict[int, int]
    component_count: int

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def edge(self, u: str, v: str) -> GraphEdge | None:
        return self.edge_index.get((u, v))

    def neighbours(self, node_id: str) -> tuple[GraphEdge, ...]:
        return self.adjacency.get(node_id, ())

    def same_component(self, u: str, v: str) -> bool:
        cu = self.component_by_node.get(u)
        return cu is not None and cu == self.component_by_node.get(v)

    @property
    def edge_count(self) -> int:
        return len(self.edge_index)

    def summary(self) -> dict[str, object]:
        return {
            "version": self.version,
            "source": self.source,
            "node_count": len(self.nodes),
            "directed_edge_count": self.edge_count,
            "street_count": self.edge_count // 2,
            "danger_zone_count": len(self.zones),
            "containment": self.containment,
            "component_count": self.component_count,
            "largest_component_nodes": max(self.component_sizes.values(), default=0),
        }


def _compute_component_index(
    nodes: dict[str, Node],
    adjacency_mut: dict[str, list[GraphEdge]],
) -> tuple[dict[str, int], dict[int, int], int]:
    component_by_node: dict[str, int] = {}
    component_sizes: dict[int, int] = {}
    component_idx = 0
    # Sorted so component numbering does not depend on input order.
    for node_id in sorted(nodes):
        if node_id in component_by_node:
            continue
        component_idx += 1
        q: deque[str] = deque([node_id])
        size = 0
        while q:
            current = q.popleft()
            if current in component_by_node:
                continue
            component_by_node[current] = component_idx
            size += 1
            for edge in adjacency_mut.get(current, ()):
                if edge.to not in component_by_node:
                    q.append(edge.to)
        component_sizes[component_idx] = size
    return component_by_node, component_sizes, component_idx


def build_graph(
    nodes: Iterable[Node],
    connections: Iterable[Sequence[str]],
    zones: Iterable[DangerZone] = (),
    *,
    policy: SafetyPolicy | None = None,
    containment: ZoneContainment = "bbox",
    version: str = "local",
    source: str = "in-memory",
) -> SafetyGraph:
    """Build the weighted street graph.

    Every connection `(a, b)` yields the directed edges `a -> b` and `b -> a`
    with the same haversine distance and the same weight, taken from the first
    matching rule of `policy`. Repeated connections are ignored.
    """
    node_map: dict[str, Node] = {}
    for node in nodes:
        if node.id in node_map:
            raise GraphBuildError(
                reason_code="duplicate_node",
                message=f"duplicate node id: {node.id!r}",
                details={"node_id": node.id},
            )
        node_map[node.id] = node

    zone_set = tuple(zones)
    seen_zone_ids: set[str] = set()
    for zone in zone_set:
        if zone.id in seen_zone_ids:
            raise GraphBuildError(
                reason_code="invalid_graph_asset",
                message=f"duplicate danger zone id: {zone.id!r}",
                details={"zone_id": zone.id},
            )
        seen_zone_ids.add(zone.id)

    active_policy = policy if policy is not None else build_safety_policy()
    adjacency_mut: dict[str, list[GraphEdge]] = {node_id: [] for node_id in node_map}
    edge_index: dict[tuple[str, str], GraphEdge] = {}

    for pair in connections:
        if len(pair) != 2:
            raise GraphBuildError(
                reason_code="invalid_graph_asset",
                message=f"connection must be a pair of node ids, got {pair!r}",
            )
        u, v = str(pair[0]), str(pair[1])
        for endpoint in (u, v):
            if endpoint not in node_map:
                raise GraphBuildError(
                    reason_code="unknown_connection_endpoint",
                    message=f"connection {u!r} -> {v!r} references unknown node {endpoint!r}",
                    details={"from_id": u, "to_id": v, "node_id": endpoint},
                )
        if u == v:
            raise GraphBuildError(
                reason_code="invalid_graph_asset",
                message=f"connection {u!r} -> {v!r} is a self-loop",
                details={"from_id": u, "to_id": v},
            )
        if (u, v) in edge_index:
            continue
        a, b = node_map[u], node_map[v]
        distance_m = haversine_m(a.coordinate, b.coordinate)
        weight, rule = active_policy.weigh(
            EdgeContext(a=a, b=b, zones=zone_set, containment=containment)
        )
        forward = GraphEdge(source=u, to=v, distance_m=distance_m, safety_weight=weight, rule=rule)
        reverse = GraphEdge(source=v, to=u, distance_m=distance_m, safety_weight=weight, rule=rule)
        adjacency_mut[u].append(forward)
        adjacency_mut[v].append(reverse)
        edge_index[(u, v)] = forward
        edge_index[(v, u)] = reverse

    component_by_node, component_sizes, component_count = _compute_component_index(node_map, adjacency_mut)
    graph = SafetyGraph(
        version=version,
        source=source,
        nodes=node_map,
        adjacency={k: tuple(v) for k, v in adjacency_mut.items()},
        edge_index=edge_index,
        zones=zone_set,
        containment=containment,
        component_by_node=component_by_node,
        component_sizes=component_sizes,
        component_count=component_count,
    )
    log_event("graph_built", **graph.summary())
    return graph
