from __future__ import annotations

import heapq
from dataclasses import dataclass
from math import inf

Adjacency = dict[str, tuple[tuple[str, float], ...]]


@dataclass(frozen=True)
class PathResult:
    nodes: tuple[str, ...]
    cost: float
    explored_states: int = 0


class PathNotFoundError(ValueError):
    pass


def dijkstra_shortest_path(
    *,
    adjacency: Adjacency,
    start: str,
    goal: str,
) -> PathResult:
    """Single-source Dijkstra that stops as soon as `goal` is settled.

    The frontier is ordered by `(cost, node_id)`, so among nodes with equal
    tentative cost the lexicographically smallest id is expanded first. A
    predecessor is only replaced on a strictly smaller cost, which makes the
    returned path deterministic when several equal-cost paths exist.
    """
    if start not in adjacency or goal not in adjacency:
        raise PathNotFoundError("start/goal not in graph")
    best: dict[str, float] = {start: 0.0}
    previous: dict[str, str] = {}
    settled: set[str] = set()
    heap: list[tuple[float, str]] = [(0.0, start)]
    explored = 0
    while heap:
        cost, node = heapq.heappop(heap)
        if node in settled:
            continue
        settled.add(node)
        explored += 1
        if node == goal:
            return PathResult(nodes=_walk_back(previous, start, goal), cost=cost, explored_states=explored)
        for nxt, edge_cost in adjacency.get(node, ()):
            if nxt in settled:
                continue
            if edge_cost < 0:
                raise ValueError(f"negative edge cost {edge_cost!r} on {node!r} -> {nxt!r}")
            new_cost = cost + edge_cost
            if new_cost < best.get(nxt, inf):
                best[nxt] = new_cost
                previous[nxt] = node
                heapq.heappush(heap, (new_cost, nxt))
    raise PathNotFoundError("no path")


def _walk_back(previous: dict[str, str], start: str, goal: str) -> tuple[str, ...]:
    path = [goal]
    current = goal
    while current != start:
        current = previous[current]
        path.append(current)
    path.reverse()
    return tuple(path)
