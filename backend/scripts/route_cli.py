from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Sequence

from safewalk.graph_assets import graph_from_asset, read_graph_asset
from safewalk.route_engine import RouteMode, RouteResult, find_route, path_cost
from safewalk.route_stats import risk_band, segment_risk_profile
from safewalk.routing_errors import RoutingError
from safewalk.routing_graph import SafetyGraph
from safewalk.settings import settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compute a walking route over the city street graph.")
    parser.add_argument("--start", required=True, help="Origin node id")
    parser.add_argument("--end", required=True, help="Destination node id")
    parser.add_argument("--mode", choices=[m.value for m in RouteMode], default=RouteMode.SAFEST.value)
    parser.add_argument("--asset", default=None, help="Graph asset JSON (defaults to GRAPH_ASSET_PATH)")
    parser.add_argument("--containment", choices=["bbox", "polygon"], default=None)
    parser.add_argument(
        "--compare",
        action="store_true",
        help="Resolve both modes and report each path's cost under the safety-scaled metric.",
    )
    return parser


def _route_record(graph: SafetyGraph, start: str, end: str, mode: RouteMode) -> dict[str, Any]:
    result = find_route(start, end, graph, mode)
    if not isinstance(result, RouteResult):
        return {"mode": mode.value, "found": False, "reason_code": result.reason_code}
    return {
        "mode": mode.value,
        "found": True,
        "path": list(result.path),
        "labels": [graph.nodes[n].label for n in result.path],
        "total_distance_m": round(result.total_distance_m, 2),
        "average_safety_score": round(result.average_safety_score, 4),
        "risk_band": risk_band(result.average_safety_score),
        "safety_scaled_cost": round(path_cost(graph, result.path, RouteMode.SAFEST), 2),
        "segment_risk": [
            {"node_id": p.node_id, "label": p.label, "risk": p.risk}
            for p in segment_risk_profile(graph, result.path)
        ],
    }


def run_route(args: argparse.Namespace) -> dict[str, Any]:
    asset = read_graph_asset(Path(args.asset or settings.graph_asset_path))
    containment = args.containment or settings.zone_containment
    graph = graph_from_asset(asset, containment="polygon" if containment == "polygon" else "bbox")
    modes = list(RouteMode) if args.compare else [RouteMode(args.mode)]
    return {
        "graph_version": graph.version,
        "start": args.start,
        "end": args.end,
        "routes": [_route_record(graph, args.start, args.end, mode) for mode in modes],
    }


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    try:
        record = run_route(args)
    except RoutingError as e:
        print(json.dumps({"error": e.reason_code, "message": str(e)}, indent=2))
        return 2
    print(json.dumps(record, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
