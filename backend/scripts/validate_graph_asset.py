from __future__ import annotations

import argparse
import json
from collections import Counter
from pathlib import Path
from typing import Any, Sequence

from safewalk.danger_zones import zones_containing
from safewalk.graph_assets import graph_from_asset, read_graph_asset
from safewalk.routing_graph import SafetyGraph


def _rule_histogram(graph: SafetyGraph) -> dict[str, int]:
    # Each street is stored twice; count it once.
    counts = Counter(edge.rule for (u, v), edge in graph.edge_index.items() if u < v)
    return dict(sorted(counts.items()))


def _nodes_in_zones(graph: SafetyGraph) -> dict[str, list[str]]:
    out: dict[str, list[str]] = {}
    for node_id in sorted(graph.nodes):
        hits = zones_containing(graph.nodes[node_id].coordinate, graph.zones, containment=graph.containment)
        if hits:
            out[node_id] = [zone.id for zone in hits]
    return out


def validate(*, asset_path: Path, containment: str, allow_fragmented: bool) -> dict[str, Any]:
    asset = read_graph_asset(asset_path)
    graph = graph_from_asset(asset, containment="polygon" if containment == "polygon" else "bbox")
    isolated = sorted(node_id for node_id in graph.nodes if not graph.neighbours(node_id))
    if isolated:
        raise RuntimeError(f"Graph has isolated nodes: {', '.join(isolated)}")
    if graph.component_count > 1 and not allow_fragmented:
        raise RuntimeError(f"Graph is fragmented into {graph.component_count} components")
    return {
        "asset_path": str(asset_path),
        **graph.summary(),
        "rule_histogram": _rule_histogram(graph),
        "nodes_in_zones": _nodes_in_zones(graph),
        "validation_passed": True,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Validate a city graph asset and report its weight mix.")
    parser.add_argument(
        "--asset",
        type=Path,
        default=Path(__file__).resolve().parents[1] / "safewalk" / "assets" / "popayan_centro.json",
        help="Graph asset JSON path.",
    )
    parser.add_argument("--containment", choices=["bbox", "polygon"], default="bbox")
    parser.add_argument("--allow-fragmented", action="store_true")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    report = validate(
        asset_path=args.asset,
        containment=args.containment,
        allow_fragmented=bool(args.allow_fragmented),
    )
    print(json.dumps(report, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
