from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .danger_zones import DangerZone, ZoneContainment, is_in_danger

if TYPE_CHECKING:
    from .routing_graph import Node


@dataclass(frozen=True)
class EdgeContext:
    """Everything a weight rule may look at for one street segment."""

    a: Node
    b: Node
    zones: tuple[DangerZone, ...]
    containment: ZoneContainment = "bbox"

    def touches(self, node_ids: Iterable[str]) -> bool:
        ids = set(node_ids)
        return self.a.id in ids or self.b.id in ids


RulePredicate = Callable[[EdgeContext], bool]


@dataclass(frozen=True)
class SafetyRule:
    name: str
    predicate: RulePredicate
    weight: float

    def __post_init__(self) -> None:
        if not float(self.weight) >= 1.0:
            raise ValueError(f"safety rule {self.name!r}: weight must be >= 1, got {self.weight!r}")


@dataclass(frozen=True)
class SafetyPolicy:
    """Ordered decision table; the first matching rule sets the edge weight."""

    rules: tuple[SafetyRule, ...] = ()
    default_weight: float = 1.0

    def __post_init__(self) -> None:
        if not float(self.default_weight) >= 1.0:
            raise ValueError(f"default weight must be >= 1, got {self.default_weight!r}")

    def weigh(self, ctx: EdgeContext) -> tuple[float, str]:
        for rule in self.rules:
            if rule.predicate(ctx):
                return float(rule.weight), rule.name
        return float(self.default_weight), "default"

    def with_rule(self, rule: SafetyRule, *, index: int | None = None) -> SafetyPolicy:
        rules = list(self.rules)
        rules.insert(len(rules) if index is None else index, rule)
        return SafetyPolicy(rules=tuple(rules), default_weight=self.default_weight)


def endpoint_in_danger(ctx: EdgeContext) -> bool:
    return is_in_danger(ctx.a.coordinate, ctx.zones, containment=ctx.containment) or is_in_danger(
        ctx.b.coordinate, ctx.zones, containment=ctx.containment
    )


def touches_nodes(node_ids: Sequence[str]) -> RulePredicate:
    frozen = frozenset(node_ids)

    def _predicate(ctx: EdgeContext) -> bool:
        return ctx.touches(frozen)

    return _predicate


@dataclass(frozen=True)
class RiskPolicyConfig:
    danger_zone_weight: float = 10.0
    high_risk_node_ids: tuple[str, ...] = field(default_factory=tuple)
    high_risk_weight: float = 5.0
    medium_risk_node_ids: tuple[str, ...] = field(default_factory=tuple)
    medium_risk_weight: float = 4.0
    default_weight: float = 1.0


def build_safety_policy(config: RiskPolicyConfig | None = None) -> SafetyPolicy:
    cfg = config or RiskPolicyConfig()
    rules = [SafetyRule("danger_zone", endpoint_in_danger, cfg.danger_zone_weight)]
    if cfg.high_risk_node_ids:
        rules.append(SafetyRule("high_risk_node", touches_nodes(cfg.high_risk_node_ids), cfg.high_risk_weight))
    if cfg.medium_risk_node_ids:
        rules.append(
            SafetyRule("medium_risk_node", touches_nodes(cfg.medium_risk_node_ids), cfg.medium_risk_weight)
        )
    return SafetyPolicy(rules=tuple(rules), default_weight=cfg.default_weight)
