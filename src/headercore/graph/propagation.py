"""
Confidence propagation over the dependency graph.

Each artifact's derived confidence is the minimum of its own declared
confidence and the derived confidence of everything it depends on, so trust
never increases along a dependency chain.  Unresolved references lower a
node's derived confidence by a configurable number of tiers.

Cycles are found as strongly connected components (Tarjan, iterative).  Nodes
in a cycle are ``CYCLIC``; nodes that reach a cycle are ``BLOCKED_BY_CYCLE``.
Neither gets a derived confidence; every other component still resolves.

Confidence scale::

    low     0-49
    medium  50-79
    high    80-100

A declared tier counts as its band floor; a missing confidence counts as low.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from headercore.contracts.types import ConditionCode, ConfidenceTier, NodeStatus
from headercore.graph.schema import DependencyGraph
from headercore.header.schema import Confidence

logger = logging.getLogger(__name__)

# Ordered lowest first.
TIER_BANDS: dict[ConfidenceTier, tuple[int, int]] = {
    ConfidenceTier.LOW: (0, 49),
    ConfidenceTier.MEDIUM: (50, 79),
    ConfidenceTier.HIGH: (80, 100),
}
_TIER_ORDER = list(TIER_BANDS)


def tier_for_score(score: int) -> ConfidenceTier:
    for tier, (floor, ceiling) in TIER_BANDS.items():
        if floor <= score <= ceiling:
            return tier
    raise ValueError(f"Confidence score {score} is outside 0..100")


def score_for(confidence: Optional[Confidence]) -> int:
    """Numeric score for a declared confidence."""
    if confidence is None:
        return TIER_BANDS[ConfidenceTier.LOW][0]
    if isinstance(confidence, ConfidenceTier):
        return TIER_BANDS[confidence][0]
    return int(confidence)


def lower_by_tiers(score: int, steps: int) -> int:
    """Drop ``score`` by ``steps`` tiers, capping it at the lowered tier's ceiling."""
    if steps <= 0:
        return score
    position = max(_TIER_ORDER.index(tier_for_score(score)) - steps, 0)
    return min(score, TIER_BANDS[_TIER_ORDER[position]][1])


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class ConfidencePolicy(BaseModel):
    """How unresolved references affect derived confidence."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    unresolved_tier_penalty: int = Field(1, ge=0, description="Tiers lost when references are unresolved")
    penalty_per_missing: bool = Field(
        False, description="Apply the penalty once per unresolved reference instead of once per node"
    )

    def steps_for(self, unresolved_count: int) -> int:
        if unresolved_count == 0:
            return 0
        if self.penalty_per_missing:
            return self.unresolved_tier_penalty * unresolved_count
        return self.unresolved_tier_penalty


class UnresolvedDependency(BaseModel):
    """A declared reference with no artifact in scope to satisfy it."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    artifact: str
    reference: str
    via: str = Field(..., description="'dependency' or 'input'")


class NodeReport(BaseModel):
    """Propagation outcome for one artifact."""

    model_config = ConfigDict(extra="forbid")

    artifact: str
    status: NodeStatus
    declared_confidence: Optional[Confidence] = None
    declared_score: int
    derived_score: Optional[int] = None
    derived_tier: Optional[ConfidenceTier] = None
    depends_on: list[str] = Field(default_factory=list)
    unresolved: list[str] = Field(default_factory=list)


class GraphReport(BaseModel):
    """Whole-scope result of graph construction and propagation."""

    model_config = ConfigDict(extra="forbid")

    nodes: list[NodeReport] = Field(default_factory=list)
    unresolved: list[UnresolvedDependency] = Field(default_factory=list)
    cycles: list[list[str]] = Field(default_factory=list)
    edge_count: int = 0

    @property
    def has_cycles(self) -> bool:
        return bool(self.cycles)

    @property
    def conditions(self) -> list[ConditionCode]:
        codes = []
        if self.unresolved:
            codes.append(ConditionCode.UNRESOLVED_DEPENDENCY)
        if self.cycles:
            codes.append(ConditionCode.CYCLIC_DEPENDENCY)
        return codes

    def node(self, artifact: str) -> Optional[NodeReport]:
        return next((n for n in self.nodes if n.artifact == artifact), None)


# ---------------------------------------------------------------------------
# Algorithms
# ---------------------------------------------------------------------------


def strongly_connected_components(graph: DependencyGraph) -> list[list[int]]:
    """Tarjan's algorithm without recursion.

    Components come out producers-first: each one after every component it
    can reach.
    """
    count = len(graph.nodes)
    adjacency = [graph.producers_of(i) for i in range(count)]
    order = [-1] * count
    low = [0] * count
    on_stack = [False] * count
    stack: list[int] = []
    components: list[list[int]] = []
    counter = 0

    for root in range(count):
        if order[root] != -1:
            continue
        work = [(root, 0)]
        while work:
            v, i = work[-1]
            if order[v] == -1:
                order[v] = low[v] = counter
                counter += 1
                stack.append(v)
                on_stack[v] = True
            if i < len(adjacency[v]):
                work[-1] = (v, i + 1)
                w = adjacency[v][i]
                if order[w] == -1:
                    work.append((w, 0))
                elif on_stack[w]:
                    low[v] = min(low[v], order[w])
                continue
            work.pop()
            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[v])
            if low[v] == order[v]:
                component = []
                while True:
                    w = stack.pop()
                    on_stack[w] = False
                    component.append(w)
                    if w == v:
                        break
                components.append(sorted(component))
    return components


def propagate(
    graph: DependencyGraph,
    unresolved: list[UnresolvedDependency],
    policy: Optional[ConfidencePolicy] = None,
) -> GraphReport:
    """Compute per-node status and derived confidence for a finished graph."""
    policy = policy or ConfidencePolicy()
    count = len(graph.nodes)
    missing: list[list[str]] = [[] for _ in range(count)]
    for item in unresolved:
        position = graph.index[item.artifact]
        missing[position].append(item.reference)

    components = strongly_connected_components(graph)
    cyclic = [False] * count
    cycles: list[list[str]] = []
    for component in components:
        first = component[0]
        if len(component) > 1 or first in graph.producers_of(first):
            for v in component:
                cyclic[v] = True
            cycles.append([graph.nodes[v].identity for v in component])

    blocked = [False] * count
    derived: list[Optional[int]] = [None] * count
    statuses: list[NodeStatus] = [NodeStatus.RESOLVED] * count

    for component in components:
        for v in component:
            producers = graph.producers_of(v)
            if cyclic[v]:
                statuses[v] = NodeStatus.CYCLIC
                continue
            if any(cyclic[w] or blocked[w] for w in producers):
                blocked[v] = True
                statuses[v] = NodeStatus.BLOCKED_BY_CYCLE
                continue
            record = graph.nodes[v].record
            base = min([score_for(record.confidence)] + [derived[w] for w in producers])
            derived[v] = lower_by_tiers(base, policy.steps_for(len(missing[v])))
            statuses[v] = NodeStatus.DEGRADED if missing[v] else NodeStatus.RESOLVED

    nodes = []
    for node in graph.nodes:
        v = node.index
        score = derived[v]
        nodes.append(
            NodeReport(
                artifact=node.identity,
                status=statuses[v],
                declared_confidence=node.record.confidence,
                declared_score=score_for(node.record.confidence),
                derived_score=score,
                derived_tier=tier_for_score(score) if score is not None else None,
                depends_on=[graph.nodes[w].identity for w in graph.producers_of(v)],
                unresolved=missing[v],
            )
        )

    if cycles:
        logger.warning("Dependency cycles detected: %s", cycles)
    return GraphReport(
        nodes=nodes,
        unresolved=list(unresolved),
        cycles=cycles,
        edge_count=len(graph.edges),
    )
