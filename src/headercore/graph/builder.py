"""
Dependency graph builder.

Builds a ``DependencyGraph`` from the finalized header records of one scope:

- a ``Dependencies`` entry resolves to the artifact with that normalized path;
- an ``Inputs`` entry resolves to every other artifact that declares the same
  name among its ``Outputs``.

References that resolve to nothing are collected as
``UnresolvedDependency`` entries instead of failing the build.  Qualified
inputs (``env:HOME``, ``param:bedTemp``) name external requirements and are
never unresolved.

Usage::

    from headercore.graph.builder import GraphBuilder

    report = GraphBuilder().build_report(records)
    for item in report.unresolved:
        print(item.artifact, item.reference)
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from headercore.graph.propagation import (
    ConfidencePolicy,
    GraphReport,
    UnresolvedDependency,
    propagate,
)
from headercore.graph.schema import DependencyEdge, DependencyGraph, EdgeType, normalize_identity
from headercore.header.schema import HeaderRecord

logger = logging.getLogger(__name__)

__all__ = ["GraphBuilder", "is_qualified"]

_QUALIFIED = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")


def is_qualified(name: str) -> bool:
    """Whether an input carries a ``scheme:`` prefix."""
    return bool(_QUALIFIED.match(name.strip()))


class GraphBuilder:
    """Correlates dependencies and inputs with the records in scope."""

    def __init__(self, policy: Optional[ConfidencePolicy] = None) -> None:
        self.policy = policy or ConfidencePolicy()

    def build(self, records: Iterable[HeaderRecord]) -> Tuple[DependencyGraph, List[UnresolvedDependency]]:
        """Build the graph and collect unresolved references.

        Records sharing an identity are kept once; the first one wins.
        """
        graph = DependencyGraph()
        for record in records:
            identity = normalize_identity(record.artifact_path)
            if identity in graph.index:
                logger.warning("Duplicate artifact identity %s in scope; keeping the first record", identity)
                continue
            graph.add_node(record)

        producers: Dict[str, List[int]] = {}
        for node in graph.nodes:
            for output in node.record.outputs or []:
                producers.setdefault(output.strip(), []).append(node.index)

        unresolved: List[UnresolvedDependency] = []
        for node in graph.nodes:
            seen = set()
            for dependency in node.record.dependencies:
                target = graph.index.get(normalize_identity(dependency))
                if target is None:
                    item = UnresolvedDependency(artifact=node.identity, reference=dependency, via="dependency")
                    if item not in seen:
                        seen.add(item)
                        unresolved.append(item)
                    continue
                graph.add_edge(DependencyEdge(node.index, target, EdgeType.DEPENDS_ON, dependency))

            for name in node.record.inputs or []:
                matches = [p for p in producers.get(name.strip(), []) if p != node.index]
                if matches:
                    for producer in matches:
                        graph.add_edge(DependencyEdge(node.index, producer, EdgeType.CONSUMES, name))
                elif not is_qualified(name):
                    item = UnresolvedDependency(artifact=node.identity, reference=name, via="input")
                    if item not in seen:
                        seen.add(item)
                        unresolved.append(item)

        logger.debug(
            "Built dependency graph: nodes=%d edges=%d unresolved=%d",
            len(graph.nodes),
            len(graph.edges),
            len(unresolved),
        )
        return graph, unresolved

    def build_report(self, records: Iterable[HeaderRecord]) -> GraphReport:
        """Build the graph and propagate confidence in one step."""
        graph, unresolved = self.build(records)
        return propagate(graph, unresolved, self.policy)
