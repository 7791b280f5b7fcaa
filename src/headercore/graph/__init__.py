"""
Dependency graph and confidence propagation.

Public API::

    from headercore.graph import ConfidencePolicy, GraphBuilder, GraphReport
"""

from headercore.graph.builder import GraphBuilder, is_qualified
from headercore.graph.propagation import (
    TIER_BANDS,
    ConfidencePolicy,
    GraphReport,
    NodeReport,
    UnresolvedDependency,
    lower_by_tiers,
    propagate,
    score_for,
    strongly_connected_components,
    tier_for_score,
)
from headercore.graph.schema import (
    ArtifactNode,
    DependencyEdge,
    DependencyGraph,
    EdgeType,
    normalize_identity,
)

__all__ = [
    "ArtifactNode",
    "ConfidencePolicy",
    "DependencyEdge",
    "DependencyGraph",
    "EdgeType",
    "GraphBuilder",
    "GraphReport",
    "NodeReport",
    "TIER_BANDS",
    "UnresolvedDependency",
    "is_qualified",
    "lower_by_tiers",
    "normalize_identity",
    "propagate",
    "score_for",
    "strongly_connected_components",
    "tier_for_score",
]
