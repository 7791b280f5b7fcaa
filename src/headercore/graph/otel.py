"""
OTel span event emission for dependency graph propagation.

Usage::

    from headercore.graph.otel import emit_propagation_complete

    emit_propagation_complete(report)
"""

from __future__ import annotations

import logging

from headercore.contracts._otel_helpers import add_span_event
from headercore.contracts.types import NodeStatus
from headercore.graph.propagation import GraphReport

logger = logging.getLogger(__name__)


def emit_propagation_complete(report: GraphReport) -> None:
    """Emit ``graph.propagation.complete`` with node status counts."""
    attrs: dict[str, str | int | float | bool] = {
        "graph.node_count": len(report.nodes),
        "graph.edge_count": report.edge_count,
        "graph.unresolved_count": len(report.unresolved),
        "graph.cycle_count": len(report.cycles),
        "graph.has_cycles": report.has_cycles,
    }
    for status in NodeStatus:
        attrs[f"graph.status.{status.value}"] = sum(1 for n in report.nodes if n.status == status)

    # Include first 3 unresolved references for quick filtering
    for i, item in enumerate(report.unresolved[:3]):
        attrs[f"graph.unresolved.{i}"] = f"{item.artifact} -> {item.reference}"

    if report.unresolved:
        logger.info(
            "Graph built with %d unresolved reference(s)", len(report.unresolved)
        )
    add_span_event("graph.propagation.complete", attrs)
