"""
OTel span event emission for safety gate decisions.

Usage::

    from headercore.safety.otel import emit_gate_decision

    emit_gate_decision("jobs/cube.gcode", decision)
"""

from __future__ import annotations

import logging

from headercore.contracts._otel_helpers import add_span_event
from headercore.contracts.types import GateDisposition
from headercore.safety.gate import GateDecision

logger = logging.getLogger(__name__)


def emit_gate_decision(artifact_path: str, decision: GateDecision) -> None:
    """Emit ``safety.gate.decision``; REJECT is also logged as a warning."""
    attrs: dict[str, str | int | float | bool] = {
        "safety.path": artifact_path,
        "safety.kind": decision.kind.value,
        "safety.disposition": decision.disposition.value,
        "safety.violation_count": len(decision.violations),
        "safety.boundary_count": len(decision.boundaries),
    }
    for i, violation in enumerate(decision.violations[:3]):
        attrs[f"safety.violation.{i}"] = violation.boundary

    if decision.disposition == GateDisposition.REJECT:
        logger.warning("Safety gate REJECT: path=%s reason=%s", artifact_path, decision.reason)
    else:
        logger.debug(
            "Safety gate %s: path=%s", decision.disposition.value, artifact_path
        )

    add_span_event("safety.gate.decision", attrs)
