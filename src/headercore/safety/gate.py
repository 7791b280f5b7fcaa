"""
Safety gate: decides whether a hardware job may execute.

The gate is total and side-effect free.  For every input it returns a
``GateDecision``; it never writes, never raises on bad header data and never
consults anything but its configuration and its arguments.

Decision table:

============================  ==============================  ===========
kind                          safety boundaries               disposition
============================  ==============================  ===========
not ``hardware-job``          (ignored)                       EXECUTE
``hardware-job``              absent                          DRY_RUN
``hardware-job``              present but unparsable          REJECT
``hardware-job``              missing mandatory / non-numeric REJECT
``hardware-job``              present and well-formed         EXECUTE
============================  ==============================  ===========

An ``EXECUTE`` decision for a hardware job carries the parsed boundary set so
the executor can cross-check it against live readings.

Usage::

    from headercore.safety.gate import SafetyGate

    decision = SafetyGate(table).evaluate(ArtifactKind.HARDWARE_JOB, record)
    if decision.disposition is GateDisposition.REJECT:
        ...
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from headercore.contracts.types import ArtifactKind, ConditionCode, GateDisposition
from headercore.conventions.schema import ConventionTable
from headercore.header.schema import BoundaryValue, HeaderRecord


class BoundaryViolation(BaseModel):
    """One structural problem with a declared safety boundary."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    boundary: str
    problem: str


class GateDecision(BaseModel):
    """Outcome of a gate evaluation."""

    model_config = ConfigDict(extra="forbid")

    disposition: GateDisposition
    kind: ArtifactKind
    boundaries: dict[str, BoundaryValue] = Field(default_factory=dict)
    violations: list[BoundaryViolation] = Field(default_factory=list)
    reason: str = ""

    @property
    def conditions(self) -> list[ConditionCode]:
        if self.disposition == GateDisposition.DRY_RUN:
            return [ConditionCode.MISSING_SAFETY_BOUNDARY]
        if self.disposition == GateDisposition.REJECT:
            return [ConditionCode.INVALID_SAFETY_BOUNDARY]
        return []


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


class SafetyGate:
    """Evaluates safety boundaries against per-kind requirements."""

    def __init__(self, table: ConventionTable) -> None:
        self._table = table

    def evaluate(
        self,
        kind: ArtifactKind,
        record: Optional[HeaderRecord],
        unparsable_boundaries: bool = False,
    ) -> GateDecision:
        """Decide for a parsed record (``None`` when there is no usable header)."""
        boundaries = record.safety_boundaries if record is not None else None
        return self.evaluate_boundaries(kind, boundaries, unparsable_boundaries)

    def evaluate_boundaries(
        self,
        kind: ArtifactKind,
        boundaries: Optional[Mapping[str, Any]],
        unparsable_boundaries: bool = False,
    ) -> GateDecision:
        """Decide from a raw boundary mapping.

        Args:
            kind: Artifact kind.
            boundaries: Declared boundaries, ``None`` when absent.
            unparsable_boundaries: The header had a ``SafetyBoundaries`` key
                whose value could not be parsed.
        """
        if kind != ArtifactKind.HARDWARE_JOB:
            return GateDecision(
                disposition=GateDisposition.EXECUTE,
                kind=kind,
                reason=f"gate does not apply to {kind.value}",
            )

        if unparsable_boundaries:
            return GateDecision(
                disposition=GateDisposition.REJECT,
                kind=kind,
                violations=[BoundaryViolation(boundary="*", problem="boundaries block is unparsable")],
                reason="safety boundaries present but unparsable",
            )

        if boundaries is None:
            return GateDecision(
                disposition=GateDisposition.DRY_RUN,
                kind=kind,
                reason="no safety boundaries declared; dry run only",
            )

        violations: list[BoundaryViolation] = []
        for name in self._table.mandatory_boundaries(kind):
            if name not in boundaries:
                violations.append(BoundaryViolation(boundary=name, problem="mandatory boundary missing"))
        for name in self._table.numeric_boundaries(kind):
            if name in boundaries and not _is_number(boundaries[name]):
                violations.append(
                    BoundaryViolation(
                        boundary=name,
                        problem=f"expected a finite number, got {boundaries[name]!r}",
                    )
                )

        if violations:
            return GateDecision(
                disposition=GateDisposition.REJECT,
                kind=kind,
                violations=violations,
                reason="; ".join(f"{v.boundary}: {v.problem}" for v in violations),
            )
        return GateDecision(
            disposition=GateDisposition.EXECUTE,
            kind=kind,
            boundaries=dict(boundaries),
            reason="safety boundaries well-formed",
        )
