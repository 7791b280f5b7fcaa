"""
Shared contracts for the header lifecycle engine.

Re-exports the core enum types so callers can write::

    from headercore.contracts import ArtifactKind, GateDisposition
"""

from headercore.contracts.types import (
    ARTIFACT_KIND_VALUES,
    CONFIDENCE_TIER_VALUES,
    GATE_DISPOSITION_VALUES,
    STALENESS_STATE_VALUES,
    ArtifactKind,
    CommentStyle,
    ConditionCode,
    ConfidenceTier,
    ExitDisposition,
    GateDisposition,
    MergeStrategy,
    NodeStatus,
    ParseStatus,
    PointRole,
    StalenessState,
    StaleReason,
)

__all__ = [
    "ArtifactKind",
    "CommentStyle",
    "ConditionCode",
    "ConfidenceTier",
    "ExitDisposition",
    "GateDisposition",
    "MergeStrategy",
    "NodeStatus",
    "ParseStatus",
    "PointRole",
    "StalenessState",
    "StaleReason",
    # Value lists
    "ARTIFACT_KIND_VALUES",
    "CONFIDENCE_TIER_VALUES",
    "GATE_DISPOSITION_VALUES",
    "STALENESS_STATE_VALUES",
]
