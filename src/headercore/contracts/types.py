"""
Core enum types shared across the header lifecycle engine.

Every enum is a ``str`` subclass so values serialize directly into JSON
summaries, YAML convention files and OTel span attributes.

Usage::

    from headercore.contracts.types import ArtifactKind, StalenessState

    if evaluation.state == StalenessState.STALE:
        ...
"""

from __future__ import annotations

from enum import Enum


# ---------------------------------------------------------------------------
# Artifact identity
# ---------------------------------------------------------------------------


class ArtifactKind(str, Enum):
    """What an artifact is, which selects its fingerprint extractor and gate."""

    CODE = "code"
    DOCUMENT = "document"
    HARDWARE_JOB = "hardware-job"


class CommentStyle(str, Enum):
    """How a header block is wrapped inside an artifact."""

    BLOCK = "block"  # /* ... */, <!-- ... -->, """ ... """
    LINE = "line"  # every line carries a prefix such as '#' or '//'


# ---------------------------------------------------------------------------
# Parsing and staleness
# ---------------------------------------------------------------------------


class ParseStatus(str, Enum):
    PARSED = "parsed"
    ABSENT = "absent"
    MALFORMED = "malformed"


class StalenessState(str, Enum):
    VALID = "VALID"
    STALE = "STALE"
    ABSENT = "ABSENT"
    MALFORMED = "MALFORMED"


class StaleReason(str, Enum):
    """Why a parsed header was classified STALE."""

    CHECKSUM_MISMATCH = "checksum_mismatch"
    FINGERPRINT_DRIFT = "fingerprint_drift"
    MISSING_FIELD = "missing_field"
    UNVERIFIABLE = "unverifiable"
    PATH_MISMATCH = "path_mismatch"


class PointRole(str, Enum):
    """Direction of an interface point found by a fingerprint extractor."""

    INPUT = "input"
    OUTPUT = "output"


# ---------------------------------------------------------------------------
# Confidence
# ---------------------------------------------------------------------------


class ConfidenceTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ---------------------------------------------------------------------------
# Generation and merge policy
# ---------------------------------------------------------------------------


class MergeStrategy(str, Enum):
    """How the generator combines a previous field value with a fresh one."""

    PRESERVE = "preserve"  # keep previous verbatim, fresh only if none
    PRESERVE_NEVER_INFER = "preserve_never_infer"  # previous or nothing
    RECOMPUTE_RETAIN = "recompute_retain"  # fresh + retained previous extras
    REFRESH = "refresh"  # always the fresh value
    KEEP_PREVIOUS = "keep_previous"  # previous if present, else fresh
    KEEP_HARDWARE_JOB = "keep_hardware_job"  # fresh, unless previous was hardware-job


# ---------------------------------------------------------------------------
# Safety gate and engine dispositions
# ---------------------------------------------------------------------------


class GateDisposition(str, Enum):
    EXECUTE = "EXECUTE"
    DRY_RUN = "DRY_RUN"
    REJECT = "REJECT"


class ConditionCode(str, Enum):
    """Engine conditions carried inside structured results, never raised."""

    PARSE_MALFORMED = "ParseMalformed"
    CHECKSUM_MISMATCH = "ChecksumMismatch"
    FINGERPRINT_DRIFT = "FingerprintDrift"
    MISSING_SAFETY_BOUNDARY = "MissingSafetyBoundary"
    INVALID_SAFETY_BOUNDARY = "InvalidSafetyBoundary"
    UNRESOLVED_DEPENDENCY = "UnresolvedDependency"
    CYCLIC_DEPENDENCY = "CyclicDependency"


class NodeStatus(str, Enum):
    """Propagation outcome for a single node in the dependency graph."""

    RESOLVED = "resolved"
    DEGRADED = "degraded"  # resolved but with unresolved dependencies
    CYCLIC = "cyclic"
    BLOCKED_BY_CYCLE = "blocked_by_cycle"


class ExitDisposition(int, Enum):
    """Exit codes a driving tool reports per artifact (batch = max)."""

    VALID = 0
    REGENERATED = 1
    MALFORMED_RECOVERED = 2
    SAFETY_REJECTED = 3


# Value lists for validation
ARTIFACT_KIND_VALUES = [k.value for k in ArtifactKind]
CONFIDENCE_TIER_VALUES = [t.value for t in ConfidenceTier]
STALENESS_STATE_VALUES = [s.value for s in StalenessState]
GATE_DISPOSITION_VALUES = [d.value for d in GateDisposition]
