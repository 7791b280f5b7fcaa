"""
Pydantic v2 models for the Contract-Header record and its parse result.

A ``HeaderRecord`` is the structured contract embedded at the head of an
artifact.  Required keys that are missing from a parsed header are kept as
``None`` so the staleness evaluator can tell "absent" apart from "declared
empty" (``Inputs: None`` parses to ``[]``).

Usage::

    from headercore.header.schema import HeaderRecord

    record = HeaderRecord(
        artifact_path="jobs/print.gcode",
        kind=ArtifactKind.HARDWARE_JOB,
        description="Prints the calibration cube.",
        inputs=["param:hotendTemp"],
        outputs=[],
        safety_boundaries={"maxTemp": 245, "dutyCycle": 0.8},
    )
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from headercore.contracts.types import ArtifactKind, ConfidenceTier, ParseStatus
from headercore.conventions.schema import CommentConvention

BoundaryValue = Union[int, float, str]
Confidence = Union[ConfidenceTier, int]

HEADER_SCHEMA_VERSION = "1"

# Serialized key names, in canonical output order.
KEY_CONTRACT_HEADER = "Contract-Header"
KEY_FILE = "File"
KEY_DESCRIPTION = "Description"
KEY_INPUTS = "Inputs"
KEY_OUTPUTS = "Outputs"
KEY_DEPENDENCIES = "Dependencies"
KEY_CONFIDENCE = "Confidence"
KEY_ACTION_REQUIRED = "ActionRequired"
KEY_SAFETY_BOUNDARIES = "SafetyBoundaries"
KEY_NOTES = "Notes"
KEY_LAST_GENERATED = "LastGenerated"
KEY_CHECKSUM = "Checksum"

KEY_ORDER = [
    KEY_CONTRACT_HEADER,
    KEY_FILE,
    KEY_DESCRIPTION,
    KEY_INPUTS,
    KEY_OUTPUTS,
    KEY_DEPENDENCIES,
    KEY_CONFIDENCE,
    KEY_ACTION_REQUIRED,
    KEY_SAFETY_BOUNDARIES,
    KEY_NOTES,
    KEY_LAST_GENERATED,
    KEY_CHECKSUM,
]

# Keys every header must carry; missing ones make the header STALE.
MANDATORY_KEYS = [
    KEY_CONTRACT_HEADER,
    KEY_FILE,
    KEY_DESCRIPTION,
    KEY_INPUTS,
    KEY_OUTPUTS,
    KEY_LAST_GENERATED,
]

# Record attribute for each serialized key.
KEY_TO_FIELD = {
    KEY_FILE: "artifact_path",
    KEY_DESCRIPTION: "description",
    KEY_INPUTS: "inputs",
    KEY_OUTPUTS: "outputs",
    KEY_DEPENDENCIES: "dependencies",
    KEY_CONFIDENCE: "confidence",
    KEY_ACTION_REQUIRED: "action_required",
    KEY_SAFETY_BOUNDARIES: "safety_boundaries",
    KEY_NOTES: "notes",
    KEY_LAST_GENERATED: "last_generated",
    KEY_CHECKSUM: "checksum",
}
FIELD_TO_KEY = {v: k for k, v in KEY_TO_FIELD.items()}


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------


class ActionItem(BaseModel):
    """A follow-up someone owns: ``owner=...; task=...; due=YYYY-MM-DD``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    owner: str = Field(..., min_length=1)
    task: str = Field(..., min_length=1)
    due: Optional[date] = None


class HeaderRecord(BaseModel):
    """The structured contract extracted from or destined for an artifact."""

    model_config = ConfigDict(extra="forbid")

    # Identity
    artifact_path: str = Field(..., min_length=1, description="Posix path of the artifact")
    kind: ArtifactKind
    schema_version: str = Field(HEADER_SCHEMA_VERSION, min_length=1)

    # Declared fields
    description: Optional[str] = None
    inputs: Optional[list[str]] = None
    outputs: Optional[list[str]] = None
    dependencies: list[str] = Field(default_factory=list)
    confidence: Optional[Confidence] = None
    action_required: list[ActionItem] = Field(default_factory=list)
    safety_boundaries: Optional[dict[str, BoundaryValue]] = None
    notes: Optional[str] = None
    last_generated: Optional[datetime] = None
    checksum: Optional[str] = None

    # Keys this engine does not understand, re-emitted verbatim.
    extra_fields: dict[str, str] = Field(default_factory=dict)

    @field_validator("confidence")
    @classmethod
    def _bounded_confidence(cls, v: Optional[Confidence]) -> Optional[Confidence]:
        if isinstance(v, int) and not isinstance(v, bool) and not 0 <= v <= 100:
            raise ValueError(f"numeric confidence must be within 0..100, got {v}")
        return v

    @field_validator("dependencies")
    @classmethod
    def _dedupe(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))

    def missing_mandatory_keys(self) -> list[str]:
        """Mandatory serialized keys this record has no value for."""
        missing = []
        if self.description is None or not self.description.strip():
            missing.append(KEY_DESCRIPTION)
        if self.inputs is None:
            missing.append(KEY_INPUTS)
        if self.outputs is None:
            missing.append(KEY_OUTPUTS)
        if self.last_generated is None:
            missing.append(KEY_LAST_GENERATED)
        return missing

    def declared_interface(self) -> list[str]:
        """All declared inputs followed by all declared outputs."""
        return list(self.inputs or []) + list(self.outputs or [])


# ---------------------------------------------------------------------------
# Parse result
# ---------------------------------------------------------------------------


class ParseResult(BaseModel):
    """Outcome of looking for a header in an artifact's leading window.

    ``record`` is set only for ``PARSED``.  For ``MALFORMED``, ``partial``
    holds the record fields that parsed confidently and ``unparsed_fields``
    names the serialized keys that were present but unusable.
    """

    model_config = ConfigDict(extra="forbid")

    status: ParseStatus
    record: Optional[HeaderRecord] = None
    partial: dict[str, Any] = Field(default_factory=dict)
    present_keys: list[str] = Field(default_factory=list)
    unparsed_fields: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    header_start: Optional[int] = Field(None, description="0-based first line of the block")
    header_end: Optional[int] = Field(None, description="0-based line after the block")
    preamble: list[str] = Field(default_factory=list)
    convention: Optional[CommentConvention] = None

    @property
    def is_absent(self) -> bool:
        return self.status == ParseStatus.ABSENT

    @property
    def is_malformed(self) -> bool:
        return self.status == ParseStatus.MALFORMED

    def field_value(self, field_name: str) -> Any:
        """Value of a record field from the full record or the partial map."""
        if self.record is not None:
            return getattr(self.record, field_name)
        return self.partial.get(field_name)
