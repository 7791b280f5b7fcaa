"""
Field merge policy for header regeneration.

The policy is data: an ordered tuple of ``FieldMergeRule`` entries, one per
``HeaderRecord`` field, applied in priority order by the generator.  Keeping
it as data makes the two hard rules auditable and testable on their own:

- human-authored ``notes`` and ``safety_boundaries`` are never discarded;
- ``safety_boundaries`` are never inferred;
- a ``hardware-job`` kind tag is never downgraded, so a regenerated
  header still goes through the safety gate.

``validate_merge_policy()`` rejects policies that break these rules, and
``check_preservation()`` verifies a produced record against its predecessor.

Usage::

    from headercore.header.merge import DEFAULT_MERGE_POLICY, apply_merge_policy

    merged = apply_merge_policy(DEFAULT_MERGE_POLICY, previous_fields, fresh_fields)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from headercore.contracts.types import ArtifactKind, MergeStrategy
from headercore.errors import ConfigurationError, PreservationViolation
from headercore.header.fingerprint import canonical_signature
from headercore.header.schema import HeaderRecord

# Fields a human owns between automated runs.
HUMAN_OWNED_FIELDS = ("notes", "safety_boundaries")
# Fields the generator must never synthesize.
NEVER_INFERRED_FIELDS = ("safety_boundaries",)
# Fields whose hardware-job value must survive regeneration.
NEVER_DOWNGRADED_FIELDS = ("kind",)


@dataclass(frozen=True)
class FieldMergeRule:
    """How one field is merged."""

    field: str
    strategy: MergeStrategy
    rationale: str = ""


DEFAULT_MERGE_POLICY: tuple[FieldMergeRule, ...] = (
    FieldMergeRule("notes", MergeStrategy.PRESERVE, "human-authored"),
    FieldMergeRule("safety_boundaries", MergeStrategy.PRESERVE_NEVER_INFER, "human-authored, never inferred"),
    FieldMergeRule("inputs", MergeStrategy.RECOMPUTE_RETAIN, "fingerprint plus declared-but-undetected"),
    FieldMergeRule("outputs", MergeStrategy.RECOMPUTE_RETAIN, "fingerprint plus declared-but-undetected"),
    FieldMergeRule("last_generated", MergeStrategy.REFRESH),
    FieldMergeRule("checksum", MergeStrategy.REFRESH),
    FieldMergeRule("artifact_path", MergeStrategy.REFRESH),
    FieldMergeRule("kind", MergeStrategy.KEEP_HARDWARE_JOB, "a hardware-job tag is never downgraded"),
    FieldMergeRule("schema_version", MergeStrategy.REFRESH),
    FieldMergeRule("description", MergeStrategy.KEEP_PREVIOUS),
    FieldMergeRule("dependencies", MergeStrategy.KEEP_PREVIOUS),
    FieldMergeRule("confidence", MergeStrategy.KEEP_PREVIOUS),
    FieldMergeRule("action_required", MergeStrategy.KEEP_PREVIOUS),
    FieldMergeRule("extra_fields", MergeStrategy.KEEP_PREVIOUS),
)


def validate_merge_policy(policy: tuple[FieldMergeRule, ...]) -> None:
    """Reject policies that could erase human fields or invent safety limits.

    Raises:
        ConfigurationError: On duplicate fields, unknown fields, a missing
            field, or a human-owned field with a non-preserving strategy.
    """
    known = set(HeaderRecord.model_fields)
    seen: set[str] = set()
    for rule in policy:
        if rule.field not in known:
            raise ConfigurationError(f"Merge rule for unknown field '{rule.field}'")
        if rule.field in seen:
            raise ConfigurationError(f"Duplicate merge rule for field '{rule.field}'")
        seen.add(rule.field)
        if rule.field in NEVER_INFERRED_FIELDS and rule.strategy != MergeStrategy.PRESERVE_NEVER_INFER:
            raise ConfigurationError(
                f"Field '{rule.field}' must use {MergeStrategy.PRESERVE_NEVER_INFER.value}"
            )
        if rule.field in NEVER_DOWNGRADED_FIELDS and rule.strategy != MergeStrategy.KEEP_HARDWARE_JOB:
            raise ConfigurationError(
                f"Field '{rule.field}' must use {MergeStrategy.KEEP_HARDWARE_JOB.value}"
            )
        if rule.field in HUMAN_OWNED_FIELDS and rule.strategy not in (
            MergeStrategy.PRESERVE,
            MergeStrategy.PRESERVE_NEVER_INFER,
        ):
            raise ConfigurationError(f"Human-owned field '{rule.field}' must be preserved")
    missing = known - seen
    if missing:
        raise ConfigurationError(f"Merge policy has no rule for {sorted(missing)}")


@dataclass
class MergeOutcome:
    """Merged field values plus what the merge had to flag."""

    fields: dict[str, Any] = field(default_factory=dict)
    retained_undetected: list[str] = field(default_factory=list)
    preserved_fields: list[str] = field(default_factory=list)


def _is_set(value: Any) -> bool:
    return value is not None and value != "" and value != [] and value != {}


def _recompute_retain(previous: Optional[list[str]], fresh: Optional[list[str]]) -> tuple[list[str], list[str]]:
    fresh = list(fresh or [])
    seen = {canonical_signature(item) for item in fresh}
    retained = []
    for item in previous or []:
        if canonical_signature(item) not in seen:
            retained.append(item)
            seen.add(canonical_signature(item))
    return fresh + retained, retained


def apply_merge_policy(
    policy: tuple[FieldMergeRule, ...],
    previous: Mapping[str, Any],
    fresh: Mapping[str, Any],
) -> MergeOutcome:
    """Combine previous and freshly inferred field values.

    Args:
        policy: Ordered merge rules.
        previous: Field values from the previous header (may be partial or empty).
        fresh: Values the generator inferred for this run.  For
            ``RECOMPUTE_RETAIN`` fields a ``None`` fresh value means the
            fingerprint is unknown and the previous list is kept unchanged.

    Returns:
        ``MergeOutcome`` with the merged values.
    """
    outcome = MergeOutcome()
    for rule in policy:
        prev = previous.get(rule.field)
        new = fresh.get(rule.field)
        if rule.strategy == MergeStrategy.PRESERVE:
            if prev is not None:
                outcome.fields[rule.field] = prev
                outcome.preserved_fields.append(rule.field)
            else:
                outcome.fields[rule.field] = new
        elif rule.strategy == MergeStrategy.PRESERVE_NEVER_INFER:
            outcome.fields[rule.field] = prev
            if prev is not None:
                outcome.preserved_fields.append(rule.field)
        elif rule.strategy == MergeStrategy.RECOMPUTE_RETAIN:
            if new is None:
                outcome.fields[rule.field] = list(prev) if prev is not None else []
            else:
                merged, retained = _recompute_retain(prev, new)
                outcome.fields[rule.field] = merged
                outcome.retained_undetected.extend(retained)
        elif rule.strategy == MergeStrategy.REFRESH:
            outcome.fields[rule.field] = new
        elif rule.strategy == MergeStrategy.KEEP_PREVIOUS:
            outcome.fields[rule.field] = prev if _is_set(prev) else new
        elif rule.strategy == MergeStrategy.KEEP_HARDWARE_JOB:
            if prev == ArtifactKind.HARDWARE_JOB and new != ArtifactKind.HARDWARE_JOB:
                outcome.fields[rule.field] = prev
                outcome.preserved_fields.append(rule.field)
            else:
                outcome.fields[rule.field] = new
    return outcome


def check_preservation(previous: Mapping[str, Any], produced: HeaderRecord) -> None:
    """Verify human-owned fields survived regeneration.

    Only identical or additive changes are allowed: a previous mapping's keys
    and values must all still be present, and previous text must be kept.

    Raises:
        PreservationViolation: If a human-owned field was dropped or altered.
    """
    for name in HUMAN_OWNED_FIELDS:
        before = previous.get(name)
        if before is None:
            continue
        after = getattr(produced, name)
        if isinstance(before, dict):
            if not isinstance(after, dict) or any(
                k not in after or after[k] != v for k, v in before.items()
            ):
                raise PreservationViolation(name, produced.artifact_path)
        elif after is None or not str(after).startswith(str(before)):
            raise PreservationViolation(name, produced.artifact_path)
