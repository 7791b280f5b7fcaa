"""Tests for headercore.header.merge."""

from __future__ import annotations

import pytest

from headercore.contracts.types import ArtifactKind, MergeStrategy
from headercore.errors import ConfigurationError, PreservationViolation
from headercore.header.merge import (
    DEFAULT_MERGE_POLICY,
    FieldMergeRule,
    apply_merge_policy,
    check_preservation,
    validate_merge_policy,
)
from headercore.header.schema import HeaderRecord


def _replace_rule(field, strategy):
    return tuple(
        FieldMergeRule(field, strategy) if rule.field == field else rule
        for rule in DEFAULT_MERGE_POLICY
    )


def _record(**kwargs):
    return HeaderRecord(artifact_path="src/a.py", kind=ArtifactKind.CODE, **kwargs)


# ---------------------------------------------------------------------------
# Policy validation
# ---------------------------------------------------------------------------


class TestValidateMergePolicy:
    def test_default_policy_is_valid(self):
        validate_merge_policy(DEFAULT_MERGE_POLICY)

    def test_notes_must_be_preserved(self):
        with pytest.raises(ConfigurationError, match="notes"):
            validate_merge_policy(_replace_rule("notes", MergeStrategy.REFRESH))

    def test_boundaries_must_never_be_inferred(self):
        with pytest.raises(ConfigurationError, match="safety_boundaries"):
            validate_merge_policy(_replace_rule("safety_boundaries", MergeStrategy.PRESERVE))

    def test_every_field_needs_a_rule(self):
        with pytest.raises(ConfigurationError, match="no rule"):
            validate_merge_policy(DEFAULT_MERGE_POLICY[:-1])

    def test_kind_must_never_be_downgraded(self):
        with pytest.raises(ConfigurationError, match="kind"):
            validate_merge_policy(_replace_rule("kind", MergeStrategy.REFRESH))

    def test_duplicate_rule(self):
        with pytest.raises(ConfigurationError, match="Duplicate"):
            validate_merge_policy(DEFAULT_MERGE_POLICY + (DEFAULT_MERGE_POLICY[0],))

    def test_unknown_field(self):
        policy = DEFAULT_MERGE_POLICY + (FieldMergeRule("owner", MergeStrategy.REFRESH),)
        with pytest.raises(ConfigurationError, match="unknown field"):
            validate_merge_policy(policy)


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


class TestApplyMergePolicy:
    def test_human_notes_survive(self):
        outcome = apply_merge_policy(
            DEFAULT_MERGE_POLICY, {"notes": "Calibrated by hand."}, {"notes": None}
        )
        assert outcome.fields["notes"] == "Calibrated by hand."
        assert "notes" in outcome.preserved_fields

    def test_boundaries_never_taken_from_fresh(self):
        outcome = apply_merge_policy(
            DEFAULT_MERGE_POLICY, {}, {"safety_boundaries": {"maxTemp": 300}}
        )
        assert outcome.fields["safety_boundaries"] is None

    def test_boundaries_kept_verbatim(self):
        previous = {"safety_boundaries": {"maxTemp": 245, "dutyCycle": 0.8}}
        outcome = apply_merge_policy(DEFAULT_MERGE_POLICY, previous, {})
        assert outcome.fields["safety_boundaries"] == {"maxTemp": 245, "dutyCycle": 0.8}

    def test_undetected_inputs_are_retained(self):
        outcome = apply_merge_policy(
            DEFAULT_MERGE_POLICY,
            {"inputs": ["env:A", "param:manual"]},
            {"inputs": ["env:A", "env:B"]},
        )
        assert outcome.fields["inputs"] == ["env:A", "env:B", "param:manual"]
        assert outcome.retained_undetected == ["param:manual"]

    def test_unknown_fingerprint_keeps_previous_lists(self):
        outcome = apply_merge_policy(
            DEFAULT_MERGE_POLICY, {"outputs": ["run()"]}, {"outputs": None}
        )
        assert outcome.fields["outputs"] == ["run()"]
        assert outcome.retained_undetected == []

    def test_refresh_fields_take_fresh_value(self):
        outcome = apply_merge_policy(
            DEFAULT_MERGE_POLICY, {"checksum": "sha256:aa"}, {"checksum": "sha256:bb"}
        )
        assert outcome.fields["checksum"] == "sha256:bb"

    def test_hardware_job_tag_survives_regeneration(self):
        outcome = apply_merge_policy(
            DEFAULT_MERGE_POLICY,
            {"kind": ArtifactKind.HARDWARE_JOB},
            {"kind": ArtifactKind.CODE},
        )
        assert outcome.fields["kind"] == ArtifactKind.HARDWARE_JOB
        assert "kind" in outcome.preserved_fields

    def test_other_kinds_follow_routing(self):
        outcome = apply_merge_policy(
            DEFAULT_MERGE_POLICY,
            {"kind": ArtifactKind.DOCUMENT},
            {"kind": ArtifactKind.CODE},
        )
        assert outcome.fields["kind"] == ArtifactKind.CODE

    def test_keep_previous_falls_back_when_empty(self):
        outcome = apply_merge_policy(
            DEFAULT_MERGE_POLICY,
            {"description": "", "confidence": 70},
            {"description": "Fresh text", "confidence": None},
        )
        assert outcome.fields["description"] == "Fresh text"
        assert outcome.fields["confidence"] == 70


# ---------------------------------------------------------------------------
# Preservation check
# ---------------------------------------------------------------------------


class TestCheckPreservation:
    def test_additive_notes_allowed(self):
        check_preservation({"notes": "Keep"}, _record(notes="Keep\nand more"))

    def test_dropped_notes_raise(self):
        with pytest.raises(PreservationViolation) as exc_info:
            check_preservation({"notes": "Keep"}, _record())
        assert exc_info.value.field == "notes"
        assert exc_info.value.artifact_path == "src/a.py"

    def test_changed_boundary_raises(self):
        with pytest.raises(PreservationViolation):
            check_preservation(
                {"safety_boundaries": {"maxTemp": 245}},
                _record(safety_boundaries={"maxTemp": 300}),
            )

    def test_added_boundary_allowed(self):
        check_preservation(
            {"safety_boundaries": {"maxTemp": 245}},
            _record(safety_boundaries={"maxTemp": 245, "maxPower": 40}),
        )
