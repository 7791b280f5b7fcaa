"""
Staleness evaluator: how well a header agrees with the current content.

States:

- ``ABSENT``: no header block found.
- ``MALFORMED``: header marker found, fields unparsable.
- ``STALE``: the header parses but disagrees with the content: checksum
  mismatch, interface points the header does not declare, missing required
  keys, a recorded ``File`` that no longer matches, or no checksum and no
  usable fingerprint to vouch for the content.
- ``VALID``: everything agrees.

The evaluation is a pure classification, recomputed on every call; nothing
is stored between runs.

Usage::

    from headercore.header.staleness import StalenessEvaluator

    evaluation = StalenessEvaluator().evaluate(parse_result, fingerprint, body)
    if evaluation.needs_regeneration:
        ...
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from headercore.contracts.types import ConditionCode, ParseStatus, StalenessState, StaleReason
from headercore.header.checksum import checksum_matches
from headercore.header.fingerprint import Fingerprint
from headercore.header.schema import MANDATORY_KEYS, ParseResult

logger = logging.getLogger(__name__)


class Evaluation(BaseModel):
    """Classification of one artifact's header."""

    model_config = ConfigDict(extra="forbid")

    state: StalenessState
    reasons: list[StaleReason] = Field(default_factory=list)
    undeclared_points: list[str] = Field(default_factory=list)
    missing_fields: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def needs_regeneration(self) -> bool:
        return self.state != StalenessState.VALID

    @property
    def conditions(self) -> list[ConditionCode]:
        """Engine condition codes this evaluation signals."""
        codes = []
        if self.state == StalenessState.MALFORMED:
            codes.append(ConditionCode.PARSE_MALFORMED)
        if StaleReason.CHECKSUM_MISMATCH in self.reasons:
            codes.append(ConditionCode.CHECKSUM_MISMATCH)
        if StaleReason.FINGERPRINT_DRIFT in self.reasons:
            codes.append(ConditionCode.FINGERPRINT_DRIFT)
        return codes


def _same_path(recorded: str, actual: str) -> bool:
    return PurePosixPath(recorded.replace("\\", "/")) == PurePosixPath(actual.replace("\\", "/"))


class StalenessEvaluator:
    """Classifies a parse result against the current fingerprint and body."""

    def evaluate(
        self,
        parse: ParseResult,
        fingerprint: Fingerprint,
        body: str,
        artifact_path: Optional[str] = None,
    ) -> Evaluation:
        """Classify a header.

        Args:
            parse: Parser output for the artifact.
            fingerprint: Freshly extracted fingerprint of the body.
            body: Current body (header excluded), used to recompute the checksum.
            artifact_path: Actual artifact path; when given, a header whose
                ``File`` differs is STALE.

        Returns:
            ``Evaluation`` with the state and the reasons behind it.
        """
        if parse.status == ParseStatus.ABSENT:
            return Evaluation(state=StalenessState.ABSENT)
        if parse.status == ParseStatus.MALFORMED or parse.record is None:
            return Evaluation(state=StalenessState.MALFORMED, errors=list(parse.errors))

        record = parse.record
        reasons: list[StaleReason] = []

        missing = [k for k in MANDATORY_KEYS if k not in parse.present_keys]
        missing += [k for k in record.missing_mandatory_keys() if k not in missing]
        if missing:
            reasons.append(StaleReason.MISSING_FIELD)

        if record.checksum is not None:
            if not checksum_matches(record.checksum, body):
                reasons.append(StaleReason.CHECKSUM_MISMATCH)
        elif not fingerprint.known:
            reasons.append(StaleReason.UNVERIFIABLE)

        undeclared = fingerprint.undeclared(record.declared_interface())
        if undeclared:
            reasons.append(StaleReason.FINGERPRINT_DRIFT)

        if artifact_path is not None and not _same_path(record.artifact_path, artifact_path):
            reasons.append(StaleReason.PATH_MISMATCH)

        state = StalenessState.STALE if reasons else StalenessState.VALID
        if reasons:
            logger.debug(
                "Stale header: path=%s reasons=%s",
                record.artifact_path,
                [r.value for r in reasons],
            )
        return Evaluation(
            state=state,
            reasons=reasons,
            undeclared_points=[p.signature for p in undeclared],
            missing_fields=missing,
        )
