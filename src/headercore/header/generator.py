"""
Header generator: synthesizes or refreshes a Contract-Header.

Merges freshly inferred values (interface points from the fingerprint, body
checksum, timestamp) with the previous header according to the merge policy
in ``merge.py``.  Human-authored notes and safety boundaries always survive;
safety boundaries are never invented.  A hardware job without them is
flagged ``requires_dry_run`` in the summary instead.

The clock is injected so repeated runs can be compared deterministically:
on unchanged content a second run changes nothing but ``last_generated``.

Usage::

    from headercore.header.generator import HeaderGenerator

    generator = HeaderGenerator(clock=lambda: fixed_time)
    result = generator.generate(
        artifact_path="jobs/cube.gcode",
        kind=ArtifactKind.HARDWARE_JOB,
        body=body,
        fingerprint=fingerprint,
        convention=convention,
        previous=parse_result,
    )
    print(result.header_text)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from headercore.contracts.types import ArtifactKind, ParseStatus
from headercore.conventions.schema import CommentConvention
from headercore.errors import ConfigurationError
from headercore.header.checksum import DEFAULT_ALGORITHM, SUPPORTED_ALGORITHMS, body_checksum
from headercore.header.fingerprint import ExtractorRegistry, Fingerprint, default_registry
from headercore.header.merge import (
    DEFAULT_MERGE_POLICY,
    FieldMergeRule,
    apply_merge_policy,
    check_preservation,
    validate_merge_policy,
)
from headercore.header.parser import DEFAULT_WINDOW_LINES
from headercore.header.schema import (
    HEADER_SCHEMA_VERSION,
    KEY_TO_FIELD,
    BoundaryValue,
    HeaderRecord,
    ParseResult,
)
from headercore.header.serializer import HeaderSerializer

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_MAX_DESCRIPTION_LENGTH = 200


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class GenerationSummary(BaseModel):
    """Structured summary of one generation, for CLIs and agents."""

    model_config = ConfigDict(extra="forbid")

    file: str
    kind: ArtifactKind
    description: Optional[str] = None
    inputs: list[str] = Field(default_factory=list)
    outputs: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    safety_boundaries: Optional[dict[str, BoundaryValue]] = None
    last_generated: datetime
    checksum: str
    previous_status: ParseStatus = ParseStatus.ABSENT
    retained_undetected: list[str] = Field(
        default_factory=list,
        description="Declared inputs/outputs kept although the fingerprint did not detect them",
    )
    preserved_fields: list[str] = Field(default_factory=list)
    unrecoverable_fields: list[str] = Field(
        default_factory=list,
        description="Keys of a malformed header that could not be re-parsed",
    )
    requires_dry_run: bool = False
    recovered_from_malformed: bool = False


class GenerationResult(BaseModel):
    """A generated record, its serialized block and the summary."""

    model_config = ConfigDict(extra="forbid")

    record: HeaderRecord
    header_lines: list[str]
    summary: GenerationSummary

    @property
    def header_text(self) -> str:
        return "\n".join(self.header_lines)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


def _previous_fields(previous: Optional[ParseResult]) -> dict[str, Any]:
    if previous is None or previous.status == ParseStatus.ABSENT:
        return {}
    if previous.record is not None:
        return {name: getattr(previous.record, name) for name in HeaderRecord.model_fields}
    return dict(previous.partial)


def _bound(text: Optional[str], limit: int) -> Optional[str]:
    if text is None:
        return None
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: max(limit - 3, 0)].rstrip() + "..."


class HeaderGenerator:
    """Produces new header records from a body, fingerprint and previous header."""

    def __init__(
        self,
        registry: Optional[ExtractorRegistry] = None,
        serializer: Optional[HeaderSerializer] = None,
        clock: Clock = utc_now,
        merge_policy: tuple[FieldMergeRule, ...] = DEFAULT_MERGE_POLICY,
        max_description_length: int = DEFAULT_MAX_DESCRIPTION_LENGTH,
        checksum_algorithm: str = DEFAULT_ALGORITHM,
        window_lines: int = DEFAULT_WINDOW_LINES,
    ) -> None:
        validate_merge_policy(merge_policy)
        if checksum_algorithm not in SUPPORTED_ALGORITHMS:
            raise ConfigurationError(f"Unsupported checksum algorithm '{checksum_algorithm}'")
        self._registry = registry or default_registry()
        self._serializer = serializer or HeaderSerializer()
        self._clock = clock
        self._merge_policy = merge_policy
        self._max_description_length = max_description_length
        self._checksum_algorithm = checksum_algorithm
        self._window_lines = window_lines

    def _fresh_fields(
        self,
        artifact_path: str,
        kind: ArtifactKind,
        body: str,
        fingerprint: Fingerprint,
    ) -> dict[str, Any]:
        description = self._registry.describe(kind, body, artifact_path)
        if not description:
            description = f"{kind.value} artifact {PurePosixPath(artifact_path).name}"
        return {
            "artifact_path": artifact_path,
            "kind": kind,
            "schema_version": HEADER_SCHEMA_VERSION,
            "description": description,
            "inputs": fingerprint.inputs() if fingerprint.known else None,
            "outputs": fingerprint.outputs() if fingerprint.known else None,
            "dependencies": [],
            "confidence": None,
            "action_required": [],
            "extra_fields": {},
            "notes": None,
            "safety_boundaries": None,
            "last_generated": self._clock(),
            "checksum": body_checksum(body, self._checksum_algorithm),
        }

    def generate(
        self,
        *,
        artifact_path: str,
        kind: ArtifactKind,
        body: str,
        fingerprint: Fingerprint,
        convention: CommentConvention,
        previous: Optional[ParseResult] = None,
        preamble_lines: int = 0,
    ) -> GenerationResult:
        """Generate a header for ``body``.

        Args:
            artifact_path: Posix path recorded in ``File``.
            kind: Artifact kind.
            body: Current body with the header removed.
            fingerprint: Fingerprint of ``body``.
            convention: Comment convention to serialize with.
            previous: Parse result of the existing header, if any.
            preamble_lines: Lines above the header, so the block still fits
                inside the parser's window.

        Returns:
            ``GenerationResult`` with the record, its block and a summary.

        Raises:
            PreservationViolation: If the merge would drop a human field.
        """
        prev = _previous_fields(previous)
        fresh = self._fresh_fields(artifact_path, kind, body, fingerprint)
        outcome = apply_merge_policy(self._merge_policy, prev, fresh)
        fields = outcome.fields
        fields["description"] = _bound(fields["description"], self._max_description_length)

        record = HeaderRecord(**fields)
        check_preservation(prev, record)

        lines = self._serializer.render(
            record, convention, max_lines=self._window_lines - preamble_lines
        )
        if len(lines) > self._window_lines - preamble_lines:
            logger.warning(
                "Header for %s spans %d lines and will not fit the %d-line parse window",
                artifact_path,
                len(lines),
                self._window_lines,
            )

        previous_status = previous.status if previous is not None else ParseStatus.ABSENT
        malformed = previous_status == ParseStatus.MALFORMED
        unrecoverable = list(previous.unparsed_fields) if malformed and previous else []
        requires_dry_run = record.kind == ArtifactKind.HARDWARE_JOB and record.safety_boundaries is None

        if outcome.retained_undetected:
            logger.info(
                "Kept %d declared interface point(s) not detected in %s: %s",
                len(outcome.retained_undetected),
                artifact_path,
                outcome.retained_undetected,
            )
        if unrecoverable:
            logger.warning(
                "Malformed header in %s: could not recover %s",
                artifact_path,
                [KEY_TO_FIELD.get(k, k) for k in unrecoverable],
            )

        summary = GenerationSummary(
            file=record.artifact_path,
            kind=record.kind,
            description=record.description,
            inputs=list(record.inputs or []),
            outputs=list(record.outputs or []),
            dependencies=list(record.dependencies),
            safety_boundaries=record.safety_boundaries,
            last_generated=record.last_generated,
            checksum=record.checksum,
            previous_status=previous_status,
            retained_undetected=outcome.retained_undetected,
            preserved_fields=outcome.preserved_fields,
            unrecoverable_fields=unrecoverable,
            requires_dry_run=requires_dry_run,
            recovered_from_malformed=malformed,
        )
        return GenerationResult(record=record, header_lines=lines, summary=summary)

    @staticmethod
    def is_idempotent(first: HeaderRecord, second: HeaderRecord) -> bool:
        """Whether two generations differ only in ``last_generated``."""
        exclude = {"last_generated"}
        return first.model_dump(exclude=exclude) == second.model_dump(exclude=exclude)
