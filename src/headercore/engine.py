"""
Header lifecycle engine: the operational surface.

``HeaderEngine`` wires the parser, fingerprint extractors, staleness
evaluator, generator, safety gate and dependency graph together:

- ``scan(paths)``: staleness state per artifact, nothing written;
- ``update(paths, write=True)``: regenerate stale, absent and malformed
  headers, writing each file atomically;
- ``verify(paths)``: safety gate disposition per artifact, nothing written;
- ``graph(paths)``: dependency graph over the headers currently on disk;
- ``run_batch(paths, cancel_event=None)``: ``update`` on every artifact in
  parallel, then (after all of them finished) the dependency graph.

Every operation returns structured results.  Malformed headers, drift,
rejected boundaries, unresolved references and unreadable files are reported
inside the results, never raised.

Usage::

    from headercore.engine import HeaderEngine

    engine = HeaderEngine()
    report = engine.run_batch(["src/", "jobs/"])
    raise SystemExit(report.exit_code)
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

from opentelemetry import context as otel_context
from opentelemetry import trace
from pydantic import BaseModel, ConfigDict, Field

from headercore.config import HeaderCoreConfig, get_config
from headercore.contracts.types import (
    ArtifactKind,
    ConditionCode,
    ExitDisposition,
    GateDisposition,
    StalenessState,
    StaleReason,
)
from headercore.conventions.loader import load_convention_table
from headercore.conventions.schema import ConventionTable
from headercore.errors import HeaderCoreError
from headercore.graph.builder import GraphBuilder
from headercore.graph.otel import emit_propagation_complete
from headercore.graph.propagation import ConfidencePolicy, GraphReport
from headercore.header.fingerprint import ExtractorRegistry, Fingerprint, default_registry
from headercore.header.generator import (
    Clock,
    GenerationResult,
    GenerationSummary,
    HeaderGenerator,
    utc_now,
)
from headercore.header.merge import HUMAN_OWNED_FIELDS
from headercore.header.otel import emit_generation, emit_staleness
from headercore.header.parser import ArtifactParts, HeaderParser, split_artifact
from headercore.header.schema import FIELD_TO_KEY, KEY_SAFETY_BOUNDARIES, HeaderRecord, ParseResult
from headercore.header.serializer import HeaderSerializer, SerializationError, assemble_artifact
from headercore.header.staleness import Evaluation, StalenessEvaluator
from headercore.io_ops import expand_paths, read_artifact, write_artifact
from headercore.logger import HeaderEventLogger
from headercore.safety.gate import GateDecision, SafetyGate
from headercore.safety.otel import emit_gate_decision

logger = logging.getLogger(__name__)

_HUMAN_OWNED_KEYS = {FIELD_TO_KEY[name] for name in HUMAN_OWNED_FIELDS}


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class ScanResult(BaseModel):
    """Staleness of one artifact."""

    model_config = ConfigDict(extra="forbid")

    path: str
    kind: Optional[ArtifactKind] = None
    state: Optional[StalenessState] = None
    reasons: list[StaleReason] = Field(default_factory=list)
    undeclared_points: list[str] = Field(default_factory=list)
    missing_fields: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    conditions: list[ConditionCode] = Field(default_factory=list)
    error: Optional[str] = Field(None, description="Set when the artifact could not be processed")

    @property
    def is_valid(self) -> bool:
        return self.error is None and self.state == StalenessState.VALID


class UpdateResult(BaseModel):
    """Outcome of regenerating one artifact's header."""

    model_config = ConfigDict(extra="forbid")

    path: str
    kind: Optional[ArtifactKind] = None
    previous_state: Optional[StalenessState] = None
    disposition: ExitDisposition = ExitDisposition.VALID
    changed: bool = False
    written: bool = False
    header_text: Optional[str] = None
    summary: Optional[GenerationSummary] = None
    record: Optional[HeaderRecord] = None
    gate: Optional[GateDecision] = None
    conditions: list[ConditionCode] = Field(default_factory=list)
    error: Optional[str] = None


class VerifyResult(BaseModel):
    """Safety gate disposition for one artifact."""

    model_config = ConfigDict(extra="forbid")

    path: str
    kind: Optional[ArtifactKind] = None
    decision: Optional[GateDecision] = None
    disposition: ExitDisposition = ExitDisposition.VALID
    error: Optional[str] = None


class BatchReport(BaseModel):
    """Result of a parallel update run followed by graph construction."""

    model_config = ConfigDict(extra="forbid")

    results: list[UpdateResult] = Field(default_factory=list)
    graph: Optional[GraphReport] = None
    total: int = 0
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def partial(self) -> bool:
        return self.cancelled or self.processed < self.total

    @property
    def exit_code(self) -> int:
        return max((int(r.disposition) for r in self.results), default=0)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@dataclass
class _Loaded:
    path: Path
    identity: str
    kind: ArtifactKind
    text: str
    newline: str
    parse: ParseResult
    parts: ArtifactParts
    fingerprint: Fingerprint
    evaluation: Evaluation


def _gate_kind(
    routed: ArtifactKind, parse: ParseResult, record: Optional[HeaderRecord] = None
) -> ArtifactKind:
    # The routing, the parsed tag or the regenerated tag can each make an
    # artifact a hardware job.
    declared = parse.field_value("kind")
    produced = record.kind if record is not None else None
    if ArtifactKind.HARDWARE_JOB in (routed, declared, produced):
        return ArtifactKind.HARDWARE_JOB
    return routed


class HeaderEngine:
    """Runs header lifecycle operations over a set of artifact paths."""

    def __init__(
        self,
        config: Optional[HeaderCoreConfig] = None,
        table: Optional[ConventionTable] = None,
        registry: Optional[ExtractorRegistry] = None,
        clock: Clock = utc_now,
        root: Optional[Path] = None,
    ) -> None:
        """
        Args:
            config: Settings; the global configuration when omitted.
            table: Convention table; loaded from ``config.conventions_file``
                (or the built-in defaults) when omitted.
            registry: Fingerprint extractors per kind.
            clock: Source of ``LastGenerated`` timestamps.
            root: Directory that recorded ``File`` paths are relative to.

        Raises:
            ConfigurationError: If the convention table cannot be loaded.
        """
        self.config = config or get_config()
        self.table = table or load_convention_table(self.config.get_conventions_path())
        self.root = (root or Path.cwd()).resolve()
        self.registry = registry or default_registry()
        self.parser = HeaderParser(self.table, window_lines=self.config.window_lines)
        self.evaluator = StalenessEvaluator()
        self.generator = HeaderGenerator(
            registry=self.registry,
            serializer=HeaderSerializer(),
            clock=clock,
            max_description_length=self.config.max_description_length,
            checksum_algorithm=self.config.checksum_algorithm,
            window_lines=self.config.window_lines,
        )
        self.gate = SafetyGate(self.table)
        self.graph_builder = GraphBuilder(
            ConfidencePolicy(
                unresolved_tier_penalty=self.config.unresolved_tier_penalty,
                penalty_per_missing=self.config.penalty_per_missing,
            )
        )
        self.events = HeaderEventLogger(scope=self.root.name or str(self.root))
        self._tracer = trace.get_tracer("headercore.engine")

    # -- helpers ---------------------------------------------------------------

    def _identity(self, path: Path) -> str:
        absolute = path if path.is_absolute() else Path.cwd() / path
        try:
            relative = absolute.resolve().relative_to(self.root)
        except ValueError:
            return PurePosixPath(path.as_posix()).as_posix()
        return relative.as_posix()

    def _expand(self, paths: Iterable[Path | str]) -> list[Path]:
        return expand_paths(paths, self.table)

    def _load(self, path: Path) -> _Loaded:
        """Read, parse, fingerprint and classify one artifact.

        Raises:
            HeaderCoreError: If the file is unreadable or routed to no kind.
        """
        identity = self._identity(path)
        kind = self.table.kind_for_path(path)
        if kind is None:
            raise HeaderCoreError(f"No artifact kind is routed for '{path.name}'")
        text, newline = read_artifact(path)
        parse = self.parser.parse(text, kind, identity)
        parts = split_artifact(text, parse)
        fingerprint = self.registry.extract(kind, parts.body, identity)
        evaluation = self.evaluator.evaluate(parse, fingerprint, parts.body, identity)
        emit_staleness(identity, evaluation)
        return _Loaded(path, identity, kind, text, newline, parse, parts, fingerprint, evaluation)

    def _gate(self, loaded: _Loaded, record: Optional[HeaderRecord]) -> GateDecision:
        kind = _gate_kind(loaded.kind, loaded.parse, record)
        unparsable = KEY_SAFETY_BOUNDARIES in loaded.parse.unparsed_fields
        if record is not None:
            decision = self.gate.evaluate(kind, record, unparsable_boundaries=unparsable)
        else:
            decision = self.gate.evaluate_boundaries(
                kind, loaded.parse.partial.get("safety_boundaries"), unparsable
            )
        emit_gate_decision(loaded.identity, decision)
        return decision

    def _generate(self, loaded: _Loaded) -> GenerationResult:
        previous = loaded.parse if not loaded.parse.is_absent else None
        candidates = []
        if loaded.parse.convention is not None:
            candidates.append(loaded.parse.convention)
        candidates += [
            c for c in self.table.conventions_for(loaded.kind, loaded.path) if c not in candidates
        ]
        error: Optional[SerializationError] = None
        for convention in candidates:
            try:
                return self.generator.generate(
                    artifact_path=loaded.identity,
                    kind=loaded.kind,
                    body=loaded.parts.body,
                    fingerprint=loaded.fingerprint,
                    convention=convention,
                    previous=previous,
                    preamble_lines=len(loaded.parts.preamble),
                )
            except SerializationError as exc:
                logger.debug("Convention %s unusable for %s: %s", convention, loaded.identity, exc)
                error = exc
        raise error or SerializationError(f"No comment convention configured for {loaded.identity}")

    # -- per-artifact operations ----------------------------------------------

    def _scan_one(self, path: Path) -> ScanResult:
        with self._tracer.start_as_current_span("headercore.scan_artifact") as span:
            span.set_attribute("header.path", str(path))
            try:
                loaded = self._load(path)
            except HeaderCoreError as exc:
                logger.warning("Cannot scan %s: %s", path, exc)
                return ScanResult(path=str(path), error=str(exc))
            evaluation = loaded.evaluation
            span.set_attribute("header.state", evaluation.state.value)
            self.events.log_scanned(
                loaded.identity, evaluation.state.value, [r.value for r in evaluation.reasons]
            )
            return ScanResult(
                path=str(path),
                kind=loaded.kind,
                state=evaluation.state,
                reasons=evaluation.reasons,
                undeclared_points=evaluation.undeclared_points,
                missing_fields=evaluation.missing_fields,
                errors=evaluation.errors,
                conditions=evaluation.conditions,
            )

    def _update_one(self, path: Path, write: bool) -> UpdateResult:
        with self._tracer.start_as_current_span("headercore.update_artifact") as span:
            span.set_attribute("header.path", str(path))
            try:
                return self._update_loaded(self._load(path), write, span)
            except HeaderCoreError as exc:
                logger.warning("Cannot update %s: %s", path, exc)
                return UpdateResult(path=str(path), error=str(exc))
            except OSError as exc:
                logger.warning("Cannot write %s: %s", path, exc)
                return UpdateResult(path=str(path), error=f"write failed: {exc}")

    def _update_loaded(self, loaded: _Loaded, write: bool, span: trace.Span) -> UpdateResult:
        evaluation = loaded.evaluation
        state = evaluation.state
        span.set_attribute("header.previous_state", state.value)
        result = UpdateResult(
            path=str(loaded.path),
            kind=loaded.kind,
            previous_state=state,
            conditions=evaluation.conditions,
        )

        if state == StalenessState.VALID:
            result.record = loaded.parse.record
            result.gate = self._gate(loaded, result.record)
            if result.gate.disposition == GateDisposition.REJECT:
                result.disposition = ExitDisposition.SAFETY_REJECTED
            result.conditions += result.gate.conditions
            return result

        blocked = sorted(_HUMAN_OWNED_KEYS.intersection(loaded.parse.unparsed_fields))
        if blocked:
            # Rewriting would drop human-authored text that failed to parse.
            result.gate = self._gate(loaded, None)
            result.conditions += result.gate.conditions
            result.disposition = max(
                ExitDisposition.MALFORMED_RECOVERED,
                ExitDisposition.SAFETY_REJECTED
                if result.gate.disposition == GateDisposition.REJECT
                else ExitDisposition.VALID,
            )
            result.error = f"not regenerated: unparsable human-authored field(s) {blocked}"
            logger.warning("Not regenerating %s: %s", loaded.identity, result.error)
            return result

        generation = self._generate(loaded)
        emit_generation(generation)
        new_text = assemble_artifact(loaded.parts.preamble, generation.header_lines, loaded.parts.body)
        result.changed = new_text != loaded.text
        result.header_text = generation.header_text
        result.summary = generation.summary
        result.record = generation.record

        if write and result.changed:
            write_artifact(loaded.path, new_text, newline=loaded.newline)
            result.written = True

        if state == StalenessState.MALFORMED:
            result.disposition = ExitDisposition.MALFORMED_RECOVERED
            self.events.log_recovered(
                loaded.identity, generation.summary.unrecoverable_fields, result.written
            )
        else:
            result.disposition = ExitDisposition.REGENERATED
            self.events.log_regenerated(
                loaded.identity, state.value, result.written, generation.summary.retained_undetected
            )
        logger.info(
            "Regenerated header for %s (previous state %s, written=%s)",
            loaded.identity,
            state.value,
            result.written,
        )

        result.gate = self._gate(loaded, generation.record)
        result.conditions += result.gate.conditions
        if result.gate.disposition == GateDisposition.REJECT:
            result.disposition = ExitDisposition.SAFETY_REJECTED
        span.set_attribute("header.disposition", int(result.disposition))
        return result

    def _verify_one(self, path: Path) -> VerifyResult:
        with self._tracer.start_as_current_span("headercore.verify_artifact") as span:
            span.set_attribute("header.path", str(path))
            try:
                loaded = self._load(path)
            except HeaderCoreError as exc:
                logger.warning("Cannot verify %s: %s", path, exc)
                return VerifyResult(path=str(path), error=str(exc))
            decision = self._gate(loaded, loaded.parse.record)
            self.events.log_gate_decision(loaded.identity, decision.disposition.value, decision.reason)
            span.set_attribute("safety.disposition", decision.disposition.value)
            return VerifyResult(
                path=str(path),
                kind=_gate_kind(loaded.kind, loaded.parse),
                decision=decision,
                disposition=(
                    ExitDisposition.SAFETY_REJECTED
                    if decision.disposition == GateDisposition.REJECT
                    else ExitDisposition.VALID
                ),
            )

    # -- public operations -----------------------------------------------------

    def scan(self, paths: Iterable[Path | str]) -> list[ScanResult]:
        """Classify every artifact under ``paths``."""
        with self._tracer.start_as_current_span("headercore.scan"):
            return [self._scan_one(p) for p in self._expand(paths)]

    def update(self, paths: Iterable[Path | str], write: bool = True) -> list[UpdateResult]:
        """Regenerate headers that are not VALID; ``write=False`` only computes."""
        with self._tracer.start_as_current_span("headercore.update") as span:
            span.set_attribute("headercore.write", write)
            return [self._update_one(p, write) for p in self._expand(paths)]

    def verify(self, paths: Iterable[Path | str]) -> list[VerifyResult]:
        """Safety gate disposition for every artifact; nothing is modified."""
        with self._tracer.start_as_current_span("headercore.verify"):
            return [self._verify_one(p) for p in self._expand(paths)]

    def graph(self, paths: Iterable[Path | str]) -> GraphReport:
        """Dependency graph over the headers currently parsed from disk.

        Artifacts without a parsable header are left out of the graph.
        """
        with self._tracer.start_as_current_span("headercore.graph"):
            records = []
            for path in self._expand(paths):
                try:
                    loaded = self._load(path)
                except HeaderCoreError as exc:
                    logger.warning("Skipping %s in graph: %s", path, exc)
                    continue
                if loaded.parse.record is None:
                    logger.debug("Skipping %s in graph: header %s", path, loaded.evaluation.state.value)
                    continue
                records.append(loaded.parse.record)
            return self._build_graph(records)

    def _build_graph(self, records: list[HeaderRecord]) -> GraphReport:
        report = self.graph_builder.build_report(records)
        emit_propagation_complete(report)
        self.events.log_graph_built(
            nodes=len(report.nodes),
            edges=report.edge_count,
            unresolved=len(report.unresolved),
            cycles=len(report.cycles),
        )
        return report

    def run_batch(
        self,
        paths: Iterable[Path | str],
        cancel_event: Optional[threading.Event] = None,
        write: bool = True,
    ) -> BatchReport:
        """Update every artifact in parallel, then build the dependency graph.

        The graph is built only after every per-artifact task has finished.
        When ``cancel_event`` is set, artifacts not yet started are skipped,
        the graph is not built and the report is marked partial.  Headers
        already written stay written.
        """
        cancel_event = cancel_event or threading.Event()
        with self._tracer.start_as_current_span("headercore.run_batch") as span:
            targets = self._expand(paths)
            span.set_attribute("headercore.artifact_count", len(targets))
            parent_context = otel_context.get_current()

            def task(path: Path) -> Optional[UpdateResult]:
                if cancel_event.is_set():
                    return None
                token = otel_context.attach(parent_context)
                try:
                    return self._update_one(path, write)
                finally:
                    otel_context.detach(token)

            futures: list[Future] = []
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                for path in targets:
                    if cancel_event.is_set():
                        break
                    futures.append(pool.submit(task, path))
            # All futures are complete here.
            results = [r for r in (f.result() for f in futures) if r is not None]

            report = BatchReport(results=results, total=len(targets))
            if cancel_event.is_set():
                report.cancelled = True
                span.set_attribute("headercore.cancelled", True)
                self.events.log_batch_cancelled(processed=len(results), total=len(targets))
                logger.warning(
                    "Batch cancelled after %d of %d artifacts; dependency graph skipped",
                    len(results),
                    len(targets),
                )
                return report

            report.graph = self._build_graph([r.record for r in results if r.record is not None])
            span.set_attribute("headercore.exit_code", report.exit_code)
            return report
