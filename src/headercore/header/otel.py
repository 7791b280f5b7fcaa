"""
OTel span event emission helpers for the header lifecycle.

Log + optional OTel span event via the shared ``add_span_event()`` helper.
Events are dropped when the current span is not recording.

Usage::

    from headercore.header.otel import emit_generation, emit_staleness

    emit_staleness("src/app.py", evaluation)
    emit_generation(generation_result)
"""

from __future__ import annotations

import logging

from headercore.contracts._otel_helpers import add_span_event
from headercore.contracts.types import StalenessState
from headercore.header.generator import GenerationResult
from headercore.header.staleness import Evaluation

logger = logging.getLogger(__name__)


def emit_staleness(artifact_path: str, evaluation: Evaluation) -> None:
    """Emit ``header.staleness.evaluated`` for one artifact."""
    attrs: dict[str, str | int | float | bool] = {
        "header.path": artifact_path,
        "header.state": evaluation.state.value,
        "header.needs_regeneration": evaluation.needs_regeneration,
        "header.undeclared_count": len(evaluation.undeclared_points),
    }
    if evaluation.reasons:
        attrs["header.reasons"] = ",".join(r.value for r in evaluation.reasons)

    if evaluation.state == StalenessState.MALFORMED:
        logger.warning("Header MALFORMED: path=%s errors=%s", artifact_path, evaluation.errors)
    else:
        logger.debug("Header %s: path=%s", evaluation.state.value, artifact_path)

    add_span_event("header.staleness.evaluated", attrs)


def emit_generation(result: GenerationResult) -> None:
    """Emit ``header.generated`` for a generation result."""
    summary = result.summary
    attrs: dict[str, str | int | float | bool] = {
        "header.path": summary.file,
        "header.kind": summary.kind.value,
        "header.previous_status": summary.previous_status.value,
        "header.input_count": len(summary.inputs),
        "header.output_count": len(summary.outputs),
        "header.retained_undetected": len(summary.retained_undetected),
        "header.requires_dry_run": summary.requires_dry_run,
        "header.recovered_from_malformed": summary.recovered_from_malformed,
        "header.line_count": len(result.header_lines),
    }
    logger.debug(
        "Header generated: path=%s previous=%s lines=%d",
        summary.file,
        summary.previous_status.value,
        len(result.header_lines),
    )
    add_span_event("header.generated", attrs)
