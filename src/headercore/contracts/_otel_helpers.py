"""
Shared OTel span event emission helper for the engine's domain modules.

Provides ``add_span_event()``: the single implementation used by the
``header``, ``safety`` and ``graph`` ``otel.py`` modules, so each of them does
not repeat the span recording check.

Usage::

    from headercore.contracts._otel_helpers import add_span_event

    add_span_event("header.generated", {"header.path": "src/app.py"})
"""

from __future__ import annotations

from opentelemetry import trace as otel_trace


def add_span_event(
    name: str, attributes: dict[str, str | int | float | bool]
) -> None:
    """Add an event to the current OTel span if it is recording.

    No-op when no span is active or the current span is not recording.

    Args:
        name: Event name (e.g. ``"safety.gate.decision"``).
        attributes: Flat dict of span event attributes.
    """
    span = otel_trace.get_current_span()
    if span and span.is_recording():
        span.add_event(name=name, attributes=attributes)
