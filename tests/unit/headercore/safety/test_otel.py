"""Tests for OTel span event emission for safety gate decisions."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

import pytest

from headercore.contracts.types import ArtifactKind, GateDisposition
from headercore.safety.gate import BoundaryViolation, GateDecision
from headercore.safety.otel import emit_gate_decision


@pytest.fixture
def mock_span():
    """Create a mock OTel span that is recording."""
    span = MagicMock()
    span.is_recording.return_value = True
    return span


@pytest.fixture
def mock_otel(mock_span):
    """Patch OTel to return our mock span."""
    with patch("headercore.contracts._otel_helpers.otel_trace") as mock_trace:
        mock_trace.get_current_span.return_value = mock_span
        yield mock_span


class TestEmitGateDecision:
    def test_execute_attributes(self, mock_otel):
        decision = GateDecision(
            disposition=GateDisposition.EXECUTE,
            kind=ArtifactKind.HARDWARE_JOB,
            boundaries={"maxTemp": 245, "dutyCycle": 0.8},
        )
        emit_gate_decision("jobs/cube.gcode", decision)

        call = mock_otel.add_event.call_args
        assert call.kwargs["name"] == "safety.gate.decision"
        attrs = call.kwargs["attributes"]
        assert attrs["safety.path"] == "jobs/cube.gcode"
        assert attrs["safety.kind"] == "hardware-job"
        assert attrs["safety.disposition"] == "EXECUTE"
        assert attrs["safety.boundary_count"] == 2
        assert attrs["safety.violation_count"] == 0

    def test_reject_caps_violation_attributes(self, mock_otel, caplog):
        violations = [
            BoundaryViolation(boundary=f"limit{i}", problem="missing") for i in range(5)
        ]
        decision = GateDecision(
            disposition=GateDisposition.REJECT,
            kind=ArtifactKind.HARDWARE_JOB,
            violations=violations,
            reason="too many problems",
        )
        with caplog.at_level(logging.WARNING, logger="headercore.safety.otel"):
            emit_gate_decision("jobs/cube.gcode", decision)

        attrs = mock_otel.add_event.call_args.kwargs["attributes"]
        assert attrs["safety.violation_count"] == 5
        assert attrs["safety.violation.0"] == "limit0"
        assert attrs["safety.violation.2"] == "limit2"
        assert "safety.violation.3" not in attrs
        assert "REJECT" in caplog.text
