"""Tests for OTel span event emission helpers for the header lifecycle."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

import pytest

from headercore.contracts.types import ArtifactKind, StalenessState, StaleReason
from headercore.header.fingerprint import default_registry
from headercore.header.otel import emit_generation, emit_staleness
from headercore.header.staleness import Evaluation


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


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


def _event(span):
    call = span.add_event.call_args
    return call.kwargs["name"], call.kwargs["attributes"]


# ---------------------------------------------------------------------------
# emit_staleness
# ---------------------------------------------------------------------------


class TestEmitStaleness:
    def test_stale_attributes(self, mock_otel):
        evaluation = Evaluation(
            state=StalenessState.STALE,
            reasons=[StaleReason.CHECKSUM_MISMATCH, StaleReason.FINGERPRINT_DRIFT],
            undeclared_points=["start(port)"],
        )
        emit_staleness("src/app.py", evaluation)

        name, attrs = _event(mock_otel)
        assert name == "header.staleness.evaluated"
        assert attrs["header.path"] == "src/app.py"
        assert attrs["header.state"] == "STALE"
        assert attrs["header.needs_regeneration"] is True
        assert attrs["header.undeclared_count"] == 1
        assert attrs["header.reasons"] == "checksum_mismatch,fingerprint_drift"

    def test_valid_has_no_reasons(self, mock_otel):
        emit_staleness("src/app.py", Evaluation(state=StalenessState.VALID))
        _, attrs = _event(mock_otel)
        assert "header.reasons" not in attrs
        assert attrs["header.needs_regeneration"] is False

    def test_malformed_logs_warning(self, mock_otel, caplog):
        evaluation = Evaluation(state=StalenessState.MALFORMED, errors=["line 2: bad"])
        with caplog.at_level(logging.WARNING, logger="headercore.header.otel"):
            emit_staleness("src/app.py", evaluation)
        assert "MALFORMED" in caplog.text

    def test_not_recording_is_noop(self, mock_otel):
        mock_otel.is_recording.return_value = False
        emit_staleness("src/app.py", Evaluation(state=StalenessState.ABSENT))
        mock_otel.add_event.assert_not_called()


# ---------------------------------------------------------------------------
# emit_generation
# ---------------------------------------------------------------------------


class TestEmitGeneration:
    def test_generation_attributes(self, mock_otel, generator, job_convention, sample_gcode):
        fingerprint = default_registry().extract(
            ArtifactKind.HARDWARE_JOB, sample_gcode, "jobs/cube.gcode"
        )
        result = generator.generate(
            artifact_path="jobs/cube.gcode",
            kind=ArtifactKind.HARDWARE_JOB,
            body=sample_gcode,
            fingerprint=fingerprint,
            convention=job_convention,
        )
        emit_generation(result)

        name, attrs = _event(mock_otel)
        assert name == "header.generated"
        assert attrs["header.path"] == "jobs/cube.gcode"
        assert attrs["header.kind"] == "hardware-job"
        assert attrs["header.previous_status"] == "absent"
        assert attrs["header.input_count"] == 3
        assert attrs["header.output_count"] == 0
        assert attrs["header.requires_dry_run"] is True
        assert attrs["header.recovered_from_malformed"] is False
        assert attrs["header.line_count"] == len(result.header_lines)
