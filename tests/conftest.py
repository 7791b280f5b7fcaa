"""
Pytest configuration and fixtures for headercore tests.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Generator

import pytest

from headercore.config import HeaderCoreConfig, reset_config
from headercore.contracts.types import ArtifactKind
from headercore.conventions.loader import ConventionLoader, default_convention_table
from headercore.conventions.schema import ConventionTable
from headercore.engine import HeaderEngine
from headercore.header.generator import HeaderGenerator
from headercore.header.parser import HeaderParser


FIXED_TIME = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
LATER_TIME = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Drop HEADERCORE_* variables and reset the config singleton per test."""
    for key in list(os.environ):
        if key.startswith("HEADERCORE_"):
            monkeypatch.delenv(key)
    reset_config()
    ConventionLoader.clear_cache()
    yield
    reset_config()
    ConventionLoader.clear_cache()


# ============================================================================
# Clock Fixtures
# ============================================================================


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_TIME


@pytest.fixture
def later_clock() -> Callable[[], datetime]:
    return lambda: LATER_TIME


# ============================================================================
# Component Fixtures
# ============================================================================


@pytest.fixture
def table() -> ConventionTable:
    return default_convention_table()


@pytest.fixture
def parser(table: ConventionTable) -> HeaderParser:
    return HeaderParser(table)


@pytest.fixture
def generator(fixed_clock) -> HeaderGenerator:
    return HeaderGenerator(clock=fixed_clock)


@pytest.fixture
def code_convention(table: ConventionTable):
    return table.preferred_convention(ArtifactKind.CODE, "src/app.py")


@pytest.fixture
def job_convention(table: ConventionTable):
    return table.preferred_convention(ArtifactKind.HARDWARE_JOB, "jobs/cube.gcode")


# ============================================================================
# Artifact Fixtures
# ============================================================================


@pytest.fixture
def make_artifact(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write ``content`` to ``relative`` under tmp_path and return the path."""

    def _make(relative: str, content: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _make


@pytest.fixture
def engine(tmp_path: Path, fixed_clock) -> HeaderEngine:
    return HeaderEngine(config=HeaderCoreConfig(), root=tmp_path, clock=fixed_clock)


@pytest.fixture
def sample_python() -> str:
    return (
        '"""Loads sensor frames from disk."""\n'
        "\n"
        "import os\n"
        "\n"
        "\n"
        "def load_frames(path, limit=10):\n"
        "    return os.environ.get('FRAME_DIR', path)\n"
        "\n"
        "\n"
        "def _helper():\n"
        "    pass\n"
    )


@pytest.fixture
def sample_gcode() -> str:
    return (
        "; Calibration cube\n"
        "M140 S60\n"
        "M104 S210\n"
        "G1 X10 Y10 F1500\n"
    )
