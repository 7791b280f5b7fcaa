"""Tests for the comment convention table and its loader."""

from __future__ import annotations

import os
import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from headercore.contracts.types import ArtifactKind, CommentStyle
from headercore.conventions import (
    CommentConvention,
    ConventionLoader,
    ConventionTable,
    load_convention_table,
)
from headercore.errors import ConfigurationError


CUSTOM_TABLE_YAML = textwrap.dedent("""\
    kinds:
      code:
        extensions: [py]
        conventions:
          - style: line
            prefix: "#"
      hardware-job:
        extensions: [".gcode"]
        conventions:
          - style: line
            prefix: ";"
        mandatory_boundaries: [maxTemp, dutyCycle]
        numeric_boundaries: [maxTemp, dutyCycle]
""")


# ---------------------------------------------------------------------------
# CommentConvention
# ---------------------------------------------------------------------------


class TestCommentConvention:
    def test_line_requires_prefix(self):
        with pytest.raises(ValidationError):
            CommentConvention(style=CommentStyle.LINE)

    def test_block_requires_both_delimiters(self):
        with pytest.raises(ValidationError):
            CommentConvention(style=CommentStyle.BLOCK, start="/*")

    def test_valid_block(self):
        conv = CommentConvention(style=CommentStyle.BLOCK, start="<!--", end="-->")
        assert conv.end == "-->"


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


class TestRouting:
    def test_kind_for_python(self, table):
        assert table.kind_for_path("src/app.py") == ArtifactKind.CODE

    def test_kind_for_markdown(self, table):
        assert table.kind_for_path("docs/README.md") == ArtifactKind.DOCUMENT

    def test_longest_suffix_wins(self, table):
        assert table.kind_for_path("jobs/plate.job.py") == ArtifactKind.HARDWARE_JOB

    def test_extension_match_is_case_insensitive(self, table):
        assert table.kind_for_path("jobs/CUBE.GCODE") == ArtifactKind.HARDWARE_JOB

    def test_unrouted_extension(self, table):
        assert table.kind_for_path("image.png") is None

    def test_overrides_come_first(self, table):
        conventions = table.conventions_for(ArtifactKind.CODE, "web/app.ts")
        assert conventions[0].prefix == "//"
        assert any(c.prefix == "#" for c in conventions)

    def test_preferred_convention_for_python_is_hash(self, table):
        conv = table.preferred_convention(ArtifactKind.CODE, "src/app.py")
        assert conv.style == CommentStyle.LINE
        assert conv.prefix == "#"

    def test_boundary_requirements(self, table):
        assert table.mandatory_boundaries(ArtifactKind.HARDWARE_JOB) == ["maxTemp"]
        assert "dutyCycle" in table.numeric_boundaries(ArtifactKind.HARDWARE_JOB)
        assert table.mandatory_boundaries(ArtifactKind.CODE) == []


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class TestConventionLoader:
    def test_default_table_without_path(self):
        table = load_convention_table()
        assert set(table.kinds) == set(ArtifactKind)

    def test_load_from_string_normalizes_extensions(self):
        table = ConventionLoader().load_from_string(CUSTOM_TABLE_YAML)
        assert table.kinds[ArtifactKind.CODE].extensions == [".py"]
        assert table.mandatory_boundaries(ArtifactKind.HARDWARE_JOB) == ["maxTemp", "dutyCycle"]

    def test_load_from_file_is_cached(self, tmp_path: Path):
        path = tmp_path / "conventions.yaml"
        path.write_text(CUSTOM_TABLE_YAML)
        first = ConventionLoader().load(path)
        second = ConventionLoader().load(path)
        assert first is second

    def test_cache_reloads_changed_file(self, tmp_path: Path):
        path = tmp_path / "conventions.yaml"
        path.write_text(CUSTOM_TABLE_YAML)
        first = ConventionLoader().load(path)

        path.write_text(CUSTOM_TABLE_YAML.replace("[maxTemp, dutyCycle]", "[maxTemp]"))
        stat = path.stat()
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))
        second = ConventionLoader().load(path)

        assert second is not first
        assert second.mandatory_boundaries(ArtifactKind.HARDWARE_JOB) == ["maxTemp"]
        assert ConventionLoader().load(path) is second

    def test_missing_file_is_configuration_error(self, tmp_path: Path):
        with pytest.raises(ConfigurationError):
            load_convention_table(tmp_path / "missing.yaml")

    def test_invalid_table_is_configuration_error(self, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text("kinds:\n  code:\n    conventions: []\n")
        with pytest.raises(ConfigurationError):
            load_convention_table(path)

    def test_custom_table_is_a_convention_table(self, tmp_path: Path):
        path = tmp_path / "conventions.yaml"
        path.write_text(CUSTOM_TABLE_YAML)
        assert isinstance(load_convention_table(path), ConventionTable)
