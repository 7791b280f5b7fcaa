"""Tests for headercore.header.parser."""

from __future__ import annotations

import textwrap
from datetime import date, datetime, timezone

import pytest

from headercore.contracts.types import ArtifactKind, CommentStyle, ConfidenceTier, ParseStatus
from headercore.header.parser import (
    HeaderParser,
    coerce_scalar,
    parse_confidence,
    parse_timestamp,
    quote_inline_item,
    split_artifact,
    split_top_level,
    unquote_item,
)


PY_HEADER = textwrap.dedent("""\
    # Contract-Header: v1 code
    # File: src/loader.py
    # Description: Loads sensor frames.
    # Inputs:
    #   - env:FRAME_DIR
    # Outputs:
    #   - load_frames(path, limit)
    # Dependencies: src/config.py, src/io.py
    # Confidence: 85
    # ActionRequired:
    #   - owner=alice; task=Review limits; due=2026-11-01
    # Notes: Keep the frame limit low
    #   on embedded targets.
    # LastGenerated: 2026-10-17T12:00:00+00:00

    def load_frames(path, limit=10):
        return path
""")


def _parse(parser, text, kind=ArtifactKind.CODE, path="src/loader.py"):
    return parser.parse(text, kind, path)


# ---------------------------------------------------------------------------
# Presence
# ---------------------------------------------------------------------------


class TestPresence:
    def test_no_marker_is_absent(self, parser):
        result = _parse(parser, "def main():\n    pass\n")
        assert result.status == ParseStatus.ABSENT
        assert result.record is None

    def test_marker_outside_window_is_absent(self, parser):
        text = "\n" * 45 + "# Contract-Header: v1 code\n# File: a.py\n"
        assert _parse(parser, text).is_absent

    def test_window_must_be_in_range(self, table):
        with pytest.raises(ValueError):
            HeaderParser(table, window_lines=10)

    def test_shebang_is_preamble(self, parser):
        text = "#!/usr/bin/env python\n" + PY_HEADER
        result = _parse(parser, text)
        assert result.status == ParseStatus.PARSED
        assert result.preamble == ["#!/usr/bin/env python"]
        assert result.header_start == 1

    def test_marker_mentioned_in_docstring_is_absent(self, parser):
        text = textwrap.dedent('''\
            """Utilities for the engine.

            Every artifact starts with a Contract-Header: v1 code block.
            """

            def run():
                pass
        ''')
        assert _parse(parser, text).status == ParseStatus.ABSENT

    def test_marker_as_docstring_example_is_absent(self, parser):
        text = textwrap.dedent('''\
            """Header grammar.

            Example::

                Contract-Header: v1 code
                File: src/loader.py
            """
        ''')
        assert _parse(parser, text).status == ParseStatus.ABSENT

    def test_marker_in_unclosed_long_docstring_is_absent(self, parser):
        text = '"""Long module docs.\n\n    Contract-Header: v1 code\n' + "more prose\n" * 60 + '"""\n'
        assert _parse(parser, text).status == ParseStatus.ABSENT

    def test_marker_mid_line_in_comment_is_absent(self, parser):
        text = "# See the Contract-Header: v1 code format.\nimport os\n"
        assert _parse(parser, text).status == ParseStatus.ABSENT

    def test_header_below_a_mention_is_found(self, parser):
        text = '"""Mentions Contract-Header: v1 code in prose."""\n' + PY_HEADER
        result = _parse(parser, text)
        assert result.status == ParseStatus.PARSED
        assert result.header_start == 1


# ---------------------------------------------------------------------------
# Parsed fields
# ---------------------------------------------------------------------------


class TestParsedFields:
    def test_full_line_header(self, parser):
        result = _parse(parser, PY_HEADER)
        assert result.status == ParseStatus.PARSED
        record = result.record
        assert record.kind == ArtifactKind.CODE
        assert record.schema_version == "1"
        assert record.artifact_path == "src/loader.py"
        assert record.description == "Loads sensor frames."
        assert record.inputs == ["env:FRAME_DIR"]
        assert record.outputs == ["load_frames(path, limit)"]
        assert record.dependencies == ["src/config.py", "src/io.py"]
        assert record.confidence == 85
        assert record.action_required[0].owner == "alice"
        assert record.action_required[0].due == date(2026, 11, 1)
        assert record.notes == "Keep the frame limit low\non embedded targets."
        assert record.last_generated == datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
        assert record.checksum is None

    def test_block_ends_at_blank_line(self, parser):
        result = _parse(parser, PY_HEADER)
        assert result.header_start == 0
        assert result.header_end == 14
        assert result.convention.style == CommentStyle.LINE

    def test_inputs_none_is_empty_list(self, parser):
        text = "# Contract-Header: v1 code\n# Inputs: None\n# Outputs: []\n"
        record = _parse(parser, text).record
        assert record.inputs == []
        assert record.outputs == []

    def test_missing_mandatory_keys_still_parse(self, parser):
        text = "# Contract-Header: v1 code\n# Description: partial\n"
        result = _parse(parser, text)
        assert result.status == ParseStatus.PARSED
        assert result.record.inputs is None
        assert result.record.artifact_path == "src/loader.py"

    def test_unknown_keys_kept_as_extra_fields(self, parser):
        text = "# Contract-Header: v1 code\n# Owner-Team: sensors\n"
        record = _parse(parser, text).record
        assert record.extra_fields == {"Owner-Team": "sensors"}

    def test_kind_defaults_to_caller_kind(self, parser):
        text = "# Contract-Header: v1\n# File: x.py\n"
        assert _parse(parser, text).record.kind == ArtifactKind.CODE

    def test_tier_confidence(self, parser):
        text = "# Contract-Header: v1 code\n# Confidence: High\n"
        assert _parse(parser, text).record.confidence == ConfidenceTier.HIGH

    def test_inline_boundaries(self, parser):
        text = textwrap.dedent("""\
            ; Contract-Header: v1 hardware-job
            ; SafetyBoundaries: { maxTemp: 245, dutyCycle: 0.8, zone: "A" }
        """)
        record = _parse(parser, text, ArtifactKind.HARDWARE_JOB, "jobs/cube.gcode").record
        assert record.safety_boundaries == {"maxTemp": 245, "dutyCycle": 0.8, "zone": "A"}

    def test_sub_item_boundaries(self, parser):
        text = textwrap.dedent("""\
            ; Contract-Header: v1 hardware-job
            ; SafetyBoundaries:
            ;   - maxTemp: 245
            ;   - zone: "12"
        """)
        record = _parse(parser, text, ArtifactKind.HARDWARE_JOB, "jobs/cube.gcode").record
        assert record.safety_boundaries == {"maxTemp": 245, "zone": "12"}


# ---------------------------------------------------------------------------
# Delimited blocks
# ---------------------------------------------------------------------------


class TestDelimitedBlocks:
    def test_html_comment_block(self, parser):
        text = textwrap.dedent("""\
            <!--
            Contract-Header: v1 document
            File: docs/guide.md
            Description: User guide.
            -->

            # Guide
        """)
        result = _parse(parser, text, ArtifactKind.DOCUMENT, "docs/guide.md")
        assert result.status == ParseStatus.PARSED
        assert result.record.description == "User guide."
        assert result.header_end == 5

    def test_c_block_with_decoration(self, parser):
        text = textwrap.dedent("""\
            /*
             * Contract-Header: v1 code
             * File: web/app.ts
             * Outputs:
             *   - start(port)
             */
            export function start(port) {}
        """)
        result = _parse(parser, text, ArtifactKind.CODE, "web/app.ts")
        assert result.status == ParseStatus.PARSED
        assert result.record.outputs == ["start(port)"]

    def test_python_docstring_block(self, parser):
        text = '"""\nContract-Header: v1 code\nDescription: Docstring header.\n"""\n'
        result = _parse(parser, text)
        assert result.record.description == "Docstring header."
        assert result.convention.start == '"""'

    def test_unterminated_block_is_malformed(self, parser):
        text = "<!--\nContract-Header: v1 document\nFile: docs/a.md\n"
        result = _parse(parser, text, ArtifactKind.DOCUMENT, "docs/a.md")
        assert result.status == ParseStatus.MALFORMED
        assert "not closed" in result.errors[0]


# ---------------------------------------------------------------------------
# Malformed headers
# ---------------------------------------------------------------------------


class TestMalformed:
    def test_bad_field_keeps_partial(self, parser):
        text = textwrap.dedent("""\
            # Contract-Header: v1 code
            # Description: Still readable.
            # Confidence: very
            # Notes: keep me
        """)
        result = _parse(parser, text)
        assert result.status == ParseStatus.MALFORMED
        assert result.unparsed_fields == ["Confidence"]
        assert result.partial["description"] == "Still readable."
        assert result.partial["notes"] == "keep me"
        assert result.field_value("notes") == "keep me"

    def test_unparsable_boundaries_recorded(self, parser):
        text = "; Contract-Header: v1 hardware-job\n; SafetyBoundaries: maxTemp 245\n"
        result = _parse(parser, text, ArtifactKind.HARDWARE_JOB, "jobs/a.gcode")
        assert result.is_malformed
        assert "SafetyBoundaries" in result.unparsed_fields

    def test_duplicate_key_is_malformed(self, parser):
        text = "# Contract-Header: v1 code\n# File: a.py\n# File: b.py\n"
        assert _parse(parser, text).is_malformed

    def test_line_without_key_is_malformed(self, parser):
        text = "# Contract-Header: v1 code\n# just some prose\n"
        assert _parse(parser, text).is_malformed

    def test_unknown_kind_tag_is_malformed(self, parser):
        text = "# Contract-Header: v1 spaceship\n"
        result = _parse(parser, text)
        assert result.is_malformed
        assert "Contract-Header" in result.unparsed_fields


# ---------------------------------------------------------------------------
# Converters
# ---------------------------------------------------------------------------


class TestConverters:
    def test_split_top_level_respects_brackets(self):
        assert split_top_level("a(b, c), d, [e, f]") == ["a(b, c)", "d", "[e, f]"]

    def test_split_top_level_honours_escaped_quotes(self):
        assert split_top_level('"a \\"b, c", d') == ['"a \\"b, c"', "d"]

    @pytest.mark.parametrize("item", ["plain", "f(a, b)", "env:HOME"])
    def test_safe_items_are_not_quoted(self, item):
        assert quote_inline_item(item) == item

    @pytest.mark.parametrize(
        "item", ["a, b", "open (", 'say "hi"', "back\\slash", "None", "[x]", " padded"]
    )
    def test_quoted_items_read_back(self, item):
        quoted = quote_inline_item(item)
        assert quoted.startswith('"')
        assert split_top_level(quoted) == [quoted]
        assert unquote_item(quoted) == item

    def test_confidence_percent(self):
        assert parse_confidence("85%") == 85

    def test_coerce_scalar(self):
        assert coerce_scalar("245") == 245
        assert coerce_scalar("0.8") == 0.8
        assert coerce_scalar('"245"') == "245"
        assert coerce_scalar("inf") == "inf"

    def test_timestamp_zulu_and_naive(self):
        expected = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert parse_timestamp("2026-01-02T03:04:05Z") == expected
        assert parse_timestamp("2026-01-02T03:04:05") == expected


# ---------------------------------------------------------------------------
# split_artifact
# ---------------------------------------------------------------------------


class TestSplitArtifact:
    def test_body_excludes_header(self, parser):
        result = _parse(parser, PY_HEADER)
        parts = split_artifact(PY_HEADER, result)
        assert "Contract-Header" not in parts.body
        assert "def load_frames" in parts.body

    def test_absent_header_body_is_everything(self, parser):
        text = "#!/bin/sh\necho hi\n"
        result = _parse(parser, text, path="run.sh")
        parts = split_artifact(text, result)
        assert parts.preamble == ["#!/bin/sh"]
        assert parts.body == "echo hi\n"
