"""
Contract-Header parser.

Finds the ``Contract-Header:`` marker inside an artifact's leading window,
works out which configured comment convention encloses it, and parses the
flat ``Key: value`` grammar inside the block.

Grammar inside the block::

    Contract-Header: v1 code
    File: src/loader.py
    Description: Loads sensor frames.
    Inputs: None
    Outputs:
      - load_frames(path, limit)
    SafetyBoundaries: { maxTemp: 245, dutyCycle: 0.8 }
    ActionRequired:
      - owner=alice; task=Confirm limits; due=2026-11-01
    Notes: Free text that may continue
      on indented lines.
    LastGenerated: 2026-10-17T12:00:00+00:00
    Checksum: sha256:ab12...

A line-prefixed block ends at the first line that is not prefixed or whose
content after the prefix is blank.  A delimited block ends at its closing
delimiter, which must appear inside the window.

The parser is a pure read: it never touches the filesystem and keeps no
state between calls.

Usage::

    from headercore.header.parser import HeaderParser

    parser = HeaderParser(table, window_lines=40)
    result = parser.parse(text, ArtifactKind.CODE, "src/loader.py")
    if result.is_malformed:
        ...
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from headercore.contracts.types import ArtifactKind, CommentStyle, ConfidenceTier, ParseStatus
from headercore.conventions.schema import CommentConvention, ConventionTable
from headercore.header.checksum import is_valid_checksum
from headercore.header.schema import (
    KEY_ACTION_REQUIRED,
    KEY_CHECKSUM,
    KEY_CONFIDENCE,
    KEY_CONTRACT_HEADER,
    KEY_DEPENDENCIES,
    KEY_DESCRIPTION,
    KEY_FILE,
    KEY_INPUTS,
    KEY_LAST_GENERATED,
    KEY_NOTES,
    KEY_OUTPUTS,
    KEY_SAFETY_BOUNDARIES,
    KEY_TO_FIELD,
    ActionItem,
    HeaderRecord,
    ParseResult,
)

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_LINES = 40
MIN_WINDOW_LINES = 30
MAX_WINDOW_LINES = 50

_MARKER_RE = re.compile(r"^Contract-Header\s*:")
_ENTRY_RE = re.compile(r"^(?P<key>[A-Za-z][A-Za-z0-9_-]*)\s*:\s*(?P<value>.*)$")
_TAG_RE = re.compile(r"^v?(?P<version>\d+(?:\.\d+)*)(?:\s+(?P<kind>\S+))?$")
_CODING_RE = re.compile(r"^#.*coding[:=]")
_NONE_VALUES = {"none", "-", "[]", "n/a"}


class _FieldError(ValueError):
    """A single field value could not be converted."""


# ---------------------------------------------------------------------------
# Block extraction
# ---------------------------------------------------------------------------


@dataclass
class _Entry:
    key: str
    value: str
    line_no: int
    sub_lines: list[str] = field(default_factory=list)


@dataclass
class _Block:
    start: int
    end: int
    content: list[tuple[int, str]]
    convention: CommentConvention


def _preamble_length(lines: list[str]) -> int:
    count = 0
    if lines and lines[0].startswith("#!"):
        count = 1
    if len(lines) > count and _CODING_RE.match(lines[count]):
        count += 1
    return count


def _opens_with_marker(line: str, conventions: list[CommentConvention]) -> bool:
    """Whether the comment content of ``line`` starts with the header marker.

    A marker mentioned later in a line of prose does not count.
    """
    text = line.strip()
    candidates = [text]
    for conv in conventions:
        for token in (conv.prefix, conv.start, conv.decoration):
            if token and text.startswith(token):
                rest = text[len(token):].lstrip()
                candidates.append(rest)
                if token == conv.start and conv.decoration and rest.startswith(conv.decoration):
                    candidates.append(rest[len(conv.decoration):].lstrip())
    return any(_MARKER_RE.match(c) for c in candidates)


def _strip_prefix(text: str, prefix: str) -> str:
    rest = text.lstrip()[len(prefix):]
    return rest[1:] if rest.startswith(" ") else rest


def _extract_line_block(
    window: list[str], marker: int, conv: CommentConvention
) -> Optional[_Block]:
    prefix = conv.prefix or ""
    if not window[marker].lstrip().startswith(prefix):
        return None
    content: list[tuple[int, str]] = []
    end = marker
    while end < len(window):
        stripped = window[end].lstrip()
        if not stripped.startswith(prefix) or stripped.startswith("#!"):
            break
        text = _strip_prefix(window[end], prefix)
        if not text.strip():
            break
        content.append((end, text.rstrip()))
        end += 1
    return _Block(start=marker, end=end, content=content, convention=conv)


def _strip_decoration(text: str, conv: CommentConvention) -> str:
    if conv.decoration:
        stripped = text.lstrip()
        if stripped.startswith(conv.decoration) and not stripped.startswith(conv.end or "\0"):
            rest = stripped[len(conv.decoration):]
            return rest[1:] if rest.startswith(" ") else rest
    return text


def _extract_delimited_block(
    window: list[str], marker: int, floor: int, conv: CommentConvention
) -> tuple[Optional[_Block], Optional[str], bool]:
    """Find the delimited block enclosing ``marker``.

    Returns the block (or None), an error for an unclosed block, and whether
    the enclosing block starts with other text, which makes the marker a
    mention rather than a header.
    """
    start_delim, end_delim = conv.start or "", conv.end or ""

    start = None
    for idx in range(marker, floor - 1, -1):
        text = window[idx]
        pos = text.find(start_delim)
        if pos != -1 and (idx < marker or pos < text.find(KEY_CONTRACT_HEADER)):
            start = idx
            break
        if idx < marker and end_delim in text:
            # Another block closed above the marker; the marker is not inside it.
            break
    if start is None:
        return None, None, False

    raw: list[tuple[int, str]] = []
    end = None
    first = window[start]
    after_start = first[first.find(start_delim) + len(start_delim):]
    if end_delim in after_start:
        raw.append((start, after_start[: after_start.find(end_delim)]))
        end = start + 1
    else:
        raw.append((start, after_start))
        for idx in range(start + 1, len(window)):
            text = window[idx]
            pos = text.find(end_delim)
            if pos != -1:
                raw.append((idx, text[:pos]))
                end = idx + 1
                break
            raw.append((idx, text))
    if end is not None and end <= marker:
        # The delimited block closes above the marker.
        return None, None, False

    lines = [(idx, _strip_decoration(text, conv).rstrip()) for idx, text in raw]
    leading = next((idx for idx, text in lines if text.strip()), None)
    if leading is not None and leading < marker:
        return None, None, True
    if end is None:
        return None, (
            f"header block opened with '{start_delim}' on line {start + 1} "
            f"is not closed within the first {len(window)} lines"
        ), False

    marker_text = next(text for idx, text in lines if idx == marker)
    baseline = len(marker_text) - len(marker_text.lstrip())
    content: list[tuple[int, str]] = []
    for idx, text in lines:
        indent = len(text) - len(text.lstrip())
        content.append((idx, text[min(indent, baseline):]))
    return _Block(start=start, end=end, content=content, convention=conv), None, False


# ---------------------------------------------------------------------------
# Value converters
# ---------------------------------------------------------------------------


def split_top_level(value: str) -> list[str]:
    """Split on commas that are not nested inside brackets or quotes."""
    items: list[str] = []
    depth = 0
    quote: Optional[str] = None
    current: list[str] = []
    escaped = False
    for ch in value:
        if escaped:
            escaped = False
        elif quote:
            if ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth = max(depth - 1, 0)
        elif ch == "," and depth == 0:
            items.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    items.append("".join(current).strip())
    return [i for i in items if i]


def _balanced(text: str) -> bool:
    depth = 0
    for ch in text:
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def quote_inline_item(item: str) -> str:
    """Quote a list item that would not survive an inline ``a, b`` round trip."""
    safe = (
        item == item.strip()
        and not any(ch in item for ch in "\"'\\")
        and not item.startswith("[")
        and item.lower() not in _NONE_VALUES
        and _balanced(item)
        and split_top_level(item) == [item]
    )
    if safe:
        return item
    return '"' + item.replace("\\", "\\\\").replace('"', '\\"') + '"'


def unquote_item(item: str) -> str:
    """Undo ``quote_inline_item``; unquoted items are returned unchanged."""
    if len(item) < 2 or item[0] != item[-1] or item[0] not in "\"'":
        return item
    out: list[str] = []
    chars = iter(item[1:-1])
    for ch in chars:
        out.append(next(chars, ch) if ch == "\\" else ch)
    return "".join(out)


def _parse_list(entry: _Entry) -> list[str]:
    value = entry.value.strip()
    if value:
        if entry.sub_lines:
            raise _FieldError(f"{entry.key}: inline value and sub-items cannot be mixed")
        if value.lower() in _NONE_VALUES:
            return []
        if value.startswith("[") and value.endswith("]"):
            value = value[1:-1]
        return [unquote_item(item) for item in split_top_level(value)]
    items = []
    for sub in entry.sub_lines:
        if not sub.startswith("- "):
            raise _FieldError(f"{entry.key}: sub-item '{sub}' must start with '- '")
        item = sub[2:].strip()
        if item:
            items.append(item)
    return items


def _parse_text(entry: _Entry, joiner: str) -> str:
    parts = [entry.value.strip()] if entry.value.strip() else []
    parts.extend(entry.sub_lines)
    return joiner.join(parts)


def _parse_tag(entry: _Entry, fallback: ArtifactKind) -> tuple[str, ArtifactKind]:
    m = _TAG_RE.match(entry.value.strip())
    if m is None:
        raise _FieldError(f"{KEY_CONTRACT_HEADER}: expected 'v<version> <kind>', got '{entry.value}'")
    kind = fallback
    if m.group("kind"):
        try:
            kind = ArtifactKind(m.group("kind").lower())
        except ValueError:
            raise _FieldError(f"{KEY_CONTRACT_HEADER}: unknown kind '{m.group('kind')}'") from None
    return m.group("version"), kind


def parse_confidence(raw: str) -> ConfidenceTier | int:
    """Parse ``high``/``medium``/``low`` or an integer 0-100 (``85`` or ``85%``)."""
    text = raw.strip().lower()
    try:
        return ConfidenceTier(text)
    except ValueError:
        pass
    text = text.rstrip("%").strip()
    if not text.isdigit():
        raise _FieldError(f"{KEY_CONFIDENCE}: expected high/medium/low or 0-100, got '{raw}'")
    score = int(text)
    if score > 100:
        raise _FieldError(f"{KEY_CONFIDENCE}: {score} is outside 0-100")
    return score


def _parse_action_item(text: str) -> ActionItem:
    pairs: dict[str, str] = {}
    for part in text.split(";"):
        if not part.strip():
            continue
        if "=" not in part:
            raise _FieldError(f"{KEY_ACTION_REQUIRED}: '{part.strip()}' is not key=value")
        key, _, val = part.partition("=")
        pairs[key.strip().lower()] = val.strip()
    unknown = set(pairs) - {"owner", "task", "due"}
    if unknown:
        raise _FieldError(f"{KEY_ACTION_REQUIRED}: unknown keys {sorted(unknown)}")
    if not pairs.get("owner") or not pairs.get("task"):
        raise _FieldError(f"{KEY_ACTION_REQUIRED}: items need owner= and task= ('{text}')")
    due = None
    if pairs.get("due"):
        try:
            due = date.fromisoformat(pairs["due"])
        except ValueError:
            raise _FieldError(f"{KEY_ACTION_REQUIRED}: bad due date '{pairs['due']}'") from None
    return ActionItem(owner=pairs["owner"], task=pairs["task"], due=due)


def _parse_actions(entry: _Entry) -> list[ActionItem]:
    if entry.value.strip():
        if entry.value.strip().lower() in _NONE_VALUES and not entry.sub_lines:
            return []
        raise _FieldError(f"{KEY_ACTION_REQUIRED}: items must be written as '- ' sub-items")
    return [_parse_action_item(item) for item in _parse_list(entry)]


def coerce_scalar(text: str) -> int | float | str:
    """Turn a boundary value into int, float, or (stripped, unquoted) str."""
    value = text.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    try:
        return int(value)
    except ValueError:
        pass
    try:
        number = float(value)
    except ValueError:
        return value
    # Keep words such as "inf" / "nan" as text; only numeric literals become floats.
    if math.isfinite(number) or any(ch.isdigit() for ch in value):
        return number
    return value


def _boundary_value(key: str, value: Any) -> int | float | str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float, str)):
        return value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise _FieldError(f"{KEY_SAFETY_BOUNDARIES}: '{key}' must be a scalar, got {type(value).__name__}")


def _parse_boundaries(entry: _Entry) -> Optional[dict[str, int | float | str]]:
    value = entry.value.strip()
    if value:
        if entry.sub_lines:
            raise _FieldError(f"{KEY_SAFETY_BOUNDARIES}: inline value and sub-items cannot be mixed")
        if value.lower() in _NONE_VALUES - {"[]"}:
            return None
        if not (value.startswith("{") and value.endswith("}")):
            raise _FieldError(f"{KEY_SAFETY_BOUNDARIES}: inline form must be a {{ key: value }} mapping")
        try:
            raw = yaml.safe_load(value)
        except yaml.YAMLError as exc:
            raise _FieldError(f"{KEY_SAFETY_BOUNDARIES}: {exc}") from exc
        if not isinstance(raw, dict):
            raise _FieldError(f"{KEY_SAFETY_BOUNDARIES}: expected a mapping")
        result = {}
        for key, val in raw.items():
            if not isinstance(key, str) or not key.strip():
                raise _FieldError(f"{KEY_SAFETY_BOUNDARIES}: boundary names must be text")
            result[key.strip()] = _boundary_value(key, val)
        return result
    result = {}
    for item in _parse_list(entry):
        key, sep, val = item.partition(":")
        if not sep or not key.strip() or not val.strip():
            raise _FieldError(f"{KEY_SAFETY_BOUNDARIES}: '{item}' is not 'name: value'")
        result[key.strip()] = coerce_scalar(val)
    return result


def parse_timestamp(raw: str) -> datetime:
    """ISO-8601 timestamp; naive values are taken as UTC."""
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        value = datetime.fromisoformat(text)
    except ValueError:
        raise _FieldError(f"{KEY_LAST_GENERATED}: '{raw}' is not an ISO-8601 timestamp") from None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _parse_checksum(entry: _Entry) -> str:
    value = entry.value.strip()
    if not is_valid_checksum(value):
        raise _FieldError(f"{KEY_CHECKSUM}: expected '<algorithm>:<hex>', got '{value}'")
    return value


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class HeaderParser:
    """Extracts a ``HeaderRecord`` from the leading window of an artifact."""

    def __init__(self, table: ConventionTable, window_lines: int = DEFAULT_WINDOW_LINES) -> None:
        if not MIN_WINDOW_LINES <= window_lines <= MAX_WINDOW_LINES:
            raise ValueError(
                f"window_lines must be within {MIN_WINDOW_LINES}..{MAX_WINDOW_LINES}, "
                f"got {window_lines}"
            )
        self._table = table
        self._window_lines = window_lines

    @property
    def window_lines(self) -> int:
        return self._window_lines

    def parse(self, text: str, kind: ArtifactKind, artifact_path: str) -> ParseResult:
        """Parse the header of ``text``.

        Args:
            text: Full artifact text; only the leading window is examined.
            kind: Artifact kind, used to pick comment conventions and as the
                default when the header tag carries no kind.
            artifact_path: Path used for convention overrides and as the
                record's path when the header has no ``File`` key.

        Returns:
            ``ParseResult`` with status PARSED, ABSENT or MALFORMED.
        """
        lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        window = lines[: self._window_lines]
        preamble_len = _preamble_length(window)
        preamble = window[:preamble_len]

        conventions = self._table.conventions_for(kind, artifact_path)
        for marker in range(preamble_len, len(window)):
            if not _opens_with_marker(window[marker], conventions):
                continue
            block, block_error, mentioned = self._locate_block(
                window, marker, preamble_len, kind, artifact_path
            )
            if block is None and mentioned:
                # The marker only appears inside some other comment or docstring.
                logger.debug("Ignoring header marker in prose on line %d of %s", marker + 1, artifact_path)
                continue
            if block is None:
                error = block_error or (
                    f"no configured comment convention for '{artifact_path}' encloses the "
                    f"header marker on line {marker + 1}"
                )
                logger.warning("Malformed header in %s: %s", artifact_path, error)
                return ParseResult(
                    status=ParseStatus.MALFORMED,
                    errors=[error],
                    present_keys=[KEY_CONTRACT_HEADER],
                    header_start=marker,
                    preamble=preamble,
                )

            result = self._parse_block(block, kind, artifact_path)
            result.preamble = preamble
            return result
        return ParseResult(status=ParseStatus.ABSENT, preamble=preamble)

    # -- internals -------------------------------------------------------------

    def _locate_block(
        self,
        window: list[str],
        marker: int,
        floor: int,
        kind: ArtifactKind,
        artifact_path: str,
    ) -> tuple[Optional[_Block], Optional[str], bool]:
        """Find the block enclosing ``marker``.

        Returns the block (or None), the first delimiter error, and whether
        the marker sat inside a delimited block without being its first key.
        """
        first_error = None
        mentioned = False
        for conv in self._table.conventions_for(kind, artifact_path):
            if conv.style == CommentStyle.LINE:
                block = _extract_line_block(window, marker, conv)
            else:
                block, error, embedded = _extract_delimited_block(window, marker, floor, conv)
                first_error = first_error or error
                mentioned = mentioned or embedded
            if block is not None:
                return block, None, False
        return None, first_error, mentioned

    def _parse_block(self, block: _Block, kind: ArtifactKind, artifact_path: str) -> ParseResult:
        errors: list[str] = []
        entries: dict[str, _Entry] = {}
        current: Optional[_Entry] = None

        for line_no, text in block.content:
            if not text.strip():
                continue
            if text[0].isspace():
                if current is None:
                    errors.append(f"line {line_no + 1}: indented text before any key")
                    continue
                current.sub_lines.append(text.strip())
                continue
            m = _ENTRY_RE.match(text)
            if m is None:
                errors.append(f"line {line_no + 1}: '{text.strip()}' is not 'Key: value'")
                current = None
                continue
            key = m.group("key")
            if key in entries:
                errors.append(f"line {line_no + 1}: duplicate key '{key}'")
                current = None
                continue
            current = _Entry(key=key, value=m.group("value") or "", line_no=line_no)
            entries[key] = current

        fields: dict[str, Any] = {}
        unparsed: list[str] = []
        extra: dict[str, str] = {}

        for key, entry in entries.items():
            try:
                if key == KEY_CONTRACT_HEADER:
                    fields["schema_version"], fields["kind"] = _parse_tag(entry, kind)
                elif key == KEY_FILE:
                    value = entry.value.strip()
                    if not value or entry.sub_lines:
                        raise _FieldError(f"{KEY_FILE}: expected a single path")
                    fields["artifact_path"] = value
                elif key == KEY_DESCRIPTION:
                    fields["description"] = _parse_text(entry, " ")
                elif key in (KEY_INPUTS, KEY_OUTPUTS, KEY_DEPENDENCIES):
                    fields[KEY_TO_FIELD[key]] = _parse_list(entry)
                elif key == KEY_CONFIDENCE:
                    if entry.sub_lines:
                        raise _FieldError(f"{KEY_CONFIDENCE}: expected a single value")
                    fields["confidence"] = parse_confidence(entry.value)
                elif key == KEY_ACTION_REQUIRED:
                    fields["action_required"] = _parse_actions(entry)
                elif key == KEY_SAFETY_BOUNDARIES:
                    fields["safety_boundaries"] = _parse_boundaries(entry)
                elif key == KEY_NOTES:
                    fields["notes"] = _parse_text(entry, "\n")
                elif key == KEY_LAST_GENERATED:
                    fields["last_generated"] = parse_timestamp(entry.value)
                elif key == KEY_CHECKSUM:
                    fields["checksum"] = _parse_checksum(entry)
                else:
                    extra[key] = _parse_text(entry, "\n")
            except _FieldError as exc:
                errors.append(f"line {entry.line_no + 1}: {exc}")
                unparsed.append(key)

        if extra:
            fields["extra_fields"] = extra
        present = list(entries)
        common = dict(
            present_keys=present,
            header_start=block.start,
            header_end=block.end,
            convention=block.convention,
        )

        if errors:
            logger.warning("Malformed header in %s: %s", artifact_path, "; ".join(errors))
            return ParseResult(
                status=ParseStatus.MALFORMED,
                partial=fields,
                unparsed_fields=unparsed,
                errors=errors,
                **common,
            )

        fields.setdefault("artifact_path", artifact_path)
        fields.setdefault("kind", kind)
        try:
            record = HeaderRecord(**fields)
        except ValidationError as exc:
            messages = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
            logger.warning("Malformed header in %s: %s", artifact_path, messages)
            return ParseResult(
                status=ParseStatus.MALFORMED,
                partial=fields,
                errors=messages,
                **common,
            )

        logger.debug(
            "Parsed header: path=%s keys=%d lines=%d-%d",
            artifact_path,
            len(present),
            block.start + 1,
            block.end,
        )
        return ParseResult(status=ParseStatus.PARSED, record=record, **common)


# ---------------------------------------------------------------------------
# Artifact splitting
# ---------------------------------------------------------------------------


@dataclass
class ArtifactParts:
    """An artifact split around its header block."""

    preamble: list[str]
    body: str


def split_artifact(text: str, result: ParseResult) -> ArtifactParts:
    """Separate preamble, header block and body.

    Lines that sat between the preamble and a header block become part of the
    body.  A MALFORMED header whose block could not be located is left in the
    body untouched.
    """
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    pre = len(result.preamble)
    if result.header_start is not None and result.header_end is not None:
        body_lines = lines[pre: result.header_start] + lines[result.header_end:]
    else:
        body_lines = lines[pre:]
    return ArtifactParts(preamble=list(result.preamble), body="\n".join(body_lines))
