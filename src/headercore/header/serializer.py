"""
Header serializer: renders a ``HeaderRecord`` in a comment convention.

Keys are written in a fixed canonical order (``KEY_ORDER``).  Lists are
written as indented ``- item`` sub-items, or inline when the block would not
fit in the parser's window.  Inline items that would not read back as a
single item are double-quoted.  Empty lists are written as ``None``.

Usage::

    from headercore.header.serializer import HeaderSerializer

    lines = HeaderSerializer().render(record, convention, max_lines=40)
    text = assemble_artifact(preamble, lines, body)
"""

from __future__ import annotations

from typing import Optional

from headercore.contracts.types import CommentStyle, ConfidenceTier
from headercore.conventions.schema import CommentConvention
from headercore.errors import HeaderCoreError
from headercore.header.parser import coerce_scalar, quote_inline_item
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
    ActionItem,
    HeaderRecord,
)

INDENT = "  "


class SerializationError(HeaderCoreError):
    """Raised when a record cannot be written in the requested convention."""


def _format_boundary(value: int | float | str) -> str:
    if isinstance(value, str):
        # Quote text that would otherwise read back as a number.
        if coerce_scalar(value) != value or value != value.strip():
            return '"' + value + '"'
        return value
    return repr(value) if isinstance(value, float) else str(value)


def _format_action(item: ActionItem) -> str:
    parts = [f"owner={item.owner}", f"task={item.task}"]
    if item.due is not None:
        parts.append(f"due={item.due.isoformat()}")
    return "; ".join(parts)


def _text_lines(key: str, text: str) -> list[str]:
    parts = [line.strip() for line in text.splitlines() if line.strip()]
    if not parts:
        return [f"{key}:"]
    return [f"{key}: {parts[0]}"] + [INDENT + p for p in parts[1:]]


def _list_lines(key: str, items: list[str], inline: bool) -> list[str]:
    if not items:
        return [f"{key}: None"]
    if inline:
        return [f"{key}: {', '.join(quote_inline_item(item) for item in items)}"]
    return [f"{key}:"] + [f"{INDENT}- {item}" for item in items]


class HeaderSerializer:
    """Renders records as header blocks."""

    def content_lines(self, record: HeaderRecord, inline_lists: bool = False) -> list[str]:
        """The ``Key: value`` lines of a record, without comment wrapping."""
        lines = [
            f"{KEY_CONTRACT_HEADER}: v{record.schema_version} {record.kind.value}",
            f"{KEY_FILE}: {record.artifact_path}",
        ]
        if record.description is not None:
            lines.append(f"{KEY_DESCRIPTION}: {' '.join(record.description.split())}")
        if record.inputs is not None:
            lines.extend(_list_lines(KEY_INPUTS, record.inputs, inline_lists))
        if record.outputs is not None:
            lines.extend(_list_lines(KEY_OUTPUTS, record.outputs, inline_lists))
        if record.dependencies:
            lines.extend(_list_lines(KEY_DEPENDENCIES, record.dependencies, inline_lists))
        if record.confidence is not None:
            value = (
                record.confidence.value
                if isinstance(record.confidence, ConfidenceTier)
                else str(record.confidence)
            )
            lines.append(f"{KEY_CONFIDENCE}: {value}")
        if record.action_required:
            lines.append(f"{KEY_ACTION_REQUIRED}:")
            lines.extend(f"{INDENT}- {_format_action(a)}" for a in record.action_required)
        if record.safety_boundaries is not None:
            if not record.safety_boundaries:
                lines.append(f"{KEY_SAFETY_BOUNDARIES}: {{}}")
            else:
                lines.append(f"{KEY_SAFETY_BOUNDARIES}:")
                lines.extend(
                    f"{INDENT}- {name}: {_format_boundary(value)}"
                    for name, value in record.safety_boundaries.items()
                )
        if record.notes is not None:
            lines.extend(_text_lines(KEY_NOTES, record.notes))
        for key, value in record.extra_fields.items():
            lines.extend(_text_lines(key, value))
        if record.last_generated is not None:
            lines.append(f"{KEY_LAST_GENERATED}: {record.last_generated.isoformat()}")
        if record.checksum is not None:
            lines.append(f"{KEY_CHECKSUM}: {record.checksum}")
        return lines

    def wrap(self, lines: list[str], convention: CommentConvention) -> list[str]:
        """Wrap content lines in a comment convention."""
        if convention.style == CommentStyle.LINE:
            return [f"{convention.prefix} {line}".rstrip() for line in lines]

        end = convention.end or ""
        for line in lines:
            if end in line:
                raise SerializationError(
                    f"Header content contains the closing delimiter '{end}': {line!r}"
                )
        if convention.decoration:
            body = [f" {convention.decoration} {line}".rstrip() for line in lines]
            return [convention.start or ""] + body + [f" {end}"]
        return [convention.start or ""] + lines + [end]

    def render(
        self,
        record: HeaderRecord,
        convention: CommentConvention,
        max_lines: Optional[int] = None,
    ) -> list[str]:
        """Render a full header block.

        When ``max_lines`` is given and the block would not fit, lists are
        written inline instead of as sub-items.
        """
        wrapped = self.wrap(self.content_lines(record), convention)
        if max_lines is not None and len(wrapped) > max_lines:
            wrapped = self.wrap(self.content_lines(record, inline_lists=True), convention)
        return wrapped


def assemble_artifact(preamble: list[str], header_lines: list[str], body: str) -> str:
    """Join preamble, header block and body into the artifact text.

    One blank line separates the header from the body; the result always ends
    with a newline.
    """
    body = body.strip("\n")
    parts = list(preamble) + list(header_lines)
    if body:
        parts += ["", body]
    return "\n".join(parts) + "\n"
