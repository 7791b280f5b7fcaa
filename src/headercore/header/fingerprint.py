"""
Fingerprint extraction: a comparison-only summary of an artifact's interface.

One extractor per artifact kind, registered in an ``ExtractorRegistry`` and
selected by the artifact's ``kind`` tag:

- ``CodeFingerprintExtractor``: public entry points with their parameter
  lists (``load(path, limit)``) as outputs, and environment variables read
  through literal keys (``env:HOME``) as inputs.  Python, JavaScript /
  TypeScript and shell are understood; any other language yields an
  *unknown* fingerprint.
- ``DocumentFingerprintExtractor``: level 1-2 section headings
  (``section:Usage``) as outputs.
- ``HardwareJobFingerprintExtractor``: declared physical parameters
  (``param:hotendTemp``) as inputs, from G-code commands and explicit
  ``NAME = value`` / ``; @param name value`` declarations.

Extraction is best-effort structural pattern matching, not semantic
analysis.  Patterns are anchored to unambiguous constructs at the start of a
line: a missed entry point is acceptable (the header is regenerated or the
point is simply not listed), a point that does not exist is not.

Usage::

    from headercore.header.fingerprint import default_registry

    fingerprint = default_registry().extract(ArtifactKind.CODE, body, "src/app.py")
    fingerprint.outputs()   # ['load(path, limit)', 'Loader']
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import ClassVar, Iterable, Optional

from headercore.contracts.types import ArtifactKind, PointRole

logger = logging.getLogger(__name__)


def canonical_signature(signature: str) -> str:
    """Whitespace-free form used to compare signatures."""
    return re.sub(r"\s+", "", signature)


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InterfacePoint:
    """One detected interface point (an entry point, section or parameter)."""

    role: PointRole
    signature: str

    @property
    def canonical(self) -> str:
        return canonical_signature(self.signature)


@dataclass(frozen=True, eq=False)
class Fingerprint:
    """Detected interface of an artifact body.

    ``points`` keeps source order for generation; equality ignores order.
    ``known=False`` means the extractor could not analyse the body at all.
    """

    kind: ArtifactKind
    points: tuple[InterfacePoint, ...] = ()
    known: bool = True

    @classmethod
    def unknown(cls, kind: ArtifactKind) -> "Fingerprint":
        return cls(kind=kind, points=(), known=False)

    def canonical_set(self) -> frozenset[tuple[PointRole, str]]:
        return frozenset((p.role, p.canonical) for p in self.points)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fingerprint):
            return NotImplemented
        return (
            self.kind == other.kind
            and self.known == other.known
            and self.canonical_set() == other.canonical_set()
        )

    def __hash__(self) -> int:
        return hash((self.kind, self.known, self.canonical_set()))

    def inputs(self) -> list[str]:
        return [p.signature for p in self.points if p.role == PointRole.INPUT]

    def outputs(self) -> list[str]:
        return [p.signature for p in self.points if p.role == PointRole.OUTPUT]

    def undeclared(self, declared: Iterable[str]) -> list[InterfacePoint]:
        """Points whose canonical signature is not among ``declared``."""
        names = {canonical_signature(d) for d in declared}
        return [p for p in self.points if p.canonical not in names]


def _dedupe(points: Iterable[InterfacePoint]) -> tuple[InterfacePoint, ...]:
    seen: dict[tuple[PointRole, str], InterfacePoint] = {}
    for point in points:
        seen.setdefault((point.role, point.canonical), point)
    return tuple(seen.values())


# ---------------------------------------------------------------------------
# Extractor interface
# ---------------------------------------------------------------------------


class FingerprintExtractor(ABC):
    """Interface-point extractor for one artifact kind."""

    kind: ClassVar[ArtifactKind]

    @abstractmethod
    def extract(self, body: str, artifact_path: str) -> Fingerprint:
        """Detect interface points in ``body`` (header already removed)."""

    def describe(self, body: str, artifact_path: str) -> Optional[str]:
        """Best-effort one-line description used to seed a new header."""
        return None


# ---------------------------------------------------------------------------
# Code
# ---------------------------------------------------------------------------


def _balanced_params(text: str, open_pos: int) -> Optional[str]:
    """Text between the '(' at ``open_pos`` and its matching ')'."""
    depth = 0
    for idx in range(open_pos, len(text)):
        ch = text[idx]
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
            if depth == 0:
                return text[open_pos + 1: idx]
    return None


def _split_params(params: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in params:
        if ch in "([{<":
            depth += 1
        elif ch in ")]}>":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def _param_name(param: str) -> Optional[str]:
    """Bare parameter name without annotation or default."""
    name = re.split(r"[:=]", param, maxsplit=1)[0].strip()
    name = name.lstrip("{[").rstrip("}]").strip()
    if not re.match(r"^\**[A-Za-z_$][\w$]*\??$", name):
        return None
    return name.rstrip("?")


def _signature(name: str, params: str) -> str:
    names = [n for n in (_param_name(p) for p in _split_params(params)) if n]
    return f"{name}({', '.join(names)})"


@dataclass(frozen=True)
class _LanguageRules:
    suffixes: tuple[str, ...]
    functions: tuple[re.Pattern[str], ...]
    classes: tuple[re.Pattern[str], ...] = ()
    env: tuple[re.Pattern[str], ...] = ()
    comment_prefixes: tuple[str, ...] = ()
    private_prefix: Optional[str] = None
    takes_params: bool = True


_PYTHON = _LanguageRules(
    suffixes=(".py",),
    functions=(re.compile(r"^(?:async\s+)?def\s+(?P<name>[A-Za-z_]\w*)\s*\(", re.M),),
    classes=(re.compile(r"^class\s+(?P<name>[A-Za-z_]\w*)\s*[(:]", re.M),),
    env=(
        re.compile(r"os\.environ\[\s*['\"](?P<name>[A-Za-z_]\w*)['\"]\s*\]"),
        re.compile(r"os\.environ\.get\(\s*['\"](?P<name>[A-Za-z_]\w*)['\"]"),
        re.compile(r"os\.getenv\(\s*['\"](?P<name>[A-Za-z_]\w*)['\"]"),
    ),
    comment_prefixes=("#",),
    private_prefix="_",
)

_JAVASCRIPT = _LanguageRules(
    suffixes=(".js", ".mjs", ".cjs", ".ts", ".tsx", ".jsx"),
    functions=(
        re.compile(
            r"^(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*(?P<name>[A-Za-z_$][\w$]*)\s*(?:<[^>\n]*>)?\(",
            re.M,
        ),
        re.compile(
            r"^export\s+(?:const|let)\s+(?P<name>[A-Za-z_$][\w$]*)\s*(?::[^=\n]+)?=\s*(?:async\s*)?\(",
            re.M,
        ),
    ),
    classes=(re.compile(r"^(?:export\s+)?(?:default\s+)?class\s+(?P<name>[A-Za-z_$][\w$]*)", re.M),),
    env=(
        re.compile(r"process\.env\.(?P<name>[A-Za-z_]\w*)"),
        re.compile(r"process\.env\[\s*['\"](?P<name>[A-Za-z_]\w*)['\"]\s*\]"),
    ),
    comment_prefixes=("//",),
)

_SHELL = _LanguageRules(
    suffixes=(".sh", ".bash"),
    functions=(
        re.compile(r"^(?:function\s+)?(?P<name>[A-Za-z_][\w-]*)\s*\(\)\s*\{?", re.M),
        re.compile(r"^function\s+(?P<name>[A-Za-z_][\w-]*)\s*\{", re.M),
    ),
    comment_prefixes=("#",),
    private_prefix="_",
    takes_params=False,
)

_LANGUAGES = (_PYTHON, _JAVASCRIPT, _SHELL)


def _rules_for(artifact_path: str) -> Optional[_LanguageRules]:
    name = PurePath(artifact_path).name.lower()
    for rules in _LANGUAGES:
        if name.endswith(rules.suffixes):
            return rules
    return None


def _first_comment_line(body: str, prefixes: Iterable[str]) -> Optional[str]:
    for line in body.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#!"):
            continue
        for prefix in prefixes:
            if stripped.startswith(prefix):
                text = stripped[len(prefix):].strip()
                if text:
                    return text
        return None
    return None


class CodeFingerprintExtractor(FingerprintExtractor):
    """Entry points and environment inputs of source files."""

    kind = ArtifactKind.CODE

    def extract(self, body: str, artifact_path: str) -> Fingerprint:
        rules = _rules_for(artifact_path)
        if rules is None:
            logger.debug("No code rules for %s; fingerprint unknown", artifact_path)
            return Fingerprint.unknown(self.kind)

        found: list[tuple[int, InterfacePoint]] = []
        for pattern in rules.functions:
            for m in pattern.finditer(body):
                name = m.group("name")
                if rules.private_prefix and name.startswith(rules.private_prefix):
                    continue
                if rules.takes_params:
                    params = _balanced_params(body, m.end() - 1)
                    if params is None:
                        continue
                    signature = _signature(name, params)
                else:
                    signature = f"{name}()"
                found.append((m.start(), InterfacePoint(PointRole.OUTPUT, signature)))
        for pattern in rules.classes:
            for m in pattern.finditer(body):
                name = m.group("name")
                if rules.private_prefix and name.startswith(rules.private_prefix):
                    continue
                found.append((m.start(), InterfacePoint(PointRole.OUTPUT, name)))
        for pattern in rules.env:
            for m in pattern.finditer(body):
                found.append((m.start(), InterfacePoint(PointRole.INPUT, f"env:{m.group('name')}")))

        found.sort(key=lambda item: item[0])
        return Fingerprint(kind=self.kind, points=_dedupe(p for _, p in found))

    def describe(self, body: str, artifact_path: str) -> Optional[str]:
        rules = _rules_for(artifact_path)
        if rules is _PYTHON:
            m = re.match(r'\s*(?:#[^\n]*\n\s*)*[rRuU]?("""|\'\'\')\s*(?P<text>.*?)\s*(?:\n|\1)', body, re.S)
            if m and m.group("text"):
                return m.group("text").strip()
        if rules is not None:
            return _first_comment_line(body, rules.comment_prefixes)
        return None


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

_MD_HEADING = re.compile(r"^(?P<level>#{1,2})\s+(?P<title>.+?)\s*#*\s*$")
_HTML_HEADING = re.compile(r"<h(?P<level>[12])[^>]*>(?P<title>.*?)</h(?P=level)>", re.I | re.S)
_FENCE = re.compile(r"^\s*(```|~~~)")


class DocumentFingerprintExtractor(FingerprintExtractor):
    """Section structure of Markdown and HTML documents."""

    kind = ArtifactKind.DOCUMENT

    def _headings(self, body: str, artifact_path: str) -> Optional[list[str]]:
        name = PurePath(artifact_path).name.lower()
        if name.endswith((".html", ".htm")):
            return [
                re.sub(r"<[^>]+>", "", m.group("title")).strip()
                for m in _HTML_HEADING.finditer(body)
            ]
        if name.endswith((".md", ".markdown")):
            titles = []
            in_fence = False
            for line in body.splitlines():
                if _FENCE.match(line):
                    in_fence = not in_fence
                    continue
                if in_fence:
                    continue
                m = _MD_HEADING.match(line)
                if m:
                    titles.append(m.group("title").strip())
            return titles
        return None

    def extract(self, body: str, artifact_path: str) -> Fingerprint:
        titles = self._headings(body, artifact_path)
        if titles is None:
            return Fingerprint.unknown(self.kind)
        points = (InterfacePoint(PointRole.OUTPUT, f"section:{t}") for t in titles if t)
        return Fingerprint(kind=self.kind, points=_dedupe(points))

    def describe(self, body: str, artifact_path: str) -> Optional[str]:
        titles = self._headings(body, artifact_path)
        if titles:
            return titles[0]
        for line in body.splitlines():
            if line.strip():
                return line.strip()
        return None


# ---------------------------------------------------------------------------
# Hardware jobs
# ---------------------------------------------------------------------------

# G-code command -> (parameter name, word that carries the value)
GCODE_PARAMETERS: dict[str, tuple[str, str]] = {
    "M104": ("hotendTemp", "S"),
    "M109": ("hotendTemp", "S"),
    "M140": ("bedTemp", "S"),
    "M190": ("bedTemp", "S"),
    "M141": ("chamberTemp", "S"),
    "M106": ("fanSpeed", "S"),
    "G0": ("feedRate", "F"),
    "G1": ("feedRate", "F"),
    "M3": ("spindleSpeed", "S"),
    "M4": ("spindleSpeed", "S"),
    "M221": ("flowRate", "S"),
}

_GCODE_WORD = re.compile(r"([A-Z])\s*(-?\d+(?:\.\d+)?)")
_PARAM_DIRECTIVE = re.compile(r"^\s*[;#]\s*@param\s+(?P<name>[A-Za-z_]\w*)\b")
_CONSTANT = re.compile(r"^(?P<name>[A-Z][A-Z0-9_]*)\s*=\s*\S")


def _strip_gcode_comment(line: str) -> str:
    line = line.split(";", 1)[0]
    return re.sub(r"\([^)]*\)", "", line).strip().upper()


class HardwareJobFingerprintExtractor(FingerprintExtractor):
    """Physical parameters a hardware job declares or sets."""

    kind = ArtifactKind.HARDWARE_JOB

    def extract(self, body: str, artifact_path: str) -> Fingerprint:
        names: list[str] = []
        for line in body.splitlines():
            directive = _PARAM_DIRECTIVE.match(line)
            if directive:
                names.append(directive.group("name"))
                continue
            constant = _CONSTANT.match(line)
            if constant:
                names.append(constant.group("name"))
                continue
            code = _strip_gcode_comment(line)
            if not code:
                continue
            words = _GCODE_WORD.findall(code)
            if not words:
                continue
            letter, number = words[0]
            command = f"{letter}{int(float(number))}" if letter in "GM" else ""
            rule = GCODE_PARAMETERS.get(command)
            if rule and any(w == rule[1] for w, _ in words[1:]):
                names.append(rule[0])
        points = (InterfacePoint(PointRole.INPUT, f"param:{n}") for n in names)
        return Fingerprint(kind=self.kind, points=_dedupe(points))

    def describe(self, body: str, artifact_path: str) -> Optional[str]:
        return _first_comment_line(body, (";", "#"))


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass
class ExtractorRegistry:
    """Maps each artifact kind to its extractor."""

    extractors: dict[ArtifactKind, FingerprintExtractor] = field(default_factory=dict)

    def register(self, extractor: FingerprintExtractor) -> None:
        self.extractors[extractor.kind] = extractor

    def for_kind(self, kind: ArtifactKind) -> Optional[FingerprintExtractor]:
        return self.extractors.get(kind)

    def extract(self, kind: ArtifactKind, body: str, artifact_path: str) -> Fingerprint:
        extractor = self.for_kind(kind)
        if extractor is None:
            return Fingerprint.unknown(kind)
        return extractor.extract(body, artifact_path)

    def describe(self, kind: ArtifactKind, body: str, artifact_path: str) -> Optional[str]:
        extractor = self.for_kind(kind)
        return extractor.describe(body, artifact_path) if extractor else None


def default_registry() -> ExtractorRegistry:
    """Registry with the built-in extractor for every artifact kind."""
    registry = ExtractorRegistry()
    for extractor in (
        CodeFingerprintExtractor(),
        DocumentFingerprintExtractor(),
        HardwareJobFingerprintExtractor(),
    ):
        registry.register(extractor)
    return registry
