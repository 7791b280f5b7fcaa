"""
Pydantic v2 models for the comment convention table.

The table tells the parser and serializer how a header block is wrapped for
each artifact kind, which file extensions route to which kind, and which
safety boundary keys the gate requires.  It is data, not code: the built-in
table lives in ``defaults.py`` and can be replaced by a YAML file.

YAML shape::

    kinds:
      code:
        extensions: [".py", ".sh"]
        conventions:
          - {style: line, prefix: "#"}
      hardware-job:
        extensions: [".gcode"]
        conventions:
          - {style: line, prefix: ";"}
        mandatory_boundaries: [maxTemp, dutyCycle]
        numeric_boundaries: [maxTemp, dutyCycle]
    extension_overrides:
      ".js":
        - {style: line, prefix: "//"}
"""

from __future__ import annotations

from pathlib import PurePath
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from headercore.contracts.types import ArtifactKind, CommentStyle


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if not ext.startswith("."):
        ext = "." + ext
    return ext


class CommentConvention(BaseModel):
    """One way of wrapping a header block in comments."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    style: CommentStyle
    prefix: Optional[str] = Field(
        None, description="Line prefix for LINE style (e.g. '#', '//')"
    )
    start: Optional[str] = Field(
        None, description="Opening delimiter for BLOCK style (e.g. '/*')"
    )
    end: Optional[str] = Field(
        None, description="Closing delimiter for BLOCK style (e.g. '*/')"
    )
    decoration: Optional[str] = Field(
        None,
        description="Optional per-line decoration inside a BLOCK (e.g. '*')",
    )

    @model_validator(mode="after")
    def _check_delimiters(self) -> "CommentConvention":
        if self.style == CommentStyle.LINE and not self.prefix:
            raise ValueError("line-style convention requires 'prefix'")
        if self.style == CommentStyle.BLOCK and not (self.start and self.end):
            raise ValueError("block-style convention requires 'start' and 'end'")
        return self


class KindConventions(BaseModel):
    """Conventions, extension routing and boundary rules for one kind."""

    model_config = ConfigDict(extra="forbid")

    conventions: list[CommentConvention] = Field(
        ..., min_length=1, description="Tried in order; the first one is used for output"
    )
    extensions: list[str] = Field(
        default_factory=list,
        description="File suffixes routed to this kind (multi-part allowed, e.g. '.job.py')",
    )
    mandatory_boundaries: list[str] = Field(
        default_factory=list,
        description="SafetyBoundaries keys that must be present before EXECUTE",
    )
    numeric_boundaries: list[str] = Field(
        default_factory=list,
        description="SafetyBoundaries keys whose values must be finite numbers",
    )

    @field_validator("extensions")
    @classmethod
    def _normalize(cls, v: list[str]) -> list[str]:
        return [_normalize_extension(e) for e in v]


class ConventionTable(BaseModel):
    """Root model: per-kind conventions plus per-extension overrides."""

    model_config = ConfigDict(extra="forbid")

    kinds: dict[ArtifactKind, KindConventions] = Field(
        ..., description="Conventions keyed by artifact kind"
    )
    extension_overrides: dict[str, list[CommentConvention]] = Field(
        default_factory=dict,
        description="Conventions for specific file suffixes, tried before the kind's own",
    )

    @field_validator("extension_overrides")
    @classmethod
    def _normalize_overrides(
        cls, v: dict[str, list[CommentConvention]]
    ) -> dict[str, list[CommentConvention]]:
        return {_normalize_extension(k): conv for k, conv in v.items()}

    # -- lookups ---------------------------------------------------------------

    def _suffix_matches(self, path: str | PurePath, suffixes: list[str]) -> Optional[str]:
        name = PurePath(path).name.lower()
        best: Optional[str] = None
        for suffix in suffixes:
            if name.endswith(suffix) and (best is None or len(suffix) > len(best)):
                best = suffix
        return best

    def kind_for_path(self, path: str | PurePath) -> Optional[ArtifactKind]:
        """Return the kind whose extensions match ``path`` (longest suffix wins)."""
        best_kind: Optional[ArtifactKind] = None
        best_len = -1
        for kind, entry in self.kinds.items():
            match = self._suffix_matches(path, entry.extensions)
            if match is not None and len(match) > best_len:
                best_kind, best_len = kind, len(match)
        return best_kind

    def conventions_for(
        self, kind: ArtifactKind, path: Optional[str | PurePath] = None
    ) -> list[CommentConvention]:
        """Conventions to try for an artifact, extension overrides first."""
        result: list[CommentConvention] = []
        if path is not None:
            match = self._suffix_matches(path, list(self.extension_overrides))
            if match is not None:
                result.extend(self.extension_overrides[match])
        entry = self.kinds.get(kind)
        if entry is not None:
            result.extend(c for c in entry.conventions if c not in result)
        return result

    def preferred_convention(
        self, kind: ArtifactKind, path: Optional[str | PurePath] = None
    ) -> CommentConvention:
        """The convention the serializer writes new headers with."""
        conventions = self.conventions_for(kind, path)
        if not conventions:
            raise KeyError(f"No comment convention configured for kind '{kind.value}'")
        return conventions[0]

    def mandatory_boundaries(self, kind: ArtifactKind) -> list[str]:
        entry = self.kinds.get(kind)
        return list(entry.mandatory_boundaries) if entry else []

    def numeric_boundaries(self, kind: ArtifactKind) -> list[str]:
        entry = self.kinds.get(kind)
        return list(entry.numeric_boundaries) if entry else []

    def routed_extensions(self) -> set[str]:
        return {ext for entry in self.kinds.values() for ext in entry.extensions}
