"""
Exception hierarchy for headercore.

Lifecycle conditions (malformed headers, drift, missing or invalid safety
boundaries, unresolved or cyclic dependencies) are *not* exceptions: they are
carried as ``ConditionCode`` values inside structured results.  The classes
here cover programming and configuration errors only.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class HeaderCoreError(Exception):
    """Base class for all headercore errors."""


class ConfigurationError(HeaderCoreError):
    """Raised when a convention table, merge policy or setting is unusable."""


class PreservationViolation(HeaderCoreError):
    """Raised when a regenerated record would erase a human-authored field.

    Attributes:
        field: Name of the field that would have been lost or altered.
        artifact_path: Artifact the record belongs to.
    """

    def __init__(self, field: str, artifact_path: str) -> None:
        self.field = field
        self.artifact_path = artifact_path
        super().__init__(
            f"Regeneration of {artifact_path} would alter human-authored "
            f"field '{field}'"
        )


class ArtifactReadError(HeaderCoreError):
    """Raised when an artifact cannot be read or decoded as text."""

    def __init__(self, path: Path, reason: str, cause: Optional[BaseException] = None) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read artifact {path}: {reason}")
        if cause is not None:
            self.__cause__ = cause
