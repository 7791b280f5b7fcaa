"""File I/O helpers for the header engine: reading, path expansion and atomic replacement."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterable, Iterator, Optional

from headercore.conventions.schema import ConventionTable
from headercore.errors import ArtifactReadError

logger = logging.getLogger(__name__)

_SKIPPED_DIRS = {".git", ".hg", ".svn", "__pycache__", "node_modules", ".venv", "venv", ".tox"}


@contextmanager
def atomic_replace(path: Path, newline: Optional[str] = None) -> Iterator[IO[str]]:
    """Yield a temp file in ``path``'s directory that replaces ``path`` on success.

    The temp file is removed on any failure, including ``KeyboardInterrupt``,
    so ``path`` is either untouched or fully rewritten.  Permissions of an
    existing ``path`` are kept.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", text=True)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline=newline) as f:
            yield f
        if path.exists():
            shutil.copymode(path, temp_path)
        os.replace(temp_path, path)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def write_artifact(path: Path, content: str, newline: Optional[str] = None) -> None:
    """Atomically replace ``path`` with ``content``."""
    with atomic_replace(path, newline=newline) as f:
        f.write(content)
    logger.debug("Wrote %s (%d chars)", path, len(content))


def read_artifact(path: Path) -> tuple[str, str]:
    """Read an artifact as text.

    Returns:
        ``(text, newline)`` where ``newline`` is ``"\\r\\n"`` when the file
        uses Windows line endings, else ``"\\n"``.

    Raises:
        ArtifactReadError: If the file cannot be read or is not UTF-8.
    """
    try:
        with open(path, encoding="utf-8", newline="") as f:
            raw = f.read()
    except UnicodeDecodeError as exc:
        raise ArtifactReadError(path, "not valid UTF-8 text", exc) from exc
    except OSError as exc:
        raise ArtifactReadError(path, exc.strerror or str(exc), exc) from exc
    newline = "\r\n" if "\r\n" in raw else "\n"
    return raw.replace("\r\n", "\n"), newline


def expand_paths(paths: Iterable[Path | str], table: ConventionTable) -> list[Path]:
    """Expand directories to the routed files below them.

    Files given explicitly are kept whether or not they are routed; the
    engine reports unroutable ones.  Order is stable and duplicates are
    dropped.
    """
    extensions = table.routed_extensions()
    result: list[Path] = []
    seen: set[Path] = set()

    def add(candidate: Path) -> None:
        if candidate not in seen:
            seen.add(candidate)
            result.append(candidate)

    for item in paths:
        path = Path(item)
        if not path.is_dir():
            add(path)
            continue
        for root, dirs, files in os.walk(path):
            dirs[:] = sorted(d for d in dirs if d not in _SKIPPED_DIRS)
            for name in sorted(files):
                lowered = name.lower()
                if any(lowered.endswith(ext) for ext in extensions):
                    add(Path(root) / name)
    return result
