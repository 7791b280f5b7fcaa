"""
Structured logging for header lifecycle events.

Outputs one JSON line per event on the ``headercore.events`` logger.  Only
outcome events are logged; per-step detail goes to module loggers and OTel
span events.

Logged events:
- header.scanned
- header.regenerated
- header.recovered (regenerated from a malformed header)
- gate.decision
- graph.built
- batch.cancelled

Usage:
    from headercore.logger import HeaderEventLogger

    events = HeaderEventLogger(scope="repo")
    events.log_scanned(path="src/app.py", state="STALE", reasons=["checksum_mismatch"])
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Structured event logger
_event_logger = logging.getLogger("headercore.events")
_event_logger.setLevel(logging.INFO)
_event_logger.propagate = False

# Events go to stderr so command output on stdout stays parseable
if not _event_logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    _event_logger.addHandler(handler)

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "warning", fmt: str = "text") -> None:
    """Install a stderr handler on the root logger (used by the CLI)."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter() if fmt == "json" else logging.Formatter(_TEXT_FORMAT))
    for existing in list(root.handlers):
        if getattr(existing, "_headercore", False):
            root.removeHandler(existing)
    handler._headercore = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    # Lifecycle events follow the root level so --log-level silences them too
    _event_logger.setLevel(max(logging.INFO, root.level))


class HeaderEventLogger:
    """
    Structured logger for header lifecycle events.

    Each entry carries the timestamp, level, event name, service, scope and
    artifact path, plus event-specific fields.
    """

    def __init__(
        self,
        scope: str = "default",
        service_name: str = "headercore",
        extra_labels: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize event logger.

        Args:
            scope: Label for the working scope (repository, directory)
            service_name: Service name for log attribution
            extra_labels: Additional labels
        """
        self.scope = scope
        self.service_name = service_name
        self.extra_labels = extra_labels or {}
        self._logger = _event_logger

    def _emit(
        self,
        event: str,
        path: Optional[str] = None,
        level: str = "info",
        **extra_fields: Any,
    ) -> None:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "event": event,
            "service": self.service_name,
            "scope": self.scope,
        }
        if path:
            entry["path"] = path
        entry.update({k: v for k, v in extra_fields.items() if v is not None})
        if self.extra_labels:
            entry["labels"] = self.extra_labels

        log_line = json.dumps(entry, default=str)

        if level == "error":
            self._logger.error(log_line)
        elif level == "warn":
            self._logger.warning(log_line)
        else:
            self._logger.info(log_line)

    def log_scanned(self, path: str, state: str, reasons: Optional[List[str]] = None) -> None:
        """Log a staleness classification."""
        self._emit("header.scanned", path=path, state=state, reasons=reasons or None)

    def log_regenerated(
        self,
        path: str,
        previous_state: str,
        written: bool,
        retained_undetected: Optional[List[str]] = None,
    ) -> None:
        """Log a header regeneration."""
        self._emit(
            "header.regenerated",
            path=path,
            previous_state=previous_state,
            written=written,
            retained_undetected=retained_undetected or None,
        )

    def log_recovered(self, path: str, unrecoverable_fields: List[str], written: bool) -> None:
        """Log regeneration from a malformed header."""
        self._emit(
            "header.recovered",
            path=path,
            level="warn",
            unrecoverable_fields=unrecoverable_fields,
            written=written,
        )

    def log_gate_decision(self, path: str, disposition: str, reason: str) -> None:
        """Log a safety gate decision; REJECT is logged at warn."""
        level = "warn" if disposition == "REJECT" else "info"
        self._emit("gate.decision", path=path, level=level, disposition=disposition, reason=reason)

    def log_graph_built(self, nodes: int, edges: int, unresolved: int, cycles: int) -> None:
        """Log the dependency graph summary."""
        self._emit(
            "graph.built",
            level="warn" if cycles else "info",
            nodes=nodes,
            edges=edges,
            unresolved=unresolved,
            cycles=cycles,
        )

    def log_batch_cancelled(self, processed: int, total: int) -> None:
        """Log a cancelled batch."""
        self._emit("batch.cancelled", level="warn", processed=processed, total=total)
