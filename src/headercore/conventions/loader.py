"""
Convention table loader with per-path caching.

Usage::

    from headercore.conventions.loader import ConventionLoader, load_convention_table

    table = load_convention_table()                        # built-in defaults
    table = load_convention_table(Path("conventions.yaml"))  # user override
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from headercore.contracts._loader_base import BaseContractLoader
from headercore.conventions.defaults import DEFAULT_CONVENTIONS
from headercore.conventions.schema import ConventionTable
from headercore.errors import ConfigurationError


class ConventionLoader(BaseContractLoader[ConventionTable]):
    """Loads and caches convention tables from YAML files."""

    _model_class = ConventionTable

    def _log_loaded(self, model: ConventionTable, key: str) -> None:
        self._logger.debug(
            "Loaded convention table: kinds=%d, overrides=%d, path=%s",
            len(model.kinds),
            len(model.extension_overrides),
            key,
        )


def default_convention_table() -> ConventionTable:
    """Validate and return the built-in convention table."""
    return ConventionTable.model_validate(DEFAULT_CONVENTIONS)


def load_convention_table(path: Optional[Path] = None) -> ConventionTable:
    """Return the table at ``path``, or the built-in defaults.

    Raises:
        ConfigurationError: If the file is missing or does not validate.
    """
    if path is None:
        return default_convention_table()
    try:
        return ConventionLoader().load(path)
    except (FileNotFoundError, TypeError, yaml.YAMLError, ValidationError) as exc:
        raise ConfigurationError(f"Invalid convention table {path}: {exc}") from exc
