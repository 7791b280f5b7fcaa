"""
Generic base loader with per-path caching and YAML validation.

Provides ``BaseContractLoader[T]``: the base class for YAML-backed
configuration documents (currently the comment convention table).
Centralises:

- Per-path caching via class-level dict (each subclass gets its own),
  invalidated when the file's modification time or size changes
- File existence checks
- YAML parsing with dict-type validation
- Pydantic ``model_validate`` dispatch

Usage::

    from headercore.contracts._loader_base import BaseContractLoader
    from headercore.conventions.schema import ConventionTable

    class ConventionLoader(BaseContractLoader[ConventionTable]):
        _model_class = ConventionTable
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import ClassVar, Generic, TypeVar

import yaml
from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class BaseContractLoader(Generic[T]):
    """Generic base for YAML loaders with per-path caching.

    Subclasses must set ``_model_class`` to the Pydantic model used
    for validation.  Override ``_log_loaded()`` for domain-specific
    debug messages after a successful load.
    """

    _model_class: type[T]
    _cache: ClassVar[dict[str, tuple[tuple[int, int], BaseModel]]] = {}
    _logger: ClassVar[logging.Logger]

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        # Each subclass gets its own cache.
        cls._cache = {}
        cls._logger = logging.getLogger(cls.__module__)

    @classmethod
    def clear_cache(cls) -> None:
        """Clear the cache (useful in tests)."""
        cls._cache.clear()

    def load(self, path: Path) -> T:
        """Load and validate a YAML document.

        Args:
            path: Path to the YAML file.

        Returns:
            Validated model instance.

        Raises:
            FileNotFoundError: If the file does not exist.
            TypeError: If the YAML root is not a mapping.
            yaml.YAMLError: If the file contains invalid YAML.
            pydantic.ValidationError: If the YAML does not match the schema.
        """
        key = str(path.resolve())
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        stat = path.stat()
        stamp = (stat.st_mtime_ns, stat.st_size)

        cached = self._cache.get(key)
        if cached is not None and cached[0] == stamp:
            self._logger.debug("%s cache hit: %s", type(self).__name__, key)
            return cached[1]  # type: ignore[return-value]
        if cached is not None:
            self._logger.debug("%s changed on disk, reloading: %s", type(self).__name__, key)

        with open(path, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)

        if not isinstance(raw, dict):
            raise TypeError(
                f"Expected YAML mapping at root of {path}, "
                f"got {type(raw).__name__}"
            )

        model = self._model_class.model_validate(raw)
        self._cache[key] = (stamp, model)
        self._log_loaded(model, key)
        return model

    def load_from_string(self, yaml_str: str) -> T:
        """Load a document from a YAML string (convenience for testing).

        Raises:
            TypeError: If the YAML root is not a mapping.
            pydantic.ValidationError: If the YAML does not match the schema.
        """
        raw = yaml.safe_load(yaml_str)
        if not isinstance(raw, dict):
            raise TypeError(
                f"Expected YAML mapping, got {type(raw).__name__}"
            )
        return self._model_class.model_validate(raw)

    def _log_loaded(self, model: T, key: str) -> None:
        """Hook for subclass-specific debug logging after a load."""
        self._logger.debug("Loaded %s from %s", type(self).__name__, key)
