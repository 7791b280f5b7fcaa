"""
headercore - Contract-Header lifecycle engine.

A Contract-Header is a small structured comment block at the top of an
artifact (source file, document, hardware job) that states what the artifact
is, what it consumes and produces, what it depends on, how far to trust it
and, for hardware jobs, the safety limits it must run within.

headercore keeps those headers in step with content:

- detect stale, absent and malformed headers (checksum, interface drift);
- regenerate them without ever dropping human-authored notes or safety
  boundaries, and without ever inventing safety boundaries;
- gate hardware jobs: no boundaries means dry run, bad boundaries means reject;
- build a dependency graph and propagate confidence along it.

Example usage:
    from headercore import HeaderEngine

    engine = HeaderEngine()
    for result in engine.scan(["src/"]):
        print(result.path, result.state)
"""

__version__ = "0.1.0"
__all__ = [
    "HeaderEngine",
    "HeaderCoreConfig",
    "get_config",
    "__version__",
]


# Lazy imports to avoid loading the engine stack at import time
def __getattr__(name: str):
    if name == "HeaderEngine":
        from headercore.engine import HeaderEngine
        return HeaderEngine
    if name == "HeaderCoreConfig":
        from headercore.config import HeaderCoreConfig
        return HeaderCoreConfig
    if name == "get_config":
        from headercore.config import get_config
        return get_config
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
