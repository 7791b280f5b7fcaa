"""
Built-in comment convention table.

Used when no ``conventions_file`` is configured.  Kept as a plain dict so the
YAML override format and the built-in table are validated by the same model.
"""

from __future__ import annotations

from typing import Any

_HASH = {"style": "line", "prefix": "#"}
_SLASH = {"style": "line", "prefix": "//"}
_C_BLOCK = {"style": "block", "start": "/*", "end": "*/", "decoration": "*"}
_DASH = {"style": "line", "prefix": "--"}
_SEMI = {"style": "line", "prefix": ";"}
_HTML = {"style": "block", "start": "<!--", "end": "-->"}
_PY_DOC = {"style": "block", "start": '"""', "end": '"""'}

DEFAULT_CONVENTIONS: dict[str, Any] = {
    "kinds": {
        "code": {
            "extensions": [
                ".py", ".sh", ".bash", ".rb", ".pl",
                ".js", ".mjs", ".ts", ".tsx", ".jsx",
                ".go", ".rs", ".c", ".h", ".cc", ".cpp", ".hpp",
                ".java", ".kt", ".swift", ".cs",
                ".sql", ".lua",
            ],
            "conventions": [_HASH, _PY_DOC],
        },
        "document": {
            "extensions": [".md", ".markdown", ".html", ".htm"],
            "conventions": [_HTML],
        },
        "hardware-job": {
            "extensions": [".gcode", ".gco", ".nc", ".job", ".job.py"],
            "conventions": [_SEMI],
            "mandatory_boundaries": ["maxTemp"],
            "numeric_boundaries": [
                "maxTemp",
                "dutyCycle",
                "maxFeedRate",
                "maxSpindleSpeed",
                "maxPower",
            ],
        },
    },
    "extension_overrides": {
        ext: [_SLASH, _C_BLOCK]
        for ext in (
            ".js", ".mjs", ".ts", ".tsx", ".jsx", ".go", ".rs", ".c", ".h",
            ".cc", ".cpp", ".hpp", ".java", ".kt", ".swift", ".cs",
        )
    }
    | {
        ".sql": [_DASH],
        ".lua": [_DASH],
        ".job.py": [_HASH],
    },
}
