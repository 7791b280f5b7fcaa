"""Shared helpers for headercore commands: engine construction and output."""

from __future__ import annotations

import json as _json
import subprocess
from pathlib import Path
from typing import Any, Iterable, List, Optional

import click
from pydantic import ValidationError

from headercore.config import HeaderCoreConfig, get_config
from headercore.engine import HeaderEngine
from headercore.errors import ConfigurationError


def build_engine(ctx: click.Context) -> HeaderEngine:
    """Engine configured from global options over env / .env settings."""
    overrides = {k: v for k, v in ctx.obj.items() if k in HeaderCoreConfig.model_fields and v is not None}
    try:
        config = get_config(**overrides)
        return HeaderEngine(config=config)
    except (ValidationError, ConfigurationError) as exc:
        raise click.ClickException(str(exc)) from exc


def staged_paths() -> List[Path]:
    """Files staged in git (added, copied, modified or renamed)."""
    try:
        completed = subprocess.run(
            ["git", "diff", "--cached", "--name-only", "--diff-filter=ACMR"],
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as exc:
        raise click.ClickException("git is not installed") from exc
    except subprocess.CalledProcessError as exc:
        raise click.ClickException(f"git diff failed: {exc.stderr.strip()}") from exc
    return [Path(line) for line in completed.stdout.splitlines() if line.strip()]


def collect_paths(paths: Iterable[str], staged: bool = False, engine: Optional[HeaderEngine] = None) -> List[Path]:
    result = [Path(p) for p in paths]
    if staged:
        candidates = staged_paths()
        if engine is not None:
            candidates = [p for p in candidates if engine.table.kind_for_path(p) is not None]
        result += candidates
    return result


def echo_json(payload: Any) -> None:
    click.echo(_json.dumps(payload, indent=2, default=str))


def is_json(ctx: click.Context) -> bool:
    return ctx.obj.get("output_format") == "json"
