"""`headercore verify`: safety gate dispositions."""

from __future__ import annotations

from typing import Tuple

import click

from headercore.cli._common import build_engine, collect_paths, echo_json, is_json
from headercore.contracts.types import ExitDisposition, GateDisposition

_COLORS = {
    GateDisposition.EXECUTE: "green",
    GateDisposition.DRY_RUN: "yellow",
    GateDisposition.REJECT: "red",
}


@click.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True), required=True)
@click.pass_context
def verify(ctx: click.Context, paths: Tuple[str, ...]) -> None:
    """Print the safety gate disposition per artifact (exit 3 on any REJECT)."""
    engine = build_engine(ctx)
    results = engine.verify(collect_paths(paths))

    if is_json(ctx):
        echo_json([r.model_dump(mode="json") for r in results])
    else:
        for r in results:
            if r.error or r.decision is None:
                click.echo(f"{click.style('!', fg='red')} {r.path}: {r.error}")
                continue
            disposition = r.decision.disposition
            click.echo(
                f"  {r.path}: {click.style(disposition.value, fg=_COLORS[disposition])}"
                f" ({r.decision.reason})"
            )

    if any(r.disposition == ExitDisposition.SAFETY_REJECTED for r in results):
        ctx.exit(int(ExitDisposition.SAFETY_REJECTED))
