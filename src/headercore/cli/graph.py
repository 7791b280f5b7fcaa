"""`headercore graph`: derived confidence, unresolved references and cycles."""

from __future__ import annotations

from typing import Tuple

import click

from headercore.cli._common import build_engine, collect_paths, echo_json, is_json


@click.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True), required=True)
@click.pass_context
def graph(ctx: click.Context, paths: Tuple[str, ...]) -> None:
    """Show the dependency graph over existing headers (exit 1 on cycles)."""
    engine = build_engine(ctx)
    report = engine.graph(collect_paths(paths))

    if is_json(ctx):
        echo_json(report.model_dump(mode="json"))
    else:
        for node in report.nodes:
            if node.derived_score is None:
                derived = node.status.value
            else:
                derived = f"{node.derived_score} ({node.derived_tier.value})"
            click.echo(f"  {node.artifact}: {derived}")
            for name in node.depends_on:
                click.echo(f"      <- {name}")
        if report.unresolved:
            click.echo(click.style("\nUnresolved:", fg="yellow"))
            for item in report.unresolved:
                click.echo(f"  {item.artifact}: {item.reference} ({item.via})")
        if report.cycles:
            click.echo(click.style("\nCycles:", fg="red"))
            for cycle in report.cycles:
                click.echo(f"  {' -> '.join(cycle)}")

    if report.has_cycles:
        ctx.exit(1)
