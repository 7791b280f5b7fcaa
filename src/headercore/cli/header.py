"""`headercore scan` and `headercore update`."""

from __future__ import annotations

from typing import Tuple

import click

from headercore.cli._common import build_engine, collect_paths, echo_json, is_json
from headercore.contracts.types import ExitDisposition, StalenessState

_STATE_ICONS = {
    StalenessState.VALID: click.style("✓", fg="green"),
    StalenessState.STALE: click.style("~", fg="yellow"),
    StalenessState.ABSENT: click.style("∅", fg="yellow"),
    StalenessState.MALFORMED: click.style("✗", fg="red"),
}

_DISPOSITION_LABELS = {
    ExitDisposition.VALID: "valid",
    ExitDisposition.REGENERATED: "regenerated",
    ExitDisposition.MALFORMED_RECOVERED: "recovered",
    ExitDisposition.SAFETY_REJECTED: "REJECTED",
}


@click.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True), required=True)
@click.pass_context
def scan(ctx: click.Context, paths: Tuple[str, ...]) -> None:
    """Report the header state of each artifact (exit 1 unless all are valid)."""
    engine = build_engine(ctx)
    results = engine.scan(collect_paths(paths))

    if is_json(ctx):
        echo_json([r.model_dump(mode="json") for r in results])
    else:
        for r in results:
            if r.error:
                click.echo(f"{click.style('!', fg='red')} {r.path}: {r.error}")
                continue
            line = f"{_STATE_ICONS[r.state]} {r.path}: {r.state.value}"
            if r.reasons:
                line += f" ({', '.join(reason.value for reason in r.reasons)})"
            click.echo(line)
            for point in r.undeclared_points:
                click.echo(f"      undeclared: {point}")

    if not all(r.is_valid for r in results):
        ctx.exit(1)


@click.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True))
@click.option("--check", is_flag=True, help="Compute headers without writing any file.")
@click.option("--staged", is_flag=True, help="Also process files staged in git (for pre-commit hooks).")
@click.pass_context
def update(ctx: click.Context, paths: Tuple[str, ...], check: bool, staged: bool) -> None:
    """Regenerate stale, absent and malformed headers.

    Exits with the highest disposition: 0 valid, 1 regenerated,
    2 malformed header recovered, 3 safety boundaries rejected.
    """
    engine = build_engine(ctx)
    targets = collect_paths(paths, staged=staged, engine=engine)
    if not targets:
        if not is_json(ctx):
            click.echo("No artifacts to process.")
        return

    report = engine.run_batch(targets, write=not check)

    if is_json(ctx):
        echo_json(
            {
                "results": [r.model_dump(mode="json", exclude={"record"}) for r in report.results],
                "graph": report.graph.model_dump(mode="json") if report.graph else None,
                "exit_code": report.exit_code,
            }
        )
    else:
        for r in report.results:
            if r.error and r.previous_state is None:
                click.echo(f"{click.style('!', fg='red')} {r.path}: {r.error}")
                continue
            label = _DISPOSITION_LABELS[r.disposition]
            suffix = ""
            if r.changed and not r.written:
                suffix = " (not written)"
            click.echo(f"  {r.path}: {label}{suffix}")
            if r.error:
                click.echo(click.style(f"      {r.error}", fg="yellow"))
            if r.summary and r.summary.requires_dry_run:
                click.echo(click.style("      no SafetyBoundaries: dry run only", fg="yellow"))
            if r.gate and r.gate.violations:
                for violation in r.gate.violations:
                    click.echo(click.style(f"      {violation.boundary}: {violation.problem}", fg="red"))
        if report.graph and report.graph.unresolved:
            click.echo(f"\n  {len(report.graph.unresolved)} unresolved reference(s); see `headercore graph`")

    ctx.exit(report.exit_code)
