"""
headercore CLI - keep Contract-Headers in step with the artifacts they describe.

Commands:
    headercore scan      Report header state per artifact
    headercore update    Regenerate stale, absent and malformed headers
    headercore verify    Safety gate disposition for hardware jobs
    headercore graph     Dependency graph and derived confidence
"""

from typing import Optional

import click
from pydantic import ValidationError

from headercore.config import get_config, reset_config
from headercore.logger import configure_logging

from .graph import graph
from .header import scan, update
from .safety import verify


@click.group()
@click.version_option(package_name="headercore")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format.",
)
@click.option(
    "--conventions",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML comment convention table replacing the built-in one.",
)
@click.option("--window", type=click.IntRange(30, 50), default=None, help="Leading lines searched for a header.")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Logging level (default from HEADERCORE_LOG_LEVEL).",
)
@click.pass_context
def main(
    ctx: click.Context,
    output_format: str,
    conventions: Optional[str],
    window: Optional[int],
    log_level: Optional[str],
) -> None:
    """headercore - Contract-Header lifecycle engine."""
    reset_config()
    ctx.ensure_object(dict)
    ctx.obj.update(
        output_format=output_format,
        conventions_file=conventions,
        window_lines=window,
        log_level=log_level,
    )
    overrides = {k: v for k, v in ctx.obj.items() if k != "output_format" and v is not None}
    try:
        config = get_config(**overrides)
    except ValidationError as exc:
        raise click.ClickException(str(exc)) from exc
    configure_logging(config.log_level, config.log_format)


# Register commands
main.add_command(scan)
main.add_command(update)
main.add_command(verify)
main.add_command(graph)


if __name__ == "__main__":
    main()
