"""TestHarbor CLI - harbor command."""

from pathlib import Path

import click

from testharbor.cli.classify import classify_command
from testharbor.cli.gate import gate_command
from testharbor.cli.mock import mock_group
from testharbor.cli.prune import prune_command
from testharbor.cli.report import report_group
from testharbor.cli.run import run_command
from testharbor.cli.wait import wait_command
from testharbor.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="harbor")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: detected from the current directory)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, project: Path | None) -> None:
    """TestHarbor - safe, isolated environments for destructive test suites."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["project"] = project
    configure_logging(verbose=verbose)


cli.add_command(classify_command, name="classify")
cli.add_command(gate_command, name="gate")
cli.add_command(run_command, name="run")
cli.add_command(mock_group, name="mock")
cli.add_command(wait_command, name="wait")
cli.add_command(report_group, name="report")
cli.add_command(prune_command, name="prune")


if __name__ == "__main__":
    cli()
