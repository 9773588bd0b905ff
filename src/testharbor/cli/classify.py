"""harbor classify command - report how the current run is classified."""

from pathlib import Path

import click
from rich.table import Table

from testharbor.cli.utils import get_harbor_context, handle_harbor_errors
from testharbor.core.progress import get_console


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write the JSON classification record to this file",
)
@click.pass_context
@handle_harbor_errors
def classify_command(ctx: click.Context, as_json: bool, output: Path | None) -> None:
    """Classify the execution environment (container, CI or local)."""
    classification = get_harbor_context(ctx).classification

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(classification.to_json() + "\n", encoding="utf-8")

    if as_json:
        click.echo(classification.to_json())
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="cyan")
    table.add_column()
    table.add_row("kind", f"[bold]{classification.kind.value}[/bold]")
    table.add_row("target platform", "yes" if classification.is_target_platform else "no")
    table.add_row("authorized override", "yes" if classification.authorized_override else "no")
    table.add_row("signals", ", ".join(classification.signals) or "-")
    if classification.ambiguities:
        table.add_row("[yellow]ambiguities[/yellow]", "; ".join(classification.ambiguities))
    get_console().print(table)
