"""harbor prune command - remove sandboxes left behind by earlier runs."""

import click
import questionary

from testharbor.cli.utils import get_harbor_context, handle_harbor_errors
from testharbor.core.progress import get_console, pluralize, status
from testharbor.sandbox.manager import IsolatedEnvironmentManager


@click.command()
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
@handle_harbor_errors
def prune_command(ctx: click.Context, yes: bool) -> None:
    """Delete orphaned sandboxes under the sandbox base directory.

    Only directories carrying the sandbox name prefix directly under the base
    directory are considered; each one is re-validated before deletion.
    """
    harbor = get_harbor_context(ctx)
    manager = IsolatedEnvironmentManager.from_config(harbor.validator, harbor.classification, harbor.config)
    orphans = manager.find_orphans()

    console = get_console()
    if not orphans:
        console.print("[yellow]Nothing to prune[/yellow] - no orphaned sandboxes found")
        return

    console.print(f"\n[bold]The following {pluralize(len(orphans), 'sandbox', 'sandboxes')} will be deleted:[/bold]\n")
    for path in orphans:
        console.print(f"  [cyan]•[/cyan] {path}")
    console.print()

    if not yes:
        answer = questionary.select(
            "Delete these sandboxes?",
            choices=[
                questionary.Choice("No, keep them", value=False),
                questionary.Choice("Yes, delete them", value=True),
            ],
            style=questionary.Style(
                [
                    ("question", "bold"),
                    ("highlighted", "fg:red bold"),
                    ("selected", "fg:red"),
                ]
            ),
        ).ask()

        if not answer:
            console.print("[dim]Cancelled[/dim]")
            return

    removed = sum(1 for path in orphans if manager.remove_orphan(path))
    if manager.cleanup_failures:
        raise click.ClickException(
            f"Removed {removed} of {len(orphans)}; "
            f"{pluralize(len(manager.cleanup_failures), 'sandbox', 'sandboxes')} could not be deleted"
        )
    status(f"Removed {pluralize(removed, 'sandbox', 'sandboxes')}", style="success")
