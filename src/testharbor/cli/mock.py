"""harbor mock commands - container lock and dynamic mock data resets."""

import click
from rich.table import Table

from testharbor.cli.utils import HarborContext, get_harbor_context, handle_harbor_errors
from testharbor.core.progress import get_console, pluralize, status
from testharbor.mockdata.partition import ALL_COMPONENTS, MockDataPartition


def _partition(harbor: HarborContext) -> MockDataPartition:
    return MockDataPartition(harbor.validator, harbor.classification, harbor.config.mockdata)


@click.group()
def mock_group() -> None:
    """Manage static and dynamic mock fixture data."""


@mock_group.command("list")
@click.pass_context
@handle_harbor_errors
def list_command(ctx: click.Context) -> None:
    """Show every mock component with its static and dynamic roots."""
    partition = _partition(get_harbor_context(ctx))

    table = Table(title="Mock components", caption=f"static fixtures: {partition.static_base}")
    table.add_column("component", style="cyan")
    table.add_column("static root")
    table.add_column("dynamic root")
    for name in partition.component_names():
        component = partition.get(name)
        dynamic = str(component.dynamic_root) if component.has_dynamic_root else "[dim]unavailable[/dim]"
        table.add_row(name, str(component.static_root), dynamic)
    get_console().print(table)


@mock_group.command("lock")
@click.pass_context
@handle_harbor_errors
def lock_command(ctx: click.Context) -> None:
    """Create (or reuse) the container lock over the dynamic mock root."""
    lock = _partition(get_harbor_context(ctx)).acquire_lock()
    status(f"Lock held at {lock.directory}", style="success")


@mock_group.command("reset")
@click.argument("components", nargs=-1)
@click.option("--all", "reset_all", is_flag=True, help="Reset every component")
@click.option("--scope", default=None, help="Only clear this subpath inside each dynamic root")
@click.pass_context
@handle_harbor_errors
def reset_command(
    ctx: click.Context,
    components: tuple[str, ...],
    reset_all: bool,
    scope: str | None,
) -> None:
    """Delete generated mock data. Static fixtures are never touched.

    Requires a valid container lock (see 'harbor mock lock').
    """
    if reset_all and components:
        raise click.UsageError("Pass component names or --all, not both")
    if not reset_all and not components:
        raise click.UsageError("Name at least one component, or pass --all")

    selection = ALL_COMPONENTS if reset_all else list(components)
    result = _partition(get_harbor_context(ctx)).reset(selection, scope)

    for name, removed in result.removed.items():
        status(f"{name}: removed {pluralize(removed, 'entry', 'entries')}", indent=2)
    status(
        f"Reset {pluralize(len(result.components), 'component')} "
        f"({pluralize(result.total_removed, 'entry', 'entries')} removed)",
        style="success",
    )
