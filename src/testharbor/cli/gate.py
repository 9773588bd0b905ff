"""harbor gate command - decide and publish the destructive-test permission."""

import click

from testharbor.cli.utils import get_harbor_context, handle_harbor_errors
from testharbor.core.progress import status
from testharbor.safety.gate import evaluate, publish


@click.command()
@click.option(
    "--force-destructive",
    is_flag=True,
    help="Allow destructive tests on an interactive Windows machine",
)
@click.pass_context
@handle_harbor_errors
def gate_command(ctx: click.Context, force_destructive: bool) -> None:
    """Evaluate whether destructive tests may run and publish the flag.

    Prints the TESTHARBOR_DESTRUCTIVE_ALLOWED assignment on stdout. When
    GITHUB_ENV is set the assignment is also appended there for later steps.
    """
    classification = get_harbor_context(ctx).classification
    force = force_destructive or classification.authorized_override

    allowed = evaluate(classification, force_override=force)
    click.echo(publish(allowed))

    if allowed:
        status("Destructive tests allowed", style="warning")
    elif force and classification.is_containerized:
        status("Override ignored: destructive tests never run inside a container", style="info")
    else:
        status(f"Destructive tests disabled ({classification.kind.value})", style="info")
