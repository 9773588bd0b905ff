"""harbor report commands - merge suite results into one summary."""

import json
from pathlib import Path

import click
from rich.table import Table

from testharbor.cli.utils import handle_harbor_errors
from testharbor.core.progress import get_console, pluralize, status
from testharbor.reporting.aggregator import (
    ExecutionReportAggregator,
    append_history,
    compute_trend,
    load_history,
)
from testharbor.reporting.models import RunSummary, Trend, TrendDirection

_TREND_STYLE = {
    TrendDirection.IMPROVING: "green",
    TrendDirection.DECLINING: "red",
    TrendDirection.STABLE: "dim",
}


def print_summary(summary: RunSummary, trend: Trend | None = None) -> None:
    table = Table(title="Test summary")
    table.add_column("suite", style="cyan")
    table.add_column("passed", justify="right", style="green")
    table.add_column("failed", justify="right", style="red")
    table.add_column("skipped", justify="right", style="yellow")
    table.add_column("duration", justify="right")
    for r in summary.per_suite:
        table.add_row(r.suite, str(r.passed), str(r.failed), str(r.skipped), f"{r.duration_seconds:.1f}s")
    table.add_section()
    table.add_row(
        "[bold]total[/bold]",
        str(summary.total_passed),
        str(summary.total_failed),
        str(summary.total_skipped),
        f"{summary.duration_seconds:.1f}s",
    )
    console = get_console()
    console.print(table)

    line = f"Success rate: [bold]{summary.success_rate:.2f}%[/bold]"
    if trend is not None:
        style = _TREND_STYLE[trend.direction]
        line += f"  [{style}]{trend.direction.value} ({trend.delta:+.2f} pts)[/{style}]"
    console.print(line, highlight=False)


@click.group()
def report_group() -> None:
    """Aggregate test results."""


@report_group.command("merge")
@click.argument("files", nargs=-1, required=True, type=click.Path(path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the merged JSON summary here (default: stdout)",
)
@click.option(
    "--history",
    type=click.Path(dir_okay=False, path_type=Path),
    help="JSON history file; the trend is computed against it and this run appended",
)
@click.option("--fail-on-failures", is_flag=True, help="Exit 1 when any test failed")
@handle_harbor_errors
def merge_command(
    files: tuple[Path, ...],
    output: Path | None,
    history: Path | None,
    fail_on_failures: bool,
) -> None:
    """Merge result FILES (summary JSON, text, JUnit or NUnit XML)."""
    aggregator = ExecutionReportAggregator()
    for path in files:
        aggregator.add(path)
    summary = aggregator.summarize()

    trend = None
    if history is not None:
        trend = compute_trend(load_history(history), summary)
        append_history(history, summary)

    if output is not None:
        summary.write(output, trend=trend)
        status(f"Summary written to {output}", style="success")
    else:
        record = summary.to_dict()
        if trend is not None:
            record["trend"] = trend.to_dict()
        click.echo(json.dumps(record, indent=2))

    if aggregator.rejected:
        status(f"Skipped {pluralize(len(aggregator.rejected), 'unreadable report')}", style="warning")
    print_summary(summary, trend)

    if fail_on_failures and not summary.ok:
        raise click.exceptions.Exit(1)
