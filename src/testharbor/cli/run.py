"""harbor run command - run a test command inside a fresh sandbox.

Control flow around the child process:

1. classify the environment (once)
2. provision the sandbox (every path validated before anything is created)
3. evaluate and publish the destructive-test permission
4. optionally wait for dependent services
5. run the command with the sandbox and permission exported
6. merge the result files it produced
7. tear the sandbox down
"""

import os
import subprocess
from pathlib import Path

import click
import structlog

from testharbor.cli.report import print_summary
from testharbor.cli.utils import HarborContext, get_harbor_context, handle_harbor_errors
from testharbor.cli.wait import probe_for
from testharbor.core.logging import set_run_id
from testharbor.core.progress import status, task
from testharbor.reporting.aggregator import ExecutionReportAggregator
from testharbor.reporting.models import RunSummary
from testharbor.safety.gate import evaluate, publish
from testharbor.sandbox.manager import IsolatedEnvironmentManager
from testharbor.sandbox.models import SandboxHandle
from testharbor.sandbox.readiness import wait_with_config

log = structlog.get_logger(__name__)

CATEGORY_VAR = "TESTHARBOR_TEST_CATEGORY"
RUN_ID_VAR = "TESTHARBOR_RUN_ID"

# Result files picked up from the sandbox logs directory
_RESULT_PATTERNS = ("*.xml", "summary*.json", "*summary.txt")

EXIT_COMMAND_NOT_FOUND = 127


def collect_results(handle: SandboxHandle, extra: tuple[Path, ...]) -> RunSummary:
    aggregator = ExecutionReportAggregator()
    logs_dir = handle.subpath("logs")
    found: list[Path] = []
    for pattern in _RESULT_PATTERNS:
        found.extend(sorted(logs_dir.rglob(pattern)))
    for path in [*dict.fromkeys(found), *extra]:
        aggregator.add(path)
    return aggregator.summarize()


def _child_environment(
    manager: IsolatedEnvironmentManager,
    handle: SandboxHandle,
    run_id: str,
    category: str | None,
) -> dict[str, str]:
    env = dict(os.environ)
    env.update(manager.export_environment(handle))
    env[RUN_ID_VAR] = run_id
    if category:
        env[CATEGORY_VAR] = category
    return env


def _run_child(command: tuple[str, ...], env: dict[str, str], cwd: Path) -> int:
    log.info("command_started", command=list(command))
    try:
        completed = subprocess.run(list(command), env=env, cwd=cwd, check=False)
    except FileNotFoundError:
        status(f"Command not found: {command[0]}", style="error")
        return EXIT_COMMAND_NOT_FOUND
    log.info("command_finished", returncode=completed.returncode)
    return completed.returncode


def _teardown(
    manager: IsolatedEnvironmentManager,
    handle: SandboxHandle,
    harbor: HarborContext,
    *,
    failed: bool,
    skip_cleanup: bool,
) -> None:
    if skip_cleanup:
        status(f"Sandbox kept at {handle.root_path}", style="warning")
        return
    if failed and harbor.config.sandbox.keep_on_failure:
        status(f"Run failed; sandbox kept at {handle.root_path}", style="warning")
        return
    if manager.remove(handle):
        status("Sandbox removed", style="success")


@click.command(context_settings={"ignore_unknown_options": True})
@click.option("--suite", "-s", required=True, help="Suite name (used in the sandbox name)")
@click.option("--category", "-c", default=None, help="Test category exported to the command")
@click.option(
    "--force-destructive",
    is_flag=True,
    help="Allow destructive tests on an interactive Windows machine",
)
@click.option("--skip-cleanup", is_flag=True, help="Keep the sandbox after the run")
@click.option(
    "--wait-for",
    "wait_for",
    multiple=True,
    help="Service (URL or host:port) that must be ready first; repeatable",
)
@click.option(
    "--result",
    "results",
    multiple=True,
    type=click.Path(path_type=Path),
    help="Extra result file to merge; repeatable",
)
@click.option(
    "--summary",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the merged JSON summary here",
)
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_context
@handle_harbor_errors
def run_command(
    ctx: click.Context,
    suite: str,
    category: str | None,
    force_destructive: bool,
    skip_cleanup: bool,
    wait_for: tuple[str, ...],
    results: tuple[Path, ...],
    summary: Path | None,
    command: tuple[str, ...],
) -> None:
    """Run COMMAND inside a fresh sandbox for SUITE.

    The sandbox paths are exported as TESTHARBOR_SANDBOX_* variables and the
    permission flag as TESTHARBOR_DESTRUCTIVE_ALLOWED. Result files written
    to the sandbox logs directory are merged into --summary. Exits with the
    command's exit code.

    Example: harbor run --suite unit -- pytest tests/unit
    """
    harbor = get_harbor_context(ctx)
    classification = harbor.classification
    run_id = set_run_id()

    manager = IsolatedEnvironmentManager.from_config(harbor.validator, classification, harbor.config)
    with task(f"Provisioning sandbox for {suite}"):
        handle = manager.initialize(suite)

    returncode = 1
    try:
        env = _child_environment(manager, handle, run_id, category)
        allowed = evaluate(
            classification,
            force_override=force_destructive or classification.authorized_override,
        )
        publish(allowed, env)
        status(f"Environment: {classification.kind.value}, destructive tests {'on' if allowed else 'off'}")

        for target in wait_for:
            probe = probe_for(target, harbor.config.readiness.probe_timeout_sec)
            wait_with_config(target, probe, harbor.config.readiness)

        returncode = _run_child(command, env, harbor.project_root)

        merged = collect_results(handle, results)
        if merged.per_suite:
            print_summary(merged)
        if summary is not None:
            merged.write(summary)
            status(f"Summary written to {summary}", style="success")
    finally:
        _teardown(manager, handle, harbor, failed=returncode != 0, skip_cleanup=skip_cleanup)

    ctx.exit(returncode)
