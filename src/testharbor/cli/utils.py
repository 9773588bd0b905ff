"""CLI utilities."""

from __future__ import annotations

import functools
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import click

from testharbor.config.loader import CONFIG_DIRNAME, load_config
from testharbor.config.models import HarborConfig
from testharbor.core.errors import HarborError, ProvisioningFailure, SafetyViolation
from testharbor.core.logging import configure_logging
from testharbor.core.progress import get_console, status
from testharbor.environment.classifier import classify
from testharbor.environment.models import EnvironmentClassification
from testharbor.safety.validator import SafePathValidator

EXIT_FAILURE = 1
EXIT_SAFETY_VIOLATION = 2
EXIT_PROVISIONING_FAILURE = 3

_PROJECT_MARKERS = (CONFIG_DIRNAME, ".git")

F = TypeVar("F", bound=Callable[..., Any])


def find_project_root(start_path: Path | None = None) -> Path:
    """Find the project root from the given path.

    Walks up the directory tree looking for a .testharbor or .git directory.
    If start_path is None, uses the current working directory.

    Raises:
        click.ClickException: If no project root is found
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()
    for candidate in (current, *current.parents):
        if any((candidate / marker).exists() for marker in _PROJECT_MARKERS):
            return candidate

    raise click.ClickException(
        f"Not inside a project: {start_path}\n"
        f"harbor commands must be run from a directory containing {CONFIG_DIRNAME}/ or .git/, "
        "or be given --project PATH."
    )


@dataclass
class HarborContext:
    """Everything a command needs, computed once per invocation."""

    project_root: Path
    config: HarborConfig
    classification: EnvironmentClassification
    validator: SafePathValidator


def get_harbor_context(ctx: click.Context) -> HarborContext:
    """Build (once) the project, config, classification and validator.

    Logging is reconfigured from the project config here; until then the
    group callback's stderr-only setup is in effect.
    """
    obj = ctx.ensure_object(dict)
    existing = obj.get("harbor")
    if existing is not None:
        return existing

    project_root = find_project_root(obj.get("project"))
    config = load_config(project_root)
    configure_logging(config=config.logging, verbose=bool(obj.get("verbose")))
    classification = classify()
    validator = SafePathValidator.from_config(project_root, config)

    harbor = HarborContext(
        project_root=project_root,
        config=config,
        classification=classification,
        validator=validator,
    )
    obj["harbor"] = harbor
    return harbor


def print_safety_violation(error: SafetyViolation) -> None:
    console = get_console()
    console.print(f"[bold red]Safety violation:[/bold red] {error.category}", highlight=False)
    console.print(f"  [cyan]path[/cyan]    {error.path or '-'}", highlight=False)
    console.print(f"  [cyan]reason[/cyan]  {error.message}", highlight=False)


def exit_code_for(error: HarborError) -> int:
    if isinstance(error, SafetyViolation):
        return EXIT_SAFETY_VIOLATION
    if isinstance(error, ProvisioningFailure):
        return EXIT_PROVISIONING_FAILURE
    return EXIT_FAILURE


def handle_harbor_errors(func: F) -> F:
    """Print HarborErrors with rich and exit with their exit code."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except SafetyViolation as e:
            print_safety_violation(e)
            raise click.exceptions.Exit(EXIT_SAFETY_VIOLATION) from e
        except HarborError as e:
            status(f"{e.error_name}: {e.message}", style="error")
            raise click.exceptions.Exit(exit_code_for(e)) from e

    return wrapper  # type: ignore[return-value]
