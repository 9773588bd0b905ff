"""Destructive-operation permission gate.

Destructive test cases mutate persistent system state. They may run only:

- on a CI runner of the target platform (not containerized), or
- on an interactive machine of the target platform with an explicit force.

Containerized runs never get permission, whatever the override: the
container only mocks the target platform, so destructive cases have nothing
real to act on there.

Test cases run as separate processes, so the decision is published through an
environment variable rather than kept in memory.
"""

from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping
from pathlib import Path

import structlog

from testharbor.config.constants import DESTRUCTIVE_ALLOWED_VAR, GITHUB_ENV_VAR
from testharbor.environment.classifier import is_truthy
from testharbor.environment.models import EnvironmentClassification

log = structlog.get_logger(__name__)


def evaluate(classification: EnvironmentClassification, force_override: bool = False) -> bool:
    """Decide whether destructive test cases may execute."""
    if classification.is_containerized:
        allowed = False
    elif classification.is_ci:
        allowed = classification.is_target_platform
    else:
        allowed = classification.is_local and classification.is_target_platform and force_override

    log.info(
        "destructive_gate_evaluated",
        allowed=allowed,
        kind=classification.kind.value,
        target_platform=classification.is_target_platform,
        force_override=force_override,
    )
    return allowed


def publish(
    allowed: bool,
    environ: MutableMapping[str, str] | None = None,
    *,
    github_env: Mapping[str, str] | None = None,
) -> str:
    """Publish the permission flag for downstream processes.

    Sets the flag in ``environ`` (default: os.environ, inherited by child
    processes) and, when GITHUB_ENV names a file, appends the assignment there
    so later workflow steps see it too.

    Returns:
        The ``NAME=value`` assignment that was published.
    """
    env = os.environ if environ is None else environ
    value = "true" if allowed else "false"
    env[DESTRUCTIVE_ALLOWED_VAR] = value
    assignment = f"{DESTRUCTIVE_ALLOWED_VAR}={value}"

    source = env if github_env is None else github_env
    if target := source.get(GITHUB_ENV_VAR):
        with Path(target).open("a", encoding="utf-8") as f:
            f.write(assignment + "\n")
        log.debug("destructive_flag_exported", file=target)

    log.info("destructive_flag_published", value=value)
    return assignment


def is_destructive_allowed(environ: Mapping[str, str] | None = None) -> bool:
    """Consumer side: read the published flag. Absent means not allowed."""
    env = os.environ if environ is None else environ
    return is_truthy(env.get(DESTRUCTIVE_ALLOWED_VAR))
