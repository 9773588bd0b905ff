"""Execution-context classification.

classify() turns raw signals (the container marker file, environment
variables, host OS) into one EnvironmentClassification. Order, first match
wins:

1. container marker file exists or TESTHARBOR_CONTAINER is truthy -> containerized
2. any CI indicator variable set -> continuous_integration
3. otherwise -> interactive_local

Containerization outranks CI: a CI runner may be bare metal with a live
registry, a container never is. Conflicts are resolved by that order, kept in
``ambiguities`` and logged as a warning.
"""

from __future__ import annotations

import os
import platform
from collections.abc import Mapping
from pathlib import Path

import structlog

from testharbor.config.constants import (
    CI_INDICATOR_VARS,
    CONTAINER_MARKER_FILE,
    CONTAINER_MODE_VAR,
    DEV_OVERRIDE_VAR,
    FALSY_VALUES,
    TARGET_PLATFORM,
    TRUTHY_VALUES,
)
from testharbor.environment.models import EnvironmentClassification, EnvironmentKind

log = structlog.get_logger(__name__)


def is_truthy(value: str | None) -> bool:
    """Explicit opt-in flags: only 1/true/yes/on count."""
    return value is not None and value.strip().lower() in TRUTHY_VALUES


def is_set(value: str | None) -> bool:
    """Indicator variables: any non-falsy value counts (CI=true, JENKINS_URL=http://...)."""
    return value is not None and value.strip().lower() not in FALSY_VALUES


def classify(
    environ: Mapping[str, str] | None = None,
    *,
    marker_file: str | Path | None = None,
    system: str | None = None,
) -> EnvironmentClassification:
    """Classify the current execution context.

    Args:
        environ: Environment mapping (defaults to os.environ)
        marker_file: Container marker path (defaults to /.dockerenv)
        system: Host OS name as reported by platform.system()

    Returns:
        Immutable classification record.
    """
    env = os.environ if environ is None else environ
    marker = Path(marker_file if marker_file is not None else CONTAINER_MARKER_FILE)
    host = system if system is not None else platform.system()

    container_signals: list[str] = []
    if marker.exists():
        container_signals.append(f"marker:{marker}")
    if is_truthy(env.get(CONTAINER_MODE_VAR)):
        container_signals.append(f"env:{CONTAINER_MODE_VAR}")

    ci_signals = [f"env:{var}" for var in CI_INDICATOR_VARS if is_set(env.get(var))]
    authorized_override = is_truthy(env.get(DEV_OVERRIDE_VAR))

    ambiguities: list[str] = []
    if container_signals:
        kind = EnvironmentKind.CONTAINERIZED
        if ci_signals:
            ambiguities.append("container and CI indicators both present; containerized wins")
        if authorized_override:
            ambiguities.append(
                f"{DEV_OVERRIDE_VAR} set inside a container; container safety wins"
            )
    elif ci_signals:
        kind = EnvironmentKind.CONTINUOUS_INTEGRATION
    else:
        kind = EnvironmentKind.INTERACTIVE_LOCAL

    classification = EnvironmentClassification(
        kind=kind,
        is_target_platform=host == TARGET_PLATFORM,
        authorized_override=authorized_override,
        signals=tuple(container_signals + ci_signals),
        ambiguities=tuple(ambiguities),
    )

    for ambiguity in ambiguities:
        log.warning(
            "classification_ambiguous",
            kind=kind.value,
            detail=ambiguity,
            signals=list(classification.signals),
        )
    log.debug("environment_classified", **classification.to_dict())
    return classification
