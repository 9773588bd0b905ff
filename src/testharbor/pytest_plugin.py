"""pytest integration.

Registered through the ``pytest11`` entry point:

- ``@pytest.mark.destructive`` tests are skipped unless the destructive-test
  permission was published (TESTHARBOR_DESTRUCTIVE_ALLOWED=true).
- ``harbor_classification``: the session's environment classification.
- ``harbor_sandbox``: a fresh sandbox per test module, removed afterwards
  unless ``--harbor-keep-sandbox`` is given.

The project config is loaded once at startup and its ``logging`` section
applied, so harness events land in the same outputs as under ``harbor run``.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from testharbor.config.loader import load_config
from testharbor.config.models import HarborConfig
from testharbor.core.errors import ConfigError
from testharbor.core.logging import configure_logging
from testharbor.environment.classifier import classify
from testharbor.environment.models import EnvironmentClassification
from testharbor.safety.gate import is_destructive_allowed
from testharbor.safety.validator import SafePathValidator
from testharbor.sandbox.manager import IsolatedEnvironmentManager
from testharbor.sandbox.models import SandboxHandle

DESTRUCTIVE_MARKER = "destructive"

_config_key = pytest.StashKey[HarborConfig]()


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("testharbor")
    group.addoption(
        "--harbor-keep-sandbox",
        action="store_true",
        default=False,
        help="Keep per-module sandboxes after the tests finish",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        f"{DESTRUCTIVE_MARKER}: test mutates real system state; runs only when "
        "TESTHARBOR_DESTRUCTIVE_ALLOWED is true",
    )
    try:
        harbor_config = load_config(Path(config.rootpath))
    except ConfigError as e:
        raise pytest.UsageError(f"testharbor: {e}") from e
    config.stash[_config_key] = harbor_config
    configure_logging(config=harbor_config.logging)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:  # noqa: ARG001
    if is_destructive_allowed():
        return
    skip = pytest.mark.skip(reason="destructive tests disabled (TESTHARBOR_DESTRUCTIVE_ALLOWED is not true)")
    for item in items:
        if item.get_closest_marker(DESTRUCTIVE_MARKER) is not None:
            item.add_marker(skip)


@pytest.fixture(scope="session")
def harbor_project_root(pytestconfig: pytest.Config) -> Path:
    """Project root used for the sandbox temp root and config. Default: rootdir."""
    return Path(pytestconfig.rootpath)


@pytest.fixture(scope="session")
def harbor_config(pytestconfig: pytest.Config, harbor_project_root: Path) -> HarborConfig:
    if harbor_project_root == Path(pytestconfig.rootpath) and _config_key in pytestconfig.stash:
        return pytestconfig.stash[_config_key]
    return load_config(harbor_project_root)


@pytest.fixture(scope="session")
def harbor_classification() -> EnvironmentClassification:
    """Computed once per test session."""
    return classify()


@pytest.fixture(scope="session")
def harbor_validator(harbor_project_root: Path, harbor_config: HarborConfig) -> SafePathValidator:
    return SafePathValidator.from_config(harbor_project_root, harbor_config)


@pytest.fixture(scope="session")
def harbor_manager(
    harbor_validator: SafePathValidator,
    harbor_classification: EnvironmentClassification,
    harbor_config: HarborConfig,
) -> IsolatedEnvironmentManager:
    return IsolatedEnvironmentManager.from_config(harbor_validator, harbor_classification, harbor_config)


@pytest.fixture(scope="module")
def harbor_sandbox(
    request: pytest.FixtureRequest,
    harbor_manager: IsolatedEnvironmentManager,
) -> Iterator[SandboxHandle]:
    """A sandbox named after the test module, torn down after the module."""
    handle = harbor_manager.initialize(request.module.__name__)
    yield handle
    if not request.config.getoption("--harbor-keep-sandbox"):
        harbor_manager.remove(handle)
