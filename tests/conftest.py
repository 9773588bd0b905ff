"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages, and
provides classification/validator fixtures that never depend on the host the
suite runs on (no real /.dockerenv, CI variables or temp dirs leak in).
"""

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local testharbor package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of testharbor modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("testharbor"):
        del sys.modules[module_name]

from testharbor.config.models import PathsConfig  # noqa: E402
from testharbor.environment.models import EnvironmentClassification, EnvironmentKind  # noqa: E402
from testharbor.safety.validator import SafePathValidator  # noqa: E402

pytest_plugins = ["pytester"]


def make_classification(
    kind: EnvironmentKind = EnvironmentKind.INTERACTIVE_LOCAL,
    *,
    target: bool = True,
    override: bool = False,
) -> EnvironmentClassification:
    return EnvironmentClassification(kind=kind, is_target_platform=target, authorized_override=override)


@pytest.fixture(autouse=True)
def _isolate_signal_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Strip host signals so os.environ-reading code sees a neutral machine.

    Each variable is set before it is deleted so that values published during
    a test (gate, run) are rolled back afterwards.
    """
    for var in (
        "CI",
        "GITHUB_ACTIONS",
        "TF_BUILD",
        "GITLAB_CI",
        "JENKINS_URL",
        "BUILDKITE",
        "CIRCLECI",
        "APPVEYOR",
        "GITHUB_ENV",
        "RUNNER_TEMP",
        "AGENT_TEMPDIRECTORY",
        "TESTHARBOR_CONTAINER",
        "TESTHARBOR_DEV_OVERRIDE",
        "TESTHARBOR_DESTRUCTIVE_ALLOWED",
        "TESTHARBOR_MOCK_ROOT",
    ):
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)


@pytest.fixture
def local_env() -> EnvironmentClassification:
    return make_classification(EnvironmentKind.INTERACTIVE_LOCAL)


@pytest.fixture
def ci_env() -> EnvironmentClassification:
    return make_classification(EnvironmentKind.CONTINUOUS_INTEGRATION)


@pytest.fixture
def container_env() -> EnvironmentClassification:
    return make_classification(EnvironmentKind.CONTAINERIZED, target=False)


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def paths_config(tmp_path: Path) -> PathsConfig:
    """Safe roots confined to tmp_path."""
    return PathsConfig(
        container_roots=[str(tmp_path / "container")],
        ci_temp_env_vars=[],
        ci_temp_roots=[str(tmp_path / "runner-temp")],
        user_temp_dir=str(tmp_path / "usertemp"),
    )


@pytest.fixture
def validator(project_root: Path, paths_config: PathsConfig) -> SafePathValidator:
    return SafePathValidator(project_root, paths_config, environ={})


@pytest.fixture
def make_env() -> Callable[..., EnvironmentClassification]:
    """Factory for classifications with explicit kind, platform and override."""
    return make_classification
