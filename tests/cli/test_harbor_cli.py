"""Tests for the harbor CLI commands.

Covers:
- classify / gate output and exit codes
- logging configured from the project config
- mock list / reset argument handling and safety refusals
- wait with real sockets
- prune confirmation flow
- report merge
"""

from __future__ import annotations

import json
import logging
import socket
from collections.abc import Callable, Iterator
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import structlog
from click.testing import CliRunner, Result

from testharbor.cli.main import cli
from testharbor.cli.utils import EXIT_PROVISIONING_FAILURE, EXIT_SAFETY_VIOLATION
from testharbor.core.logging import configure_logging, get_log_file_path
from testharbor.environment.models import EnvironmentClassification, EnvironmentKind

runner = CliRunner()

UseEnv = Callable[..., EnvironmentClassification]


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A project directory recognised by its .git marker."""
    root = tmp_path / "repo"
    (root / ".git").mkdir(parents=True)
    return root.resolve()


@pytest.fixture
def use_env(monkeypatch: pytest.MonkeyPatch, make_env: UseEnv) -> UseEnv:
    """Make the CLI see a given classification instead of the host's."""

    def apply(*args: object, **kwargs: object) -> EnvironmentClassification:
        classification = make_env(*args, **kwargs)
        monkeypatch.setattr("testharbor.cli.utils.classify", lambda: classification)
        return classification

    return apply


def invoke(repo: Path, *args: str) -> Result:
    return runner.invoke(cli, ["--project", str(repo), *args])


class TestMainGroup:
    """Top-level group behaviour."""

    def test_version(self) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_outside_a_project(self, tmp_path: Path) -> None:
        """Commands needing a project fail cleanly without one."""
        result = runner.invoke(cli, ["--project", str(tmp_path), "classify"])

        assert result.exit_code != 0
        assert "Not inside a project" in result.output


class TestClassifyCommand:
    """harbor classify."""

    def test_writes_json_record(self, repo: Path, use_env: UseEnv, tmp_path: Path) -> None:
        """--output writes the classification record for later steps."""
        # Given
        use_env(EnvironmentKind.CONTINUOUS_INTEGRATION, target=True)
        out = tmp_path / "artifacts" / "classification.json"

        # When
        result = invoke(repo, "classify", "--output", str(out))

        # Then
        assert result.exit_code == 0, result.output
        record = json.loads(out.read_text())
        assert record["kind"] == "continuous_integration"
        assert record["is_target_platform"] is True

    def test_table_output(self, repo: Path, use_env: UseEnv) -> None:
        use_env(EnvironmentKind.CONTAINERIZED, target=False)

        result = invoke(repo, "classify")

        assert result.exit_code == 0
        assert "containerized" in result.output


class TestLoggingFromConfig:
    """The project's logging section drives command logging."""

    @pytest.fixture(autouse=True)
    def _reset_logging(self) -> Iterator[None]:
        yield
        configure_logging()

    def test_env_level_applied(self, repo: Path, use_env: UseEnv, monkeypatch: pytest.MonkeyPatch) -> None:
        use_env(EnvironmentKind.INTERACTIVE_LOCAL, target=True)
        monkeypatch.setenv("TESTHARBOR__LOGGING__LEVEL", "ERROR")

        result = invoke(repo, "classify", "--json")

        assert result.exit_code == 0, result.output
        assert logging.getLogger().level == logging.ERROR

    def test_verbose_overrides_config_level(
        self, repo: Path, use_env: UseEnv, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        use_env(EnvironmentKind.INTERACTIVE_LOCAL, target=True)
        monkeypatch.setenv("TESTHARBOR__LOGGING__LEVEL", "ERROR")

        result = runner.invoke(cli, ["-v", "--project", str(repo), "classify", "--json"])

        assert result.exit_code == 0, result.output
        assert logging.getLogger().level == logging.DEBUG

    def test_file_output_from_yaml(self, repo: Path, use_env: UseEnv, tmp_path: Path) -> None:
        """A file output in config.yaml receives the run's events as JSON."""
        # Given
        use_env(EnvironmentKind.INTERACTIVE_LOCAL, target=True)
        log_file = tmp_path / "harbor.log"
        (repo / ".testharbor").mkdir()
        (repo / ".testharbor" / "config.yaml").write_text(
            f"logging:\n  level: DEBUG\n  outputs:\n    - format: json\n      destination: {log_file}\n"
        )

        # When
        result = invoke(repo, "classify", "--json")
        structlog.get_logger("testharbor.cli").info("after_classify")

        # Then
        assert result.exit_code == 0, result.output
        assert get_log_file_path() == log_file
        last = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert last["event"] == "after_classify"

class TestGateCommand:
    """harbor gate."""

    def test_container_is_denied(self, repo: Path, use_env: UseEnv) -> None:
        use_env(EnvironmentKind.CONTAINERIZED, target=True)

        result = invoke(repo, "gate", "--force-destructive")

        assert result.exit_code == 0
        assert "TESTHARBOR_DESTRUCTIVE_ALLOWED=false" in result.output
        assert "Override ignored" in result.output

    def test_local_target_with_force_is_allowed(self, repo: Path, use_env: UseEnv) -> None:
        use_env(EnvironmentKind.INTERACTIVE_LOCAL, target=True)

        result = invoke(repo, "gate", "--force-destructive")

        assert "TESTHARBOR_DESTRUCTIVE_ALLOWED=true" in result.output

    def test_dev_override_counts_as_force(self, repo: Path, use_env: UseEnv) -> None:
        use_env(EnvironmentKind.INTERACTIVE_LOCAL, target=True, override=True)

        result = invoke(repo, "gate")

        assert "TESTHARBOR_DESTRUCTIVE_ALLOWED=true" in result.output

    def test_appends_to_github_env(
        self, repo: Path, use_env: UseEnv, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Later CI steps see the flag through GITHUB_ENV."""
        use_env(EnvironmentKind.CONTINUOUS_INTEGRATION, target=True)
        github_env = tmp_path / "github_env"
        monkeypatch.setenv("GITHUB_ENV", str(github_env))

        result = invoke(repo, "gate")

        assert result.exit_code == 0
        assert github_env.read_text() == "TESTHARBOR_DESTRUCTIVE_ALLOWED=true\n"


class TestMockCommands:
    """harbor mock."""

    def test_list_outside_container(self, repo: Path, use_env: UseEnv) -> None:
        use_env(EnvironmentKind.INTERACTIVE_LOCAL)

        result = invoke(repo, "mock", "list")

        assert result.exit_code == 0
        assert "Mock components" in result.output

    @pytest.mark.parametrize("args", [[], ["--all", "steam"]])
    def test_reset_argument_validation(self, repo: Path, use_env: UseEnv, args: list[str]) -> None:
        use_env(EnvironmentKind.CONTAINERIZED, target=False)

        result = invoke(repo, "mock", "reset", *args)

        assert result.exit_code == 2
        assert "--all" in result.output

    def test_reset_without_lock_is_a_safety_violation(self, repo: Path, use_env: UseEnv) -> None:
        """No mock root and no lock: refused with the safety exit code."""
        use_env(EnvironmentKind.CONTAINERIZED, target=False)

        result = invoke(repo, "mock", "reset", "steam")

        assert result.exit_code == EXIT_SAFETY_VIOLATION
        assert "StaleOrInvalidLock" in result.output

    def test_lock_refused_outside_container(
        self, repo: Path, use_env: UseEnv, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        use_env(EnvironmentKind.INTERACTIVE_LOCAL)
        monkeypatch.setenv("TESTHARBOR_MOCK_ROOT", str(tmp_path / "mock"))

        result = invoke(repo, "mock", "lock")

        assert result.exit_code == EXIT_SAFETY_VIOLATION
        assert not (tmp_path / "mock").exists()


class TestWaitCommand:
    """harbor wait."""

    def test_ready_tcp_service(self, repo: Path, use_env: UseEnv) -> None:
        use_env(EnvironmentKind.CONTINUOUS_INTEGRATION)
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.bind(("127.0.0.1", 0))
            server.listen(1)
            port = server.getsockname()[1]

            result = invoke(repo, "wait", f"127.0.0.1:{port}", "--attempts", "1")

        assert result.exit_code == 0, result.output
        assert "ready" in result.output

    def test_never_ready_service(self, repo: Path, use_env: UseEnv) -> None:
        """Budget exhaustion exits with the provisioning failure code."""
        use_env(EnvironmentKind.CONTINUOUS_INTEGRATION)
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
            probe.bind(("127.0.0.1", 0))
            port = probe.getsockname()[1]

        result = invoke(repo, "wait", f"127.0.0.1:{port}", "--attempts", "2", "--interval", "0")

        assert result.exit_code == EXIT_PROVISIONING_FAILURE
        assert "PROVISIONING_NOT_READY" in result.output

    def test_bad_target(self, repo: Path, use_env: UseEnv) -> None:
        use_env(EnvironmentKind.CONTINUOUS_INTEGRATION)

        result = invoke(repo, "wait", "not-a-target")

        assert result.exit_code == 2


class TestPruneCommand:
    """harbor prune."""

    @pytest.fixture
    def orphan(self, repo: Path) -> Path:
        path = repo / "tmp" / "harbor-old-20250101-000000-1-abcdef"
        (path / "work").mkdir(parents=True)
        (repo / "tmp" / "keep-me").mkdir()
        return path

    def test_nothing_to_prune(self, repo: Path, use_env: UseEnv) -> None:
        use_env(EnvironmentKind.INTERACTIVE_LOCAL)

        result = invoke(repo, "prune", "--yes")

        assert result.exit_code == 0
        assert "Nothing to prune" in result.output

    def test_yes_removes_orphans_only(self, repo: Path, use_env: UseEnv, orphan: Path) -> None:
        use_env(EnvironmentKind.INTERACTIVE_LOCAL)

        result = invoke(repo, "prune", "--yes")

        assert result.exit_code == 0, result.output
        assert not orphan.exists()
        assert (repo / "tmp" / "keep-me").exists()

    def test_declined_confirmation_keeps_orphans(
        self, repo: Path, use_env: UseEnv, orphan: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        use_env(EnvironmentKind.INTERACTIVE_LOCAL)
        question = MagicMock()
        question.ask.return_value = False
        monkeypatch.setattr("testharbor.cli.prune.questionary.select", MagicMock(return_value=question))

        result = invoke(repo, "prune")

        assert result.exit_code == 0
        assert "Cancelled" in result.output
        assert orphan.exists()


class TestReportMerge:
    """harbor report merge."""

    @pytest.fixture
    def reports(self, tmp_path: Path) -> list[Path]:
        unit = tmp_path / "summary-unit.json"
        unit.write_text(json.dumps({"TestSuite": "Unit", "PassedTests": 9, "FailedTests": 1, "SkippedTests": 0}))
        e2e = tmp_path / "e2e-summary.txt"
        e2e.write_text("Tests Passed: 5, Failed: 0, Skipped: 2\n")
        return [unit, e2e]

    def test_merge_to_file_with_history(self, reports: list[Path], tmp_path: Path) -> None:
        """Output file carries totals and a trend against the history file."""
        # Given
        history = tmp_path / "history.json"
        history.write_text(json.dumps([{"success_rate": 100.0}]))
        out = tmp_path / "merged.json"

        # When
        result = runner.invoke(
            cli, ["report", "merge", *map(str, reports), "--output", str(out), "--history", str(history)]
        )

        # Then
        assert result.exit_code == 0, result.output
        record = json.loads(out.read_text())
        assert record["total_passed"] == 14
        assert record["total_failed"] == 1
        assert record["total_skipped"] == 2
        assert record["trend"]["direction"] == "declining"
        assert len(json.loads(history.read_text())) == 2

    def test_fail_on_failures(self, reports: list[Path], tmp_path: Path) -> None:
        result = runner.invoke(
            cli, ["report", "merge", *map(str, reports), "-o", str(tmp_path / "m.json"), "--fail-on-failures"]
        )
        assert result.exit_code == 1

    def test_unreadable_report_is_skipped(self, reports: list[Path], tmp_path: Path) -> None:
        broken = tmp_path / "broken.xml"
        broken.write_text("<testsuite")

        result = runner.invoke(
            cli, ["report", "merge", str(broken), *map(str, reports), "-o", str(tmp_path / "m.json")]
        )

        assert result.exit_code == 0
        assert "Skipped 1 unreadable report" in result.output

    def test_history_with_non_numeric_rate(self, reports: list[Path], tmp_path: Path) -> None:
        """A bad history record is skipped; the merge still succeeds."""
        history = tmp_path / "history.json"
        history.write_text(json.dumps([{"success_rate": "n/a"}]))
        out = tmp_path / "merged.json"

        result = runner.invoke(
            cli, ["report", "merge", *map(str, reports), "--output", str(out), "--history", str(history)]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(out.read_text())["trend"] == {"direction": "stable", "delta": 0.0}
        assert len(json.loads(history.read_text())) == 2
