"""Tests for safety/validator.py.

Covers:
- verdict rules (filesystem root, project temp, user temp, container, CI,
  protected roots, unrecognized)
- validate() raising before any mutation
- Windows-style path normalisation on every host
- containment helpers
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from testharbor.config.models import PathsConfig
from testharbor.core.errors import ErrorCode, SafetyViolation
from testharbor.environment.models import EnvironmentClassification
from testharbor.safety.validator import SafePathValidator, Verdict, normalize_path

UNRELATED = "/data/elsewhere/dir"


class TestProtectedAndRootPaths:
    """Paths that are dangerous in every environment."""

    @pytest.mark.parametrize(
        "path",
        [
            "/Windows/System32",
            "C:\\Windows\\System32",
            "c:/windows/system32/drivers",
            "C:\\Program Files\\App",
            "/etc/passwd.d",
            "/usr/local/lib",
        ],
    )
    def test_protected_paths_are_dangerous(
        self,
        validator: SafePathValidator,
        local_env: EnvironmentClassification,
        container_env: EnvironmentClassification,
        path: str,
    ) -> None:
        """System directories are dangerous regardless of classification."""
        for env in (local_env, container_env):
            assert validator.verdict(path, env).verdict is Verdict.DANGEROUS

    def test_validate_windows_system32_raises_dangerous_root_write(
        self, validator: SafePathValidator, ci_env: EnvironmentClassification
    ) -> None:
        """Validate(["/Windows/System32"]) raises DangerousRootWrite."""
        with pytest.raises(SafetyViolation) as exc_info:
            validator.validate(["/Windows/System32"], ci_env)

        assert exc_info.value.code == ErrorCode.DANGEROUS_ROOT_WRITE
        assert exc_info.value.category == "DangerousRootWrite"

    @pytest.mark.parametrize("path", ["/", "C:\\", "/workspace", "D:/a"])
    def test_filesystem_root_and_top_level_are_dangerous(
        self, validator: SafePathValidator, container_env: EnvironmentClassification, path: str
    ) -> None:
        """Anchors and their direct children are never safe."""
        assert validator.verdict(path, container_env).verdict is Verdict.DANGEROUS

    def test_home_directory_itself_is_dangerous(
        self, validator: SafePathValidator, local_env: EnvironmentClassification
    ) -> None:
        """The user's home directory is never a write target."""
        result = validator.verdict(Path.home(), local_env)
        assert result.verdict is Verdict.DANGEROUS

    def test_extra_protected_roots(
        self, project_root: Path, paths_config: PathsConfig, local_env: EnvironmentClassification
    ) -> None:
        """Configured extra prefixes are dangerous too."""
        config = paths_config.model_copy(update={"extra_protected_roots": ["/data/secure"]})
        validator = SafePathValidator(project_root, config, environ={})

        assert validator.verdict("/data/secure/x", local_env).verdict is Verdict.DANGEROUS


class TestProjectTempRoot:
    """Rule: below the project temp root is safe everywhere."""

    def test_suite_dir_under_project_tmp_is_safe(
        self, validator: SafePathValidator, project_root: Path, local_env: EnvironmentClassification
    ) -> None:
        """Validate(["<projectRoot>/tmp/suite-42"]) returns Safe with no raise."""
        verdicts = validator.validate([project_root / "tmp" / "suite-42"], local_env)

        assert len(verdicts) == 1
        assert verdicts[0].is_safe
        assert verdicts[0].rule == "project_temp"

    def test_relative_path_anchored_at_project_root(
        self, validator: SafePathValidator, local_env: EnvironmentClassification
    ) -> None:
        """Relative paths are judged relative to the project root."""
        assert validator.verdict("tmp/suite-42", local_env).is_safe

    def test_temp_root_itself_is_not_safe(
        self, validator: SafePathValidator, project_root: Path, local_env: EnvironmentClassification
    ) -> None:
        """A safe root is never itself a valid target."""
        assert not validator.verdict(project_root / "tmp", local_env).is_safe

    def test_dotdot_escape_is_not_safe(
        self, validator: SafePathValidator, project_root: Path, local_env: EnvironmentClassification
    ) -> None:
        """tmp/../.. resolves outside the temp root."""
        escaped = project_root / "tmp" / ".." / ".." / "outside"
        assert not validator.verdict(escaped, local_env).is_safe

    @pytest.mark.skipif(os.name == "nt", reason="symlink creation needs privileges on Windows")
    def test_symlink_out_of_temp_root_is_not_safe(
        self,
        validator: SafePathValidator,
        project_root: Path,
        tmp_path: Path,
        local_env: EnvironmentClassification,
    ) -> None:
        """A link inside tmp/ pointing elsewhere is judged by its target."""
        (project_root / "tmp").mkdir()
        outside = tmp_path / "outside"
        outside.mkdir()
        (project_root / "tmp" / "link").symlink_to(outside)

        assert not validator.verdict(project_root / "tmp" / "link" / "x", local_env).is_safe


class TestEnvironmentDependentRoots:
    """Container, CI and user temp roots depend on the classification."""

    def test_container_root_safe_only_when_containerized(
        self,
        validator: SafePathValidator,
        tmp_path: Path,
        container_env: EnvironmentClassification,
        local_env: EnvironmentClassification,
        ci_env: EnvironmentClassification,
    ) -> None:
        """Container workspace roots are safe only inside a container."""
        path = tmp_path / "container" / "run-1"

        assert validator.verdict(path, container_env).is_safe
        assert not validator.verdict(path, local_env).is_safe
        assert not validator.verdict(path, ci_env).is_safe

    def test_ci_runner_temp_safe_only_on_ci(
        self,
        validator: SafePathValidator,
        tmp_path: Path,
        ci_env: EnvironmentClassification,
        local_env: EnvironmentClassification,
    ) -> None:
        """CI runner temp roots are safe only on CI."""
        path = tmp_path / "runner-temp" / "job"

        assert validator.verdict(path, ci_env).rule == "ci_temp"
        assert not validator.verdict(path, local_env).is_safe

    def test_ci_temp_from_environment_variable(
        self,
        project_root: Path,
        paths_config: PathsConfig,
        tmp_path: Path,
        ci_env: EnvironmentClassification,
    ) -> None:
        """RUNNER_TEMP-style variables add CI roots."""
        config = paths_config.model_copy(update={"ci_temp_env_vars": ["RUNNER_TEMP"]})
        runner_temp = tmp_path / "gh-temp"
        validator = SafePathValidator(project_root, config, environ={"RUNNER_TEMP": str(runner_temp)})

        assert validator.verdict(runner_temp / "x", ci_env).is_safe

    def test_user_temp_requires_marker_and_ci(
        self,
        validator: SafePathValidator,
        tmp_path: Path,
        ci_env: EnvironmentClassification,
        local_env: EnvironmentClassification,
    ) -> None:
        """User temp is safe only for harbor- sandboxes on CI."""
        user_temp = tmp_path / "usertemp"

        assert validator.verdict(user_temp / "harbor-unit-1" / "work", ci_env).rule == "user_temp"
        assert not validator.verdict(user_temp / "random" / "work", ci_env).is_safe
        assert not validator.verdict(user_temp / "harbor-unit-1", local_env).is_safe

    def test_unlisted_path_is_unrecognized(
        self, validator: SafePathValidator, ci_env: EnvironmentClassification
    ) -> None:
        """Anything not matched by a rule is unrecognized, not safe."""
        with pytest.raises(SafetyViolation) as exc_info:
            validator.validate([UNRELATED], ci_env)
        assert exc_info.value.category == "UnrecognizedPath"


class TestValidate:
    """validate() ordering and verify_exists()."""

    def test_raises_on_first_unsafe_path(
        self, validator: SafePathValidator, project_root: Path, local_env: EnvironmentClassification
    ) -> None:
        """A single bad path fails the whole batch."""
        with pytest.raises(SafetyViolation) as exc_info:
            validator.validate([project_root / "tmp" / "ok", "/etc/x"], local_env)
        assert exc_info.value.path == "/etc/x"

    def test_validate_never_touches_filesystem(
        self, validator: SafePathValidator, project_root: Path, local_env: EnvironmentClassification
    ) -> None:
        """Validation of a safe path creates nothing."""
        target = project_root / "tmp" / "suite-42"
        validator.validate([target], local_env)
        assert not target.exists()

    def test_verify_exists_raises_for_missing_directory(
        self, validator: SafePathValidator, project_root: Path
    ) -> None:
        """Missing directories after creation are a MissingExpectedDirectory violation."""
        with pytest.raises(SafetyViolation) as exc_info:
            validator.verify_exists([project_root / "tmp" / "never-created"])
        assert exc_info.value.code == ErrorCode.MISSING_EXPECTED_DIRECTORY


class TestContainment:
    """is_within / overlaps / assert_contained."""

    def test_is_within_is_strict(self, validator: SafePathValidator, tmp_path: Path) -> None:
        assert validator.is_within(tmp_path / "a" / "b", tmp_path / "a")
        assert not validator.is_within(tmp_path / "a", tmp_path / "a")
        assert not validator.is_within(tmp_path / "ab", tmp_path / "a")

    def test_overlaps_is_symmetric(self, validator: SafePathValidator, tmp_path: Path) -> None:
        assert validator.overlaps(tmp_path / "a", tmp_path / "a" / "b")
        assert validator.overlaps(tmp_path / "a" / "b", tmp_path / "a")
        assert validator.overlaps(tmp_path / "a", tmp_path / "a")
        assert not validator.overlaps(tmp_path / "a", tmp_path / "b")

    def test_assert_contained_rejects_escape(self, validator: SafePathValidator, tmp_path: Path) -> None:
        with pytest.raises(SafetyViolation) as exc_info:
            validator.assert_contained(tmp_path / "a" / ".." / "b", tmp_path / "a")
        assert exc_info.value.code == ErrorCode.UNRECOGNIZED_PATH


class TestNormalizePath:
    """Textual normalisation of Windows-style paths."""

    def test_windows_path_case_folded_with_drive(self, tmp_path: Path) -> None:
        norm = normalize_path("C:\\Users\\Dev\\Work", tmp_path)
        assert norm.key == "c:/users/dev/work"
        assert norm.bare == "/users/dev/work"
        assert norm.depth == 3

    def test_windows_dotdot_collapsed(self, tmp_path: Path) -> None:
        norm = normalize_path("C:\\Temp\\..\\Windows", tmp_path)
        assert norm.bare == "/windows"
