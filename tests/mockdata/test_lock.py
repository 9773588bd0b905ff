"""Tests for mockdata/lock.py.

Covers:
- acquire(): container-only creation, reuse, unsafe locations
- assert_valid(): token, reported-root and live-classification checks
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from testharbor.core.errors import ErrorCode, SafetyViolation
from testharbor.environment.models import EnvironmentClassification, EnvironmentKind
from testharbor.mockdata.lock import DockerEnvironmentLock, lock_file_for
from testharbor.safety.validator import SafePathValidator


def _containerized(_env: object) -> EnvironmentClassification:
    return EnvironmentClassification(kind=EnvironmentKind.CONTAINERIZED, is_target_platform=False)


def _local(_env: object) -> EnvironmentClassification:
    return EnvironmentClassification(kind=EnvironmentKind.INTERACTIVE_LOCAL, is_target_platform=True)


@pytest.fixture
def mock_root(tmp_path: Path) -> Path:
    root = tmp_path / "container" / "mock"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def lock(
    mock_root: Path, validator: SafePathValidator, container_env: EnvironmentClassification
) -> DockerEnvironmentLock:
    return DockerEnvironmentLock.acquire(mock_root, container_env, validator)


class TestAcquire:
    """Lock creation."""

    def test_creates_token_file(self, lock: DockerEnvironmentLock, mock_root: Path) -> None:
        """The token file lives under the mock root and carries the token."""
        assert lock.token_file == lock_file_for(mock_root)
        data = json.loads(lock.token_file.read_text())
        assert data["token"] == lock.token
        assert data["directory"] == str(mock_root / ".harbor-lock")

    def test_second_acquire_reuses_lock(
        self,
        lock: DockerEnvironmentLock,
        mock_root: Path,
        validator: SafePathValidator,
        container_env: EnvironmentClassification,
    ) -> None:
        """One lock per container lifetime."""
        again = DockerEnvironmentLock.acquire(mock_root, container_env, validator)
        assert again.token == lock.token

    def test_refused_outside_container(
        self, mock_root: Path, validator: SafePathValidator, local_env: EnvironmentClassification
    ) -> None:
        """A developer machine can never create a lock."""
        with pytest.raises(SafetyViolation) as exc_info:
            DockerEnvironmentLock.acquire(mock_root, local_env, validator)

        assert exc_info.value.code == ErrorCode.STALE_OR_INVALID_LOCK
        assert not (mock_root / ".harbor-lock").exists()

    def test_refused_at_unsafe_location(
        self, tmp_path: Path, validator: SafePathValidator, container_env: EnvironmentClassification
    ) -> None:
        """The lock directory must pass path validation."""
        outside = tmp_path / "not-a-container-root"

        with pytest.raises(SafetyViolation):
            DockerEnvironmentLock.acquire(outside, container_env, validator)
        assert not outside.exists()

    def test_load_missing_returns_none(self, mock_root: Path) -> None:
        assert DockerEnvironmentLock.load(mock_root) is None

    def test_load_corrupt_token_file(self, mock_root: Path) -> None:
        """A garbled token file is an invalid lock, not a missing one."""
        path = lock_file_for(mock_root)
        path.parent.mkdir()
        path.write_text("{not json")

        with pytest.raises(SafetyViolation) as exc_info:
            DockerEnvironmentLock.load(mock_root)
        assert exc_info.value.category == "StaleOrInvalidLock"


class TestAssertValid:
    """Validity against the live environment."""

    def test_valid_inside_reported_root(self, lock: DockerEnvironmentLock, mock_root: Path) -> None:
        """All three conditions hold: no exception."""
        lock.assert_valid({"TESTHARBOR_MOCK_ROOT": str(mock_root)}, classifier=_containerized)

    def test_lock_outside_reported_root_is_stale(
        self, lock: DockerEnvironmentLock, tmp_path: Path
    ) -> None:
        """Token present but the lock dir is outside the reported mock root."""
        # Given
        other_root = tmp_path / "container" / "other-mock"
        other_root.mkdir()

        # When
        with pytest.raises(SafetyViolation) as exc_info:
            lock.assert_valid({"TESTHARBOR_MOCK_ROOT": str(other_root)}, classifier=_containerized)

        # Then
        assert exc_info.value.code == ErrorCode.STALE_OR_INVALID_LOCK
        assert "outside" in exc_info.value.details["reason"]

    def test_missing_mock_root_variable(self, lock: DockerEnvironmentLock) -> None:
        with pytest.raises(SafetyViolation, match="TESTHARBOR_MOCK_ROOT"):
            lock.assert_valid({}, classifier=_containerized)

    def test_no_longer_containerized(self, lock: DockerEnvironmentLock, mock_root: Path) -> None:
        """A lock checked on a non-container host is rejected."""
        with pytest.raises(SafetyViolation) as exc_info:
            lock.assert_valid({"TESTHARBOR_MOCK_ROOT": str(mock_root)}, classifier=_local)
        assert "containerized" in exc_info.value.details["reason"]

    def test_token_mismatch(self, lock: DockerEnvironmentLock, mock_root: Path) -> None:
        """A token file rewritten by another lock invalidates this one."""
        data = json.loads(lock.token_file.read_text())
        data["token"] = "someone-else"
        lock.token_file.write_text(json.dumps(data))

        with pytest.raises(SafetyViolation, match="different lock"):
            lock.assert_valid({"TESTHARBOR_MOCK_ROOT": str(mock_root)}, classifier=_containerized)

    def test_token_file_deleted(self, lock: DockerEnvironmentLock, mock_root: Path) -> None:
        lock.token_file.unlink()

        with pytest.raises(SafetyViolation, match="does not exist"):
            lock.assert_valid({"TESTHARBOR_MOCK_ROOT": str(mock_root)}, classifier=_containerized)
