"""Proof that dynamic mock data is being touched inside a container.

The lock is a JSON token file created once per container lifetime:

    $TESTHARBOR_MOCK_ROOT/.harbor-lock/lock.json

It is valid only while all three hold at the moment of the check:

1. the token file exists and still carries this lock's token,
2. the lock directory is strictly below the currently reported mock root,
3. a fresh classify() reports a containerized environment.

A lock copied from elsewhere, left over from another container, or checked on
a developer machine fails one of these and is rejected as stale.
"""

from __future__ import annotations

import json
import os
import secrets
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from testharbor.config.constants import LOCK_DIRNAME, LOCK_FILENAME, MOCK_ROOT_VAR
from testharbor.core.errors import SafetyViolation
from testharbor.environment.classifier import classify
from testharbor.environment.models import EnvironmentClassification
from testharbor.safety.validator import SafePathValidator, normalize_path

log = structlog.get_logger(__name__)

Classifier = Callable[[Mapping[str, str]], EnvironmentClassification]


def lock_file_for(mock_root: Path) -> Path:
    return mock_root / LOCK_DIRNAME / LOCK_FILENAME


@dataclass(frozen=True, slots=True)
class DockerEnvironmentLock:
    """Coarse single-owner lock over the dynamic mock root."""

    token: str
    created_at: datetime
    directory: Path

    @property
    def token_file(self) -> Path:
        return self.directory / LOCK_FILENAME

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "created_at": self.created_at.isoformat(),
            "directory": str(self.directory),
        }

    @classmethod
    def acquire(
        cls,
        mock_root: Path,
        classification: EnvironmentClassification,
        validator: SafePathValidator,
    ) -> DockerEnvironmentLock:
        """Create the lock for this container, or return the existing one.

        Raises:
            SafetyViolation: Outside a container, or if the lock directory is
                not a safe location.
        """
        directory = mock_root / LOCK_DIRNAME
        if not classification.is_containerized:
            raise SafetyViolation.stale_or_invalid_lock(
                str(directory), f"locks can only be created inside a container (kind={classification.kind.value})"
            )
        validator.validate([directory], classification)

        existing = cls.load(mock_root)
        if existing is not None:
            log.debug("lock_reused", directory=str(directory))
            return existing

        lock = cls(token=secrets.token_hex(16), created_at=datetime.now(UTC), directory=directory)
        directory.mkdir(parents=True, exist_ok=True)
        lock.token_file.write_text(json.dumps(lock.to_dict(), indent=2), encoding="utf-8")
        validator.verify_exists([directory])
        log.info("lock_acquired", directory=str(directory))
        return lock

    @classmethod
    def load(cls, mock_root: Path) -> DockerEnvironmentLock | None:
        """Read the lock under ``mock_root``; None if there is none.

        Raises:
            SafetyViolation: If the token file exists but is unreadable.
        """
        path = lock_file_for(mock_root)
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return cls(
                token=data["token"],
                created_at=datetime.fromisoformat(data["created_at"]),
                directory=Path(data["directory"]),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise SafetyViolation.stale_or_invalid_lock(str(path), f"unreadable token file: {e}") from e

    def assert_valid(
        self,
        environ: Mapping[str, str] | None = None,
        *,
        classifier: Classifier = classify,
    ) -> None:
        """Check the lock against the live environment.

        Raises:
            SafetyViolation: StaleOrInvalidLock when any condition fails.
        """
        env = os.environ if environ is None else environ

        def reject(reason: str) -> SafetyViolation:
            log.error("lock_rejected", directory=str(self.directory), reason=reason)
            return SafetyViolation.stale_or_invalid_lock(str(self.directory), reason)

        if not self.token_file.is_file():
            raise reject("token file does not exist")
        try:
            stored = json.loads(self.token_file.read_text(encoding="utf-8")).get("token")
        except (OSError, ValueError, AttributeError) as e:
            raise reject(f"unreadable token file: {e}") from e
        if stored != self.token:
            raise reject("token file belongs to a different lock")

        reported_root = env.get(MOCK_ROOT_VAR)
        if not reported_root:
            raise reject(f"{MOCK_ROOT_VAR} is not set")
        base = Path.cwd()
        if not normalize_path(self.directory, base).is_below(normalize_path(reported_root, base)):
            raise reject(f"lock directory is outside the current dynamic root {reported_root}")

        live = classifier(env)
        if not live.is_containerized:
            raise reject(f"environment is no longer containerized (kind={live.kind.value})")

        log.debug("lock_valid", directory=str(self.directory))
