"""Per-suite sandbox provisioning and teardown.

Every suite invocation gets its own directory tree:

    <base>/harbor-<suite>-<UTC stamp>-<pid>-<hex>/
        restore/  backup/  work/  state/  logs/

Names are unique across concurrently running processes without any shared
coordination: the suite slug, a timestamp, the PID and a random suffix make
collisions structurally impossible, and roots are always siblings so no
sandbox can be an ancestor of another.

Nothing is created before the SafePathValidator has judged the root and every
subpath safe, and nothing is deleted before the root is re-checked against
the base directory.
"""

from __future__ import annotations

import os
import re
import secrets
import shutil
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

import structlog

from testharbor.config.constants import SANDBOX_PREFIX, SANDBOX_SUBDIRS
from testharbor.config.models import HarborConfig
from testharbor.core.errors import CleanupFailure, ConfigError, SafetyViolation
from testharbor.core.logging import get_log_file_path, log_file_hint
from testharbor.core.progress import status
from testharbor.environment.models import EnvironmentClassification
from testharbor.safety.validator import SafePathValidator
from testharbor.sandbox.models import SandboxHandle

log = structlog.get_logger(__name__)

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")
_SLUG_MAX = 40
_NAME_ATTEMPTS = 3


def slugify(suite_name: str) -> str:
    """Lower-case, dash-separated, bounded suite slug."""
    slug = _SLUG_INVALID.sub("-", suite_name.lower()).strip("-")
    return slug[:_SLUG_MAX].rstrip("-") or "suite"


class IsolatedEnvironmentManager:
    """Allocates and tears down sandbox trees for test suites.

    Args:
        validator: The path safety authority
        classification: Classification of the current run
        base_dir: Parent of all sandbox roots (default: the project temp root)
        subdirs: Names of the subdirectories created in every sandbox
    """

    def __init__(
        self,
        validator: SafePathValidator,
        classification: EnvironmentClassification,
        *,
        base_dir: Path | None = None,
        subdirs: Iterable[str] = SANDBOX_SUBDIRS,
    ) -> None:
        self._validator = validator
        self._classification = classification
        self._base_dir = (base_dir or validator.temp_root).expanduser().resolve()
        self._subdirs = tuple(subdirs)
        self._handles: dict[Path, SandboxHandle] = {}
        self.cleanup_failures: list[CleanupFailure] = []

    @classmethod
    def from_config(
        cls,
        validator: SafePathValidator,
        classification: EnvironmentClassification,
        config: HarborConfig,
    ) -> IsolatedEnvironmentManager:
        base_dir = None
        if config.sandbox.base_dir:
            base_dir = Path(config.sandbox.base_dir)
            if not base_dir.is_absolute():
                base_dir = validator.project_root / base_dir
        return cls(validator, classification, base_dir=base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @property
    def active_handles(self) -> list[SandboxHandle]:
        return list(self._handles.values())

    # -------------------------------------------------------------------------
    # Provisioning
    # -------------------------------------------------------------------------

    def _root_name(self, suite_name: str, now: datetime) -> str:
        stamp = now.strftime("%Y%m%d-%H%M%S")
        return f"{SANDBOX_PREFIX}{slugify(suite_name)}-{stamp}-{os.getpid()}-{secrets.token_hex(3)}"

    def initialize(self, suite_name: str) -> SandboxHandle:
        """Create a fresh sandbox for ``suite_name``.

        Raises:
            SafetyViolation: If the root or any subpath is not safe, or a
                directory is missing right after creation.
        """
        if not suite_name or not suite_name.strip():
            raise ConfigError.invalid_value("suite_name", suite_name, "must not be empty")

        for _ in range(_NAME_ATTEMPTS):
            now = datetime.now(UTC)
            root = self._base_dir / self._root_name(suite_name, now)
            subpaths = {name: root / name for name in self._subdirs}

            # All verdicts first; no directory exists yet if this raises
            self._validator.validate([root, *subpaths.values()], self._classification)

            self._base_dir.mkdir(parents=True, exist_ok=True)
            try:
                root.mkdir()
            except FileExistsError:
                log.warning("sandbox_name_collision", root=str(root))
                continue
            try:
                for path in subpaths.values():
                    path.mkdir()
            except OSError:
                shutil.rmtree(root, ignore_errors=True)
                log.error("sandbox_partial_removed", root=str(root))
                raise
            break
        else:
            raise SafetyViolation.unrecognized_path(
                str(self._base_dir), f"could not allocate a unique sandbox after {_NAME_ATTEMPTS} attempts"
            )

        handle = SandboxHandle(
            suite_name=suite_name,
            root_path=root,
            named_subpaths=subpaths,
            created_at=now,
        )
        self._validator.verify_exists(handle.all_paths())
        self._handles[root] = handle
        log.info(
            "sandbox_created",
            suite=suite_name,
            root=str(root),
            kind=self._classification.kind.value,
        )
        return handle

    def export_environment(self, handle: SandboxHandle) -> dict[str, str]:
        """Variables handing the sandbox paths to a child test process."""
        return handle.environment()

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def remove(self, handle: SandboxHandle) -> bool:
        """Delete the sandbox tree. Idempotent.

        Returns:
            True if the tree is gone (removed now or already absent), False if
            deletion failed. Failures are logged and kept in
            ``cleanup_failures``; they never raise.

        Raises:
            SafetyViolation: If the handle no longer points at a sandbox
                inside the base directory.
        """
        removed = self._remove_root(handle.root_path)
        if removed:
            self._handles.pop(handle.root_path, None)
        return removed

    def remove_orphan(self, path: Path) -> bool:
        """Delete a sandbox left behind by an earlier run."""
        return self._remove_root(path)

    def _remove_root(self, root: Path) -> bool:
        resolved = self._validator.assert_contained(root, self._base_dir)
        if resolved.parent != self._base_dir or not resolved.name.startswith(SANDBOX_PREFIX):
            raise SafetyViolation.unrecognized_path(
                str(resolved), f"not a sandbox root directly under {self._base_dir}"
            )
        self._validator.validate([resolved], self._classification)

        if not resolved.exists():
            log.debug("sandbox_already_removed", root=str(resolved))
            return True

        try:
            shutil.rmtree(resolved)
        except OSError as e:
            failure = CleanupFailure.could_not_remove(str(resolved), str(e), log_file=get_log_file_path())
            self.cleanup_failures.append(failure)
            log.error("cleanup_failed", **failure.to_dict())
            status(f"Orphaned sandbox left behind: {resolved} ({e}){log_file_hint()}", style="error")
            return False

        log.info("sandbox_removed", root=str(resolved))
        return True

    def find_orphans(self) -> list[Path]:
        """Sandbox roots under the base directory not owned by this manager."""
        if not self._base_dir.is_dir():
            return []
        return sorted(
            child
            for child in self._base_dir.iterdir()
            if child.is_dir()
            and not child.is_symlink()
            and child.name.startswith(SANDBOX_PREFIX)
            and child not in self._handles
        )
