"""Static/dynamic mock data partition.

Static fixtures live in the repository (``tests/mock-data/<component>``) and
are never modified by automated resets. Dynamic fixtures are generated per
run into container-provided directories:

    TESTHARBOR_MOCK_<COMPONENT>_ROOT   per-component dynamic root
    TESTHARBOR_MOCK_ROOT               shared dynamic root; <root>/<component>
                                       is used when the per-component
                                       variable is absent, and it holds the lock

Outside a container no component has a dynamic root, and any dynamic-data
operation refuses to run rather than writing somewhere else. A dynamic root
must also lie inside the mock root that holds the lock; a per-component root
pointing elsewhere is refused as not covered by the lock.

Path checks go through SafePathValidator; this module keeps no containment
logic of its own.
"""

from __future__ import annotations

import os
import re
import shutil
from collections.abc import Iterable, Mapping
from pathlib import Path

import structlog

from testharbor.config.constants import LOCK_DIRNAME, MOCK_COMPONENT_VAR_TEMPLATE, MOCK_ROOT_VAR
from testharbor.config.models import MockDataConfig
from testharbor.core.errors import MockDataError, SafetyViolation
from testharbor.environment.classifier import classify
from testharbor.environment.models import EnvironmentClassification
from testharbor.mockdata.lock import Classifier, DockerEnvironmentLock, lock_file_for
from testharbor.mockdata.models import MockComponent, ResetResult
from testharbor.safety.validator import SafePathValidator

log = structlog.get_logger(__name__)

ALL_COMPONENTS = "*"

_ENV_TOKEN = re.compile(r"[^A-Z0-9]+")


def component_env_var(name: str) -> str:
    """Name of the per-component dynamic root variable."""
    return MOCK_COMPONENT_VAR_TEMPLATE.format(name=_ENV_TOKEN.sub("_", name.upper()))


class MockDataPartition:
    """Resolves mock components and performs dynamic-only resets.

    Args:
        validator: The path safety authority
        classification: Classification of the current run
        config: Mock data configuration
        environ: Environment holding the dynamic root variables (read live)
        classifier: Used for the live re-classification of lock checks
    """

    def __init__(
        self,
        validator: SafePathValidator,
        classification: EnvironmentClassification,
        config: MockDataConfig | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        classifier: Classifier = classify,
    ) -> None:
        self._validator = validator
        self._classification = classification
        self._config = config or MockDataConfig()
        self._environ = environ
        self._classifier = classifier
        self._static_base = validator.project_root / self._config.static_root

    @property
    def _env(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    @property
    def static_base(self) -> Path:
        return self._static_base

    def component_names(self) -> list[str]:
        return list(self._config.components)

    def mock_root(self) -> Path | None:
        """The shared dynamic mock root reported by the container, if any."""
        value = self._env.get(MOCK_ROOT_VAR)
        return Path(value) if value else None

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get(self, name: str) -> MockComponent:
        """Resolve a component's static and dynamic roots.

        Raises:
            MockDataError: Unknown component name.
        """
        if name not in self._config.components:
            raise MockDataError.unknown_component(name, self.component_names())

        static_root = self._static_base / name
        explicit = self._env.get(component_env_var(name))
        shared = self.mock_root()

        dynamic_root: Path | None = None
        if self._classification.is_containerized:
            if explicit:
                dynamic_root = Path(explicit)
            elif shared is not None:
                dynamic_root = shared / name
        elif explicit or shared is not None:
            log.warning(
                "dynamic_root_ignored",
                component=name,
                kind=self._classification.kind.value,
                reason="dynamic mock roots are only honoured inside a container",
            )

        return MockComponent(name=name, static_root=static_root, dynamic_root=dynamic_root)

    def _select(self, components: str | Iterable[str]) -> list[MockComponent]:
        if isinstance(components, str):
            names = self.component_names() if components == ALL_COMPONENTS else [components]
        else:
            names = list(components)
            if ALL_COMPONENTS in names:
                names = self.component_names()
        return [self.get(name) for name in dict.fromkeys(names)]

    # -------------------------------------------------------------------------
    # Lock
    # -------------------------------------------------------------------------

    def acquire_lock(self) -> DockerEnvironmentLock:
        """Create (or reuse) the container lock under the shared mock root."""
        mock_root = self.mock_root()
        if mock_root is None:
            raise SafetyViolation.stale_or_invalid_lock("<unset>", f"{MOCK_ROOT_VAR} is not set")
        return DockerEnvironmentLock.acquire(mock_root, self._classification, self._validator)

    def assert_lock(self, lock: DockerEnvironmentLock | None = None) -> DockerEnvironmentLock:
        """Load (if needed) and check the container lock against the live environment."""
        if lock is None:
            mock_root = self.mock_root()
            if mock_root is None:
                raise SafetyViolation.stale_or_invalid_lock("<unset>", f"{MOCK_ROOT_VAR} is not set")
            lock = DockerEnvironmentLock.load(mock_root)
            if lock is None:
                raise SafetyViolation.stale_or_invalid_lock(
                    str(lock_file_for(mock_root)), "lock token file does not exist"
                )
        lock.assert_valid(self._env, classifier=self._classifier)
        return lock

    # -------------------------------------------------------------------------
    # Dynamic data operations
    # -------------------------------------------------------------------------

    def _checked_dynamic_root(self, component: MockComponent, lock: DockerEnvironmentLock | None) -> Path:
        dynamic_root = component.require_dynamic_root()
        self._validator.validate([dynamic_root], self._classification)
        if lock is not None:
            covered = lock.directory.parent
            # Equal to or below the locked mock root
            if self._validator.is_within(covered, dynamic_root) or not self._validator.overlaps(dynamic_root, covered):
                log.error("dynamic_root_not_locked", component=component.name, root=str(dynamic_root))
                raise SafetyViolation.stale_or_invalid_lock(
                    str(lock.directory),
                    f"dynamic root {dynamic_root} of '{component.name}' is outside the locked root {covered}",
                )
        if self._validator.overlaps(dynamic_root, self._static_base) or self._validator.overlaps(
            dynamic_root, component.static_root
        ):
            raise SafetyViolation.dangerous_root_write(
                str(dynamic_root), f"dynamic root overlaps static fixtures under {self._static_base}"
            )
        return dynamic_root

    def reset(
        self,
        components: str | Iterable[str] = ALL_COMPONENTS,
        scope: str | None = None,
        *,
        skip_safety: bool = False,
        lock: DockerEnvironmentLock | None = None,
    ) -> ResetResult:
        """Delete generated data for the selected components.

        Args:
            components: A component name, an iterable of names, or "*"
            scope: Optional relative subpath inside each dynamic root; only
                its contents are deleted
            skip_safety: Skip the lock check. Reserved for the harness's own
                test suite; path validation still applies.
            lock: Lock to check instead of loading it from the mock root

        Raises:
            SafetyViolation: Lock invalid or any path unsafe.
            MockDataError: Unknown component or no dynamic root.
        """
        selected = self._select(components)
        checked_lock = None
        if skip_safety:
            log.warning("lock_check_skipped", components=[c.name for c in selected])
        else:
            checked_lock = self.assert_lock(lock)

        # Judge every component before deleting anything
        targets: list[tuple[str, Path, Path]] = []
        for component in selected:
            dynamic_root = self._checked_dynamic_root(component, checked_lock)
            target = dynamic_root
            if scope:
                target = self._validator.assert_contained(dynamic_root / scope, dynamic_root)
            targets.append((component.name, dynamic_root, target))

        result = ResetResult(scope=scope)
        for name, dynamic_root, target in targets:
            result.removed[name] = self._clear(dynamic_root, target)
            log.info("mock_reset", component=name, target=str(target), removed=result.removed[name])
        return result

    def _clear(self, dynamic_root: Path, target: Path) -> int:
        """Remove the entries of ``target``. The lock directory always survives."""
        if not target.is_dir():
            return 0

        mock_root = self.mock_root()
        lock_dir = mock_root / LOCK_DIRNAME if mock_root is not None else None

        removed = 0
        for entry in sorted(target.iterdir()):
            if lock_dir is not None and (
                entry.name == LOCK_DIRNAME or self._validator.overlaps(entry, lock_dir)
            ):
                continue
            if entry.is_symlink() or not entry.is_dir():
                # Links are removed, never followed
                entry.unlink()
            else:
                self._validator.assert_contained(entry, dynamic_root)
                shutil.rmtree(entry)
            removed += 1
        return removed

    def write_dynamic(
        self,
        name: str,
        relative_path: str,
        content: str | bytes,
        *,
        skip_safety: bool = False,
        lock: DockerEnvironmentLock | None = None,
    ) -> Path:
        """Generate one dynamic fixture file.

        Returns:
            The written path.
        """
        component = self.get(name)
        checked_lock = None if skip_safety else self.assert_lock(lock)
        dynamic_root = self._checked_dynamic_root(component, checked_lock)
        target = self._validator.assert_contained(dynamic_root / relative_path, dynamic_root)

        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
        log.debug("mock_generated", component=name, path=str(target))
        return target
