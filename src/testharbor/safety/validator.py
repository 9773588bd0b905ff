"""Path safety validation.

SafePathValidator is the single authority deciding whether a directory may be
mutated. Sandbox provisioning, sandbox removal and mock-data resets all go
through it instead of keeping their own containment checks.

Rules, evaluated per path, first match wins:

0. filesystem anchor or a direct child of it            -> dangerous
1. below the project temp root                          -> safe
2. below the user temp dir, with a sandbox marker, CI   -> safe
3. below a container workspace root, containerized      -> safe
4. below a CI runner temp root, CI                      -> safe
5. at or below a protected root (or the home dir itself) -> dangerous
6. anything else                                        -> unrecognized

"Below" always means strictly below: a root is never a valid target itself.
Windows-style paths are normalised textually on every host so that
``C:\\Windows\\System32`` and ``/Windows/System32`` are judged alike.
"""

from __future__ import annotations

import os
import posixpath
import re
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PureWindowsPath

import structlog

from testharbor.config.constants import PROTECTED_ROOTS, SANDBOX_PREFIX
from testharbor.config.models import HarborConfig, PathsConfig
from testharbor.core.errors import SafetyViolation
from testharbor.environment.models import EnvironmentClassification

log = structlog.get_logger(__name__)

_DRIVE = re.compile(r"^[A-Za-z]:[\\/]")

PathLike = str | os.PathLike[str]


class Verdict(str, Enum):
    SAFE = "safe"
    DANGEROUS = "dangerous"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True, slots=True)
class PathSafetyVerdict:
    """Judgement on one path. Transient; never cached."""

    path: Path
    verdict: Verdict
    reason: str
    rule: str

    @property
    def is_safe(self) -> bool:
        return self.verdict is Verdict.SAFE


# =============================================================================
# Normalisation
# =============================================================================


@dataclass(frozen=True, slots=True)
class NormalizedPath:
    """A path reduced to comparable keys.

    key:  posix-style, keeps the drive ("c:/users/x"); case-folded for
          Windows-style paths, case-preserving for POSIX ones.
    bare: key without drive, always case-folded; used for protected-root and
          depth checks.
    """

    native: Path
    key: str
    bare: str

    @property
    def depth(self) -> int:
        return 0 if self.bare == "/" else self.bare.count("/")

    def is_below(self, root: NormalizedPath) -> bool:
        prefix = root.key if root.key.endswith("/") else root.key + "/"
        return self.key != root.key and self.key.startswith(prefix)

    def relative_parts(self, root: NormalizedPath) -> list[str]:
        prefix = root.key if root.key.endswith("/") else root.key + "/"
        return self.key[len(prefix) :].split("/")


def _is_windows_style(raw: str) -> bool:
    return bool(_DRIVE.match(raw)) or raw.startswith("\\")


def _collapse(posix: str) -> str:
    collapsed = posixpath.normpath(posix)
    if collapsed.startswith("//"):
        collapsed = "/" + collapsed.lstrip("/")
    return collapsed


def _resolve(path: Path, base: Path) -> Path:
    path = path.expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()


def normalize_path(path: PathLike, base: Path) -> NormalizedPath:
    """Normalise a path for safety comparisons.

    Relative paths are anchored at ``base``. Native paths are resolved
    (symlinks included) so a link cannot smuggle a protected target past the
    prefix checks. Foreign Windows paths on a POSIX host are never touched on
    disk, only parsed.
    """
    raw = os.fspath(path)
    if os.name == "nt" or _is_windows_style(raw):
        if os.name == "nt":
            native = _resolve(Path(raw), base)
            pure = PureWindowsPath(native)
        else:
            native = Path(raw)
            pure = PureWindowsPath(raw)
        rest = _collapse("/" + "/".join(pure.parts[1:])).lower()
        return NormalizedPath(native=native, key=f"{pure.drive.lower()}{rest}", bare=rest)

    native = _resolve(Path(raw), base)
    key = _collapse(native.as_posix())
    return NormalizedPath(native=native, key=key, bare=key.lower())


def _protected_key(root: str) -> str:
    text = root.replace("\\", "/")
    if _DRIVE.match(root):
        text = text[2:]
    return _collapse(text).lower()


# =============================================================================
# Validator
# =============================================================================


class SafePathValidator:
    """Judges whether candidate directories are safe to write to.

    Args:
        project_root: Repository root; anchors relative paths and the temp root
        config: Safe-location configuration
        environ: Environment used to discover CI runner temp dirs
    """

    def __init__(
        self,
        project_root: Path,
        config: PathsConfig | None = None,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config or PathsConfig()
        self._project_root = project_root.expanduser().resolve()
        env = os.environ if environ is None else environ

        self._temp_root = self._norm(self._config.temp_root)
        self._user_temp = self._norm(self._config.user_temp_dir or tempfile.gettempdir())
        self._container_roots = [self._norm(r) for r in self._config.container_roots]
        ci_roots = [env[var] for var in self._config.ci_temp_env_vars if env.get(var)]
        ci_roots.extend(self._config.ci_temp_roots)
        self._ci_roots = [self._norm(r) for r in ci_roots]
        self._protected = [
            _protected_key(r) for r in (*PROTECTED_ROOTS, *self._config.extra_protected_roots)
        ]
        self._home = self._norm(Path.home())

    @classmethod
    def from_config(
        cls,
        project_root: Path,
        config: HarborConfig,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> SafePathValidator:
        return cls(project_root, config.paths, environ=environ)

    @property
    def project_root(self) -> Path:
        return self._project_root

    @property
    def temp_root(self) -> Path:
        """The project's designated temp root."""
        return self._temp_root.native

    def _norm(self, path: PathLike) -> NormalizedPath:
        return normalize_path(path, self._project_root)

    # -------------------------------------------------------------------------
    # Judgement
    # -------------------------------------------------------------------------

    def verdict(self, path: PathLike, classification: EnvironmentClassification) -> PathSafetyVerdict:
        """Judge a single path without raising."""
        norm = self._norm(path)

        def make(verdict: Verdict, rule: str, reason: str) -> PathSafetyVerdict:
            return PathSafetyVerdict(path=norm.native, verdict=verdict, reason=reason, rule=rule)

        if norm.depth <= 1:
            return make(
                Verdict.DANGEROUS,
                "filesystem_root",
                "filesystem root or top-level directory",
            )

        if norm.is_below(self._temp_root):
            return make(Verdict.SAFE, "project_temp", f"inside project temp root {self._temp_root.native}")

        if (
            classification.is_ci
            and norm.is_below(self._user_temp)
            and any(part.startswith(SANDBOX_PREFIX) for part in norm.relative_parts(self._user_temp))
        ):
            return make(Verdict.SAFE, "user_temp", f"sandbox inside user temp {self._user_temp.native}")

        if classification.is_containerized:
            for root in self._container_roots:
                if norm.is_below(root):
                    return make(Verdict.SAFE, "container_root", f"inside container root {root.native}")

        if classification.is_ci:
            for root in self._ci_roots:
                if norm.is_below(root):
                    return make(Verdict.SAFE, "ci_temp", f"inside CI runner temp {root.native}")

        for protected in self._protected:
            if norm.bare == protected or norm.bare.startswith(protected + "/"):
                return make(Verdict.DANGEROUS, "protected_root", f"protected system location {protected}")
        if norm.key == self._home.key:
            return make(Verdict.DANGEROUS, "protected_root", "user home directory")

        return make(
            Verdict.UNRECOGNIZED,
            "unrecognized",
            f"not below any safe root for a {classification.kind.value} run",
        )

    def validate(
        self,
        paths: Iterable[PathLike],
        classification: EnvironmentClassification,
    ) -> list[PathSafetyVerdict]:
        """Judge every path; raise on the first one that is not safe.

        Returns:
            One safe verdict per path, in input order.

        Raises:
            SafetyViolation: DangerousRootWrite or UnrecognizedPath.
        """
        verdicts: list[PathSafetyVerdict] = []
        for path in paths:
            result = self.verdict(path, classification)
            if result.verdict is Verdict.DANGEROUS:
                log.error("path_rejected", path=str(result.path), rule=result.rule, reason=result.reason)
                raise SafetyViolation.dangerous_root_write(str(result.path), result.reason)
            if result.verdict is Verdict.UNRECOGNIZED:
                log.error("path_rejected", path=str(result.path), rule=result.rule, reason=result.reason)
                raise SafetyViolation.unrecognized_path(str(result.path), result.reason)
            log.debug("path_validated", path=str(result.path), rule=result.rule)
            verdicts.append(result)
        return verdicts

    def verify_exists(self, paths: Iterable[PathLike]) -> None:
        """Post-creation check: every expected directory must exist.

        A missing directory means path resolution went wrong somewhere, so it
        is a safety violation rather than a benign absence.
        """
        for path in paths:
            if not Path(path).is_dir():
                log.error("expected_directory_missing", path=str(path))
                raise SafetyViolation.missing_expected_directory(str(path))

    def is_within(self, path: PathLike, root: PathLike) -> bool:
        """True if ``path`` is strictly below ``root``."""
        return self._norm(path).is_below(self._norm(root))

    def overlaps(self, first: PathLike, second: PathLike) -> bool:
        """True if the two paths are equal or one contains the other."""
        a, b = self._norm(first), self._norm(second)
        return a.key == b.key or a.is_below(b) or b.is_below(a)

    def assert_contained(self, path: PathLike, root: PathLike) -> Path:
        """Raise UnrecognizedPath unless ``path`` is strictly below ``root``.

        Returns:
            The resolved path.
        """
        norm, root_norm = self._norm(path), self._norm(root)
        if not norm.is_below(root_norm):
            log.error("containment_failed", path=str(norm.native), root=str(root_norm.native))
            raise SafetyViolation.unrecognized_path(
                str(norm.native), f"not contained in expected root {root_norm.native}"
            )
        return norm.native
