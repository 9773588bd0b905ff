"""Sandbox data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from testharbor.config.constants import SANDBOX_ROOT_VAR, SANDBOX_SUBDIR_VAR_TEMPLATE


@dataclass(frozen=True, slots=True)
class SandboxHandle:
    """A per-suite sandbox tree. Owned by the suite that created it."""

    suite_name: str
    root_path: Path
    named_subpaths: dict[str, Path] = field(default_factory=dict, hash=False)
    created_at: datetime | None = None

    def subpath(self, name: str) -> Path:
        """Path of a named subdirectory (restore, backup, work, state, logs)."""
        try:
            return self.named_subpaths[name]
        except KeyError:
            known = ", ".join(sorted(self.named_subpaths))
            raise KeyError(f"Sandbox has no subdirectory '{name}' (known: {known})") from None

    def all_paths(self) -> list[Path]:
        """Root first, then every named subpath."""
        return [self.root_path, *self.named_subpaths.values()]

    def environment(self) -> dict[str, str]:
        """Variables that expose the sandbox to child test processes."""
        env = {SANDBOX_ROOT_VAR: str(self.root_path)}
        for name, path in self.named_subpaths.items():
            env[SANDBOX_SUBDIR_VAR_TEMPLATE.format(name=name.upper())] = str(path)
        return env

    def to_dict(self) -> dict[str, Any]:
        return {
            "suite_name": self.suite_name,
            "root_path": str(self.root_path),
            "named_subpaths": {k: str(v) for k, v in self.named_subpaths.items()},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
