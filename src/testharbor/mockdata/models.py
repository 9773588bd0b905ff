"""Mock fixture data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from testharbor.core.errors import MockDataError


@dataclass(frozen=True, slots=True)
class MockComponent:
    """One mock component.

    ``static_root`` holds checked-in fixtures and is read-only for every
    automated reset. ``dynamic_root`` holds per-run generated fixtures and is
    only defined inside a container.
    """

    name: str
    static_root: Path
    dynamic_root: Path | None = None

    @property
    def has_dynamic_root(self) -> bool:
        return self.dynamic_root is not None

    def require_dynamic_root(self) -> Path:
        """The dynamic root, or MockDataError. Never falls back to static data."""
        if self.dynamic_root is None:
            raise MockDataError.dynamic_unavailable(
                self.name, "dynamic mock data is only provisioned inside a container"
            )
        return self.dynamic_root


@dataclass
class ResetResult:
    """Outcome of a dynamic-data reset."""

    scope: str | None = None
    removed: dict[str, int] = field(default_factory=dict)

    @property
    def components(self) -> list[str]:
        return list(self.removed)

    @property
    def total_removed(self) -> int:
        return sum(self.removed.values())
