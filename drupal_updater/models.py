"""Data models for drupal-updater.

These Pydantic models represent the core data structures passed between the
phases of an update run. External tool output is validated into them at the
parsing boundary (see ``composer.py``).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import UpdaterConfig


class Package(BaseModel):
    """A locked package as reported by ``composer show --outdated --format json``.

    Attributes:
        name: Package name in ``vendor/name`` form.
        current_version: Version currently in the lock file.
        latest_version: Latest available version, if composer reported one.
        is_direct: Whether the package is a root requirement. Derived per
                   run, never read from composer output.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    current_version: str = Field(alias="version")
    latest_version: str | None = Field(default=None, alias="latest")
    is_direct: bool = False

    @property
    def has_update(self) -> bool:
        return bool(self.latest_version) and self.latest_version != self.current_version


class UpdatePlan(BaseModel):
    """Ordered, duplicate-free list of direct packages to update.

    Order is the resolution order, which is also the update and commit order.
    """

    packages: list[str] = Field(default_factory=list)

    @field_validator("packages")
    @classmethod
    def _dedupe(cls, packages: list[str]) -> list[str]:
        return list(dict.fromkeys(packages))


class LockDiff(BaseModel):
    """Structural delta between two lock files.

    Attributes:
        changes: Map of package name → (from, to) for main requirements.
        changes_dev: Same, for dev requirements.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    changes: dict[str, tuple[str, str]] = Field(default_factory=dict)
    changes_dev: dict[str, tuple[str, str]] = Field(
        default_factory=dict, alias="changes-dev"
    )

    @field_validator("changes", "changes_dev", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> Any:
        # PHP encodes an empty map as an empty list.
        if value is None or value == []:
            return {}
        if isinstance(value, dict):
            # composer-lock-diff may append a compare link as a third element.
            return {
                name: tuple(versions[:2]) if isinstance(versions, list) else versions
                for name, versions in value.items()
            }
        return value

    def is_empty(self) -> bool:
        return not self.changes and not self.changes_dev

    def has_package(self, package: str) -> bool:
        return package in self.changes or package in self.changes_dev

    def version_change(self, package: str) -> tuple[str, str] | None:
        """Return (from, to) for a package, checking main changes first."""
        return self.changes.get(package) or self.changes_dev.get(package)

    def without(self, package: str) -> LockDiff:
        """Return a copy of this diff with the package's own entries removed."""
        return LockDiff(
            changes={k: v for k, v in self.changes.items() if k != package},
            changes_dev={k: v for k, v in self.changes_dev.items() if k != package},
        )


class UpdateOutcome(str, Enum):
    """How a single package update attempt ended."""

    NO_CHANGE_AVAILABLE = "no-change-available"
    BLOCKED_BY_CONSTRAINTS = "blocked-by-constraints"
    UPDATED = "updated"
    FAILED = "failed"


class UpdateResult(BaseModel):
    """Outcome of one package update attempt.

    Created once by the orchestrator and never mutated afterwards.

    Attributes:
        package: The direct package that was targeted.
        outcome: Classification of the attempt.
        lock_diff: Lock changes introduced by the attempt (empty unless updated).
        commit_message: Subject of the commit made, if any.
        latest_version: Newer version that was available but not applied
                        (only for BLOCKED_BY_CONSTRAINTS).
        error: Diagnostic output for FAILED attempts.
    """

    model_config = ConfigDict(frozen=True)

    package: str
    outcome: UpdateOutcome
    lock_diff: LockDiff = Field(default_factory=LockDiff)
    commit_message: str | None = None
    latest_version: str | None = None
    error: str | None = None


class RunContext(BaseModel):
    """State owned by a single update run and discarded when it ends.

    Attributes:
        config: Effective configuration for the run.
        outdated: Snapshot of all outdated locked packages, fetched lazily
                  the first time an attempt needs it.
        results: One result per attempted package, in plan order.
    """

    config: UpdaterConfig
    outdated: list[Package] | None = None
    results: list[UpdateResult] = Field(default_factory=list)
