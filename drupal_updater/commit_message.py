"""Commit messages for package updates.

The subject tells at a glance what an update touched, e.g.
``UPDATE - drupal/token: package, dependencies, configuration``.
"""

from __future__ import annotations

from .models import LockDiff


def classify_changes(package: str, diff: LockDiff, configuration_changed: bool) -> list[str]:
    """List what an update changed, in a fixed order.

    Categories:
        package: the updated package's own version changed.
        dependencies: any other locked package changed.
        configuration: exported configuration changed.

    Returns ``["other"]`` when none apply.
    """
    categories: list[str] = []
    if diff.has_package(package):
        categories.append("package")
    if not diff.without(package).is_empty():
        categories.append("dependencies")
    if configuration_changed:
        categories.append("configuration")
    return categories or ["other"]


def update_commit_message(package: str, diff: LockDiff, configuration_changed: bool) -> str:
    """Build the commit subject for a package update."""
    categories = classify_changes(package, diff, configuration_changed)
    return f"UPDATE - {package}: {', '.join(categories)}"


def consolidation_commit_message(environment: str) -> str:
    return f"CONFIG - Consolidate current configuration on {environment}"
