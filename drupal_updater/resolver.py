"""Resolution of outdated or insecure packages to direct requirements.

``composer update <pkg>`` only makes sense for packages the project requires
directly. An outdated transitive dependency is updated by updating the
direct package that pulls it in (with ``--with-dependencies``), so each
candidate is mapped to the first direct package found among its dependents.
"""

from __future__ import annotations

from . import composer
from .shell import CommandTimeout

# Seconds allowed for the recursive ``composer why -r`` query, which can take
# a very long time on large dependency graphs.
WHY_RECURSIVE_TIMEOUT = 2


def find_direct_package(
    package: str,
    direct: list[str],
    *,
    recursive_timeout: float = WHY_RECURSIVE_TIMEOUT,
) -> str:
    """Find the direct package responsible for a transitive dependency.

    Tries the packages that depend on ``package`` directly first, then the
    whole dependent chain. The first dependent present in ``direct`` wins.

    If neither query finds one (e.g., the recursive query timed out on a deep
    dependency), the package itself is returned so that it still gets
    updated.

    Raises:
        CommandFailure: If a ``composer why`` query fails for a reason other
                        than the recursive query's timeout.
    """
    direct_set = set(direct)

    for dependent in composer.why(package):
        if dependent in direct_set:
            return dependent

    try:
        dependents = composer.why(package, recursive=True, timeout=recursive_timeout)
    except CommandTimeout:
        print(f"  {package}: recursive dependents query timed out after {recursive_timeout}s")
        dependents = []

    for dependent in dependents:
        if dependent in direct_set:
            return dependent

    print(f"  {package}: no direct package found, updating it directly")
    return package


def find_direct_packages(
    candidates: list[str],
    direct: list[str],
    *,
    recursive_timeout: float = WHY_RECURSIVE_TIMEOUT,
) -> list[str]:
    """Map candidate packages to the direct packages that cover them.

    Candidates that are already direct pass through unchanged; the others are
    resolved with find_direct_package(). Result is deduplicated, keeping the
    first occurrence.

    Args:
        candidates: Outdated or insecure package names, possibly transitive.
        direct: Direct package names for the current lock state.
        recursive_timeout: Seconds allowed for each recursive ``composer why``.

    Returns:
        Direct packages to update, never longer than ``candidates``.

    Example:
        candidates=["drupal/core", "symfony/console"], direct=["drupal/core"]
        → ["drupal/core"]  (symfony/console is required by drupal/core)
    """
    direct_set = set(direct)
    found = [c for c in candidates if c in direct_set]
    for package in candidates:
        if package not in direct_set:
            found.append(
                find_direct_package(package, direct, recursive_timeout=recursive_timeout)
            )
    return list(dict.fromkeys(found))


def resolve_update_plan(
    candidates: list[str],
    *,
    no_dev: bool = False,
    recursive_timeout: float = WHY_RECURSIVE_TIMEOUT,
) -> list[str]:
    """Resolve candidates against the project's current direct requirements."""
    if not candidates:
        return []
    direct = composer.direct_packages(no_dev)
    return find_direct_packages(candidates, direct, recursive_timeout=recursive_timeout)
