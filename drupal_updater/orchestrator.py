"""Per-package update protocol.

Each package in the plan goes through:

1. ``composer update <pkg> --with-dependencies``
2. Lock comparison: unchanged → no update (or blocked by constraints)
3. For Drupal extensions: cache clear, database updates, config export
4. Commit of composer files (and configuration) with a descriptive message

A failure in step 1 or 3 restores composer.json and composer.lock and the
run moves on to the next package. One broken package never stops the run.
"""

from __future__ import annotations

from pathlib import Path

from . import composer, drush, repository
from .commit_message import update_commit_message
from .config import UpdaterConfig
from .models import Package, RunContext, UpdateOutcome, UpdateResult, UpdatePlan
from .shell import CommandFailure, substep


def snapshot_manifests() -> dict[str, bytes | None]:
    """Read composer.json and composer.lock as they are before an attempt."""
    snapshot: dict[str, bytes | None] = {}
    for name in repository.MANIFEST_FILES:
        path = Path(name)
        snapshot[name] = path.read_bytes() if path.exists() else None
    return snapshot


def snapshot_directory(path: str) -> dict[str, bytes]:
    """Read every file under a directory, keyed by relative path."""
    root = Path(path)
    if not root.is_dir():
        return {}
    return {
        file.relative_to(root).as_posix(): file.read_bytes()
        for file in sorted(root.rglob("*"))
        if file.is_file()
    }


def rollback(snapshot: dict[str, bytes | None], web_root: str | None = None) -> None:
    """Put composer.json and composer.lock back to their pre-attempt state.

    Files are restored from HEAD first (which also unstages them). If the
    working tree already differed from HEAD before the attempt, the
    snapshot contents are written back on top. Tracked web root files
    (composer scaffolding) are restored from HEAD too when given.
    """
    repository.restore(*repository.MANIFEST_FILES)
    if web_root and repository.is_tracked(web_root):
        repository.restore(web_root)
    for name, content in snapshot.items():
        path = Path(name)
        if content is not None and (not path.exists() or path.read_bytes() != content):
            path.write_bytes(content)


def report_failure(error: CommandFailure) -> str:
    """Print a visible failure banner and return the diagnostic text."""
    output = error.stderr.strip() or str(error)
    print("\n" + "!" * 51)
    print(output)
    print("Updating package FAILED: recovering previous state.")
    print("!" * 51)
    return output


def get_available_update(ctx: RunContext, package: str) -> Package | None:
    """Find a newer version of a package in the outdated snapshot.

    The snapshot is fetched once per run, on first use.
    """
    if ctx.outdated is None:
        ctx.outdated = composer.outdated_snapshot()
    for outdated in ctx.outdated:
        if outdated.name == package and outdated.has_update:
            return outdated
    return None


def is_drupal_extension(package: str) -> bool:
    return composer.is_extension_type(composer.package_type(package))


def post_process_extension(config: UpdaterConfig, web_root: str | None) -> None:
    """Apply a Drupal extension update to every environment.

    Clears caches, runs database updates and re-exports configuration. The
    web root (scaffold files) and the exported config are staged only once
    all of them succeeded.
    """
    drush.clear_caches(config.environments)
    drush.update_database(config.environments)
    drush.export_configuration(config.environments)
    print()
    if web_root:
        repository.stage(web_root)
    repository.stage(repository.CONFIG_DIR)


def classify_unchanged(ctx: RunContext, package: str, output: str) -> UpdateResult:
    """Decide why an update that succeeded left the lock file untouched."""
    available = get_available_update(ctx, package)
    conflicts = composer.find_constraint_conflicts(output)

    if available is None and not conflicts:
        print(f"There aren't available updates for {package} package.\n")
        return UpdateResult(package=package, outcome=UpdateOutcome.NO_CHANGE_AVAILABLE)

    latest = available.latest_version if available else None
    if latest:
        print(
            f"Package {package} has an update available to {latest} version. "
            "Due to composer.json constraints, it hasn't been updated.\n"
        )
    else:
        print(f"Package {package} can't be updated due to composer.json constraints.\n")
    if conflicts:
        print(f"\n{output.strip()}")
    return UpdateResult(
        package=package,
        outcome=UpdateOutcome.BLOCKED_BY_CONSTRAINTS,
        latest_version=latest,
    )


def update_package(ctx: RunContext, package: str) -> UpdateResult:
    """Try to update one package, committing on success.

    Args:
        ctx: Run context (config and cached outdated snapshot).
        package: Direct package to update.

    Returns:
        UpdateResult describing the outcome. Command failures during the
        update or the extension post-processing are rolled back and
        reported as FAILED rather than raised.
    """
    substep(f"Updating: {package}")
    snapshot = snapshot_manifests()
    config_before = snapshot_directory(repository.CONFIG_DIR)

    try:
        result = composer.update(package)
    except CommandFailure as exc:
        error = report_failure(exc)
        rollback(snapshot)
        return UpdateResult(package=package, outcome=UpdateOutcome.FAILED, error=error)

    if snapshot_manifests()["composer.lock"] == snapshot["composer.lock"]:
        return classify_unchanged(ctx, package, result.stdout + "\n" + result.stderr)

    repository.stage(*repository.MANIFEST_FILES)

    # Only changes the post-process itself makes count, not earlier drift.
    configuration_changed = False
    if is_drupal_extension(package):
        web_root = drush.find_web_root()
        try:
            post_process_extension(ctx.config, web_root)
        except CommandFailure as exc:
            error = report_failure(exc)
            rollback(snapshot, web_root)
            return UpdateResult(package=package, outcome=UpdateOutcome.FAILED, error=error)
        configuration_changed = snapshot_directory(repository.CONFIG_DIR) != config_before

    diff = composer.lock_diff()
    diff_text = composer.lock_diff_text()
    if diff_text:
        print("Updated packages:")
        print(f"{diff_text}\n")

    message = update_commit_message(package, diff, configuration_changed)
    committed = repository.commit(message, author=ctx.config.author, body=diff_text or None)

    return UpdateResult(
        package=package,
        outcome=UpdateOutcome.UPDATED,
        lock_diff=diff,
        commit_message=message if committed else None,
    )


def update_packages(ctx: RunContext, plan: UpdatePlan) -> list[UpdateResult]:
    """Update every package of the plan, strictly in order."""
    for package in plan.packages:
        ctx.results.append(update_package(ctx, package))
    return ctx.results
