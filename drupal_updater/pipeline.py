"""Update pipeline: consolidate → check → update → report.

This module sequences a drupal-updater run:
1. Consolidate configuration (commit each environment's exported config)
2. Check which packages need updating (outdated or insecure), resolved to
   direct requirements
3. Update packages one by one, committing each or rolling it back
4. Report results and what is still pending

Per-package failures are contained in step 3. Anything that fails outside
of it (consolidation, checking, git) aborts the run.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from . import composer
from .config import UpdaterConfig
from .consolidation import consolidate_configuration
from .models import RunContext, UpdatePlan, UpdateResult
from .orchestrator import update_packages
from .report import show_pending_updates, show_results, show_updated_packages
from .resolver import resolve_update_plan
from .shell import step


def print_summary() -> None:
    step("Summary")
    print("1. Consolidating configuration")
    print("2. Checking packages")
    print("3. Updating packages")
    print("4. Report")
    print()


def check_packages(config: UpdaterConfig) -> UpdatePlan:
    """Determine the packages to update.

    An explicit package list is used as-is. Otherwise all outdated packages
    (or only insecure ones with ``only_securities``) are resolved to the
    direct requirements that pull them in.
    """
    if config.packages:
        plan = UpdatePlan(packages=config.packages)
        print("Packages to update:")
    else:
        if config.only_securities:
            candidates = composer.insecure_packages(config.no_dev)
        else:
            candidates = composer.outdated_packages(config.no_dev)
        plan = UpdatePlan(
            packages=resolve_update_plan(
                candidates,
                no_dev=config.no_dev,
                recursive_timeout=config.why_recursive_timeout,
            )
        )
    print("\n".join(plan.packages))
    print()
    return plan


def run_update(config: UpdaterConfig, *, full_report: bool = True) -> list[UpdateResult]:
    """Execute the full update pipeline.

    Args:
        config: Effective configuration (file + command line).
        full_report: If True, also report pending updates at the end.

    Returns:
        One UpdateResult per planned package, in plan order.
    """
    ctx = RunContext(config=config)
    backup = Path(composer.LOCK_BACKUP)
    shutil.copyfile("composer.lock", backup)
    try:
        print_summary()

        step("1. Consolidating configuration")
        if config.consolidate_configuration:
            consolidate_configuration(config)
        else:
            print("Configuration consolidation disabled.\n")

        step("2. Checking packages")
        plan = check_packages(config)

        step("3. Updating packages")
        results = update_packages(ctx, plan)

        step("4. Report")
        show_results(results)
        show_updated_packages()
        if full_report:
            show_pending_updates(config)
    finally:
        backup.unlink(missing_ok=True)

    return results
