"""End-of-run report.

Summarizes what happened to every package of the plan and, on a full run,
what is still pending.
"""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from . import composer
from .config import UpdaterConfig
from .models import Package, UpdateOutcome, UpdateResult
from .versions import bump_kind

OUTCOME_STYLES = {
    UpdateOutcome.UPDATED: "green",
    UpdateOutcome.NO_CHANGE_AVAILABLE: "dim",
    UpdateOutcome.BLOCKED_BY_CONSTRAINTS: "yellow",
    UpdateOutcome.FAILED: "bold red",
}


def _version_change(result: UpdateResult) -> tuple[str, str]:
    """Return (change, bump kind) columns for a result."""
    change = result.lock_diff.version_change(result.package)
    if change:
        old, new = change
        return f"{old} → {new}", bump_kind(old, new) or ""
    if result.latest_version:
        return f"→ {result.latest_version} (not applied)", ""
    return "", ""


def build_results_table(results: list[UpdateResult]) -> Table:
    table = Table(title="Update results", show_header=True, header_style="bold blue")
    table.add_column("Package", style="cyan", no_wrap=True)
    table.add_column("Outcome")
    table.add_column("Version")
    table.add_column("Bump")
    table.add_column("Commit")
    for result in results:
        change, kind = _version_change(result)
        style = OUTCOME_STYLES[result.outcome]
        table.add_row(
            result.package,
            f"[{style}]{result.outcome.value}[/]",
            change,
            kind,
            result.commit_message or "",
        )
    return table


def show_results(results: list[UpdateResult], console: Console | None = None) -> None:
    console = console or Console()
    if not results:
        console.print("No packages were processed.\n")
        return
    console.print(build_results_table(results))

    failed = [r for r in results if r.outcome is UpdateOutcome.FAILED]
    if failed:
        console.print(
            f"[bold red]{len(failed)} package(s) failed and were rolled back:[/] "
            + ", ".join(r.package for r in failed)
        )
    console.print()


def show_updated_packages() -> None:
    """Print every lock change made since the run started."""
    updated = composer.lock_diff_text(from_lock=composer.LOCK_BACKUP, to_lock="composer.lock")
    if updated:
        print(updated)
    else:
        print("No packages have been updated\n")


def build_pending_table(title: str, packages: list[Package]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold blue")
    table.add_column("Package", style="cyan", no_wrap=True)
    table.add_column("Current")
    table.add_column("Latest", style="yellow")
    table.add_column("Bump")
    for package in packages:
        table.add_row(
            package.name,
            package.current_version,
            package.latest_version or "",
            bump_kind(package.current_version, package.latest_version or "") or "",
        )
    return table


def build_insecure_table(title: str, packages: list[str]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold blue")
    table.add_column("Package", style="bold red", no_wrap=True)
    for name in packages:
        table.add_row(name)
    return table


def show_pending_updates(config: UpdaterConfig, console: Console | None = None) -> None:
    """Print what is still outdated or insecure after the run."""
    console = console or Console()
    if config.only_securities:
        console.print(
            build_insecure_table("Not updated securities", composer.insecure_packages())
        )
        return

    pending = [p for p in composer.outdated_snapshot() if p.has_update]
    direct = set(composer.direct_packages())
    console.print(
        build_pending_table(
            "Not updated packages (direct)", [p for p in pending if p.name in direct]
        )
    )
    console.print(build_pending_table("Not updated packages (all)", pending))
    console.print(
        build_insecure_table("Not updated securities (all)", composer.insecure_packages())
    )
    console.print()
