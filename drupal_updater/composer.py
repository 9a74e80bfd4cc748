"""Composer command wrappers and output parsing.

Every piece of composer (and composer-lock-diff) output the updater relies
on is parsed here. Parsers validate what they read and raise
ComposerOutputError when the output does not have the expected shape, so
changes in the external tools fail loudly in one place.
"""

from __future__ import annotations

import json
import re
import subprocess

from pydantic import BaseModel, ValidationError

from .models import LockDiff, Package
from .shell import DEFAULT_TIMEOUT, CommandFailure, run

# Matches "vendor/name" at the start of a line.
PACKAGE_NAME_RE = re.compile(r"^([A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+)")

# Phrases composer prints when an update exists but the root composer.json
# constraints prevent it from being installed.
CONSTRAINT_CONFLICT_PHRASES = (
    "but it conflicts with your root composer.json require",
    "Your requirements could not be resolved to an installable set of packages.",
)

NO_DEPENDENTS_PHRASE = "There is no installed package depending on"

LOCK_BACKUP = "composer.drupalupdater.lock"


class ComposerOutputError(ValueError):
    """Composer output did not match the expected format."""


class _OutdatedSnapshot(BaseModel):
    locked: list[Package] = []


def _no_dev(no_dev: bool) -> list[str]:
    return ["--no-dev"] if no_dev else []


def parse_package_list(text: str) -> list[str]:
    """Convert line-based composer output into a list of package names.

    Lines are trimmed; anything that does not start with a ``vendor/name``
    token (headers, warnings, blank lines) is dropped.

    Example:
        "drupal/core\\n\\n  drupal/token \\nWarning: x" → ["drupal/core", "drupal/token"]
    """
    packages: list[str] = []
    for line in text.splitlines():
        match = PACKAGE_NAME_RE.match(line.strip())
        if match:
            packages.append(match.group(1))
    return packages


def parse_audit_output(text: str) -> list[str]:
    """Extract affected package names from ``composer audit --format plain``.

    Each advisory has a ``Package: vendor/name`` line; a package with several
    advisories is listed once. Returned sorted.
    """
    names: set[str] = set()
    for line in text.splitlines():
        if not line.startswith("Package"):
            continue
        _, _, value = line.partition(":")
        names.update(parse_package_list(value))
    return sorted(names)


def parse_why_output(text: str) -> list[str]:
    """Extract dependent package names from ``composer why`` output.

    The first column of every line is the dependent package, e.g.
    ``drupal/core 10.2.0 requires symfony/console (^6.4)``.
    Order is preserved since the first direct match wins.
    """
    first_columns = []
    for line in text.splitlines():
        parts = line.split()
        if parts:
            first_columns.append(parts[0])
    return parse_package_list("\n".join(first_columns))


def parse_outdated_snapshot(text: str) -> list[Package]:
    """Parse ``composer show --locked --outdated --format json``."""
    try:
        return _OutdatedSnapshot.model_validate_json(text or "{}").locked
    except ValidationError as exc:
        raise ComposerOutputError(f"Unexpected outdated packages output: {exc}") from exc


def parse_lock_diff(text: str) -> LockDiff:
    """Parse ``composer-lock-diff --json`` output into a LockDiff.

    Empty output means nothing changed.
    """
    if not text.strip():
        return LockDiff()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ComposerOutputError(f"Invalid lock diff JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ComposerOutputError(
            f"Lock diff must be a JSON object, {type(data).__name__} given"
        )
    try:
        return LockDiff.model_validate(data)
    except ValidationError as exc:
        raise ComposerOutputError(f"Unexpected lock diff format: {exc}") from exc


def parse_package_type(text: str) -> str:
    """Extract the ``type`` field from ``composer show <package>`` output."""
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip() == "type":
            return value.strip()
    return ""


def is_extension_type(package_type: str) -> bool:
    """Whether a composer package type is a Drupal extension.

    Modules, themes, profiles, drush commands and core count; libraries
    don't, since they need no database updates or configuration export.
    """
    return package_type.startswith("drupal") and package_type != "drupal-library"


def find_constraint_conflicts(output: str) -> list[str]:
    """Return the known constraint-conflict phrases present in the output."""
    return [phrase for phrase in CONSTRAINT_CONFLICT_PHRASES if phrase in output]


def outdated_packages(no_dev: bool = False) -> list[str]:
    """Names of all locked packages with a newer version available."""
    result = run("composer", "show", "--locked", "--outdated", "--name-only", *_no_dev(no_dev))
    return parse_package_list(result.stdout)


def insecure_packages(no_dev: bool = False) -> list[str]:
    """Names of locked packages affected by security advisories.

    ``composer audit`` exits non-zero when it finds advisories, so the exit
    code is ignored and the report itself is parsed.
    """
    result = run(
        "composer", "audit", "--locked", *_no_dev(no_dev), "--format", "plain", check=False
    )
    return parse_audit_output(result.stdout + "\n" + result.stderr)


def direct_packages(no_dev: bool = False) -> list[str]:
    """Names of the root requirements in the current lock state."""
    result = run("composer", "show", "--locked", "--direct", "--name-only", *_no_dev(no_dev))
    return parse_package_list(result.stdout)


def why(package: str, *, recursive: bool = False, timeout: float = DEFAULT_TIMEOUT) -> list[str]:
    """Packages that require the given package, in composer's order.

    Raises:
        CommandTimeout: If the query exceeds ``timeout``.
        CommandFailure: If composer fails for any reason other than the
                        package having no dependents.
    """
    args = ["composer", "why", package, "--locked"]
    if recursive:
        args.append("-r")
    result = run(*args, timeout=timeout, check=False)
    if result.returncode != 0:
        if NO_DEPENDENTS_PHRASE in result.stdout + result.stderr:
            return []
        raise CommandFailure(tuple(args), result.returncode, result.stdout, result.stderr)
    return parse_why_output(result.stdout)


def update(package: str) -> subprocess.CompletedProcess[str]:
    """Run ``composer update <package> --with-dependencies``."""
    return run("composer", "update", package, "--with-dependencies")


def package_type(package: str) -> str:
    return parse_package_type(run("composer", "show", package).stdout)


def outdated_snapshot() -> list[Package]:
    """All outdated locked packages with their current and latest versions."""
    result = run("composer", "show", "--locked", "--outdated", "--format", "json")
    return parse_outdated_snapshot(result.stdout)


def lock_diff() -> LockDiff:
    """Lock changes in the working tree relative to the last commit."""
    return parse_lock_diff(run("composer-lock-diff", "--json").stdout)


def lock_diff_text(from_lock: str | None = None, to_lock: str | None = None) -> str:
    """Human-readable lock diff, used as commit body and in the report."""
    args = ["composer-lock-diff"]
    if from_lock:
        args += ["--from", from_lock]
    if to_lock:
        args += ["--to", to_lock]
    return run(*args).stdout.strip()

