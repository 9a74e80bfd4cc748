"""Drush (Drupal CLI) operations.

Every operation runs once per environment (drush site alias), in the order
the environments are configured. A failure on any environment raises
CommandFailure and stops the remaining ones.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from .shell import run

WEB_ROOT_CANDIDATES = ("web", "docroot", "public_html")


def drush(*args: str, environments: Iterable[str]) -> None:
    """Run a drush command on each environment."""
    for environment in environments:
        print(f'Running drush {" ".join(args)} on the "{environment}" environment.')
        run("drush", environment, *args)


def clear_caches(environments: Iterable[str]) -> None:
    drush("cr", environments=environments)


def import_configuration(environments: Iterable[str]) -> None:
    drush("cim", "-y", environments=environments)


def export_configuration(environments: Iterable[str]) -> None:
    drush("cex", "-y", environments=environments)


def update_database(environments: Iterable[str]) -> None:
    """Run pending update hooks (``drush updb``)."""
    drush("updb", "-y", environments=environments)


def find_web_root(base: Path | None = None) -> str | None:
    """Find the Drupal web root directory.

    Standard projects use ``web``, but ``docroot`` and ``public_html`` are
    common too. Symlinked directories are ignored.
    """
    base = base or Path.cwd()
    for folder in WEB_ROOT_CANDIDATES:
        candidate = base / folder
        if not candidate.is_symlink() and candidate.is_dir():
            return folder
    return None
