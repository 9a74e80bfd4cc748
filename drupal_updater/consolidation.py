"""Configuration consolidation.

Before any package is touched, the configuration exported from each
environment is committed so that later configuration changes can be
attributed to the package update that caused them.
"""

from __future__ import annotations

from . import drush, repository
from .commit_message import consolidation_commit_message
from .config import UpdaterConfig


def consolidate_configuration(config: UpdaterConfig) -> None:
    """Commit the current configuration of every environment.

    For each environment in order: export its configuration and commit
    whatever changed under the config directory (one commit per
    environment, none if nothing changed). Caches are cleared and pending
    configuration imported before and after.

    Any command failure here is fatal: updating on top of an inconsistent
    configuration baseline would produce misleading commits.
    """
    environments = config.environments
    drush.clear_caches(environments)
    drush.import_configuration(environments)
    print()

    for environment in environments:
        print(f"Consolidating {environment} environment")
        drush.export_configuration([environment])

        if repository.has_changes(repository.CONFIG_DIR):
            print("\nChanges done:\n")
            print(repository.status(repository.CONFIG_DIR) + "\n")

        repository.stage(repository.CONFIG_DIR)
        repository.commit(consolidation_commit_message(environment), author=config.author)
        print()

    drush.clear_caches(environments)
    drush.import_configuration(environments)
    print()
