"""CLI entry point for drupal-updater."""

from __future__ import annotations

from pathlib import Path

import click

from drupal_updater.composer import ComposerOutputError
from drupal_updater.config import (
    DEFAULT_CONFIG_FILE,
    ConfigValidationError,
    apply_overrides,
    load_config,
    split_option,
)
from drupal_updater.pipeline import run_update
from drupal_updater.shell import CommandFailure, fatal, step


@click.group()
@click.version_option(package_name="drupal-updater")
def cli() -> None:
    """Drupal dependency updater: one commit per package, rollback on failure."""


@cli.command()
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="Configuration file.",
)
@click.option(
    "--environments",
    "--envs",
    default=None,
    help="Comma separated list of drush aliases to update.",
)
@click.option("-a", "--author", default=None, help="Git author for the commits.")
@click.option("-s", "--security", is_flag=True, help="Only update security packages.")
@click.option("-nd", "--no-dev", is_flag=True, help="Only update main requirements.")
@click.option(
    "-pl",
    "--packages",
    default=None,
    help="Comma separated list of packages to update.",
)
def update(
    config_file: Path,
    environments: str | None,
    author: str | None,
    security: bool,
    no_dev: bool,
    packages: str | None,
) -> None:
    """Update composer packages.

    \b
    Update includes:
      - Commit current configuration not exported (Drupal 8+).
      - Identify updatable composer packages (outdated).
      - For each package try to update and commit it
        (recovers previous state if it fails).
    """
    step("Setup")
    try:
        config = load_config(config_file)
    except ConfigValidationError as exc:
        raise click.ClickException(str(exc)) from exc

    package_list = split_option(packages)
    config = apply_overrides(
        config,
        environments=split_option(environments),
        author=author,
        only_securities=security,
        no_dev=no_dev,
        packages=package_list,
    )

    click.echo(f"Environments: {', '.join(config.environments)}")
    click.echo(f"GIT author will be overridden with: {config.author}")
    if config.only_securities:
        click.echo("Only security updates will be done")
    if config.no_dev:
        click.echo("Dev packages won't be updated")
    click.echo()

    if not Path("composer.lock").exists():
        raise click.ClickException("No composer.lock found. Run from the project root.")

    try:
        run_update(config, full_report=not package_list)
    except (CommandFailure, ComposerOutputError) as exc:
        fatal(str(exc))
