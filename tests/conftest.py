"""Shared test fixtures."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from drupal_updater.config import UpdaterConfig
from drupal_updater.models import RunContext

COMPOSER_JSON = '{"require": {"drupal/core": "^10.1", "drupal/token": "^1.0"}}\n'
COMPOSER_LOCK = '{"packages": [{"name": "drupal/token", "version": "1.12.0"}]}\n'


@pytest.fixture
def config() -> UpdaterConfig:
    """Config with two environments and a fixed author."""
    return UpdaterConfig(
        author="Bot <bot@example.com>", environments=["@dev", "@stage"]
    )


@pytest.fixture
def ctx(config: UpdaterConfig) -> RunContext:
    """Run context with an empty outdated snapshot (no updates known)."""
    return RunContext(config=config, outdated=[])


@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A Drupal project directory with composer files, used as cwd."""
    (tmp_path / "composer.json").write_text(COMPOSER_JSON)
    (tmp_path / "composer.lock").write_text(COMPOSER_LOCK)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def git_project(project_dir: Path) -> Path:
    """The project directory as a git repository with everything committed."""

    def git(*args: str) -> None:
        subprocess.run(["git", *args], cwd=project_dir, check=True, capture_output=True)

    git("init", "-q")
    git("config", "user.email", "test@example.com")
    git("config", "user.name", "Test")
    git("add", ".")
    git("commit", "-q", "-m", "initial")
    return project_dir
