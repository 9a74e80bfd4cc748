"""Tests for drupal_updater.orchestrator."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, call

import pytest

from drupal_updater import composer, drush, repository
from drupal_updater.config import UpdaterConfig
from drupal_updater.models import LockDiff, Package, RunContext, UpdateOutcome, UpdatePlan
from drupal_updater.orchestrator import (
    get_available_update,
    snapshot_directory,
    update_package,
    update_packages,
)
from drupal_updater.shell import CommandFailure

UPDATED_LOCK = '{"packages": [{"name": "drupal/token", "version": "1.13.0"}]}\n'


def _completed(stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess([], 0, stdout=stdout, stderr=stderr)


def _writes_lock(content: str = UPDATED_LOCK):
    """composer.update side effect that changes composer.lock."""

    def fake_update(package: str) -> subprocess.CompletedProcess[str]:
        Path("composer.lock").write_text(content)
        return _completed()

    return fake_update


def _failure(msg: str = "boom") -> CommandFailure:
    return CommandFailure(("composer", "update"), 2, "", msg)


def _git_output(cwd: Path, *args: str) -> str:
    return subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    ).stdout


@pytest.fixture
def tools(project_dir: Path, monkeypatch: pytest.MonkeyPatch) -> SimpleNamespace:
    """Replace every external tool call with a mock."""
    mocks = SimpleNamespace(
        update=MagicMock(return_value=_completed()),
        package_type=MagicMock(return_value="library"),
        lock_diff=MagicMock(return_value=LockDiff()),
        lock_diff_text=MagicMock(return_value=""),
        outdated_snapshot=MagicMock(return_value=[]),
        stage=MagicMock(),
        restore=MagicMock(),
        is_tracked=MagicMock(return_value=True),
        commit=MagicMock(return_value=True),
        clear_caches=MagicMock(),
        update_database=MagicMock(),
        export_configuration=MagicMock(),
        find_web_root=MagicMock(return_value="web"),
    )
    for name in ("update", "package_type", "lock_diff", "lock_diff_text", "outdated_snapshot"):
        monkeypatch.setattr(composer, name, getattr(mocks, name))
    for name in ("stage", "restore", "is_tracked", "commit"):
        monkeypatch.setattr(repository, name, getattr(mocks, name))
    for name in ("clear_caches", "update_database", "export_configuration", "find_web_root"):
        monkeypatch.setattr(drush, name, getattr(mocks, name))
    return mocks


class TestUpdateFailure:
    """Tests for update_package() when composer update fails."""

    def test_failed_update_is_rolled_back(self, ctx: RunContext, tools: SimpleNamespace) -> None:
        """A failing update restores the manifests and commits nothing."""
        tools.update.side_effect = _failure("Your requirements could not be resolved")

        result = update_package(ctx, "drupal/token")

        assert result.outcome is UpdateOutcome.FAILED
        assert result.error == "Your requirements could not be resolved"
        assert result.commit_message is None
        tools.restore.assert_called_once_with("composer.json", "composer.lock")
        tools.commit.assert_not_called()

    def test_failure_does_not_stop_the_plan(self, ctx: RunContext, tools: SimpleNamespace) -> None:
        """Packages after a failed one are still attempted, in order."""

        def fake_update(package: str) -> subprocess.CompletedProcess[str]:
            if package == "drupal/broken":
                raise _failure()
            return _completed()

        tools.update.side_effect = fake_update

        results = update_packages(
            ctx, UpdatePlan(packages=["drupal/broken", "drupal/token"])
        )

        assert [r.package for r in results] == ["drupal/broken", "drupal/token"]
        assert [r.outcome for r in results] == [
            UpdateOutcome.FAILED,
            UpdateOutcome.NO_CHANGE_AVAILABLE,
        ]
        assert ctx.results == results


class TestUnchangedLock:
    """Tests for update_package() when the lock file does not change."""

    def test_no_update_available(self, ctx: RunContext, tools: SimpleNamespace) -> None:
        """Nothing newer known means no change, no staging, no commit."""
        result = update_package(ctx, "drupal/token")

        assert result.outcome is UpdateOutcome.NO_CHANGE_AVAILABLE
        assert result.lock_diff.is_empty()
        tools.stage.assert_not_called()
        tools.commit.assert_not_called()

    def test_no_change_is_idempotent(self, ctx: RunContext, tools: SimpleNamespace) -> None:
        """Repeating an attempt with nothing to update gives the same result."""
        first = update_package(ctx, "drupal/token")
        second = update_package(ctx, "drupal/token")

        assert first == second
        assert first.outcome is UpdateOutcome.NO_CHANGE_AVAILABLE

    def test_available_update_blocked_by_constraints(
        self, ctx: RunContext, tools: SimpleNamespace
    ) -> None:
        """A known newer version that was not installed is reported as blocked."""
        ctx.outdated = [Package(name="drupal/token", version="1.12.0", latest="2.0.0")]

        result = update_package(ctx, "drupal/token")

        assert result.outcome is UpdateOutcome.BLOCKED_BY_CONSTRAINTS
        assert result.latest_version == "2.0.0"
        tools.restore.assert_not_called()
        tools.commit.assert_not_called()

    def test_conflict_output_means_blocked(
        self, ctx: RunContext, tools: SimpleNamespace
    ) -> None:
        """A conflict phrase in composer output is reported as blocked."""
        tools.update.return_value = _completed(
            stderr="drupal/token 2.0.0 requires x but it conflicts with your root "
            "composer.json require (^1.0)"
        )

        result = update_package(ctx, "drupal/token")

        assert result.outcome is UpdateOutcome.BLOCKED_BY_CONSTRAINTS
        assert result.latest_version is None


class TestUpdated:
    """Tests for update_package() when the lock file changes."""

    def test_library_update_is_committed(
        self, ctx: RunContext, tools: SimpleNamespace
    ) -> None:
        """A library update commits the manifests with the lock diff as body."""
        tools.update.side_effect = _writes_lock()
        diff = LockDiff(changes={"drupal/token": ("1.12.0", "1.13.0")})
        tools.lock_diff.return_value = diff
        tools.lock_diff_text.return_value = "drupal/token  1.12.0  1.13.0"

        result = update_package(ctx, "drupal/token")

        assert result.outcome is UpdateOutcome.UPDATED
        assert result.lock_diff == diff
        assert result.commit_message == "UPDATE - drupal/token: package"
        tools.stage.assert_called_once_with("composer.json", "composer.lock")
        tools.commit.assert_called_once_with(
            "UPDATE - drupal/token: package",
            author="Bot <bot@example.com>",
            body="drupal/token  1.12.0  1.13.0",
        )
        tools.clear_caches.assert_not_called()
        tools.update_database.assert_not_called()

    def test_extension_update_runs_drush_and_exports_config(
        self, ctx: RunContext, tools: SimpleNamespace
    ) -> None:
        """Extensions run cr, updb and cex, and exported config is committed."""
        tools.update.side_effect = _writes_lock()
        tools.package_type.return_value = "drupal-module"
        tools.lock_diff.return_value = LockDiff(
            changes={"drupal/token": ("1.12.0", "1.13.0"), "drupal/core": ("10.1.0", "10.1.1")}
        )

        def export(environments: list[str]) -> None:
            Path("config").mkdir(exist_ok=True)
            Path("config/token.settings.yml").write_text("max_length: 255\n")

        tools.export_configuration.side_effect = export

        result = update_package(ctx, "drupal/token")

        assert result.outcome is UpdateOutcome.UPDATED
        assert result.commit_message == (
            "UPDATE - drupal/token: package, dependencies, configuration"
        )
        envs = ["@dev", "@stage"]
        tools.clear_caches.assert_called_once_with(envs)
        tools.update_database.assert_called_once_with(envs)
        tools.export_configuration.assert_called_once_with(envs)
        assert tools.stage.call_args_list == [
            call("composer.json", "composer.lock"),
            call("web"),
            call("config"),
        ]

    def test_unchanged_export_is_not_configuration(
        self, ctx: RunContext, tools: SimpleNamespace, project_dir: Path
    ) -> None:
        """Config that differed before the update is not attributed to it."""
        (project_dir / "config").mkdir()
        (project_dir / "config" / "system.site.yml").write_text("name: Drifted\n")
        tools.update.side_effect = _writes_lock()
        tools.package_type.return_value = "drupal-module"
        tools.lock_diff.return_value = LockDiff(changes={"drupal/token": ("1.12.0", "1.13.0")})

        result = update_package(ctx, "drupal/token")

        assert result.commit_message == "UPDATE - drupal/token: package"

    def test_post_process_failure_is_rolled_back(
        self, ctx: RunContext, tools: SimpleNamespace
    ) -> None:
        """A drush failure restores manifests and web root, nothing else is staged."""
        tools.update.side_effect = _writes_lock()
        tools.package_type.return_value = "drupal-theme"
        tools.update_database.side_effect = CommandFailure(
            ("drush", "@dev", "updb", "-y"), 1, "", "Update failed"
        )

        result = update_package(ctx, "drupal/token")

        assert result.outcome is UpdateOutcome.FAILED
        assert result.error == "Update failed"
        assert tools.restore.call_args_list == [
            call("composer.json", "composer.lock"),
            call("web"),
        ]
        tools.stage.assert_called_once_with("composer.json", "composer.lock")
        tools.export_configuration.assert_not_called()
        tools.commit.assert_not_called()

    def test_drupal_library_skips_post_process(
        self, ctx: RunContext, tools: SimpleNamespace
    ) -> None:
        """drupal-library packages are not extensions."""
        tools.update.side_effect = _writes_lock()
        tools.package_type.return_value = "drupal-library"

        result = update_package(ctx, "drupal/token")

        assert result.outcome is UpdateOutcome.UPDATED
        assert result.commit_message == "UPDATE - drupal/token: other"
        tools.clear_caches.assert_not_called()


class TestGetAvailableUpdate:
    """Tests for get_available_update()."""

    def test_snapshot_fetched_once(self, config, monkeypatch: pytest.MonkeyPatch) -> None:
        """The outdated snapshot is queried lazily and cached in the context."""
        snapshot = MagicMock(
            return_value=[Package(name="drupal/core", version="10.1.0", latest="10.2.0")]
        )
        monkeypatch.setattr(composer, "outdated_snapshot", snapshot)
        ctx = RunContext(config=config)

        assert get_available_update(ctx, "drupal/core").latest_version == "10.2.0"
        assert get_available_update(ctx, "drupal/token") is None
        snapshot.assert_called_once_with()

    def test_up_to_date_entry_is_ignored(self, ctx: RunContext) -> None:
        """An entry whose latest equals the current version is no update."""
        ctx.outdated = [Package(name="drupal/core", version="10.2.0", latest="10.2.0")]
        assert get_available_update(ctx, "drupal/core") is None


class TestSnapshotDirectory:
    """Tests for snapshot_directory()."""

    def test_missing_directory(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """A directory that does not exist snapshots as empty."""
        monkeypatch.chdir(tmp_path)
        assert snapshot_directory("config") == {}

    def test_nested_files(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Files are keyed by their path relative to the directory."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config" / "sync").mkdir(parents=True)
        (tmp_path / "config" / "sync" / "a.yml").write_text("a: 1\n")

        assert snapshot_directory("config") == {"sync/a.yml": b"a: 1\n"}


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
class TestRollbackWithGit:
    """Rollback restores composer files byte for byte in a real repository."""

    def test_failed_update_restores_files(
        self, ctx: RunContext, git_project: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Manifests modified by a failing update are restored exactly."""
        before = {
            name: (git_project / name).read_bytes() for name in ("composer.json", "composer.lock")
        }

        def broken_update(package: str) -> subprocess.CompletedProcess[str]:
            Path("composer.json").write_text('{"require": {}}\n')
            Path("composer.lock").write_text(UPDATED_LOCK)
            raise _failure()

        monkeypatch.setattr(composer, "update", broken_update)

        result = update_package(ctx, "drupal/token")

        assert result.outcome is UpdateOutcome.FAILED
        for name, content in before.items():
            assert (git_project / name).read_bytes() == content

    def test_post_process_failure_restores_staged_files(
        self, ctx: RunContext, git_project: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Manifests staged before a drush failure are unstaged and restored."""
        before = (git_project / "composer.lock").read_bytes()
        monkeypatch.setattr(composer, "update", _writes_lock())
        monkeypatch.setattr(composer, "package_type", lambda package: "drupal-module")
        monkeypatch.setattr(drush, "clear_caches", MagicMock())
        monkeypatch.setattr(
            drush,
            "update_database",
            MagicMock(side_effect=CommandFailure(("drush",), 1, "", "updb failed")),
        )

        result = update_package(ctx, "drupal/token")

        assert result.outcome is UpdateOutcome.FAILED
        assert (git_project / "composer.lock").read_bytes() == before
        staged = _git_output(git_project, "diff", "--cached", "--name-only")
        assert "composer.lock" not in staged

    def test_scaffold_changes_of_failed_extension_do_not_leak(
        self, config: UpdaterConfig, git_project: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Web root changes of a rolled-back extension stay out of the next commit."""
        web = git_project / "web"
        web.mkdir()
        (web / "index.php").write_text("<?php // original\n")
        subprocess.run(["git", "add", "web"], cwd=git_project, check=True)
        subprocess.run(
            ["git", "commit", "-q", "-m", "web root"], cwd=git_project, check=True
        )

        def fake_update(package: str) -> subprocess.CompletedProcess[str]:
            if package == "drupal/mod":
                (web / "index.php").write_text("<?php // scaffolded\n")
                Path("composer.lock").write_text(UPDATED_LOCK)
            else:
                Path("composer.lock").write_text(UPDATED_LOCK.replace("1.13.0", "1.14.0"))
            return _completed()

        monkeypatch.setattr(composer, "update", fake_update)
        monkeypatch.setattr(
            composer,
            "package_type",
            lambda package: "drupal-module" if package == "drupal/mod" else "library",
        )
        monkeypatch.setattr(
            composer, "lock_diff", lambda: LockDiff(changes={"vendor/lib": ("1", "2")})
        )
        monkeypatch.setattr(composer, "lock_diff_text", lambda: "")
        monkeypatch.setattr(drush, "clear_caches", MagicMock())
        monkeypatch.setattr(
            drush,
            "update_database",
            MagicMock(side_effect=CommandFailure(("drush",), 1, "", "updb failed")),
        )
        ctx = RunContext(config=config, outdated=[])

        results = update_packages(ctx, UpdatePlan(packages=["drupal/mod", "vendor/lib"]))

        assert [r.outcome for r in results] == [UpdateOutcome.FAILED, UpdateOutcome.UPDATED]
        assert (web / "index.php").read_text() == "<?php // original\n"
        committed = _git_output(git_project, "show", "--name-only", "--format=%s", "HEAD")
        assert committed.split() == ["UPDATE", "-", "vendor/lib:", "package", "composer.lock"]

    def test_config_drift_is_not_attributed_to_library_update(
        self, git_project: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Uncommitted config drift stays out of the message when consolidation is off."""
        site = git_project / "config" / "system.site.yml"
        site.parent.mkdir()
        site.write_text("name: Site\n")
        subprocess.run(["git", "add", "config"], cwd=git_project, check=True)
        subprocess.run(["git", "commit", "-q", "-m", "config"], cwd=git_project, check=True)
        site.write_text("name: Drifted\n")

        monkeypatch.setattr(composer, "update", _writes_lock())
        monkeypatch.setattr(composer, "package_type", lambda package: "library")
        monkeypatch.setattr(
            composer, "lock_diff", lambda: LockDiff(changes={"vendor/lib": ("1.0.0", "1.1.0")})
        )
        monkeypatch.setattr(composer, "lock_diff_text", lambda: "")
        ctx = RunContext(
            config=UpdaterConfig(author="Bot <bot@example.com>", consolidate_configuration=False),
            outdated=[],
        )

        result = update_package(ctx, "vendor/lib")

        assert result.commit_message == "UPDATE - vendor/lib: package"
        committed = _git_output(git_project, "show", "--name-only", "--format=", "HEAD")
        assert committed.split() == ["composer.lock"]
