"""Git operations on the project working tree.

Staging, committing and rolling back the files an update touches. Commits
never fail just because there is nothing staged, so re-running a step is
harmless.
"""

from __future__ import annotations

import subprocess

from .shell import git

MANIFEST_FILES = ("composer.json", "composer.lock")
CONFIG_DIR = "config"


def stage(*paths: str) -> None:
    git("add", *paths)


def restore(*paths: str) -> None:
    """Restore files in both the index and working tree to their HEAD state.

    Restoring from HEAD (rather than the index) also discards versions that
    were already staged by a failed attempt.
    """
    git("checkout", "HEAD", "--", *paths)


def status(path: str) -> str:
    """Long-form ``git status`` for a path, for printing."""
    return git("status", path)


def has_changes(path: str) -> bool:
    """Whether anything under path differs from HEAD, staged or not."""
    return bool(git("status", "--porcelain", "--", path))


def is_tracked(path: str) -> bool:
    """Whether git tracks any file under path."""
    return bool(git("ls-files", "--", path))


def commit(message: str, *, author: str, body: str | None = None) -> bool:
    """Commit staged changes.

    Args:
        message: Commit subject.
        author: Author in ``Name <email>`` form.
        body: Optional second paragraph (e.g., the lock diff).

    Returns:
        True if a commit was made, False if nothing was staged.
    """
    # Check if there are actually changes to commit
    result = subprocess.run(["git", "diff", "--cached", "--quiet"], capture_output=True)
    if result.returncode == 0:
        print("  No changes to commit")
        return False

    args = ["commit", "-m", message]
    if body:
        args += ["-m", body]
    git(*args, f"--author={author}", "-n")
    return True
