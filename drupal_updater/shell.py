"""Shell and git utilities.

Provides simple wrappers around subprocess calls for running external tools
(composer, drush, git), plus output formatting helpers.
"""

from __future__ import annotations

import subprocess
import sys

# Seconds an external command may run before it is considered failed.
DEFAULT_TIMEOUT = 300


class CommandFailure(Exception):
    """An external command exited with a non-zero status."""

    def __init__(
        self, command: tuple[str, ...], returncode: int, stdout: str = "", stderr: str = ""
    ) -> None:
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f'Error running "{" ".join(command)}" command: {stderr.strip() or stdout.strip()}'
        )


class CommandTimeout(CommandFailure):
    """An external command was killed after exceeding its timeout."""


def run(
    *args: str, timeout: float = DEFAULT_TIMEOUT, check: bool = True
) -> subprocess.CompletedProcess[str]:
    """Run an external command and capture its output.

    Args:
        *args: Command and arguments (e.g., "composer", "update", "drupal/core").
        timeout: Seconds before the command is killed.
        check: If True (default), raise CommandFailure on non-zero exit.

    Returns:
        CompletedProcess with text stdout/stderr.

    Raises:
        CommandTimeout: If the command did not finish within ``timeout``.
        CommandFailure: If the command failed (or could not be started).
    """
    try:
        result = subprocess.run(
            args, capture_output=True, text=True, timeout=timeout, check=False
        )
    except subprocess.TimeoutExpired as exc:
        raise CommandTimeout(
            args, -1, _as_text(exc.stdout), f"timed out after {timeout}s"
        ) from exc
    except FileNotFoundError as exc:
        raise CommandFailure(args, 127, "", f"{args[0]}: command not found") from exc

    if check and result.returncode != 0:
        raise CommandFailure(args, result.returncode, result.stdout, result.stderr)
    return result


def _as_text(output: str | bytes | None) -> str:
    if isinstance(output, bytes):
        return output.decode(errors="replace")
    return output or ""


def git(*args: str, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail.

    Returns:
        Stripped stdout from the git command.
    """
    return run("git", *args, check=check).stdout.strip()


def step(msg: str) -> None:
    """Print a primary header.

    Used to separate the major phases of an update run in terminal output.
    """
    print(f"// {msg.upper()} //\n")


def substep(msg: str) -> None:
    """Print a secondary header, e.g. one per package being updated."""
    print(f"/// {msg} ///\n")


def fatal(msg: str) -> None:
    """Print an error message and exit with code 1.

    Use for unrecoverable errors that should halt the run.
    """
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)
