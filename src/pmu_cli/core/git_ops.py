"""Git and subprocess helpers for the gh-pmu CLI."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Sequence


class GitError(RuntimeError):
    """A git command exited with a non-zero status."""


def run_command(cmd: Sequence[str], *, cwd: Path | str | None = None) -> tuple[int, str, str]:
    """Run a command and return (returncode, stdout, stderr).

    Output is captured and stripped. A non-zero exit is returned, not raised;
    a missing executable raises ``FileNotFoundError``.
    """
    result = subprocess.run(
        list(cmd),
        check=False,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        cwd=str(cwd) if cwd else None,
    )
    return result.returncode, (result.stdout or "").strip(), (result.stderr or "").strip()


def _run_git(args: list[str], cwd: Path | None, action: str) -> None:
    try:
        code, stdout, stderr = run_command(["git", *args], cwd=cwd)
    except FileNotFoundError as exc:
        raise GitError(f"{action} failed: git executable not found") from exc
    if code != 0:
        output = stderr or stdout or f"exit code {code}"
        raise GitError(f"{action} failed: {output}")


def create_branch(name: str, cwd: Path | None = None) -> None:
    """Create and check out a new git branch (``git checkout -b``).

    Raises:
        GitError: If git refuses (branch exists, dirty tree, not a repo, ...)
    """
    _run_git(["checkout", "-b", name], cwd, "git checkout -b")


def create_annotated_tag(tag: str, message: str, cwd: Path | None = None) -> None:
    """Create an annotated tag on HEAD (``git tag -a``).

    Raises:
        GitError: If the tag already exists or git fails
    """
    _run_git(["tag", "-a", tag, "-m", message], cwd, "git tag")


__all__ = [
    "GitError",
    "create_annotated_tag",
    "create_branch",
    "run_command",
]
