"""Shared CLI plumbing: console, config loading and gateway construction."""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape

from pmu_cli.api.errors import GatewayError
from pmu_cli.api.gateway import GitHubGateway
from pmu_cli.api.protocol import IssueProjectGateway
from pmu_cli.branch.errors import BranchError
from pmu_cli.core.config import Config, ConfigError, load_project_config
from pmu_cli.core.git_ops import GitError

console = Console()
err_console = Console(stderr=True)

# Failures a command reports as "Error: ..." with exit code 1
COMMAND_ERRORS = (BranchError, GatewayError, GitError, ConfigError)


def load_config_or_exit(start: Optional[Path] = None) -> Config:
    """Load ``.gh-pmu.yml`` or print the problem and exit 1."""
    try:
        return load_project_config(start)
    except ConfigError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        console.print("[dim]Create a .gh-pmu.yml in the repository root (see README).[/dim]")
        raise typer.Exit(1)


def build_gateway(config: Config) -> IssueProjectGateway:
    """Create the GitHub gateway for the repository that holds ``config``."""
    repo_root = config.path.parent if config.path is not None else None
    return GitHubGateway.from_environment(repo_root=repo_root, console=Console(stderr=True))


def get_gateway_or_exit(config: Config) -> IssueProjectGateway:
    try:
        return build_gateway(config)
    except GatewayError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1)


def exit_with_error(exc: Exception) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(str(exc))}")
    raise typer.Exit(1)


__all__ = [
    "COMMAND_ERRORS",
    "build_gateway",
    "console",
    "err_console",
    "exit_with_error",
    "get_gateway_or_exit",
    "load_config_or_exit",
]
