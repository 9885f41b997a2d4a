"""Root ``gh-pmu`` Typer application."""

from __future__ import annotations

from typing import Optional

import typer

from pmu_cli import __version__
from pmu_cli.cli.commands import branch as branch_commands
from pmu_cli.cli.commands.issues import list_command
from pmu_cli.cli.helpers import console

app = typer.Typer(
    name="gh-pmu",
    help="Manage GitHub Issues and Projects fields as a lightweight release tracker.",
    no_args_is_help=True,
)

app.add_typer(branch_commands.app, name="branch")
app.command("list")(list_command)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"gh-pmu {__version__}")
        raise typer.Exit()


@app.callback()
def root(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """gh-pmu command line."""


def main() -> None:
    app()


__all__ = ["app", "main"]
