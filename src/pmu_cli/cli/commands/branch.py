"""``gh-pmu branch`` commands: start, add, remove, current, close, reopen, list."""

from __future__ import annotations

from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from pmu_cli.branch.models import BranchStatus, ClosePlan, MemberAction
from pmu_cli.branch.service import (
    active_branch_name,
    add_issue,
    current_branch,
    execute_close,
    list_branches,
    plan_close,
    remove_issue,
    reopen_branch,
    start_branch,
)
from pmu_cli.cli.helpers import COMMAND_ERRORS, console, exit_with_error, get_gateway_or_exit, load_config_or_exit

app = typer.Typer(
    name="branch",
    help="Group issues into a release branch tracked by a single tracker issue.",
    no_args_is_help=True,
)


def _parse_issue_number(raw: str) -> int:
    value = raw.strip().lstrip("#")
    if not value.isdigit() or int(value) <= 0:
        console.print(f"[red]Error:[/red] invalid issue number: {raw}")
        raise typer.Exit(1)
    return int(value)


@app.command("start")
def start_cmd(
    name: str = typer.Option(..., "--name", "-n", help="Branch name, e.g. v1.2.0, patch/v1.1.1 or release/v2.0.0"),
) -> None:
    """Create a git branch and open its tracker issue."""
    config = load_config_or_exit()
    gateway = get_gateway_or_exit(config)
    try:
        result = start_branch(gateway, config, name)
    except COMMAND_ERRORS as exc:
        exit_with_error(exc)

    console.print(f"Created branch: {escape(result.branch_name)}")
    console.print(f"Started tracking: {escape(result.tracker.title)}")
    console.print(f"Tracker issue: #{result.tracker.number}")


@app.command("add")
def add_cmd(
    issue: str = typer.Argument(..., help="Issue number to add to the active branch"),
) -> None:
    """Assign an issue to the active branch."""
    number = _parse_issue_number(issue)
    config = load_config_or_exit()
    gateway = get_gateway_or_exit(config)
    try:
        result = add_issue(gateway, config, number)
    except COMMAND_ERRORS as exc:
        exit_with_error(exc)

    if result.action == MemberAction.ALREADY_ASSIGNED:
        console.print(f"Issue #{number} is already in branch {escape(result.branch_name)}")
    else:
        console.print(f"Added #{number} to branch {escape(result.branch_name)}")


@app.command("remove")
def remove_cmd(
    issue: str = typer.Argument(..., help="Issue number to remove from the active branch"),
) -> None:
    """Clear an issue's Branch field."""
    number = _parse_issue_number(issue)
    config = load_config_or_exit()
    gateway = get_gateway_or_exit(config)
    try:
        result = remove_issue(gateway, config, number)
    except COMMAND_ERRORS as exc:
        exit_with_error(exc)

    if result.action == MemberAction.NOT_ASSIGNED:
        console.print(f"Issue #{number} is not assigned to a branch")
    else:
        console.print(f"Removed #{number} from branch {escape(result.branch_name)}")


@app.command("current")
def current_cmd(
    refresh: bool = typer.Option(False, "--refresh", help="Rewrite the tracker body with the current member list"),
) -> None:
    """Show the active branch and how many issues it holds."""
    config = load_config_or_exit()
    gateway = get_gateway_or_exit(config)
    try:
        result = current_branch(gateway, config, refresh=refresh)
    except COMMAND_ERRORS as exc:
        exit_with_error(exc)

    if not result.active:
        console.print("No active release")
        return

    name = result.identity.branch_name if result.identity else ""
    console.print(f"Current Branch: {escape(name)}")
    if result.identity and result.identity.codename:
        console.print(f"Codename: {escape(result.identity.codename)}")
    console.print(f"Tracker: #{result.tracker.number}")
    console.print(f"Issues: {result.scan.total} ({result.scan.done} done, {result.scan.open} open)")
    if result.refreshed:
        console.print("Tracker body updated")


def _print_close_summary(plan: ClosePlan) -> None:
    console.print(f"Closing branch: {escape(plan.branch_name)}")
    console.print(f"  Tracker issue: #{plan.tracker.number}")
    console.print(f"  Issues in release: {plan.total} ({len(plan.done)} done, {plan.incomplete} incomplete)")
    console.print()


def _print_dry_run(plan: ClosePlan, tag: bool) -> None:
    console.print("[yellow][DRY RUN][/yellow] Preview of changes:", highlight=False)
    console.print()
    console.print(f"Would close branch: {escape(plan.branch_name)}")
    if plan.to_move:
        console.print(f"Would move {len(plan.to_move)} incomplete issue(s) to backlog:")
        for item in plan.to_move:
            if item.issue is not None:
                console.print(f"  #{item.issue.number} - {item.issue.title}", markup=False)
    if plan.parking_lot:
        console.print(f"Would skip {len(plan.parking_lot)} {escape(plan.parking_lot_value)} issue(s)")
    if tag:
        console.print(f"Would create git tag: {escape(plan.branch_name)}")
    console.print(f"Would close tracker issue #{plan.tracker.number}")


@app.command("close")
def close_cmd(
    name: Optional[str] = typer.Argument(None, help="Branch to close (defaults to the active branch)"),
    tag: bool = typer.Option(False, "--tag", help="Create an annotated git tag named after the branch"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would change without changing anything"),
) -> None:
    """Close a branch, returning unfinished issues to the backlog."""
    config = load_config_or_exit()
    gateway = get_gateway_or_exit(config)
    try:
        branch_name = name or active_branch_name(gateway, config)
        plan = plan_close(gateway, config, branch_name)
    except COMMAND_ERRORS as exc:
        exit_with_error(exc)

    _print_close_summary(plan)
    if dry_run:
        _print_dry_run(plan, tag)
        return

    if plan.to_move:
        console.print(f"[yellow]⚠️  {len(plan.to_move)} issue(s) are not done. They will be moved to backlog.[/yellow]")
    if plan.parking_lot:
        console.print(f"ℹ️  Skipping {len(plan.parking_lot)} {escape(plan.parking_lot_value)} issue(s).")
    if not yes and not typer.confirm("Proceed?", default=False):
        console.print("Aborted.")
        return

    try:
        result = execute_close(gateway, config, plan, tag=tag, console=console)
    except COMMAND_ERRORS as exc:
        exit_with_error(exc)

    console.print()
    console.print(f"[green]✓[/green] Branch closed: {escape(result.branch_name)}")
    if plan.to_move:
        console.print(f"[green]✓[/green] {result.moved} issue(s) moved to backlog (Branch cleared)")
    if result.failed:
        failed = ", ".join(f"#{number}" for number in result.failed)
        console.print(f"[yellow]⚠️  {len(result.failed)} issue(s) could not be moved: {failed}[/yellow]")
    if result.tag:
        console.print(f"[green]✓[/green] Tag created: {escape(result.tag)}")


@app.command("reopen")
def reopen_cmd(
    name: str = typer.Argument(..., help="Branch to reopen"),
) -> None:
    """Reopen a closed branch tracker."""
    config = load_config_or_exit()
    gateway = get_gateway_or_exit(config)
    try:
        tracker = reopen_branch(gateway, config, name)
    except COMMAND_ERRORS as exc:
        exit_with_error(exc)

    console.print(f"Reopened branch {escape(name)} (tracker #{tracker.number})")


@app.command("list")
def list_cmd() -> None:
    """List all branches, newest version first."""
    config = load_config_or_exit()
    gateway = get_gateway_or_exit(config)
    try:
        branches = list_branches(gateway, config)
    except COMMAND_ERRORS as exc:
        exit_with_error(exc)

    if not branches:
        console.print("No branches found")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("VERSION", style="cyan")
    table.add_column("CODENAME")
    table.add_column("TRACKER")
    table.add_column("STATUS")
    for info in branches:
        status_style = "green" if info.status == BranchStatus.ACTIVE else "dim"
        table.add_row(
            Text(info.name),
            Text(info.codename or "-"),
            f"#{info.tracker_number}",
            f"[{status_style}]{info.status.value}[/{status_style}]",
        )
    console.print(table)


__all__ = ["app"]
