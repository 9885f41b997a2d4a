"""``gh-pmu list``: project issues with status, priority, branch and issue filters."""

from __future__ import annotations

import json
from typing import Optional, Sequence

import typer
from rich.table import Table
from rich.text import Text

from pmu_cli.api.models import ProjectItem
from pmu_cli.branch.query import FetchResult, ItemQuery, fetch_work_items, membership_fields
from pmu_cli.branch.service import active_branch_name
from pmu_cli.cli.helpers import (
    COMMAND_ERRORS,
    console,
    err_console,
    exit_with_error,
    get_gateway_or_exit,
    load_config_or_exit,
)
from pmu_cli.core.config import Config

VALID_STATES = ("open", "closed", "all")
CURRENT_BRANCH = "current"


def _branch_value(item: ProjectItem, fields: Sequence[str]) -> str:
    for name in fields:
        value = item.get_field_value(name)
        if value:
            return value
    return ""


def filter_items(
    items: Sequence[ProjectItem],
    config: Config,
    status: Optional[str] = None,
    branch: Optional[str] = None,
    no_branch: bool = False,
    priority: Optional[str] = None,
) -> list[ProjectItem]:
    """Apply project-field filters on already-fetched items.

    ``status`` and ``priority`` may be a configured alias (``in_progress``,
    ``p0``) or a literal option name. ``branch`` matches the Branch field or
    its legacy alias.
    """
    status_field = config.get_field_name("status")
    status_value = config.resolve_field_value("status", status) if status else None
    priority_field = config.get_field_name("priority")
    priority_value = config.resolve_field_value("priority", priority) if priority else None
    branch_fields = membership_fields(config.get_field_name("branch") if config.has_field("branch") else None)

    kept: list[ProjectItem] = []
    for item in items:
        if status_value is not None and item.get_field_value(status_field).lower() != status_value.lower():
            continue
        if priority_value is not None and item.get_field_value(priority_field).lower() != priority_value.lower():
            continue
        current = _branch_value(item, branch_fields)
        if branch is not None and current != branch:
            continue
        if no_branch and current:
            continue
        kept.append(item)
    return kept


def _print_strategies(result: FetchResult) -> None:
    for outcome in result.outcomes:
        if outcome.ok:
            err_console.print(f"[dim]fetch strategy {outcome.strategy}: served {len(outcome.items)} item(s)[/dim]")
        elif outcome.skipped:
            err_console.print(f"[dim]fetch strategy {outcome.strategy}: skipped ({outcome.reason})[/dim]")
        else:
            err_console.print(f"[dim]fetch strategy {outcome.strategy}: failed ({outcome.reason})[/dim]")


def _item_payload(item: ProjectItem, config: Config) -> dict:
    issue = item.issue
    branch_fields = membership_fields(config.get_field_name("branch") if config.has_field("branch") else None)
    return {
        "number": issue.number if issue else None,
        "title": issue.title if issue else "",
        "state": issue.state if issue else "",
        "url": issue.url if issue else "",
        "repository": issue.repository.full_name if issue and issue.repository else "",
        "assignees": list(issue.assignees) if issue else [],
        "labels": list(issue.labels) if issue else [],
        "status": item.get_field_value(config.get_field_name("status")),
        "priority": item.get_field_value(config.get_field_name("priority")),
        "branch": _branch_value(item, branch_fields),
        "fieldValues": {fv.field: fv.value for fv in item.field_values},
    }


def list_command(
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Filter by status (alias or option name)"),
    priority: Optional[str] = typer.Option(None, "--priority", "-p", help="Filter by priority (alias or option name)"),
    assignee: Optional[str] = typer.Option(None, "--assignee", "-a", help="Filter by assignee login"),
    label: Optional[str] = typer.Option(None, "--label", "-l", help="Filter by label name"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Search in issue title and body"),
    state: str = typer.Option("open", "--state", help="Issue state: open, closed or all"),
    branch: Optional[str] = typer.Option(
        None, "--branch", "-b", help="Filter by branch name, or 'current' for the active branch"
    ),
    no_branch: bool = typer.Option(False, "--no-branch", help="Only issues not assigned to any branch"),
    repo: Optional[str] = typer.Option(None, "--repo", "-R", help="Limit to one repository (owner/repo)"),
    limit: int = typer.Option(0, "--limit", "-L", min=0, help="Maximum number of issues (0 = no limit)"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show which fetch strategy served the request"),
) -> None:
    """List project issues."""
    state = state.lower()
    if state not in VALID_STATES:
        console.print(f"[red]Error:[/red] invalid --state {state!r} (expected one of: {', '.join(VALID_STATES)})")
        raise typer.Exit(1)
    if branch and no_branch:
        console.print("[red]Error:[/red] --branch and --no-branch cannot be used together")
        raise typer.Exit(1)

    config = load_config_or_exit()
    gateway = get_gateway_or_exit(config)
    repositories = [repo] if repo else list(config.repositories)
    filtering = bool(status or priority or branch or no_branch)

    try:
        branch_value = active_branch_name(gateway, config) if branch == CURRENT_BRANCH else branch
        project = gateway.get_project(config.project.owner, config.project.number)
        result = fetch_work_items(
            gateway,
            ItemQuery(
                project_id=project.id,
                repositories=repositories,
                state=state,
                limit=0 if filtering else limit,
                label=label or "",
                assignee=assignee or "",
                search=search or "",
            ),
        )
    except COMMAND_ERRORS as exc:
        exit_with_error(exc)

    if verbose:
        _print_strategies(result)

    items = filter_items(
        result.items, config, status=status, branch=branch_value, no_branch=no_branch, priority=priority
    )
    if limit:
        items = items[:limit]

    if as_json:
        typer.echo(json.dumps([_item_payload(item, config) for item in items], indent=2))
        return

    if not items:
        console.print("No issues found")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("TITLE")
    table.add_column("STATUS")
    table.add_column("PRIORITY")
    table.add_column("BRANCH")
    for item in items:
        payload = _item_payload(item, config)
        table.add_row(
            str(payload["number"]),
            Text(payload["title"]),
            Text(payload["status"] or "-"),
            Text(payload["priority"] or "-"),
            Text(payload["branch"] or "-"),
        )
    console.print(table)


__all__ = ["filter_items", "list_command"]
