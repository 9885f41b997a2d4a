"""Branch lifecycle operations.

A branch is tracked by a single open issue (the tracker) whose title encodes
the branch name; work items join the branch by carrying that name in the
project's Branch field. Every function here takes the gateway and project
configuration explicitly and returns a result object for the CLI to render.

State machine::

    no active branch --start--> active --close--> closed --reopen--> active
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from rich.console import Console
from rich.markup import escape

from pmu_cli.api.errors import GatewayError, wrap_error
from pmu_cli.api.models import Issue, Project, split_repository
from pmu_cli.api.protocol import IssueProjectGateway
from pmu_cli.branch.errors import ActiveBranchExistsError, BranchError, FieldNotConfiguredError
from pmu_cli.branch.models import (
    BranchInfo,
    BranchStatus,
    ClosePlan,
    CloseResult,
    CurrentResult,
    MemberAction,
    MembershipResult,
    StartResult,
)
from pmu_cli.branch.query import discover_members, fetch_branch_members, hydrate_members, membership_fields
from pmu_cli.branch.resolver import (
    BRANCH_LABEL,
    find_active_trackers,
    find_closed_trackers,
    find_tracker_by_name,
    select_single_tracker,
)
from pmu_cli.branch.title import (
    branch_name_of,
    decode,
    identity_from_name,
    render_member_list,
    tracker_body_template,
    version_sort_key,
)
from pmu_cli.core.config import Config, ConfigError
from pmu_cli.core.git_ops import GitError

DEFAULT_IN_PROGRESS = "In progress"
DEFAULT_PARKING_LOT = "Parking Lot"
DEFAULT_BACKLOG = "Backlog"


@contextmanager
def _step(operation: str) -> Iterator[None]:
    """Re-raise gateway failures under the name of the step that failed."""
    try:
        yield
    except GatewayError as exc:
        raise wrap_error(operation, exc) from exc


def _repo_scope(config: Config) -> tuple[str, str]:
    parts = split_repository(config.primary_repository)
    if parts is None:
        raise ConfigError("no repository configured (expected owner/repo in repositories)")
    return parts


def _get_project(gateway: IssueProjectGateway, config: Config) -> Project:
    with _step("get project"):
        return gateway.get_project(config.project.owner, config.project.number)


def _branch_field(config: Config) -> str:
    """Branch field name for add/remove, which refuse to guess."""
    if not config.has_field("branch"):
        raise FieldNotConfiguredError("branch")
    return config.get_field_name("branch")


def _active_tracker(gateway: IssueProjectGateway, owner: str, repo: str) -> Issue:
    with _step("get branch trackers"):
        trackers = find_active_trackers(gateway, owner, repo)
    return select_single_tracker(trackers)


def active_branch_name(gateway: IssueProjectGateway, config: Config) -> str:
    """Resolve the branch name to use when a command omits it.

    Raises:
        NoActiveBranchError: If no tracker is open
        MultipleActiveBranchesError: If several trackers are open
    """
    owner, repo = _repo_scope(config)
    return branch_name_of(_active_tracker(gateway, owner, repo).title)


# ============================================================================
# start / add / remove
# ============================================================================


def start_branch(gateway: IssueProjectGateway, config: Config, name: str) -> StartResult:
    """Create the git branch and its tracker issue.

    Refuses when any tracker is already open. The check and the creation
    are separate calls, so two clients starting at once can both succeed.

    Raises:
        ActiveBranchExistsError: If an open tracker already exists
        GitError: If the git branch cannot be created (no tracker is created)
        GatewayError: If a GitHub call fails
    """
    name = name.strip()
    if not name:
        raise BranchError("branch name is required")
    owner, repo = _repo_scope(config)

    with _step("get existing branches"):
        active = find_active_trackers(gateway, owner, repo)
    if active:
        raise ActiveBranchExistsError(active[0].title)

    identity = identity_from_name(name)
    try:
        gateway.create_branch(identity.branch_name)
    except GitError as exc:
        raise GitError(f"failed to create branch: {exc}") from exc

    with _step("create tracker issue"):
        tracker = gateway.create_issue(
            owner, repo, identity.title, tracker_body_template(identity.branch_name), [BRANCH_LABEL]
        )

    project = _get_project(gateway, config)
    with _step("add issue to project"):
        item_id = gateway.add_issue_to_project(project.id, tracker.id)

    status_value: Optional[str] = None
    if config.has_field("status"):
        status_value = config.resolve_field_value("status", "in_progress", DEFAULT_IN_PROGRESS)
        with _step("set status"):
            gateway.set_project_item_field(project.id, item_id, config.get_field_name("status"), status_value)

    return StartResult(branch_name=identity.branch_name, tracker=tracker, status_set=status_value)


def _locate_item(
    gateway: IssueProjectGateway, config: Config, owner: str, repo: str, number: int
) -> tuple[str, str]:
    """Return (project_id, item_id) for an issue in the configured project."""
    with _step(f"get issue #{number}"):
        issue = gateway.get_issue_by_number(owner, repo, number)
    project = _get_project(gateway, config)
    with _step(f"find project item for #{number}"):
        item_id = gateway.get_project_item_id(project.id, issue.id)
    return project.id, item_id


def add_issue(gateway: IssueProjectGateway, config: Config, number: int) -> MembershipResult:
    """Assign an issue to the active branch. Safe to repeat."""
    owner, repo = _repo_scope(config)
    tracker = _active_tracker(gateway, owner, repo)
    branch_name = branch_name_of(tracker.title)
    field_name = _branch_field(config)

    project_id, item_id = _locate_item(gateway, config, owner, repo, number)
    with _step("get branch field"):
        current = gateway.get_project_item_field_value(project_id, item_id, field_name)
    if current == branch_name:
        return MembershipResult(number, branch_name, MemberAction.ALREADY_ASSIGNED)

    with _step("set branch field"):
        gateway.set_project_item_field(project_id, item_id, field_name, branch_name)
    return MembershipResult(number, branch_name, MemberAction.ASSIGNED)


def remove_issue(gateway: IssueProjectGateway, config: Config, number: int) -> MembershipResult:
    """Clear an issue's Branch field. An already-empty field is not an error."""
    owner, repo = _repo_scope(config)
    tracker = _active_tracker(gateway, owner, repo)
    branch_name = branch_name_of(tracker.title)
    field_name = _branch_field(config)

    project_id, item_id = _locate_item(gateway, config, owner, repo, number)
    with _step("get branch field"):
        current = gateway.get_project_item_field_value(project_id, item_id, field_name)
    if not current:
        return MembershipResult(number, branch_name, MemberAction.NOT_ASSIGNED)

    with _step("clear branch field"):
        gateway.set_project_item_field(project_id, item_id, field_name, "")
    return MembershipResult(number, branch_name, MemberAction.REMOVED)


# ============================================================================
# current
# ============================================================================


def current_branch(gateway: IssueProjectGateway, config: Config, refresh: bool = False) -> CurrentResult:
    """Report the active branch and its member counts.

    Counts come from the minimal projection only. With ``refresh`` the
    members are hydrated and the tracker body is rewritten, even when the
    branch has no members.
    """
    owner, repo = _repo_scope(config)
    with _step("get branch trackers"):
        trackers = find_active_trackers(gateway, owner, repo)
    if not trackers:
        return CurrentResult()

    tracker = select_single_tracker(trackers)
    identity = decode(tracker.title)
    branch_name = identity.branch_name if identity else ""
    project = _get_project(gateway, config)
    fields = membership_fields(config.get_field_name("branch") if config.has_field("branch") else None)

    with _step("get project items"):
        scan = discover_members(gateway, project.id, branch_name, f"{owner}/{repo}", fields)
    result = CurrentResult(tracker=tracker, identity=identity, scan=scan)
    if not refresh:
        return result

    with _step("get branch issues"):
        members = hydrate_members(gateway, project.id, scan.refs)
    entries = [(item.issue.number, item.issue.title) for item in members if item.issue is not None]
    with _step("update tracker body"):
        gateway.update_issue_body(tracker.id, render_member_list(entries))
    result.members = members
    result.refreshed = True
    return result


# ============================================================================
# close / reopen
# ============================================================================


def plan_close(gateway: IssueProjectGateway, config: Config, name: str) -> ClosePlan:
    """Find the tracker for ``name`` and partition its members.

    Members with a closed issue are done. Open members whose status equals
    the Parking Lot value stay on the board; every other open member is
    scheduled to move back to the backlog. Nothing is mutated.

    Raises:
        BranchNotFoundError: If no open tracker matches ``name``
        GatewayError: If discovery or hydration fails
    """
    owner, repo = _repo_scope(config)
    with _step("get branch trackers"):
        trackers = find_active_trackers(gateway, owner, repo)
    tracker = find_tracker_by_name(trackers, name)

    project = _get_project(gateway, config)
    fields = membership_fields(config.get_field_name("branch") if config.has_field("branch") else None)
    with _step("get branch issues"):
        _, members = fetch_branch_members(gateway, project.id, name, f"{owner}/{repo}", fields)

    status_field = config.get_field_name("status")
    plan = ClosePlan(
        tracker=tracker,
        branch_name=name,
        project_id=project.id,
        parking_lot_value=config.resolve_field_value("status", "parking_lot", DEFAULT_PARKING_LOT),
        backlog_value=config.resolve_field_value("status", "backlog", DEFAULT_BACKLOG),
    )
    for item in members:
        if item.issue is not None and item.issue.is_closed:
            plan.done.append(item)
        elif item.get_field_value(status_field) == plan.parking_lot_value:
            plan.parking_lot.append(item)
        else:
            plan.to_move.append(item)
    return plan


def execute_close(
    gateway: IssueProjectGateway,
    config: Config,
    plan: ClosePlan,
    tag: bool = False,
    console: Optional[Console] = None,
) -> CloseResult:
    """Apply a close plan: return incomplete work to the backlog, tag, close the tracker.

    A failure on one item is printed as a warning and that item is skipped;
    ``CloseResult.moved`` counts only the items that were actually moved.
    """
    resolved_console = console if console is not None else Console()
    branch_field = config.get_field_name("branch")
    status_field = config.get_field_name("status")
    result = CloseResult(
        branch_name=plan.branch_name,
        tracker_number=plan.tracker.number,
        skipped_parking_lot=len(plan.parking_lot),
    )

    for item in plan.to_move:
        issue = item.issue
        number = issue.number if issue is not None else 0
        try:
            item_id = item.id
            if not item_id:
                if issue is None:
                    raise GatewayError("get project item", "item has no issue content")
                item_id = gateway.get_project_item_id(plan.project_id, issue.id)
            # Branch is cleared last: an item leaves the branch only once it is in the backlog
            gateway.set_project_item_field(plan.project_id, item_id, status_field, plan.backlog_value)
            gateway.set_project_item_field(plan.project_id, item_id, branch_field, "")
        except GatewayError as exc:
            resolved_console.print(f"[yellow]Warning:[/yellow] could not move #{number} to backlog: {escape(str(exc))}")
            result.failed.append(number)
            continue
        result.moved += 1

    if tag:
        try:
            gateway.create_annotated_tag(plan.branch_name, f"Release {plan.branch_name}")
        except GitError as exc:
            raise GitError(f"failed to create tag: {exc}") from exc
        result.tag = plan.branch_name

    with _step("close tracker issue"):
        gateway.close_issue(plan.tracker.id)
    return result


def reopen_branch(gateway: IssueProjectGateway, config: Config, name: str) -> Issue:
    """Reopen a closed tracker. Cleared Branch fields are not restored."""
    owner, repo = _repo_scope(config)
    with _step("get closed branches"):
        trackers = find_closed_trackers(gateway, owner, repo)
    tracker = find_tracker_by_name(trackers, name, closed=True)
    with _step("reopen tracker issue"):
        gateway.reopen_issue(tracker.id)
    return tracker


# ============================================================================
# list
# ============================================================================


def list_branches(gateway: IssueProjectGateway, config: Config) -> list[BranchInfo]:
    """Return every tracker, newest version first.

    Trackers with equal versions keep their discovery order (open before
    closed).
    """
    owner, repo = _repo_scope(config)
    with _step("get open branches"):
        open_trackers = find_active_trackers(gateway, owner, repo)
    with _step("get closed branches"):
        closed_trackers = find_closed_trackers(gateway, owner, repo)

    branches: list[BranchInfo] = []
    for trackers, status in ((open_trackers, BranchStatus.ACTIVE), (closed_trackers, BranchStatus.CLOSED)):
        for tracker in trackers:
            identity = decode(tracker.title)
            if identity is not None:
                branches.append(BranchInfo(identity=identity, tracker_number=tracker.number, status=status))

    return sorted(branches, key=lambda info: version_sort_key(info.version), reverse=True)


__all__ = [
    "DEFAULT_BACKLOG",
    "DEFAULT_IN_PROGRESS",
    "DEFAULT_PARKING_LOT",
    "active_branch_name",
    "add_issue",
    "current_branch",
    "execute_close",
    "list_branches",
    "plan_close",
    "remove_issue",
    "reopen_branch",
    "start_branch",
]
