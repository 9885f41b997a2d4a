"""Work item fetching: two-phase branch membership and the list fallback chain.

Branch membership is found in two passes. Discovery reads the cheap minimal
projection of every project item and keeps references to the items whose
Branch (or legacy Release) field equals the branch name. Hydration then
fetches the full projection for exactly those references, and is skipped
entirely when nothing matched.

List reads go through an ordered list of fetch strategies. Each strategy
reports an outcome instead of raising; the first success wins and only the
last strategy's failure reaches the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from pmu_cli.api.errors import GatewayError
from pmu_cli.api.models import Issue, IssueRef, ProjectItem, SearchFilters, split_repository
from pmu_cli.api.protocol import IssueProjectGateway
from pmu_cli.branch.models import MembershipScan

# Field names that carry branch membership, current name first
BRANCH_FIELD_ALIASES: tuple[str, ...] = ("Branch", "Release")


def membership_fields(configured: Optional[str] = None) -> tuple[str, ...]:
    """Return the field names consulted for membership, configured name first."""
    if configured and configured not in BRANCH_FIELD_ALIASES:
        return (configured, *BRANCH_FIELD_ALIASES)
    return BRANCH_FIELD_ALIASES


def _ref_key(item: ProjectItem) -> Optional[tuple[str, str, int]]:
    issue = item.issue
    if issue is None or issue.repository is None:
        return None
    return (issue.repository.owner.lower(), issue.repository.name.lower(), issue.number)


# ============================================================================
# Two-phase branch membership
# ============================================================================


def discover_members(
    gateway: IssueProjectGateway,
    project_id: str,
    branch_name: str,
    repo_filter: Optional[str] = None,
    field_names: Sequence[str] = BRANCH_FIELD_ALIASES,
) -> MembershipScan:
    """Phase 1: scan minimal items and collect references to branch members.

    Raises:
        GatewayError: If the minimal listing fails (no partial result is possible)
    """
    scan = MembershipScan()
    seen: set[tuple[str, str, int]] = set()
    for item in gateway.get_project_items_minimal(project_id, repo_filter):
        if not any(fv.field in field_names and fv.value == branch_name for fv in item.field_values):
            continue
        parts = split_repository(item.repository)
        if parts is None:
            continue
        ref = IssueRef(owner=parts[0], repo=parts[1], number=item.issue_number)
        if ref.key in seen:
            continue
        seen.add(ref.key)
        scan.refs.append(ref)
        if item.is_closed:
            scan.done += 1
        else:
            scan.open += 1
    return scan


def hydrate_members(
    gateway: IssueProjectGateway,
    project_id: str,
    refs: Sequence[IssueRef],
) -> list[ProjectItem]:
    """Phase 2: fetch full items for the discovered references only.

    Returns an empty list without calling the gateway when ``refs`` is empty.
    Anything the gateway returns outside ``refs`` is dropped, so the result
    never exceeds the discovery set.
    """
    if not refs:
        return []

    wanted = {ref.key for ref in refs}
    members: list[ProjectItem] = []
    seen: set[tuple[str, str, int]] = set()
    for item in gateway.get_project_items_by_issues(project_id, list(refs)):
        key = _ref_key(item)
        if key is None or key not in wanted or key in seen:
            continue
        seen.add(key)
        members.append(item)
    return members


def fetch_branch_members(
    gateway: IssueProjectGateway,
    project_id: str,
    branch_name: str,
    repo_filter: Optional[str] = None,
    field_names: Sequence[str] = BRANCH_FIELD_ALIASES,
) -> tuple[MembershipScan, list[ProjectItem]]:
    """Run both phases and return the discovery scan with the hydrated members."""
    scan = discover_members(gateway, project_id, branch_name, repo_filter, field_names)
    return scan, hydrate_members(gateway, project_id, scan.refs)


# ============================================================================
# List fallback chain
# ============================================================================


@dataclass
class ItemQuery:
    """What the caller of the list path wants.

    Attributes:
        project_id: Project node ID
        repositories: Repositories in scope (``owner/repo``)
        state: ``open``, ``closed`` or ``all``
        limit: Maximum number of items (0 = no limit)
        label: Only issues carrying this label
        assignee: Only issues assigned to this login
        search: Text that must appear in the title or body
    """

    project_id: str
    repositories: list[str] = field(default_factory=list)
    state: str = "open"
    limit: int = 0
    label: str = ""
    assignee: str = ""
    search: str = ""

    def search_filters(self) -> SearchFilters:
        return SearchFilters(
            state=self.state,
            labels=[self.label] if self.label else [],
            assignee=self.assignee,
            search=self.search,
        )

    def matches_issue(self, issue: Issue) -> bool:
        """Apply the label, assignee and text filters client-side."""
        if self.label and not any(label.lower() == self.label.lower() for label in issue.labels):
            return False
        if self.assignee and not any(login.lower() == self.assignee.lower() for login in issue.assignees):
            return False
        if self.search:
            needle = self.search.lower()
            if needle not in issue.title.lower() and needle not in issue.body.lower():
                return False
        return True

    @property
    def single_repository(self) -> Optional[str]:
        return self.repositories[0] if len(self.repositories) == 1 else None


@dataclass
class StrategyOutcome:
    """Result of one fetch strategy attempt.

    ``skipped`` marks a strategy that did not apply to the query; ``error``
    holds the failure when it applied but failed.
    """

    strategy: str
    ok: bool
    items: list[ProjectItem] = field(default_factory=list)
    reason: str = ""
    error: Optional[GatewayError] = None
    skipped: bool = False


@dataclass
class FetchResult:
    items: list[ProjectItem]
    outcomes: list[StrategyOutcome]

    @property
    def served_by(self) -> str:
        return self.outcomes[-1].strategy if self.outcomes else ""


FetchStrategy = Callable[[IssueProjectGateway, ItemQuery], StrategyOutcome]


def search_strategy(gateway: IssueProjectGateway, query: ItemQuery) -> StrategyOutcome:
    """Server-side search with ``is:open`` baked in, enriched with project fields.

    Search covers the whole repository, so the limit is applied only after
    issues that are not on the project board have been dropped.
    """
    name = "search"
    repository = query.single_repository
    if repository is None:
        return StrategyOutcome(name, ok=False, skipped=True, reason="no single repository in scope")
    if query.state != "open":
        return StrategyOutcome(name, ok=False, skipped=True, reason="closed items requested")
    parts = split_repository(repository)
    if parts is None:
        return StrategyOutcome(name, ok=False, skipped=True, reason=f"invalid repository {repository!r}")

    try:
        issues = gateway.search_repository_issues(parts[0], parts[1], query.search_filters(), 0)
        fields = gateway.get_project_fields_for_issues(query.project_id, [issue.id for issue in issues]) if issues else {}
    except GatewayError as exc:
        return StrategyOutcome(name, ok=False, reason=str(exc), error=exc)

    items: list[ProjectItem] = []
    for issue in issues:
        if issue.id not in fields:
            continue
        items.append(ProjectItem(id="", issue=issue, field_values=fields[issue.id]))
        if query.limit and len(items) >= query.limit:
            break
    return StrategyOutcome(name, ok=True, items=items)


def listing_strategy(gateway: IssueProjectGateway, query: ItemQuery) -> StrategyOutcome:
    """Full project listing with repository, state and issue filters applied client-side."""
    name = "project-listing"
    try:
        items = gateway.get_project_items(query.project_id, query.single_repository)
    except GatewayError as exc:
        return StrategyOutcome(name, ok=False, reason=str(exc), error=exc)

    wanted_repos = {repo.lower() for repo in query.repositories}
    kept: list[ProjectItem] = []
    for item in items:
        issue = item.issue
        if issue is None:
            continue
        if wanted_repos and (issue.repository is None or issue.repository.full_name.lower() not in wanted_repos):
            continue
        if query.state == "open" and issue.is_closed:
            continue
        if query.state == "closed" and not issue.is_closed:
            continue
        if not query.matches_issue(issue):
            continue
        kept.append(item)
        if query.limit and len(kept) >= query.limit:
            break
    return StrategyOutcome(name, ok=True, items=kept)


DEFAULT_STRATEGIES: tuple[FetchStrategy, ...] = (search_strategy, listing_strategy)


def run_strategies(
    gateway: IssueProjectGateway,
    query: ItemQuery,
    strategies: Sequence[FetchStrategy] = DEFAULT_STRATEGIES,
) -> FetchResult:
    """Try each strategy in order and return the first successful result.

    Raises:
        GatewayError: The last strategy's error when every strategy fails
    """
    outcomes: list[StrategyOutcome] = []
    for strategy in strategies:
        outcome = strategy(gateway, query)
        outcomes.append(outcome)
        if outcome.ok:
            return FetchResult(items=outcome.items, outcomes=outcomes)

    last = outcomes[-1] if outcomes else None
    if last is not None and last.error is not None:
        raise last.error
    raise GatewayError("list project items", last.reason if last else "no fetch strategy configured")


def fetch_work_items(gateway: IssueProjectGateway, query: ItemQuery) -> FetchResult:
    return run_strategies(gateway, query)


__all__ = [
    "BRANCH_FIELD_ALIASES",
    "DEFAULT_STRATEGIES",
    "FetchResult",
    "FetchStrategy",
    "ItemQuery",
    "StrategyOutcome",
    "discover_members",
    "fetch_branch_members",
    "fetch_work_items",
    "hydrate_members",
    "listing_strategy",
    "membership_fields",
    "run_strategies",
    "search_strategy",
]
