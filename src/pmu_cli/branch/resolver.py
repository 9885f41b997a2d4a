"""Tracker lookup and active-branch resolution."""

from __future__ import annotations

from typing import Sequence

from pmu_cli.api.models import Issue
from pmu_cli.api.protocol import IssueProjectGateway
from pmu_cli.branch.errors import BranchNotFoundError, MultipleActiveBranchesError, NoActiveBranchError
from pmu_cli.branch.title import branch_name_of, is_tracker, matches_branch

BRANCH_LABEL = "branch"
# Labels that may carry tracker issues, current label first
TRACKER_LABELS: tuple[str, ...] = (BRANCH_LABEL, "release")


def _collect_trackers(batches: Sequence[list[Issue]]) -> list[Issue]:
    trackers: list[Issue] = []
    seen: set[str] = set()
    for issues in batches:
        for issue in issues:
            key = issue.id or str(issue.number)
            if key in seen or not is_tracker(issue.title):
                continue
            seen.add(key)
            trackers.append(issue)
    return trackers


def find_active_trackers(gateway: IssueProjectGateway, owner: str, repo: str) -> list[Issue]:
    """Return open issues that carry a tracker label and a tracker title."""
    return _collect_trackers([gateway.get_open_issues_by_label(owner, repo, label) for label in TRACKER_LABELS])


def find_closed_trackers(gateway: IssueProjectGateway, owner: str, repo: str) -> list[Issue]:
    return _collect_trackers([gateway.get_closed_issues_by_label(owner, repo, label) for label in TRACKER_LABELS])


def select_single_tracker(trackers: Sequence[Issue]) -> Issue:
    """Pick the only tracker, refusing to guess between several.

    Raises:
        NoActiveBranchError: If ``trackers`` is empty
        MultipleActiveBranchesError: If there is more than one tracker
    """
    if not trackers:
        raise NoActiveBranchError()
    if len(trackers) > 1:
        raise MultipleActiveBranchesError([branch_name_of(t.title) for t in trackers])
    return trackers[0]


def find_tracker_by_name(trackers: Sequence[Issue], name: str, closed: bool = False) -> Issue:
    """Find the tracker whose title names branch ``name``.

    Raises:
        BranchNotFoundError: If no tracker matches
    """
    for tracker in trackers:
        if matches_branch(tracker.title, name):
            return tracker
    raise BranchNotFoundError(name, closed=closed)


__all__ = [
    "BRANCH_LABEL",
    "TRACKER_LABELS",
    "find_active_trackers",
    "find_closed_trackers",
    "find_tracker_by_name",
    "select_single_tracker",
]
