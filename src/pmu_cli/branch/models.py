"""Result types returned by the branch lifecycle operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pmu_cli.api.models import Issue, IssueRef, ProjectItem
from pmu_cli.branch.title import BranchIdentity

# ============================================================================
# Types
# ============================================================================


class BranchStatus(str, Enum):
    """Tracker state as shown by ``branch list``."""

    ACTIVE = "Active"
    CLOSED = "Closed"


class MemberAction(str, Enum):
    """Outcome of ``branch add``/``branch remove`` for a single issue."""

    ASSIGNED = "assigned"
    ALREADY_ASSIGNED = "already_assigned"
    REMOVED = "removed"
    NOT_ASSIGNED = "not_assigned"


# ============================================================================
# Data Classes
# ============================================================================


@dataclass
class BranchInfo:
    """One row of ``branch list``."""

    identity: BranchIdentity
    tracker_number: int
    status: BranchStatus

    @property
    def name(self) -> str:
        return self.identity.branch_name

    @property
    def version(self) -> str:
        return self.identity.version

    @property
    def codename(self) -> str:
        return self.identity.codename


@dataclass
class MembershipScan:
    """Result of the discovery pass over the minimal item projection.

    Attributes:
        refs: References to every matching work item, in discovery order
        done: Matching items whose issue is closed
        open: Matching items whose issue is still open
    """

    refs: list[IssueRef] = field(default_factory=list)
    done: int = 0
    open: int = 0

    @property
    def total(self) -> int:
        return len(self.refs)


@dataclass
class StartResult:
    branch_name: str
    tracker: Issue
    status_set: Optional[str] = None


@dataclass
class MembershipResult:
    """Result of ``branch add`` / ``branch remove``."""

    issue_number: int
    branch_name: str
    action: MemberAction


@dataclass
class CurrentResult:
    """Result of ``branch current``; ``tracker`` is None when no branch is active."""

    tracker: Optional[Issue] = None
    identity: Optional[BranchIdentity] = None
    scan: MembershipScan = field(default_factory=MembershipScan)
    refreshed: bool = False
    members: list[ProjectItem] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return self.tracker is not None


@dataclass
class ClosePlan:
    """Partition of a branch's members computed before closing it.

    Attributes:
        tracker: The open tracker issue being closed
        branch_name: Branch name as stored in the Branch field
        done: Members whose issue is closed
        parking_lot: Open members whose status is the Parking Lot value
        to_move: Open members that will be returned to the backlog
        parking_lot_value: Status value treated as Parking Lot
        backlog_value: Status value written to moved items
    """

    tracker: Issue
    branch_name: str
    project_id: str
    done: list[ProjectItem] = field(default_factory=list)
    parking_lot: list[ProjectItem] = field(default_factory=list)
    to_move: list[ProjectItem] = field(default_factory=list)
    parking_lot_value: str = "Parking Lot"
    backlog_value: str = "Backlog"

    @property
    def total(self) -> int:
        return len(self.done) + len(self.parking_lot) + len(self.to_move)

    @property
    def incomplete(self) -> int:
        return len(self.parking_lot) + len(self.to_move)


@dataclass
class CloseResult:
    branch_name: str
    tracker_number: int
    moved: int = 0
    skipped_parking_lot: int = 0
    failed: list[int] = field(default_factory=list)
    tag: Optional[str] = None


__all__ = [
    "BranchInfo",
    "BranchStatus",
    "ClosePlan",
    "CloseResult",
    "CurrentResult",
    "MemberAction",
    "MembershipResult",
    "MembershipScan",
    "StartResult",
]
