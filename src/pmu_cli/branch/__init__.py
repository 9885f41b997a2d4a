"""Branch/release lifecycle tracking backed by tracker issues and a project field."""

from .errors import (
    ActiveBranchExistsError,
    BranchError,
    BranchNotFoundError,
    FieldNotConfiguredError,
    MultipleActiveBranchesError,
    NoActiveBranchError,
)
from .models import BranchInfo, BranchStatus, ClosePlan, CloseResult, CurrentResult, MemberAction, MembershipScan
from .query import BRANCH_FIELD_ALIASES, ItemQuery, fetch_branch_members, fetch_work_items
from .service import (
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
from .title import BranchIdentity, compare_versions, decode, encode, is_tracker

__all__ = [
    "ActiveBranchExistsError",
    "BRANCH_FIELD_ALIASES",
    "BranchError",
    "BranchIdentity",
    "BranchInfo",
    "BranchNotFoundError",
    "BranchStatus",
    "ClosePlan",
    "CloseResult",
    "CurrentResult",
    "FieldNotConfiguredError",
    "ItemQuery",
    "MemberAction",
    "MembershipScan",
    "MultipleActiveBranchesError",
    "NoActiveBranchError",
    "active_branch_name",
    "add_issue",
    "compare_versions",
    "current_branch",
    "decode",
    "encode",
    "execute_close",
    "fetch_branch_members",
    "fetch_work_items",
    "is_tracker",
    "list_branches",
    "plan_close",
    "remove_issue",
    "reopen_branch",
    "start_branch",
]
