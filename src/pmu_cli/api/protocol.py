"""IssueProjectGateway protocol consumed by the branch tracker."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from pmu_cli.api.models import (
    FieldValue,
    Issue,
    IssueRef,
    MinimalProjectItem,
    Project,
    ProjectItem,
    SearchFilters,
)


class IssueProjectGateway(Protocol):
    """
    Everything the branch tracker and list path need from GitHub and git.

    Implementations raise :class:`~pmu_cli.api.errors.GatewayError` (or a
    subclass) on failure; git helpers raise
    :class:`~pmu_cli.core.git_ops.GitError`.
    """

    def get_open_issues_by_label(self, owner: str, repo: str, label: str) -> list[Issue]:
        ...

    def get_closed_issues_by_label(self, owner: str, repo: str, label: str) -> list[Issue]:
        ...

    def get_issue_by_number(self, owner: str, repo: str, number: int) -> Issue:
        ...

    def get_project(self, owner: str, number: int) -> Project:
        ...

    def get_project_item_id(self, project_id: str, issue_id: str) -> str:
        """Return the project item ID for an issue, raising NotFoundError if absent."""
        ...

    def get_project_item_field_value(self, project_id: str, item_id: str, field_name: str) -> str:
        """Return the field's value on the item, or ``""`` when unset."""
        ...

    def set_project_item_field(self, project_id: str, item_id: str, field_name: str, value: str) -> None:
        """Write a field value; an empty value clears the field."""
        ...

    def get_project_items_minimal(
        self, project_id: str, repo_filter: Optional[str] = None
    ) -> list[MinimalProjectItem]:
        ...

    def get_project_items_by_issues(self, project_id: str, refs: Sequence[IssueRef]) -> list[ProjectItem]:
        ...

    def get_project_items(
        self, project_id: str, repo_filter: Optional[str] = None, limit: int = 0
    ) -> list[ProjectItem]:
        ...

    def search_repository_issues(
        self, owner: str, repo: str, filters: SearchFilters, limit: int = 0
    ) -> list[Issue]:
        ...

    def get_project_fields_for_issues(
        self, project_id: str, issue_ids: Sequence[str]
    ) -> dict[str, list[FieldValue]]:
        """Map issue node ID to that issue's field values in the project."""
        ...

    def update_issue_body(self, issue_id: str, body: str) -> None:
        ...

    def close_issue(self, issue_id: str) -> None:
        ...

    def reopen_issue(self, issue_id: str) -> None:
        ...

    def create_issue(
        self, owner: str, repo: str, title: str, body: str, labels: Sequence[str]
    ) -> Issue:
        ...

    def add_issue_to_project(self, project_id: str, issue_id: str) -> str:
        """Add an issue to the project and return the new item ID."""
        ...

    def create_branch(self, name: str) -> None:
        ...

    def create_annotated_tag(self, name: str, message: str) -> None:
        ...
