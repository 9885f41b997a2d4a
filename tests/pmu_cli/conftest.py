"""Shared fixtures for gh-pmu tests: a recording in-memory gateway and a project config."""

from __future__ import annotations

from typing import Optional, Sequence

import pytest

from pmu_cli.api.errors import GatewayError, NotFoundError
from pmu_cli.api.models import (
    FieldValue,
    Issue,
    IssueRef,
    MinimalProjectItem,
    Project,
    ProjectItem,
    Repository,
    SearchFilters,
)
from pmu_cli.core.config import Config, FieldMapping, ProjectSettings

MUTATIONS = frozenset(
    {
        "set_project_item_field",
        "update_issue_body",
        "close_issue",
        "reopen_issue",
        "create_issue",
        "add_issue_to_project",
        "create_branch",
        "create_annotated_tag",
    }
)


def make_issue(number: int, title: str = "", state: str = "OPEN", repo: str = "acme/app") -> Issue:
    owner, name = repo.split("/")
    return Issue(
        id=f"I_{number}",
        number=number,
        title=title or f"Issue {number}",
        state=state,
        repository=Repository(owner=owner, name=name),
    )


def make_item(
    number: int,
    title: str = "",
    state: str = "OPEN",
    status: str = "",
    branch: str = "",
    repo: str = "acme/app",
    branch_field: str = "Branch",
) -> ProjectItem:
    values = []
    if status:
        values.append(FieldValue("Status", status))
    if branch:
        values.append(FieldValue(branch_field, branch))
    return ProjectItem(id=f"PVTI_{number}", issue=make_issue(number, title, state, repo), field_values=values)


class FakeGateway:
    """In-memory gateway that records every call in ``calls``."""

    def __init__(self) -> None:
        self.open_by_label: dict[str, list[Issue]] = {}
        self.closed_by_label: dict[str, list[Issue]] = {}
        self.issues: dict[int, Issue] = {}
        self.project = Project(id="PVT_1", number=7, title="Board", owner="acme")
        self.item_ids: dict[str, str] = {}
        self.values: dict[str, dict[str, str]] = {}
        self.minimal_items: list[MinimalProjectItem] = []
        self.full_items: list[ProjectItem] = []
        self.search_results: list[Issue] = []
        self.search_fields: dict[str, list[FieldValue]] = {}
        self.search_error: Optional[GatewayError] = None
        self.listing_error: Optional[GatewayError] = None
        self.hydrate_error: Optional[GatewayError] = None
        self.hydrate_returns_everything = False
        self.failing_items: set[str] = set()
        self.failing_fields: set[str] = set()
        self.git_error: Optional[Exception] = None
        self.next_number = 100
        self.calls: list[tuple] = []

    # -- test helpers -------------------------------------------------

    def add_tracker(self, number: int, title: str, closed: bool = False, label: str = "branch") -> Issue:
        issue = make_issue(number, title, "CLOSED" if closed else "OPEN")
        target = self.closed_by_label if closed else self.open_by_label
        target.setdefault(label, []).append(issue)
        self.issues[number] = issue
        return issue

    def add_member(
        self,
        number: int,
        title: str = "",
        state: str = "OPEN",
        status: str = "",
        branch: str = "",
        branch_field: str = "Branch",
    ) -> ProjectItem:
        item = make_item(number, title, state, status, branch, branch_field=branch_field)
        self.full_items.append(item)
        self.minimal_items.append(
            MinimalProjectItem(
                issue_number=number,
                repository="acme/app",
                issue_state=state,
                field_values=list(item.field_values),
            )
        )
        self.issues[number] = item.issue
        self.item_ids[item.issue.id] = item.id
        self.values[item.id] = {fv.field: fv.value for fv in item.field_values}
        return item

    def calls_to(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    @property
    def mutations(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in MUTATIONS]

    # -- gateway operations -------------------------------------------

    def get_open_issues_by_label(self, owner: str, repo: str, label: str) -> list[Issue]:
        self.calls.append(("get_open_issues_by_label", owner, repo, label))
        return list(self.open_by_label.get(label, []))

    def get_closed_issues_by_label(self, owner: str, repo: str, label: str) -> list[Issue]:
        self.calls.append(("get_closed_issues_by_label", owner, repo, label))
        return list(self.closed_by_label.get(label, []))

    def get_issue_by_number(self, owner: str, repo: str, number: int) -> Issue:
        self.calls.append(("get_issue_by_number", owner, repo, number))
        if number not in self.issues:
            raise NotFoundError("get issue", "issue not found", f"#{number}")
        return self.issues[number]

    def get_project(self, owner: str, number: int) -> Project:
        self.calls.append(("get_project", owner, number))
        return self.project

    def get_project_item_id(self, project_id: str, issue_id: str) -> str:
        self.calls.append(("get_project_item_id", project_id, issue_id))
        if issue_id not in self.item_ids:
            raise NotFoundError("get project item", "issue not found in project", issue_id)
        return self.item_ids[issue_id]

    def get_project_item_field_value(self, project_id: str, item_id: str, field_name: str) -> str:
        self.calls.append(("get_project_item_field_value", project_id, item_id, field_name))
        return self.values.get(item_id, {}).get(field_name, "")

    def set_project_item_field(self, project_id: str, item_id: str, field_name: str, value: str) -> None:
        self.calls.append(("set_project_item_field", project_id, item_id, field_name, value))
        if item_id in self.failing_items or field_name in self.failing_fields:
            raise GatewayError("set field value", "item is locked")
        self.values.setdefault(item_id, {})[field_name] = value

    def get_project_items_minimal(
        self, project_id: str, repo_filter: Optional[str] = None
    ) -> list[MinimalProjectItem]:
        self.calls.append(("get_project_items_minimal", project_id, repo_filter))
        return list(self.minimal_items)

    def get_project_items_by_issues(self, project_id: str, refs: Sequence[IssueRef]) -> list[ProjectItem]:
        self.calls.append(("get_project_items_by_issues", project_id, list(refs)))
        if self.hydrate_error is not None:
            raise self.hydrate_error
        if self.hydrate_returns_everything:
            return list(self.full_items)
        wanted = {ref.number for ref in refs}
        return [item for item in self.full_items if item.issue.number in wanted]

    def get_project_items(
        self, project_id: str, repo_filter: Optional[str] = None, limit: int = 0
    ) -> list[ProjectItem]:
        self.calls.append(("get_project_items", project_id, repo_filter, limit))
        if self.listing_error is not None:
            raise self.listing_error
        return list(self.full_items)

    def search_repository_issues(
        self, owner: str, repo: str, filters: SearchFilters, limit: int = 0
    ) -> list[Issue]:
        self.calls.append(("search_repository_issues", owner, repo, filters, limit))
        if self.search_error is not None:
            raise self.search_error
        return list(self.search_results)

    def get_project_fields_for_issues(
        self, project_id: str, issue_ids: Sequence[str]
    ) -> dict[str, list[FieldValue]]:
        self.calls.append(("get_project_fields_for_issues", project_id, list(issue_ids)))
        return {issue_id: self.search_fields[issue_id] for issue_id in issue_ids if issue_id in self.search_fields}

    def update_issue_body(self, issue_id: str, body: str) -> None:
        self.calls.append(("update_issue_body", issue_id, body))

    def close_issue(self, issue_id: str) -> None:
        self.calls.append(("close_issue", issue_id))

    def reopen_issue(self, issue_id: str) -> None:
        self.calls.append(("reopen_issue", issue_id))

    def create_issue(self, owner: str, repo: str, title: str, body: str, labels: Sequence[str]) -> Issue:
        self.calls.append(("create_issue", owner, repo, title, body, list(labels)))
        issue = make_issue(self.next_number, title)
        issue.labels = list(labels)
        self.issues[issue.number] = issue
        self.next_number += 1
        return issue

    def add_issue_to_project(self, project_id: str, issue_id: str) -> str:
        self.calls.append(("add_issue_to_project", project_id, issue_id))
        item_id = f"PVTI_{issue_id}"
        self.item_ids[issue_id] = item_id
        return item_id

    def create_branch(self, name: str) -> None:
        self.calls.append(("create_branch", name))
        if self.git_error is not None:
            raise self.git_error

    def create_annotated_tag(self, name: str, message: str) -> None:
        self.calls.append(("create_annotated_tag", name, message))
        if self.git_error is not None:
            raise self.git_error


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def config() -> Config:
    return Config(
        project=ProjectSettings(owner="acme", number=7),
        repositories=["acme/app"],
        fields={
            "status": FieldMapping(
                field="Status",
                values={
                    "backlog": "Backlog",
                    "in_progress": "In progress",
                    "parking_lot": "Parking Lot",
                    "done": "Done",
                },
            ),
            "branch": FieldMapping(field="Branch"),
        },
    )


@pytest.fixture(name="make_issue")
def make_issue_fixture():
    return make_issue


@pytest.fixture(name="make_item")
def make_item_fixture():
    return make_item
