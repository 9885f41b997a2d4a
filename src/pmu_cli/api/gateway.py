"""GitHub Issues / Projects v2 gateway built on :class:`GraphQLClient`.

Each public method maps to one gateway operation used by the branch tracker
or the list command. Failures surface as :class:`GatewayError` subclasses
named after the operation, e.g. ``failed to get project: ...``.
"""

from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping, Optional, Sequence

from rich.console import Console

from pmu_cli.api.client import DEFAULT_HOST, GraphQLClient, resolve_auth_token, resolve_timeout
from pmu_cli.api.errors import GatewayError, NotFoundError
from pmu_cli.api.models import (
    FieldOption,
    FieldValue,
    Issue,
    IssueRef,
    MinimalProjectItem,
    Project,
    ProjectField,
    ProjectItem,
    Repository,
    SearchFilters,
)
from pmu_cli.core import git_ops

PAGE_SIZE = 100
# Aliased issue lookups per request when hydrating specific issues
HYDRATE_BATCH_SIZE = 50
DEFAULT_LABEL_COLOR = "ededed"

# ============================================================================
# GraphQL documents
# ============================================================================

ISSUE_FIELDS = """
      id
      number
      title
      body
      state
      url
      repository { name owner { login } }
      labels(first: 20) { nodes { name } }
      assignees(first: 10) { nodes { login } }
"""

FIELD_VALUES = """
      fieldValues(first: 20) {
        nodes {
          ... on ProjectV2ItemFieldTextValue { text field { ... on ProjectV2FieldCommon { name } } }
          ... on ProjectV2ItemFieldSingleSelectValue { name field { ... on ProjectV2FieldCommon { name } } }
          ... on ProjectV2ItemFieldNumberValue { number field { ... on ProjectV2FieldCommon { name } } }
          ... on ProjectV2ItemFieldDateValue { date field { ... on ProjectV2FieldCommon { name } } }
        }
      }
"""

PAGE_INFO = "pageInfo { hasNextPage endCursor }"

ISSUES_BY_LABEL_QUERY = (
    """
query($owner: String!, $repo: String!, $labels: [String!], $states: [IssueState!], $after: String) {
  repository(owner: $owner, name: $repo) {
    issues(first: 100, after: $after, labels: $labels, states: $states,
           orderBy: {field: CREATED_AT, direction: DESC}) {
      nodes {"""
    + ISSUE_FIELDS
    + "      }\n      "
    + PAGE_INFO
    + """
    }
  }
}
"""
)

ISSUE_QUERY = (
    """
query($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    issue(number: $number) {"""
    + ISSUE_FIELDS
    + """    }
  }
}
"""
)

USER_PROJECT_QUERY = """
query($owner: String!, $number: Int!) {
  user(login: $owner) { projectV2(number: $number) { id number title url } }
}
"""

ORG_PROJECT_QUERY = """
query($owner: String!, $number: Int!) {
  organization(login: $owner) { projectV2(number: $number) { id number title url } }
}
"""

PROJECT_FIELDS_QUERY = (
    """
query($projectId: ID!, $after: String) {
  node(id: $projectId) {
    ... on ProjectV2 {
      fields(first: 100, after: $after) {
        nodes {
          ... on ProjectV2Field { id name dataType }
          ... on ProjectV2SingleSelectField { id name dataType options { id name } }
          ... on ProjectV2IterationField { id name dataType }
        }
        """
    + PAGE_INFO
    + """
      }
    }
  }
}
"""
)

ISSUE_PROJECT_ITEMS_QUERY = """
query($issueId: ID!) {
  node(id: $issueId) {
    ... on Issue { projectItems(first: 50) { nodes { id project { id } } } }
  }
}
"""

ITEM_FIELD_VALUES_QUERY = (
    """
query($itemId: ID!) {
  node(id: $itemId) {
    ... on ProjectV2Item {"""
    + FIELD_VALUES
    + """    }
  }
}
"""
)

UPDATE_FIELD_MUTATION = """
mutation($input: UpdateProjectV2ItemFieldValueInput!) {
  updateProjectV2ItemFieldValue(input: $input) { clientMutationId }
}
"""

CLEAR_FIELD_MUTATION = """
mutation($input: ClearProjectV2ItemFieldValueInput!) {
  clearProjectV2ItemFieldValue(input: $input) { clientMutationId }
}
"""

PROJECT_ITEMS_MINIMAL_QUERY = (
    """
query($projectId: ID!, $after: String) {
  node(id: $projectId) {
    ... on ProjectV2 {
      items(first: 100, after: $after) {
        nodes {
          content { ... on Issue { number state repository { nameWithOwner } } }"""
    + FIELD_VALUES
    + "        }\n        "
    + PAGE_INFO
    + """
      }
    }
  }
}
"""
)

PROJECT_ITEMS_QUERY = (
    """
query($projectId: ID!, $after: String) {
  node(id: $projectId) {
    ... on ProjectV2 {
      items(first: 100, after: $after) {
        nodes {
          id
          content { ... on Issue {"""
    + ISSUE_FIELDS
    + "          } }"
    + FIELD_VALUES
    + "        }\n        "
    + PAGE_INFO
    + """
      }
    }
  }
}
"""
)

SEARCH_ISSUES_QUERY = (
    """
query($query: String!, $after: String) {
  search(query: $query, type: ISSUE, first: 100, after: $after) {
    nodes { ... on Issue {"""
    + ISSUE_FIELDS
    + "    } }\n    "
    + PAGE_INFO
    + """
  }
}
"""
)

FIELDS_FOR_ISSUES_QUERY = (
    """
query($ids: [ID!]!) {
  nodes(ids: $ids) {
    ... on Issue {
      id
      projectItems(first: 20) {
        nodes {
          project { id }"""
    + FIELD_VALUES
    + """        }
      }
    }
  }
}
"""
)

UPDATE_ISSUE_MUTATION = """
mutation($input: UpdateIssueInput!) { updateIssue(input: $input) { issue { id } } }
"""

CLOSE_ISSUE_MUTATION = """
mutation($input: CloseIssueInput!) { closeIssue(input: $input) { issue { id state } } }
"""

REOPEN_ISSUE_MUTATION = """
mutation($input: ReopenIssueInput!) { reopenIssue(input: $input) { issue { id state } } }
"""

REPOSITORY_LABELS_QUERY = """
query($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) { id labels(first: 100) { nodes { id name } } }
}
"""

CREATE_LABEL_MUTATION = """
mutation($input: CreateLabelInput!) { createLabel(input: $input) { label { id name } } }
"""

CREATE_ISSUE_MUTATION = (
    """
mutation($input: CreateIssueInput!) {
  createIssue(input: $input) {
    issue {"""
    + ISSUE_FIELDS
    + """    }
  }
}
"""
)

ADD_PROJECT_ITEM_MUTATION = """
mutation($input: AddProjectV2ItemByIdInput!) { addProjectV2ItemById(input: $input) { item { id } } }
"""


# ============================================================================
# Response parsing
# ============================================================================


def _parse_issue(node: Mapping[str, Any]) -> Issue:
    repo = node.get("repository") or {}
    repository = None
    if repo:
        repository = Repository(owner=(repo.get("owner") or {}).get("login", ""), name=repo.get("name", ""))
    return Issue(
        id=node.get("id", ""),
        number=int(node.get("number") or 0),
        title=node.get("title") or "",
        state=node.get("state") or "OPEN",
        body=node.get("body") or "",
        url=node.get("url") or "",
        repository=repository,
        labels=[label["name"] for label in (node.get("labels") or {}).get("nodes") or [] if label],
        assignees=[user["login"] for user in (node.get("assignees") or {}).get("nodes") or [] if user],
    )


def _format_number(number: Any) -> str:
    value = float(number)
    return str(int(value)) if value.is_integer() else str(value)


def _parse_field_values(container: Optional[Mapping[str, Any]]) -> list[FieldValue]:
    """Flatten a ``fieldValues`` connection into name/value pairs."""
    values: list[FieldValue] = []
    nodes = ((container or {}).get("fieldValues") or {}).get("nodes") or []
    for node in nodes:
        if not node:
            continue
        field_name = (node.get("field") or {}).get("name")
        if not field_name:
            continue
        if node.get("text") is not None:
            values.append(FieldValue(field_name, node["text"]))
        elif node.get("name") is not None:
            values.append(FieldValue(field_name, node["name"]))
        elif node.get("number") is not None:
            values.append(FieldValue(field_name, _format_number(node["number"])))
        elif node.get("date") is not None:
            values.append(FieldValue(field_name, node["date"]))
    return values


def _build_search_query(owner: str, repo: str, filters: SearchFilters) -> str:
    parts = [f"repo:{owner}/{repo}", "is:issue"]
    state = (filters.state or "open").lower()
    if state == "open":
        parts.append("is:open")
    elif state == "closed":
        parts.append("is:closed")
    for label in filters.labels:
        parts.append(f'label:"{label}"')
    if filters.assignee:
        parts.append(f"assignee:{filters.assignee}")
    if filters.search:
        parts.append(filters.search)
    return " ".join(parts)


def _build_items_by_issues_query(refs: Sequence[IssueRef]) -> tuple[str, dict[str, IssueRef]]:
    """Build one aliased query fetching each referenced issue with its project items.

    Returns the document and a map from ``"<repo alias>.<issue alias>"`` to ref.
    """
    by_repo: dict[tuple[str, str], list[IssueRef]] = {}
    for ref in refs:
        by_repo.setdefault((ref.owner, ref.repo), []).append(ref)

    aliases: dict[str, IssueRef] = {}
    blocks: list[str] = []
    for repo_index, ((owner, repo), repo_refs) in enumerate(by_repo.items()):
        repo_alias = f"r{repo_index}"
        issue_blocks = []
        for ref in repo_refs:
            issue_alias = f"i{ref.number}"
            aliases[f"{repo_alias}.{issue_alias}"] = ref
            issue_blocks.append(
                f"    {issue_alias}: issue(number: {int(ref.number)}) {{"
                + ISSUE_FIELDS
                + "      projectItems(first: 20) { nodes { id project { id }"
                + FIELD_VALUES
                + "      } }\n    }"
            )
        blocks.append(
            f"  {repo_alias}: repository(owner: {json.dumps(owner)}, name: {json.dumps(repo)}) {{\n"
            + "\n".join(issue_blocks)
            + "\n  }"
        )
    return "query {\n" + "\n".join(blocks) + "\n}\n", aliases


# ============================================================================
# Gateway
# ============================================================================


class GitHubGateway:
    """Issue/project gateway backed by the GitHub GraphQL API and local git."""

    def __init__(
        self,
        client: GraphQLClient,
        *,
        repo_root: Optional[Path] = None,
        console: Optional[Console] = None,
    ) -> None:
        self._client = client
        self._repo_root = repo_root
        self._console = console if console is not None else Console(stderr=True)
        self._fields_cache: dict[str, list[ProjectField]] = {}

    @classmethod
    def from_environment(
        cls,
        env: Optional[Mapping[str, str]] = None,
        *,
        repo_root: Optional[Path] = None,
        console: Optional[Console] = None,
    ) -> "GitHubGateway":
        """Build a gateway from ``GH_TOKEN``/``GITHUB_TOKEN``, ``GH_HOST`` and ``GH_PMU_TIMEOUT``."""
        environ = os.environ if env is None else env
        client = GraphQLClient(
            resolve_auth_token(environ),
            host=environ.get("GH_HOST", "").strip() or DEFAULT_HOST,
            timeout=resolve_timeout(environ),
            console=console,
        )
        return cls(client, repo_root=repo_root, console=console)

    def close(self) -> None:
        self._client.close()

    def _iter_nodes(
        self,
        operation: str,
        query: str,
        variables: dict[str, Any],
        connection: Callable[[dict[str, Any]], Optional[Mapping[str, Any]]],
    ) -> Iterator[dict[str, Any]]:
        after: Optional[str] = None
        while True:
            data = self._client.execute(operation, query, {**variables, "after": after})
            conn = connection(data) or {}
            for node in conn.get("nodes") or []:
                if node:
                    yield node
            page = conn.get("pageInfo") or {}
            if not page.get("hasNextPage"):
                return
            after = page.get("endCursor")

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def _issues_by_label(self, owner: str, repo: str, label: str, state: str) -> list[Issue]:
        operation = f"get {state.lower()} issues by label"

        def connection(data: dict[str, Any]) -> Optional[Mapping[str, Any]]:
            repository = data.get("repository")
            if repository is None:
                raise NotFoundError(operation, f"repository {owner}/{repo} not found")
            return repository.get("issues")

        variables = {"owner": owner, "repo": repo, "labels": [label], "states": [state]}
        return [_parse_issue(node) for node in self._iter_nodes(operation, ISSUES_BY_LABEL_QUERY, variables, connection)]

    def get_open_issues_by_label(self, owner: str, repo: str, label: str) -> list[Issue]:
        return self._issues_by_label(owner, repo, label, "OPEN")

    def get_closed_issues_by_label(self, owner: str, repo: str, label: str) -> list[Issue]:
        return self._issues_by_label(owner, repo, label, "CLOSED")

    def get_issue_by_number(self, owner: str, repo: str, number: int) -> Issue:
        operation = "get issue"
        data = self._client.execute(operation, ISSUE_QUERY, {"owner": owner, "repo": repo, "number": number})
        node = (data.get("repository") or {}).get("issue")
        if not node:
            raise NotFoundError(operation, f"issue not found in {owner}/{repo}", f"#{number}")
        return _parse_issue(node)

    def search_repository_issues(
        self, owner: str, repo: str, filters: SearchFilters, limit: int = 0
    ) -> list[Issue]:
        """Run a server-side issue search scoped to one repository."""
        query = _build_search_query(owner, repo, filters)
        issues: list[Issue] = []
        for node in self._iter_nodes(
            "search issues", SEARCH_ISSUES_QUERY, {"query": query}, lambda data: data.get("search")
        ):
            if not node.get("id"):
                continue
            issues.append(_parse_issue(node))
            if limit and len(issues) >= limit:
                break
        return issues

    def update_issue_body(self, issue_id: str, body: str) -> None:
        self._client.execute("update issue body", UPDATE_ISSUE_MUTATION, {"input": {"id": issue_id, "body": body}})

    def close_issue(self, issue_id: str) -> None:
        self._client.execute("close issue", CLOSE_ISSUE_MUTATION, {"input": {"issueId": issue_id}})

    def reopen_issue(self, issue_id: str) -> None:
        self._client.execute("reopen issue", REOPEN_ISSUE_MUTATION, {"input": {"issueId": issue_id}})

    def create_issue(
        self, owner: str, repo: str, title: str, body: str, labels: Sequence[str]
    ) -> Issue:
        """Create an issue, creating any missing labels first."""
        operation = "create issue"
        data = self._client.execute(operation, REPOSITORY_LABELS_QUERY, {"owner": owner, "repo": repo})
        repository = data.get("repository")
        if not repository:
            raise NotFoundError(operation, f"repository {owner}/{repo} not found")

        existing = {
            node["name"]: node["id"] for node in (repository.get("labels") or {}).get("nodes") or [] if node
        }
        label_ids: list[str] = []
        for name in labels:
            label_id = existing.get(name)
            if label_id is None:
                self._console.print(f"[dim]Creating label {name!r}...[/dim]")
                created = self._client.execute(
                    "create label",
                    CREATE_LABEL_MUTATION,
                    {"input": {"repositoryId": repository["id"], "name": name, "color": DEFAULT_LABEL_COLOR}},
                )
                label_id = ((created.get("createLabel") or {}).get("label") or {}).get("id")
                if not label_id:
                    raise GatewayError(operation, f"could not create label {name!r}")
            label_ids.append(label_id)

        issue_input: dict[str, Any] = {"repositoryId": repository["id"], "title": title}
        if body:
            issue_input["body"] = body
        if label_ids:
            issue_input["labelIds"] = label_ids

        result = self._client.execute(operation, CREATE_ISSUE_MUTATION, {"input": issue_input})
        node = (result.get("createIssue") or {}).get("issue")
        if not node:
            raise GatewayError(operation, "empty response from createIssue")
        return _parse_issue(node)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def get_project(self, owner: str, number: int) -> Project:
        """Look up a project owned by a user, falling back to an organization."""
        variables = {"owner": owner, "number": number}
        for root, query in (("user", USER_PROJECT_QUERY), ("organization", ORG_PROJECT_QUERY)):
            try:
                data = self._client.execute("get project", query, variables)
            except NotFoundError:
                continue
            node = (data.get(root) or {}).get("projectV2")
            if node:
                return Project(
                    id=node["id"],
                    number=int(node.get("number") or number),
                    title=node.get("title") or "",
                    url=node.get("url") or "",
                    owner=owner,
                )
        raise NotFoundError("get project", f"project #{number} not found for {owner}")

    def get_project_fields(self, project_id: str) -> list[ProjectField]:
        """Return the project's field definitions (cached per gateway)."""
        cached = self._fields_cache.get(project_id)
        if cached is not None:
            return cached

        fields: list[ProjectField] = []
        for node in self._iter_nodes(
            "get project fields",
            PROJECT_FIELDS_QUERY,
            {"projectId": project_id},
            lambda data: (data.get("node") or {}).get("fields"),
        ):
            if not node.get("id"):
                continue
            fields.append(
                ProjectField(
                    id=node["id"],
                    name=node.get("name", ""),
                    data_type=node.get("dataType", ""),
                    options=[FieldOption(id=opt["id"], name=opt["name"]) for opt in node.get("options") or []],
                )
            )
        self._fields_cache[project_id] = fields
        return fields

    def get_project_item_id(self, project_id: str, issue_id: str) -> str:
        operation = "get project item"
        data = self._client.execute(operation, ISSUE_PROJECT_ITEMS_QUERY, {"issueId": issue_id})
        items = ((data.get("node") or {}).get("projectItems") or {}).get("nodes") or []
        for item in items:
            if item and (item.get("project") or {}).get("id") == project_id:
                return item["id"]
        raise NotFoundError(operation, "issue not found in project", issue_id)

    def get_project_item_field_value(self, project_id: str, item_id: str, field_name: str) -> str:
        data = self._client.execute("get field value", ITEM_FIELD_VALUES_QUERY, {"itemId": item_id})
        for fv in _parse_field_values(data.get("node")):
            if fv.field == field_name:
                return fv.value
        return ""

    def set_project_item_field(self, project_id: str, item_id: str, field_name: str, value: str) -> None:
        """Set a field on a project item; an empty value clears it.

        Raises:
            GatewayError: If the field or option does not exist, the value is
                malformed for the field type, or the mutation fails
        """
        operation = "set field value"
        field = next((f for f in self.get_project_fields(project_id) if f.name == field_name), None)
        if field is None:
            raise NotFoundError(operation, f"field {field_name!r} not found in project")

        base = {"projectId": project_id, "itemId": item_id, "fieldId": field.id}
        if value == "":
            self._client.execute("clear field value", CLEAR_FIELD_MUTATION, {"input": base})
            return

        if field.data_type == "SINGLE_SELECT":
            option_id = field.option_id(value)
            if option_id is None:
                raise GatewayError(operation, f"option {value!r} not found for field {field.name!r}")
            field_value: dict[str, Any] = {"singleSelectOptionId": option_id}
        elif field.data_type == "TEXT":
            field_value = {"text": value}
        elif field.data_type == "NUMBER":
            try:
                field_value = {"number": float(value)}
            except ValueError as exc:
                raise GatewayError(operation, f"invalid number value {value!r}") from exc
        elif field.data_type == "DATE":
            try:
                datetime.strptime(value, "%Y-%m-%d")
            except ValueError as exc:
                raise GatewayError(operation, f"invalid date format: expected YYYY-MM-DD, got {value!r}") from exc
            field_value = {"date": value}
        else:
            raise GatewayError(operation, f"unsupported field type: {field.data_type}")

        self._client.execute(operation, UPDATE_FIELD_MUTATION, {"input": {**base, "value": field_value}})

    def add_issue_to_project(self, project_id: str, issue_id: str) -> str:
        data = self._client.execute(
            "add issue to project",
            ADD_PROJECT_ITEM_MUTATION,
            {"input": {"projectId": project_id, "contentId": issue_id}},
        )
        item = (data.get("addProjectV2ItemById") or {}).get("item") or {}
        if not item.get("id"):
            raise GatewayError("add issue to project", "empty response from addProjectV2ItemById")
        return item["id"]

    def get_project_items_minimal(
        self, project_id: str, repo_filter: Optional[str] = None
    ) -> list[MinimalProjectItem]:
        """List every issue item in the project with just state and field values."""
        wanted = repo_filter.lower() if repo_filter else None
        items: list[MinimalProjectItem] = []
        for node in self._iter_nodes(
            "get project items",
            PROJECT_ITEMS_MINIMAL_QUERY,
            {"projectId": project_id},
            lambda data: (data.get("node") or {}).get("items"),
        ):
            content = node.get("content") or {}
            if "number" not in content:
                continue
            repository = (content.get("repository") or {}).get("nameWithOwner", "")
            if wanted and repository.lower() != wanted:
                continue
            items.append(
                MinimalProjectItem(
                    issue_number=int(content["number"]),
                    repository=repository,
                    issue_state=content.get("state") or "",
                    field_values=_parse_field_values(node),
                )
            )
        return items

    def get_project_items(
        self, project_id: str, repo_filter: Optional[str] = None, limit: int = 0
    ) -> list[ProjectItem]:
        """List issue items with full issue details (the expensive projection)."""
        wanted = repo_filter.lower() if repo_filter else None
        items: list[ProjectItem] = []
        for node in self._iter_nodes(
            "get project items",
            PROJECT_ITEMS_QUERY,
            {"projectId": project_id},
            lambda data: (data.get("node") or {}).get("items"),
        ):
            content = node.get("content") or {}
            if not content.get("id"):
                continue
            issue = _parse_issue(content)
            if wanted and (issue.repository is None or issue.repository.full_name.lower() != wanted):
                continue
            items.append(ProjectItem(id=node.get("id", ""), issue=issue, field_values=_parse_field_values(node)))
            if limit and len(items) >= limit:
                break
        return items

    def get_project_items_by_issues(self, project_id: str, refs: Sequence[IssueRef]) -> list[ProjectItem]:
        """Fetch full project items for specific issues only.

        Issues that are not in the project are left out of the result.
        """
        items: list[ProjectItem] = []
        for start in range(0, len(refs), HYDRATE_BATCH_SIZE):
            batch = refs[start : start + HYDRATE_BATCH_SIZE]
            query, aliases = _build_items_by_issues_query(batch)
            data = self._client.execute("get project items by issues", query, {})
            for alias in aliases:
                repo_alias, issue_alias = alias.split(".")
                node = (data.get(repo_alias) or {}).get(issue_alias)
                if not node:
                    continue
                for item in (node.get("projectItems") or {}).get("nodes") or []:
                    if item and (item.get("project") or {}).get("id") == project_id:
                        items.append(
                            ProjectItem(
                                id=item["id"],
                                issue=_parse_issue(node),
                                field_values=_parse_field_values(item),
                            )
                        )
                        break
        return items

    def get_project_fields_for_issues(
        self, project_id: str, issue_ids: Sequence[str]
    ) -> dict[str, list[FieldValue]]:
        result: dict[str, list[FieldValue]] = {}
        ids = list(issue_ids)
        for start in range(0, len(ids), PAGE_SIZE):
            data = self._client.execute(
                "get project fields for issues",
                FIELDS_FOR_ISSUES_QUERY,
                {"ids": ids[start : start + PAGE_SIZE]},
            )
            for node in data.get("nodes") or []:
                if not node or not node.get("id"):
                    continue
                for item in (node.get("projectItems") or {}).get("nodes") or []:
                    if item and (item.get("project") or {}).get("id") == project_id:
                        result[node["id"]] = _parse_field_values(item)
                        break
        return result

    # ------------------------------------------------------------------
    # Git
    # ------------------------------------------------------------------

    def create_branch(self, name: str) -> None:
        git_ops.create_branch(name, cwd=self._repo_root)

    def create_annotated_tag(self, name: str, message: str) -> None:
        git_ops.create_annotated_tag(name, message, cwd=self._repo_root)


__all__ = ["GitHubGateway", "PAGE_SIZE"]
