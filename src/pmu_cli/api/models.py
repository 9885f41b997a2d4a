"""GitHub issue and Projects v2 data shapes returned by the gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Repository:
    """Repository coordinates."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass
class Issue:
    """A GitHub issue.

    ``id`` is the GraphQL node ID used by mutations; ``number`` is the
    repository-scoped issue number users type on the command line.
    ``state`` is ``OPEN`` or ``CLOSED`` as GitHub reports it.
    """

    id: str
    number: int
    title: str
    state: str = "OPEN"
    body: str = ""
    url: str = ""
    repository: Optional[Repository] = None
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.state.upper() == "CLOSED"


@dataclass
class Project:
    """A GitHub Projects v2 board."""

    id: str
    number: int
    title: str = ""
    url: str = ""
    owner: str = ""


@dataclass
class FieldOption:
    id: str
    name: str


@dataclass
class ProjectField:
    """A project field definition (Status, Priority, Branch, ...)."""

    id: str
    name: str
    data_type: str
    options: list[FieldOption] = field(default_factory=list)

    def option_id(self, value: str) -> Optional[str]:
        for option in self.options:
            if option.name == value:
                return option.id
        return None


@dataclass
class FieldValue:
    """A resolved field value on a project item."""

    field: str
    value: str


@dataclass
class IssueRef:
    """Reference to an issue by repository coordinates, used for targeted fetches."""

    owner: str
    repo: str
    number: int

    @property
    def key(self) -> tuple[str, str, int]:
        return (self.owner.lower(), self.repo.lower(), self.number)


@dataclass
class MinimalProjectItem:
    """Cheap projection of a project item: enough to decide membership and state."""

    issue_number: int
    repository: str
    issue_state: str
    field_values: list[FieldValue] = field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.issue_state.upper() == "CLOSED"


@dataclass
class ProjectItem:
    """Full projection of a project item: issue details plus every field value."""

    id: str
    issue: Optional[Issue] = None
    field_values: list[FieldValue] = field(default_factory=list)

    def get_field_value(self, field_name: str) -> str:
        """Return the value of ``field_name`` (case-insensitive) or ``""``."""
        for fv in self.field_values:
            if fv.field.lower() == field_name.lower():
                return fv.value
        return ""


@dataclass
class SearchFilters:
    """Filters for the server-side issue search.

    ``state`` is ``open``, ``closed`` or ``all``.
    """

    state: str = "open"
    labels: list[str] = field(default_factory=list)
    assignee: str = ""
    search: str = ""


def split_repository(full_name: str) -> Optional[tuple[str, str]]:
    """Split ``owner/repo`` into its parts, returning None when malformed."""
    parts = full_name.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]
