"""GitHub API access: GraphQL transport, gateway and data shapes."""

from .client import GraphQLClient, resolve_auth_token, resolve_timeout
from .errors import AuthenticationError, GatewayError, NotFoundError, RateLimitedError
from .gateway import GitHubGateway
from .models import (
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
from .protocol import IssueProjectGateway

__all__ = [
    "AuthenticationError",
    "FieldValue",
    "GatewayError",
    "GitHubGateway",
    "GraphQLClient",
    "Issue",
    "IssueProjectGateway",
    "IssueRef",
    "MinimalProjectItem",
    "NotFoundError",
    "Project",
    "ProjectField",
    "ProjectItem",
    "RateLimitedError",
    "Repository",
    "SearchFilters",
    "resolve_auth_token",
    "resolve_timeout",
]
