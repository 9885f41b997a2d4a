"""Branch lifecycle precondition errors."""

from __future__ import annotations

from typing import Sequence


class BranchError(Exception):
    """A branch command cannot run in the current tracker state."""


class NoActiveBranchError(BranchError):
    def __init__(self) -> None:
        super().__init__("no active branch found")


class MultipleActiveBranchesError(BranchError):
    """More than one open tracker exists, so "current" is ambiguous."""

    def __init__(self, names: Sequence[str]) -> None:
        self.names = list(names)
        super().__init__(f"multiple active branches. Specify one: {', '.join(self.names)}")


class ActiveBranchExistsError(BranchError):
    def __init__(self, title: str) -> None:
        self.title = title
        super().__init__(f"active branch exists: {title}")


class BranchNotFoundError(BranchError):
    def __init__(self, name: str, closed: bool = False) -> None:
        self.name = name
        prefix = "closed branch" if closed else "branch"
        super().__init__(f"{prefix} not found: {name}")


class FieldNotConfiguredError(BranchError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"{key} field not configured")


__all__ = [
    "ActiveBranchExistsError",
    "BranchError",
    "BranchNotFoundError",
    "FieldNotConfiguredError",
    "MultipleActiveBranchesError",
    "NoActiveBranchError",
]
