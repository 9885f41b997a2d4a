"""Command modules registered on the root ``gh-pmu`` app."""

from . import branch, issues

__all__ = ["branch", "issues"]
