"""Tracker title codec.

A branch tracker is an ordinary issue whose title carries the branch
identity::

    Branch: v1.2.0 (Phoenix)      -> stable track, version 1.2.0, codename Phoenix
    Release: patch/1.1.1          -> patch track, version 1.1.1 (legacy prefix)
    Branch: release/v2.0.0        -> release track, version 2.0.0

The title is only the serialized form; everything else in the package works
with :class:`BranchIdentity`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

# ============================================================================
# Constants
# ============================================================================

BRANCH_PREFIX = "Branch: "
LEGACY_PREFIX = "Release: "
TRACKER_PREFIXES: tuple[str, ...] = (BRANCH_PREFIX, LEGACY_PREFIX)

STABLE_TRACK = "stable"
CODENAME_SEPARATOR = " ("

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


# ============================================================================
# Data Classes
# ============================================================================


@dataclass(frozen=True)
class BranchIdentity:
    """Decoded branch identity.

    Attributes:
        version: Bare version (``1.2.0``), leading ``v`` removed
        track: ``stable`` or the segment before ``/`` (``patch``, ``release``)
        codename: Optional human name, empty when absent
        name: Branch name as written in the title (``v1.2.0``, ``patch/1.1.1``).
            This is the value stored in the Branch field and used for the git
            branch and tag. Not part of equality.
    """

    version: str
    track: str = STABLE_TRACK
    codename: str = ""
    name: str = field(default="", compare=False)

    @property
    def branch_name(self) -> str:
        """Branch name, derived from track and version when not set explicitly."""
        return self.name or _canonical_name(self.track, self.version)

    @property
    def title(self) -> str:
        """Tracker title for this identity, preserving the branch name as written."""
        return BRANCH_PREFIX + self.branch_name + _codename_suffix(self.codename)


# ============================================================================
# Codec
# ============================================================================


def _strip_v(value: str) -> str:
    return value[1:] if value.startswith("v") else value


def _canonical_name(track: str, version: str) -> str:
    if track == STABLE_TRACK:
        return f"v{version}"
    return f"{track}/v{version}"


def _codename_suffix(codename: str) -> str:
    return f" ({codename})" if codename else ""


def _strip_prefix(title: str) -> Optional[str]:
    for prefix in TRACKER_PREFIXES:
        if title.startswith(prefix):
            return title[len(prefix) :]
    return None


def encode(track: str, version: str, codename: str = "") -> str:
    """Build a tracker title from its parts.

    >>> encode("stable", "1.2.0", "Phoenix")
    'Branch: v1.2.0 (Phoenix)'
    >>> encode("patch", "1.1.1")
    'Branch: patch/v1.1.1'
    """
    return BRANCH_PREFIX + _canonical_name(track, version) + _codename_suffix(codename)


def _parse_remainder(remainder: str) -> BranchIdentity:
    codename = ""
    idx = remainder.find(CODENAME_SEPARATOR)
    if idx != -1:
        codename = remainder[idx + len(CODENAME_SEPARATOR) :]
        if codename.endswith(")"):
            codename = codename[:-1]
        remainder = remainder[:idx]

    if "/" in remainder:
        track, version = remainder.split("/", 1)
        return BranchIdentity(version=_strip_v(version), track=track, codename=codename, name=remainder)
    return BranchIdentity(version=_strip_v(remainder), codename=codename, name=remainder)


def decode(title: str) -> Optional[BranchIdentity]:
    """Parse a tracker title, returning None when it is not a tracker title."""
    remainder = _strip_prefix(title)
    if remainder is None:
        return None
    return _parse_remainder(remainder)


def is_tracker(title: str) -> bool:
    """Return True when the title uses a tracker prefix.

    Only the title decides; carrying the ``branch`` label is not enough.
    """
    return _strip_prefix(title) is not None


def branch_name_of(title: str) -> str:
    """Return the branch name embedded in a tracker title (``""`` if not a tracker)."""
    identity = decode(title)
    return identity.branch_name if identity else ""


def matches_branch(title: str, name: str) -> bool:
    """Return True when ``title`` is the tracker title for branch ``name``.

    Accepts either prefix, with or without a codename suffix.
    """
    for prefix in TRACKER_PREFIXES:
        exact = prefix + name
        if title == exact or title.startswith(exact + CODENAME_SEPARATOR):
            return True
    return False


def identity_from_name(name: str) -> BranchIdentity:
    """Parse a bare branch name (as given to ``branch start --name``).

    The name is kept verbatim so the git branch, tracker title and Branch
    field all agree.
    """
    return _parse_remainder(name.strip())


# ============================================================================
# Version ordering
# ============================================================================


def _version_parts(version: str) -> tuple[int, int, int]:
    parts = _strip_v(version).split(".")
    numbers = []
    for index in range(3):
        number = 0
        if index < len(parts):
            match = _LEADING_INT.match(parts[index])
            if match:
                number = int(match.group(1))
        numbers.append(number)
    return numbers[0], numbers[1], numbers[2]


def compare_versions(a: str, b: str) -> int:
    """Compare ``major.minor.patch`` versions numerically.

    A leading ``v`` is ignored; missing or non-numeric components count as 0.

    Returns:
        Positive if ``a > b``, negative if ``a < b``, zero if equal
    """
    left, right = _version_parts(a), _version_parts(b)
    return (left > right) - (left < right)


def version_sort_key(version: str) -> tuple[int, int, int]:
    return _version_parts(version)


# ============================================================================
# Tracker bodies
# ============================================================================


def tracker_body_template(name: str) -> str:
    """Initial body for a newly created tracker issue."""
    return (
        "> **Branch Tracker Issue**\n"
        ">\n"
        f"> This issue tracks the branch `{name}`. It is managed by gh pmu branch commands.\n"
        ">\n"
        "> **Do not manually:**\n"
        "> - Close or reopen this issue\n"
        "> - Change the title\n"
        "> - Remove the `branch` label\n"
        "\n"
        "## Commands\n"
        "\n"
        "- `gh pmu branch add <issue>` - Add issues to this branch\n"
        "- `gh pmu branch remove <issue>` - Remove issues from this branch\n"
        f"- `gh pmu branch close {name}` - Close this branch\n"
        "\n"
        "## Issues in this branch\n"
        "\n"
        "_Issues are tracked via the Branch field in the project._\n"
    )


def render_member_list(entries: list[tuple[int, str]]) -> str:
    """Render the ``current --refresh`` tracker body from ``(number, title)`` pairs.

    An empty list still produces the heading, so the body is always rewritten.
    """
    lines = ["## Issues in this release", ""]
    lines.extend(f"- #{number} {title}" for number, title in entries)
    return "\n".join(lines) + "\n"


__all__ = [
    "BRANCH_PREFIX",
    "BranchIdentity",
    "LEGACY_PREFIX",
    "STABLE_TRACK",
    "TRACKER_PREFIXES",
    "branch_name_of",
    "compare_versions",
    "decode",
    "encode",
    "identity_from_name",
    "is_tracker",
    "matches_branch",
    "render_member_list",
    "tracker_body_template",
    "version_sort_key",
]
