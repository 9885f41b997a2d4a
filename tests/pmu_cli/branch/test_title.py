"""Tests for the tracker title codec and version ordering."""

import pytest

from pmu_cli.branch.title import (
    BranchIdentity,
    branch_name_of,
    compare_versions,
    decode,
    encode,
    identity_from_name,
    is_tracker,
    matches_branch,
    render_member_list,
    tracker_body_template,
    version_sort_key,
)


class TestDecode:
    def test_stable_with_codename(self):
        identity = decode("Branch: v1.2.0 (Phoenix)")

        assert identity == BranchIdentity(version="1.2.0", track="stable", codename="Phoenix")
        assert identity.branch_name == "v1.2.0"

    def test_legacy_prefix_with_track(self):
        identity = decode("Release: patch/1.1.1")

        assert identity.track == "patch"
        assert identity.version == "1.1.1"
        assert identity.codename == ""
        assert identity.branch_name == "patch/1.1.1"

    def test_track_with_v_prefix(self):
        identity = decode("Branch: release/v2.0.0")

        assert identity.track == "release"
        assert identity.version == "2.0.0"
        assert identity.branch_name == "release/v2.0.0"

    def test_codename_without_closing_paren(self):
        identity = decode("Branch: v3.0.0 (Unfinished")

        assert identity.codename == "Unfinished"
        assert identity.version == "3.0.0"

    def test_non_tracker_title(self):
        assert decode("Fix login bug") is None
        assert branch_name_of("Fix login bug") == ""

    def test_name_does_not_affect_equality(self):
        assert BranchIdentity("1.2.0", name="v1.2.0") == BranchIdentity("1.2.0", name="1.2.0")


class TestEncode:
    @pytest.mark.parametrize(
        "track,version,codename,expected",
        [
            ("stable", "1.2.0", "Phoenix", "Branch: v1.2.0 (Phoenix)"),
            ("stable", "1.2.0", "", "Branch: v1.2.0"),
            ("patch", "1.1.1", "", "Branch: patch/v1.1.1"),
        ],
    )
    def test_encode(self, track, version, codename, expected):
        assert encode(track, version, codename) == expected

    def test_decode_of_encoded_title_keeps_identity(self):
        title = encode("hotfix", "4.5.6", "Ember")

        assert decode(title) == BranchIdentity(version="4.5.6", track="hotfix", codename="Ember")

    def test_identity_title_keeps_name_verbatim(self):
        identity = identity_from_name("release/v2.0")

        assert identity.title == "Branch: release/v2.0"
        assert identity.version == "2.0"
        assert identity.track == "release"


class TestTrackerMatching:
    def test_is_tracker_uses_title_only(self):
        assert is_tracker("Branch: v1.0.0")
        assert is_tracker("Release: v1.0.0")
        assert not is_tracker("branch: v1.0.0")
        assert not is_tracker("Bump version to 1.0.0")

    @pytest.mark.parametrize(
        "title",
        ["Branch: v1.2.0", "Branch: v1.2.0 (Phoenix)", "Release: v1.2.0", "Release: v1.2.0 (Phoenix)"],
    )
    def test_matches_branch(self, title):
        assert matches_branch(title, "v1.2.0")

    def test_prefix_of_other_branch_does_not_match(self):
        assert not matches_branch("Branch: v1.2.0-rc1", "v1.2.0")
        assert not matches_branch("Branch: v1.2.0", "v1.2")


class TestVersionOrdering:
    @pytest.mark.parametrize(
        "a,b,expected",
        [
            ("1.10.0", "1.9.0", 1),
            ("v2.0.0", "2.0.0", 0),
            ("1.2", "1.2.0", 0),
            ("1.2.0", "1.2.1", -1),
            ("1.x.0", "1.0.0", 0),
            ("1.2.0-rc1", "1.2.0", 0),
        ],
    )
    def test_compare_versions(self, a, b, expected):
        assert compare_versions(a, b) == expected

    def test_sort_newest_first(self):
        versions = ["1.0.0", "2.0.0", "1.5.0"]

        assert sorted(versions, key=version_sort_key, reverse=True) == ["2.0.0", "1.5.0", "1.0.0"]


class TestBodies:
    def test_template_mentions_branch(self):
        body = tracker_body_template("v1.2.0")

        assert "This issue tracks the branch `v1.2.0`" in body
        assert "gh pmu branch close v1.2.0" in body

    def test_member_list(self):
        body = render_member_list([(12, "Add login"), (15, "Fix crash")])

        assert body == "## Issues in this release\n\n- #12 Add login\n- #15 Fix crash\n"

    def test_empty_member_list_keeps_heading(self):
        assert render_member_list([]) == "## Issues in this release\n\n"
