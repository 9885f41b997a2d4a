"""Tests for two-phase branch membership and the list fallback chain."""

import pytest

from pmu_cli.api.errors import GatewayError
from pmu_cli.api.models import FieldValue, IssueRef, MinimalProjectItem, ProjectItem
from pmu_cli.branch.query import (
    ItemQuery,
    discover_members,
    fetch_branch_members,
    hydrate_members,
    listing_strategy,
    membership_fields,
    run_strategies,
    search_strategy,
)


class TestMembershipFields:
    def test_defaults(self):
        assert membership_fields() == ("Branch", "Release")

    def test_custom_field_comes_first(self):
        assert membership_fields("Train") == ("Train", "Branch", "Release")

    def test_known_alias_not_duplicated(self):
        assert membership_fields("Release") == ("Branch", "Release")


class TestDiscovery:
    def test_counts_done_and_open(self, gateway):
        gateway.add_member(1, state="CLOSED", branch="v1.2.0")
        gateway.add_member(2, branch="v1.2.0")
        gateway.add_member(3, branch="v1.1.0")
        gateway.add_member(4)

        scan = discover_members(gateway, "PVT_1", "v1.2.0")

        assert [ref.number for ref in scan.refs] == [1, 2]
        assert (scan.done, scan.open, scan.total) == (1, 1, 2)

    def test_legacy_release_field_matches(self, gateway):
        gateway.add_member(5, branch="v1.2.0", branch_field="Release")

        scan = discover_members(gateway, "PVT_1", "v1.2.0")

        assert [ref.number for ref in scan.refs] == [5]

    def test_duplicate_items_counted_once(self, gateway):
        gateway.add_member(6, branch="v1.2.0")
        gateway.minimal_items.append(gateway.minimal_items[0])

        scan = discover_members(gateway, "PVT_1", "v1.2.0")

        assert scan.total == 1

    def test_malformed_repository_skipped(self, gateway):
        gateway.minimal_items.append(
            MinimalProjectItem(
                issue_number=7,
                repository="not-a-repo",
                issue_state="OPEN",
                field_values=[FieldValue("Branch", "v1.2.0")],
            )
        )

        assert discover_members(gateway, "PVT_1", "v1.2.0").total == 0

    def test_no_matches_never_hydrates(self, gateway):
        gateway.add_member(8, branch="v0.9.0")

        scan, members = fetch_branch_members(gateway, "PVT_1", "v1.2.0")

        assert scan.total == 0
        assert members == []
        assert gateway.calls_to("get_project_items_by_issues") == []


class TestHydration:
    def test_empty_refs_makes_no_call(self, gateway):
        assert hydrate_members(gateway, "PVT_1", []) == []
        assert gateway.calls == []

    def test_result_limited_to_requested_refs(self, gateway):
        gateway.add_member(1, branch="v1.2.0")
        gateway.add_member(2)
        gateway.add_member(3)
        gateway.hydrate_returns_everything = True

        members = hydrate_members(gateway, "PVT_1", [IssueRef("Acme", "App", 1)])

        assert [item.issue.number for item in members] == [1]

    def test_hydration_failure_propagates(self, gateway):
        gateway.add_member(1, branch="v1.2.0")
        gateway.hydrate_error = GatewayError("get project items", "timeout")

        with pytest.raises(GatewayError):
            fetch_branch_members(gateway, "PVT_1", "v1.2.0")


class TestSearchStrategy:
    def test_keeps_only_issues_in_project(self, gateway, make_issue):
        gateway.search_results = [make_issue(1), make_issue(2)]
        gateway.search_fields = {"I_1": [FieldValue("Status", "Backlog")]}

        outcome = search_strategy(gateway, ItemQuery(project_id="PVT_1", repositories=["acme/app"]))

        assert outcome.ok
        assert [item.issue.number for item in outcome.items] == [1]
        assert outcome.items[0].get_field_value("status") == "Backlog"

    def test_skipped_for_closed_state(self, gateway):
        outcome = search_strategy(gateway, ItemQuery(project_id="PVT_1", repositories=["acme/app"], state="closed"))

        assert outcome.skipped
        assert gateway.calls == []

    def test_skipped_for_multiple_repositories(self, gateway):
        query = ItemQuery(project_id="PVT_1", repositories=["acme/app", "acme/lib"])

        assert search_strategy(gateway, query).skipped

    def test_failure_is_reported_not_raised(self, gateway):
        gateway.search_error = GatewayError("search issues", "secondary rate limit")

        outcome = search_strategy(gateway, ItemQuery(project_id="PVT_1", repositories=["acme/app"]))

        assert not outcome.ok
        assert not outcome.skipped
        assert outcome.error is gateway.search_error

    def test_empty_search_skips_field_lookup(self, gateway):
        outcome = search_strategy(gateway, ItemQuery(project_id="PVT_1", repositories=["acme/app"]))

        assert outcome.ok
        assert gateway.calls_to("get_project_fields_for_issues") == []

    def test_limit_counts_only_issues_in_project(self, gateway, make_issue):
        gateway.search_results = [make_issue(1), make_issue(2), make_issue(3)]
        gateway.search_fields = {"I_2": [], "I_3": []}

        outcome = search_strategy(gateway, ItemQuery(project_id="PVT_1", repositories=["acme/app"], limit=2))

        assert [item.issue.number for item in outcome.items] == [2, 3]
        assert gateway.calls_to("search_repository_issues")[0][4] == 0

    def test_issue_filters_sent_to_search(self, gateway):
        query = ItemQuery(
            project_id="PVT_1", repositories=["acme/app"], label="bug", assignee="octo", search="crash"
        )

        search_strategy(gateway, query)

        filters = gateway.calls_to("search_repository_issues")[0][3]
        assert (filters.state, filters.labels, filters.assignee, filters.search) == ("open", ["bug"], "octo", "crash")


class TestListingStrategy:
    def test_filters_state_and_repository(self, gateway, make_issue):
        gateway.add_member(1)
        gateway.add_member(2, state="CLOSED")
        gateway.full_items.append(ProjectItem(id="PVTI_x", issue=make_issue(3, repo="other/repo")))

        outcome = listing_strategy(gateway, ItemQuery(project_id="PVT_1", repositories=["acme/app"]))

        assert [item.issue.number for item in outcome.items] == [1]

    def test_closed_state(self, gateway):
        gateway.add_member(1)
        gateway.add_member(2, state="CLOSED")

        outcome = listing_strategy(gateway, ItemQuery(project_id="PVT_1", state="closed"))

        assert [item.issue.number for item in outcome.items] == [2]

    def test_limit(self, gateway):
        for number in range(1, 6):
            gateway.add_member(number)

        outcome = listing_strategy(gateway, ItemQuery(project_id="PVT_1", limit=2))

        assert len(outcome.items) == 2

    def test_issue_filters_applied_client_side(self, gateway):
        bug = gateway.add_member(1, "Crash on login")
        bug.issue.labels = ["Bug"]
        bug.issue.assignees = ["octo"]
        other = gateway.add_member(2, "Polish docs")
        other.issue.labels = ["docs"]
        quiet = gateway.add_member(3, "Refactor")
        quiet.issue.labels = ["bug"]
        quiet.issue.body = "fixes a crash in the parser"

        by_label = listing_strategy(gateway, ItemQuery(project_id="PVT_1", label="bug"))
        by_assignee = listing_strategy(gateway, ItemQuery(project_id="PVT_1", assignee="OCTO"))
        by_text = listing_strategy(gateway, ItemQuery(project_id="PVT_1", search="crash"))

        assert [item.issue.number for item in by_label.items] == [1, 3]
        assert [item.issue.number for item in by_assignee.items] == [1]
        assert [item.issue.number for item in by_text.items] == [1, 3]


class TestFallbackChain:
    def test_search_serves_when_it_succeeds(self, gateway, make_issue):
        gateway.search_results = [make_issue(1)]
        gateway.search_fields = {"I_1": []}

        result = run_strategies(gateway, ItemQuery(project_id="PVT_1", repositories=["acme/app"]))

        assert result.served_by == "search"
        assert gateway.calls_to("get_project_items") == []

    def test_falls_back_to_listing_when_search_fails(self, gateway):
        gateway.search_error = GatewayError("search issues", "boom")
        gateway.add_member(1)

        result = run_strategies(gateway, ItemQuery(project_id="PVT_1", repositories=["acme/app"]))

        assert result.served_by == "project-listing"
        assert [outcome.ok for outcome in result.outcomes] == [False, True]
        assert [item.issue.number for item in result.items] == [1]

    def test_falls_back_when_search_skipped(self, gateway):
        gateway.add_member(1, state="CLOSED")

        result = run_strategies(gateway, ItemQuery(project_id="PVT_1", repositories=["acme/app"], state="all"))

        assert result.outcomes[0].skipped
        assert result.served_by == "project-listing"

    def test_last_failure_propagates(self, gateway):
        gateway.search_error = GatewayError("search issues", "first")
        gateway.listing_error = GatewayError("list project items", "second")

        with pytest.raises(GatewayError, match="second"):
            run_strategies(gateway, ItemQuery(project_id="PVT_1", repositories=["acme/app"]))

    def test_custom_strategy_order(self, gateway):
        gateway.add_member(1)

        result = run_strategies(gateway, ItemQuery(project_id="PVT_1"), strategies=[listing_strategy])

        assert len(result.outcomes) == 1
        assert gateway.calls_to("search_repository_issues") == []

    def test_search_and_listing_agree_under_limit(self, gateway, make_issue):
        gateway.add_member(2)
        gateway.add_member(3)
        gateway.search_results = [make_issue(1), make_issue(2), make_issue(3)]
        gateway.search_fields = {"I_2": [], "I_3": []}
        query = ItemQuery(project_id="PVT_1", repositories=["acme/app"], limit=2)

        served = run_strategies(gateway, query)
        listed = listing_strategy(gateway, query)

        assert served.served_by == "search"
        assert [item.issue.number for item in served.items] == [item.issue.number for item in listed.items] == [2, 3]
