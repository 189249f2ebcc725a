"""
Tests for scope discovery over the organization and process trees.
"""

from unittest.mock import patch

from completion_tracker.models import db
from completion_tracker.services.access_filter import Denied, NodeRestricted, ScopeRestricted
from completion_tracker.services.scope_registry import (
    ORGANIZATION,
    PROCESS,
    discover_scopes,
    list_scopes,
    load_trees,
)
from factories import create_chart, create_client, create_node, create_scope, utc


def _seed_both_trees():
    create_client()
    org = create_chart()
    n1 = create_node(org, node_id="n1", label="Plant A", department="Ops", location="Berlin")
    create_scope(n1, scope_identifier="S1-FUEL", assigned_employees=["emp-1"])
    create_scope(n1, scope_identifier="S2-POWER", scope_type="Scope 2", input_type="API")
    create_scope(n1, scope_identifier="S1-OLD", is_deleted=True)
    create_scope(n1, scope_identifier=None)
    proc = create_chart(chart_type="process")
    p1 = create_node(proc, node_id="p1", label="Packaging")
    create_scope(p1, scope_identifier="S3-WASTE", scope_type="Scope 3")
    return org, proc


class TestListScopes:
    def test_flattens_both_trees_organization_first(self):
        _seed_both_trees()
        plan = list_scopes("acme-001")
        assert [e.key for e in plan] == ["n1|S1-FUEL", "n1|S2-POWER", "p1|S3-WASTE"]
        assert [e.assessment_level for e in plan] == [ORGANIZATION, ORGANIZATION, PROCESS]

    def test_entries_carry_node_metadata(self):
        _seed_both_trees()
        first = list_scopes("acme-001")[0]
        assert first.node_label == "Plant A"
        assert first.department == "Ops"
        assert first.location == "Berlin"
        assert first.assigned_employees == ("emp-1",)

    def test_no_trees_yields_empty_plan(self):
        create_client()
        assert list_scopes("acme-001") == []

    def test_only_process_tree(self):
        create_client()
        proc = create_chart(chart_type="process")
        create_scope(create_node(proc, node_id="p1"), scope_identifier="P1")
        plan = list_scopes("acme-001")
        assert [e.assessment_level for e in plan] == [PROCESS]

    def test_inactive_or_deleted_org_tree_is_ignored(self):
        create_client()
        inactive = create_chart(is_active=False)
        create_scope(create_node(inactive, node_id="old"), scope_identifier="OLD")
        deleted = create_chart()
        create_scope(create_node(deleted, node_id="gone"), scope_identifier="GONE")
        deleted.soft_delete()
        db.session.commit()
        assert list_scopes("acme-001") == []

    def test_other_clients_trees_are_not_visible(self):
        _seed_both_trees()
        create_client(client_id="other")
        assert list_scopes("other") == []

    def test_node_restricted_filters_during_traversal(self):
        _seed_both_trees()
        plan = list_scopes("acme-001", access=NodeRestricted(frozenset({"p1"})))
        assert [e.key for e in plan] == ["p1|S3-WASTE"]

    def test_scope_restricted(self):
        _seed_both_trees()
        plan = list_scopes("acme-001", access=ScopeRestricted(frozenset({"S2-POWER"})))
        assert [e.scope_identifier for e in plan] == ["S2-POWER"]

    def test_context_that_sees_nothing_skips_tree_reads(self):
        _seed_both_trees()
        with patch("completion_tracker.services.scope_registry.load_trees") as loader:
            assert list_scopes("acme-001", access=Denied()) == []
            assert list_scopes("acme-001", access=NodeRestricted(frozenset())) == []
        loader.assert_not_called()

    def test_unknown_context_fails_closed(self):
        _seed_both_trees()
        assert list_scopes("acme-001", access=object()) == []


class TestLoadTrees:
    def test_returns_both_keys(self):
        org, proc = _seed_both_trees()
        trees = load_trees("acme-001")
        assert trees[ORGANIZATION].id == org.id
        assert trees[PROCESS].id == proc.id


class TestDiscoverScopes:
    def test_discover_matches_list(self):
        _seed_both_trees()
        assert discover_scopes("acme-001", utc(2025, 3, 1)) == list_scopes("acme-001")
