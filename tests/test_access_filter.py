"""
Tests for the access filter: tagged access contexts, narrowing, and
resolution of a caller's context from the configuration trees.
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from completion_tracker.services.access_filter import (
    Denied,
    FullAccess,
    NodeRestricted,
    ScopeRestricted,
    access_context_from_mapping,
    ensure_access_context,
    narrow,
    resolve_access_context,
)
from completion_tracker.services.scope_registry import ScopePlanEntry
from factories import create_chart, create_client, create_node, create_scope


def _entry(node_id, sid):
    return ScopePlanEntry(
        node_id=node_id, node_label=node_id, department="", location="",
        scope_identifier=sid, scope_type="Scope 1", input_type="manual",
        collection_frequency="monthly", category_name="", activity="",
        assessment_level="organization",
    )


PLAN = [_entry("n1", "S1"), _entry("n1", "S2"), _entry("n2", "S3")]


# ═══════════════════════════════════════════════════════════════════════════
#  Variants & narrowing
# ═══════════════════════════════════════════════════════════════════════════


class TestNarrow:
    def test_full_access_keeps_everything(self):
        assert narrow(PLAN, FullAccess()) == PLAN

    def test_node_restricted(self):
        result = narrow(PLAN, NodeRestricted(frozenset({"n2"})))
        assert [e.scope_identifier for e in result] == ["S3"]

    def test_scope_restricted(self):
        result = narrow(PLAN, ScopeRestricted(frozenset({"S1", "S3"})))
        assert [e.key for e in result] == ["n1|S1", "n2|S3"]

    @pytest.mark.parametrize("ctx", [
        NodeRestricted(frozenset()),
        ScopeRestricted(frozenset()),
        Denied(),
    ])
    def test_empty_allow_sets_see_nothing(self, ctx):
        assert ctx.sees_nothing
        assert ctx.is_filtered
        assert narrow(PLAN, ctx) == []

    def test_result_is_subset_of_plan(self):
        ctx = NodeRestricted(frozenset({"n1", "ghost"}))
        result = narrow(PLAN, ctx)
        assert set(result) <= set(PLAN)
        assert len(result) == 2

    def test_unknown_context_fails_closed(self):
        assert narrow(PLAN, {"isFullAccess": True}) == []
        assert narrow(PLAN, "admin") == []

    def test_ensure_access_context(self):
        ctx = ScopeRestricted(frozenset({"S1"}))
        assert ensure_access_context(ctx) is ctx
        assert isinstance(ensure_access_context(None), Denied)

    def test_full_access_is_not_filtered(self):
        assert FullAccess().is_filtered is False
        assert FullAccess().sees_nothing is False


# ═══════════════════════════════════════════════════════════════════════════
#  Mapping adapter
# ═══════════════════════════════════════════════════════════════════════════


class TestAccessContextFromMapping:
    def test_full(self):
        assert access_context_from_mapping({"isFullAccess": True}) == FullAccess()

    def test_node_restricted(self):
        ctx = access_context_from_mapping({
            "isFullAccess": False, "role": "client_employee_head", "allowedNodeIds": ["n1"],
        })
        assert ctx == NodeRestricted(frozenset({"n1"}))

    def test_scope_restricted_without_list_sees_nothing(self):
        ctx = access_context_from_mapping({"role": "employee"})
        assert isinstance(ctx, ScopeRestricted)
        assert ctx.sees_nothing

    @pytest.mark.parametrize("data", [None, {}, {"role": "intern"}, {"isFullAccess": "yes"}])
    def test_everything_else_is_denied(self, data):
        assert isinstance(access_context_from_mapping(data), Denied)


# ═══════════════════════════════════════════════════════════════════════════
#  Resolution from the trees
# ═══════════════════════════════════════════════════════════════════════════


def _seed_tree():
    create_client()
    org = create_chart()
    n1 = create_node(org, node_id="n1", employee_head_id="head-1")
    n2 = create_node(org, node_id="n2", employee_head_id="head-2")
    create_scope(n1, scope_identifier="S1", assigned_employees=["emp-1"])
    create_scope(n2, scope_identifier="S3", assigned_employees=["emp-1", "emp-2"])
    create_scope(n2, scope_identifier="S4", assigned_employees=["emp-1"], is_deleted=True)
    proc = create_chart(chart_type="process")
    p1 = create_node(proc, node_id="p1", employee_head_id="head-1")
    create_scope(p1, scope_identifier="P1", assigned_employees=["emp-2"])


class TestResolveAccessContext:
    def test_full_access_role(self):
        assert resolve_access_context("u1", "client_admin", "acme-001") == FullAccess()

    def test_employee_head_sees_headed_nodes_across_both_trees(self):
        _seed_tree()
        ctx = resolve_access_context("head-1", "client_employee_head", "acme-001")
        assert ctx == NodeRestricted(frozenset({"n1", "p1"}))

    def test_employee_sees_assigned_non_deleted_scopes(self):
        _seed_tree()
        ctx = resolve_access_context("emp-1", "employee", "acme-001")
        assert ctx == ScopeRestricted(frozenset({"S1", "S3"}))

    def test_head_of_nothing_sees_nothing(self):
        _seed_tree()
        ctx = resolve_access_context("nobody", "client_employee_head", "acme-001")
        assert ctx.sees_nothing

    def test_unknown_role_denied(self):
        assert isinstance(resolve_access_context("u1", "intern", "acme-001"), Denied)

    def test_missing_identity_denied(self):
        assert isinstance(resolve_access_context(None, "employee", "acme-001"), Denied)
        assert isinstance(resolve_access_context("emp-1", "employee", None), Denied)

    def test_lookup_failure_fails_closed(self):
        with patch(
            "completion_tracker.services.scope_registry.load_trees",
            side_effect=OperationalError("SELECT", {}, Exception("db down")),
        ):
            ctx = resolve_access_context("emp-1", "employee", "acme-001")
        assert isinstance(ctx, Denied)
