"""
Access Filter: role-scoped visibility over a client's scope plan.

The access context is a tagged variant:

    FullAccess()                       sees every scope
    NodeRestricted(node_ids)           sees scopes on the listed nodes
    ScopeRestricted(scope_identifiers) sees the listed scopes
    Denied(reason)                     sees nothing

Evaluation is deny-by-default: an empty allow-set, an unrecognized role, a
missing identity, or a failed lookup all resolve to "nothing", never to
"everything".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

# Roles that see all client data unfiltered
FULL_ACCESS_ROLES = frozenset({
    "super_admin",
    "consultant_admin",
    "consultant",
    "client_admin",
    "auditor",
    "viewer",
})
NODE_RESTRICTED_ROLES = frozenset({"client_employee_head", "node-restricted"})
SCOPE_RESTRICTED_ROLES = frozenset({"employee", "scope-restricted"})


@dataclass(frozen=True)
class FullAccess:
    is_filtered = False
    sees_nothing = False

    def allows(self, node_id: str, scope_identifier: str) -> bool:
        return True


@dataclass(frozen=True)
class NodeRestricted:
    node_ids: frozenset = field(default_factory=frozenset)
    is_filtered = True

    @property
    def sees_nothing(self) -> bool:
        return not self.node_ids

    def allows(self, node_id: str, scope_identifier: str) -> bool:
        return node_id in self.node_ids


@dataclass(frozen=True)
class ScopeRestricted:
    scope_identifiers: frozenset = field(default_factory=frozenset)
    is_filtered = True

    @property
    def sees_nothing(self) -> bool:
        return not self.scope_identifiers

    def allows(self, node_id: str, scope_identifier: str) -> bool:
        return scope_identifier in self.scope_identifiers


@dataclass(frozen=True)
class Denied:
    reason: str = "unrecognized role"
    is_filtered = True
    sees_nothing = True

    def allows(self, node_id: str, scope_identifier: str) -> bool:
        return False


AccessContext = FullAccess | NodeRestricted | ScopeRestricted | Denied

_VARIANTS = (FullAccess, NodeRestricted, ScopeRestricted, Denied)


def ensure_access_context(access) -> AccessContext:
    """Return ``access`` if it is a known variant, else ``Denied``."""
    if isinstance(access, _VARIANTS):
        return access
    logger.warning("Unknown access context %r, failing closed", access)
    return Denied(reason="unknown access context")


def narrow(plan: Iterable, access) -> list:
    """Keep only plan entries the access context may see."""
    access = ensure_access_context(access)
    if isinstance(access, FullAccess):
        return list(plan)
    if access.sees_nothing:
        return []
    return [entry for entry in plan if access.allows(entry.node_id, entry.scope_identifier)]


def access_context_from_mapping(data: dict | None) -> AccessContext:
    """Adapt the loosely-typed upstream access dict to a tagged variant.

    Accepts ``{isFullAccess, role, allowedNodeIds, allowedScopeIdentifiers}``.
    """
    if not data:
        return Denied(reason="no access context")
    if data.get("isFullAccess") is True:
        return FullAccess()

    role = data.get("role")
    if role in NODE_RESTRICTED_ROLES:
        return NodeRestricted(frozenset(data.get("allowedNodeIds") or ()))
    if role in SCOPE_RESTRICTED_ROLES:
        return ScopeRestricted(frozenset(data.get("allowedScopeIdentifiers") or ()))
    return Denied(reason=f"unrecognized role: {role}")


def resolve_access_context(user_id, role, client_id) -> AccessContext:
    """Derive the access context for a user on one client.

    Employee heads see the nodes they head; employees see the scopes they
    are assigned to. Lookup failures fail closed.
    """
    if role in FULL_ACCESS_ROLES:
        return FullAccess()
    if not user_id or not client_id:
        return Denied(reason="missing identity or client")
    if role not in NODE_RESTRICTED_ROLES and role not in SCOPE_RESTRICTED_ROLES:
        return Denied(reason=f"unrecognized role: {role}")

    from completion_tracker.services.scope_registry import load_trees

    user_id = str(user_id)
    node_ids = set()
    scope_ids = set()
    try:
        charts = [chart for chart in load_trees(client_id).values() if chart is not None]
        for chart in charts:
            for node in chart.nodes:
                if node.employee_head_id and str(node.employee_head_id) == user_id:
                    node_ids.add(node.node_id)
                for scope in node.scope_details:
                    if scope.is_deleted or not scope.scope_identifier:
                        continue
                    assigned = {str(e) for e in (scope.assigned_employees or [])}
                    if user_id in assigned:
                        scope_ids.add(scope.scope_identifier)
    except SQLAlchemyError as exc:
        logger.error("Access context lookup failed for user=%s client=%s: %s",
                     user_id, client_id, exc, extra={"client_id": client_id})
        return Denied(reason="access lookup failed")

    if role in NODE_RESTRICTED_ROLES:
        ctx = NodeRestricted(frozenset(node_ids))
    else:
        ctx = ScopeRestricted(frozenset(scope_ids))

    logger.debug("Access context user=%s role=%s -> %r", user_id, role, ctx,
                 extra={"client_id": client_id})
    return ctx
