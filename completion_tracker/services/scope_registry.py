"""
Scope Registry: flattens a client's configuration trees into a scope plan.

A client has two configuration trees (organization and process flowcharts).
Callers never see that split: ``list_scopes`` returns one ordered list of
``ScopePlanEntry`` records, organization scopes first, already narrowed by
the caller's access context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import selectinload

from completion_tracker.models.flowchart import Flowchart, FlowchartNode
from completion_tracker.services.access_filter import (
    FullAccess,
    ensure_access_context,
)

logger = logging.getLogger(__name__)

ORGANIZATION = "organization"
PROCESS = "process"


@dataclass(frozen=True)
class ScopePlanEntry:
    """One reportable scope, flattened with its owning node's metadata."""

    node_id: str
    node_label: str
    department: str
    location: str
    scope_identifier: str
    scope_type: str | None
    input_type: str | None
    collection_frequency: str | None
    category_name: str
    activity: str
    assessment_level: str
    assigned_employees: tuple = field(default_factory=tuple)

    @property
    def key(self) -> str:
        return scope_key(self.node_id, self.scope_identifier)


def scope_key(node_id: str, scope_identifier: str) -> str:
    return f"{node_id}|{scope_identifier}"


def _load_tree(client_id: str, chart_type: str) -> Flowchart | None:
    query = (
        Flowchart.query_active()
        .filter_by(client_id=client_id, chart_type=chart_type)
        .options(selectinload(Flowchart.nodes).selectinload(FlowchartNode.scope_details))
    )
    if chart_type == ORGANIZATION:
        query = query.filter_by(is_active=True)
    return query.order_by(Flowchart.updated_at.desc(), Flowchart.id.desc()).first()


def load_trees(client_id: str) -> dict[str, Flowchart | None]:
    """Load the authoritative organization and process trees for a client."""
    return {
        ORGANIZATION: _load_tree(client_id, ORGANIZATION),
        PROCESS: _load_tree(client_id, PROCESS),
    }


def _flatten(chart: Flowchart, assessment_level: str, access) -> list[ScopePlanEntry]:
    entries = []
    for node in chart.nodes:
        for scope in node.scope_details:
            if scope.is_deleted or not scope.scope_identifier:
                continue
            if not access.allows(node.node_id, scope.scope_identifier):
                continue
            entries.append(ScopePlanEntry(
                node_id=node.node_id,
                node_label=node.label or "",
                department=node.department or "",
                location=node.location or "",
                scope_identifier=scope.scope_identifier,
                scope_type=scope.scope_type,
                input_type=scope.input_type,
                collection_frequency=scope.collection_frequency,
                category_name=scope.category_name or "",
                activity=scope.activity or "",
                assessment_level=assessment_level,
                assigned_employees=tuple(str(e) for e in (scope.assigned_employees or [])),
            ))
    return entries


def list_scopes(client_id: str, access=None) -> list[ScopePlanEntry]:
    """Return every visible, non-deleted scope of the client's two trees.

    Scopes the access context excludes are skipped during traversal. When the
    context can see nothing the trees are not read at all. Missing trees
    yield an empty list.
    """
    access = ensure_access_context(access if access is not None else FullAccess())
    if access.sees_nothing:
        logger.debug("Access context sees nothing; skipping tree load",
                     extra={"client_id": client_id})
        return []

    trees = load_trees(client_id)
    plan: list[ScopePlanEntry] = []
    for level in (ORGANIZATION, PROCESS):
        chart = trees[level]
        if chart is not None:
            plan.extend(_flatten(chart, level, access))

    logger.debug("Scope plan for %s: %d scopes (org=%s process=%s)",
                 client_id, len(plan),
                 trees[ORGANIZATION] is not None, trees[PROCESS] is not None,
                 extra={"client_id": client_id})
    return plan


def discover_scopes(client_id: str, reference_instant: datetime | None = None,
                    access=None) -> list[ScopePlanEntry]:
    """Scope discovery entry point used by the sweep and the stats service.

    The configuration carries no time dimension, so ``reference_instant``
    only tags the log line.
    """
    plan = list_scopes(client_id, access=access)
    logger.debug("Discovered %d scopes for %s at %s", len(plan), client_id,
                 reference_instant.isoformat() if reference_instant else "now",
                 extra={"client_id": client_id})
    return plan
