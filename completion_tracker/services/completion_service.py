"""
Data Completion Service.

Computes per-scope, per-node and per-scope-type completion statistics for a
client and reporting period, plus the net-reduction completion view per
reduction project.

Stats dictionaries use camelCase keys: they are the wire payload of the
HTTP endpoints and the real-time update events.

Shape contract: an empty plan (nothing configured, or nothing visible to the
caller) produces exactly the same keys as a populated one, so consumers
never branch on "stats vs. no stats".
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from completion_tracker.core.exceptions import DataStoreError, NotFoundError
from completion_tracker.models import as_utc, db, isoformat
from completion_tracker.models.client import Client
from completion_tracker.models.data_entry import NetReductionEntry
from completion_tracker.models.reduction import ReductionProject
from completion_tracker.services.access_filter import FullAccess, ensure_access_context
from completion_tracker.services.completion_lookup import SqlCompletionLookup
from completion_tracker.services.reporting_window import Period, normalize_frequency, window_for
from completion_tracker.services.scope_registry import ORGANIZATION, PROCESS, list_scopes

logger = logging.getLogger(__name__)

COMPLETED = "completed"
PENDING = "pending"
UNKNOWN_SCOPE_TYPE = "Unknown"

_INPUT_TYPE_KEYS = {"manual": "manual", "api": "API", "iot": "IOT"}


def completion_pct(completed: int, total: int) -> float:
    """Percentage rounded to one decimal; 0 when there is nothing to complete."""
    if not total:
        return 0
    return round(completed / total * 100, 1)


def normalize_input_type(raw: str | None) -> str:
    if not raw:
        return "manual"
    return _INPUT_TYPE_KEYS.get(raw.lower(), raw)


def _bucket() -> dict:
    return {"total": 0, "completed": 0, "pending": 0, "pct": 0}


def _tally(bucket: dict, has_data: bool) -> None:
    bucket["total"] += 1
    if has_data:
        bucket["completed"] += 1
    else:
        bucket["pending"] += 1


def _finish(bucket: dict) -> dict:
    bucket["pct"] = completion_pct(bucket["completed"], bucket["total"])
    return bucket


def _now_iso(generated_at: datetime | None) -> str:
    return (as_utc(generated_at) or datetime.now(timezone.utc)).isoformat()


def empty_stats(client_id: str, period: Period, *, is_filtered: bool = False,
                client_name: str | None = None, generated_at: datetime | None = None) -> dict:
    """Canonical zero-valued stats for ``period``."""
    return {
        "clientId": client_id,
        "clientName": client_name,
        "period": period.to_dict(),
        "generatedAt": _now_iso(generated_at),
        "summary": {
            "totalScopes": 0,
            "completedScopes": 0,
            "pendingScopes": 0,
            "completionPercentage": 0,
            "isFiltered": bool(is_filtered),
        },
        "byScopeType": {},
        "byNode": {},
        "byAssessmentLevel": {ORGANIZATION: _bucket(), PROCESS: _bucket()},
        "byInputType": {},
        "scopes": [],
    }


def compute_stats(client_id: str, plan: list, period: Period, *, is_filtered: bool = False,
                  lookup=None, client_name: str | None = None,
                  generated_at: datetime | None = None) -> dict:
    """Join one bulk lookup onto the scope plan and roll the result up.

    The plan is authoritative: every entry yields exactly one row, and data
    for scopes outside the plan is never fetched.
    """
    stats = empty_stats(client_id, period, is_filtered=is_filtered,
                        client_name=client_name, generated_at=generated_at)
    if not plan:
        return stats

    lookup = lookup or SqlCompletionLookup()
    activity = lookup.exists_within(
        client_id,
        {entry.node_id for entry in plan},
        {entry.scope_identifier for entry in plan},
        period.start,
        period.end,
    )

    by_scope_type = stats["byScopeType"]
    by_node = stats["byNode"]
    by_level = stats["byAssessmentLevel"]
    by_input = stats["byInputType"]
    completed = 0

    for entry in plan:
        found = activity.get(entry.key)
        has_data = found is not None
        if has_data:
            completed += 1

        scope_type = entry.scope_type or UNKNOWN_SCOPE_TYPE
        _tally(by_scope_type.setdefault(scope_type, _bucket()), has_data)

        node_bucket = by_node.setdefault(entry.node_id, {
            "nodeLabel": entry.node_label,
            "department": entry.department,
            "location": entry.location,
            **_bucket(),
        })
        _tally(node_bucket, has_data)

        _tally(by_level.setdefault(entry.assessment_level, _bucket()), has_data)
        _tally(by_input.setdefault(normalize_input_type(entry.input_type), _bucket()), has_data)

        stats["scopes"].append({
            "nodeId": entry.node_id,
            "nodeLabel": entry.node_label,
            "department": entry.department,
            "location": entry.location,
            "scopeIdentifier": entry.scope_identifier,
            "scopeType": scope_type,
            "inputType": entry.input_type,
            "categoryName": entry.category_name,
            "activity": entry.activity,
            "collectionFrequency": normalize_frequency(entry.collection_frequency),
            "assessmentLevel": entry.assessment_level,
            "status": COMPLETED if has_data else PENDING,
            "hasData": has_data,
            "dataCount": found.count if found else 0,
            "lastEntryAt": isoformat(found.last_timestamp) if found else None,
            "inputTypesSeen": sorted(found.input_types) if found else [],
        })

    for group in (by_scope_type, by_node, by_level, by_input):
        for bucket in group.values():
            _finish(bucket)

    total = len(plan)
    stats["summary"].update({
        "totalScopes": total,
        "completedScopes": completed,
        "pendingScopes": total - completed,
        "completionPercentage": completion_pct(completed, total),
    })
    return stats


def get_client_or_404(client_id: str) -> Client:
    client = Client.get_by_client_id(client_id)
    if client is None or client.is_deleted:
        raise NotFoundError(resource="Client", resource_id=client_id)
    return client


def calculate_client_completion(client_id: str, period: Period | None = None,
                                access=None, lookup=None) -> dict:
    """End-to-end completion stats for one client as seen by ``access``.

    Raises:
        NotFoundError: unknown or deleted client.
        DataStoreError: a read against the store failed.
    """
    period = period or Period.containing()
    access = ensure_access_context(access if access is not None else FullAccess())

    try:
        client = get_client_or_404(client_id)
        plan = list_scopes(client_id, access=access)
    except SQLAlchemyError as exc:
        raise DataStoreError("scope discovery", str(exc)) from exc

    if not plan:
        logger.debug("Empty scope plan for %s (filtered=%s)", client_id, access.is_filtered,
                     extra={"client_id": client_id})
        return empty_stats(client_id, period, is_filtered=access.is_filtered,
                           client_name=client.client_name)

    return compute_stats(client_id, plan, period, is_filtered=access.is_filtered,
                         lookup=lookup, client_name=client.client_name)


# ═══════════════════════════════════════════════════════════════════════════
#  Net Reduction completion
# ═══════════════════════════════════════════════════════════════════════════

def latest_net_reduction_entry(client_id: str, project_id: str, start: datetime | None, end: datetime):
    """Most recent net-reduction entry for a project before ``end`` (and from ``start``)."""
    query = NetReductionEntry.query.filter(
        NetReductionEntry.client_id == client_id,
        NetReductionEntry.project_id == project_id,
        NetReductionEntry.timestamp < end,
    )
    if start is not None:
        query = query.filter(NetReductionEntry.timestamp >= start)
    return query.order_by(NetReductionEntry.timestamp.desc()).first()


def _net_reduction_payload(client_id: str, now: datetime, by_project: list) -> dict:
    completed = sum(p["completed"] for p in by_project)
    expected = len(by_project)
    return {
        "clientId": client_id,
        "generatedAt": now.isoformat(),
        "totals": {
            "projects": len(by_project),
            "expected": expected,
            "completed": completed,
            "completionPercent": completion_pct(completed, expected),
        },
        "byProject": by_project,
    }


def empty_net_reduction_stats(client_id: str, reference_instant: datetime | None = None) -> dict:
    """Net-reduction stats with no projects, in the same shape as a populated view."""
    return _net_reduction_payload(client_id, as_utc(reference_instant) or datetime.now(timezone.utc), [])


def calculate_net_reduction_stats(client_id: str, reference_instant: datetime | None = None) -> dict:
    """Per-project completion for the window each project's frequency defines.

    Expected is one entry per project per window.
    """
    now = as_utc(reference_instant) or datetime.now(timezone.utc)

    try:
        by_project = []
        for project in ReductionProject.active_for_client(client_id):
            frequency = normalize_frequency(project.reporting_frequency)
            window = window_for(frequency, now)
            last = latest_net_reduction_entry(client_id, project.project_id, window.start, window.end)
            has_data = last is not None
            completed = 1 if has_data else 0
            by_project.append({
                "reductionId": project.id,
                "projectId": project.project_id,
                "projectName": project.project_name,
                "reportingFrequency": frequency,
                "currentWindow": window.to_dict(),
                "expected": 1,
                "completed": completed,
                "completionPercent": completion_pct(completed, 1),
                "isMissing": not has_data,
                "lastEntryAt": isoformat(last.timestamp) if has_data else None,
            })
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise DataStoreError("net reduction completion", str(exc)) from exc

    return _net_reduction_payload(client_id, now, by_project)
