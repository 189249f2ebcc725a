"""
Missing-Data Notifier.

For one scope (or one reduction project) compares the latest submission with
the reporting window open at the reference instant and raises a missing-data
notification on a miss.

Every check is best-effort: a failed lookup or notification is logged and
reported as "no notification", so callers can keep looping over the
remaining scopes and projects.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from completion_tracker.models import as_utc, db, isoformat
from completion_tracker.models.data_entry import DataEntry
from completion_tracker.models.reduction import ReductionProject
from completion_tracker.services.completion_service import latest_net_reduction_entry
from completion_tracker.services.notification import NotificationService
from completion_tracker.services.reporting_window import is_missing, normalize_frequency, window_for

logger = logging.getLogger(__name__)


def latest_data_entry(client_id: str, node_id: str, scope_identifier: str, before: datetime):
    """Most recent non-summary data entry for a scope strictly before ``before``."""
    return (
        DataEntry.query
        .filter(
            DataEntry.client_id == client_id,
            DataEntry.node_id == node_id,
            DataEntry.scope_identifier == scope_identifier,
            DataEntry.is_summary.is_(False),
            DataEntry.timestamp < before,
        )
        .order_by(DataEntry.timestamp.desc())
        .first()
    )


def _window_line(window) -> str:
    return f"Expected window: {window.start.isoformat()} → {window.end.isoformat()}"


def check_scope_and_notify(client, entry, reference_instant: datetime | None = None):
    """Check one scope's current window and notify on a miss.

    Args:
        client: Client model instance.
        entry: ScopePlanEntry for the scope.
        reference_instant: instant whose window is checked (default now).

    Returns:
        The created Notification, or None (data present, skipped,
        deduplicated, or failed).
    """
    if not entry.input_type:
        return None

    client_id = client.client_id
    now = as_utc(reference_instant) or datetime.now(timezone.utc)
    frequency = normalize_frequency(entry.collection_frequency)
    window = window_for(frequency, now)

    try:
        last = latest_data_entry(client_id, entry.node_id, entry.scope_identifier, window.end)
        last_at = as_utc(last.timestamp) if last else None
        if not is_missing(frequency, last_at, now):
            return None

        message = "\n".join([
            f"Client: {client.display_name}",
            f"Node: {entry.node_label}",
            f"Scope Identifier: {entry.scope_identifier}",
            f"Assessment Level: {entry.assessment_level}",
            f"Frequency: {frequency}",
            _window_line(window),
            f"Last data entry date: {isoformat(last_at)}" if last_at
            else "No data has ever been recorded for this scope.",
        ])
        return NotificationService.create_missing_data(
            client_id=client_id,
            title=f"Missing emission data for {entry.scope_identifier}",
            message=message,
            entity_type="scope",
            entity_key=entry.key,
            window_start=window.start,
            extra_target_users=entry.assigned_employees,
        )
    except Exception:
        db.session.rollback()
        logger.exception("Missing-data check failed for scope %s", entry.key,
                         extra={"client_id": client_id})
        return None


def check_reduction_project_and_notify(client, project, reference_instant: datetime | None = None):
    """Same check for a reduction project, keyed by (client, project)."""
    client_id = client.client_id
    project_id = project.project_id
    now = as_utc(reference_instant) or datetime.now(timezone.utc)
    frequency = normalize_frequency(project.reporting_frequency)
    window = window_for(frequency, now)

    try:
        last = latest_net_reduction_entry(client_id, project_id, None, window.end)
        last_at = as_utc(last.timestamp) if last else None
        if not is_missing(frequency, last_at, now):
            return None

        message = "\n".join([
            f"Client: {client.display_name}",
            f"Reduction Project: {project.project_name} ({project_id})",
            f"Frequency: {frequency}",
            _window_line(window),
            f"Last Net Reduction entry: {isoformat(last_at)}" if last_at
            else "No Net Reduction entry has been recorded for this project in this period.",
        ])
        return NotificationService.create_missing_data(
            client_id=client_id,
            title=f"Missing Net Reduction data for project {project.project_name}",
            message=message,
            entity_type="reduction_project",
            entity_key=project_id,
            window_start=window.start,
        )
    except Exception:
        db.session.rollback()
        logger.exception("Missing-data check failed for reduction project %s", project_id,
                         extra={"client_id": client_id})
        return None


def check_reduction_projects_and_notify(client, reference_instant: datetime | None = None) -> dict:
    """Run the project check for every non-deleted reduction project of a client."""
    results = {"projects_checked": 0, "notifications_created": 0}
    for project in ReductionProject.active_for_client(client.client_id):
        results["projects_checked"] += 1
        if check_reduction_project_and_notify(client, project, reference_instant) is not None:
            results["notifications_created"] += 1
    return results
