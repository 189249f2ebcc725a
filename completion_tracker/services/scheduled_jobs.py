"""
Data Completion Tracker
Scheduled Jobs.

Jobs:
    - data_completion_sweep: daily missing-data sweep over every client
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from completion_tracker.models import as_utc, db
from completion_tracker.models.client import Client
from completion_tracker.services.access_filter import FullAccess
from completion_tracker.services.missing_data_notifier import (
    check_reduction_projects_and_notify,
    check_scope_and_notify,
)
from completion_tracker.services.scheduler_service import register_job
from completion_tracker.services.scope_registry import discover_scopes

logger = logging.getLogger(__name__)

SWEEP_JOB_NAME = "data_completion_sweep"


def run_compliance_sweep(reference_instant: datetime | None = None) -> dict[str, Any]:
    """Check every client's scopes and reduction projects against the
    windows open at ``reference_instant`` and notify on misses.

    Clients are processed one after another so notification volume stays
    bounded. One client's failure is logged and counted; the sweep moves on.
    """
    now = as_utc(reference_instant) or datetime.now(timezone.utc)
    results = {
        "reference_instant": now.isoformat(),
        "clients_processed": 0,
        "clients_failed": 0,
        "scopes_checked": 0,
        "projects_checked": 0,
        "notifications_created": 0,
    }

    clients = Client.query_active().order_by(Client.client_id).all()
    logger.info("Compliance sweep started for %d clients at %s", len(clients), now.isoformat(),
                extra={"job_name": SWEEP_JOB_NAME})

    for client in clients:
        client_id = client.client_id
        try:
            scopes = discover_scopes(client_id, now, access=FullAccess())
            for entry in scopes:
                results["scopes_checked"] += 1
                if check_scope_and_notify(client, entry, now) is not None:
                    results["notifications_created"] += 1

            project_results = check_reduction_projects_and_notify(client, now)
            results["projects_checked"] += project_results["projects_checked"]
            results["notifications_created"] += project_results["notifications_created"]
            results["clients_processed"] += 1
        except Exception as e:
            db.session.rollback()
            results["clients_failed"] += 1
            logger.error("Compliance sweep failed for client %s: %s", client_id, e,
                         extra={"client_id": client_id, "job_name": SWEEP_JOB_NAME})

    logger.info("Compliance sweep finished: %s", results, extra={"job_name": SWEEP_JOB_NAME})
    return results


@register_job(SWEEP_JOB_NAME)
def data_completion_sweep(app) -> dict[str, Any]:
    """Daily missing-data sweep over all clients."""
    return run_compliance_sweep()
