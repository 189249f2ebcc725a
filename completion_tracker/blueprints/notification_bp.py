"""
Data Completion Tracker
Notification & Scheduling Blueprint.

Provides:
    - Client notification feed (list, unread count, mark read)
    - Scheduled job management (list, trigger, toggle)

Callers without an identity are refused (403). Restricted callers see and
mark only notifications addressed to their role or user id; the audience
query parameters are honoured for full-access callers only.
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

from completion_tracker.services.access_filter import Denied, FullAccess, resolve_access_context
from completion_tracker.services.notification import NotificationService
from completion_tracker.services.scheduler_service import SchedulerService
from completion_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1")

MAX_PAGE_SIZE = 200


def _access():
    return getattr(g, "access_context", None) or Denied(reason="unauthenticated")


def _has_full_access():
    return isinstance(_access(), FullAccess)


def _audience():
    """(user_type, user_id) filter for the caller; (None, None) is the whole feed."""
    if _has_full_access():
        return request.args.get("user_type") or None, request.args.get("user_id") or None
    return g.user_role or "", g.user_id or ""


# ═══════════════════════════════════════════════════════════════════════════
#  NOTIFICATIONS
# ═══════════════════════════════════════════════════════════════════════════

@notification_bp.route("/clients/<client_id>/notifications", methods=["GET"])
def list_notifications(client_id):
    """List a client's notifications, newest first."""
    if isinstance(_access(), Denied):
        return api_error(E.FORBIDDEN, "Not allowed to read this client's notifications")
    try:
        limit = min(int(request.args.get("limit", 50)), MAX_PAGE_SIZE)
        offset = max(int(request.args.get("offset", 0)), 0)
    except ValueError:
        return api_error(E.VALIDATION_INVALID, "limit and offset must be integers")
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    user_type, user_id = _audience()

    items, total = NotificationService.list_for_client(
        client_id, user_type=user_type, user_id=user_id,
        unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": total,
        "limit": limit,
        "offset": offset,
    })


@notification_bp.route("/clients/<client_id>/notifications/unread-count", methods=["GET"])
def unread_count(client_id):
    if isinstance(_access(), Denied):
        return api_error(E.FORBIDDEN, "Not allowed to read this client's notifications")
    user_type, user_id = _audience()
    count = NotificationService.unread_count(client_id, user_type=user_type, user_id=user_id)
    return jsonify({"clientId": client_id, "unread_count": count})


@notification_bp.route("/notifications/<int:nid>/read", methods=["PATCH"])
def mark_read(nid):
    """Mark a single notification as read.

    The route carries no client id, so a restricted caller's access is
    resolved against the notification's own client.
    """
    if not g.user_role:
        return api_error(E.FORBIDDEN, "Authentication required")
    notif = NotificationService.get(nid)
    if not notif:
        return api_error(E.NOT_FOUND, "Notification not found")

    if not _has_full_access():
        access = resolve_access_context(g.user_id, g.user_role, notif.client_id)
        if isinstance(access, Denied) or not notif.is_addressed_to(g.user_role, g.user_id):
            logger.info("Mark-read refused for user=%s on notification %s", g.user_id, nid,
                        extra={"client_id": notif.client_id})
            return api_error(E.FORBIDDEN, "Notification is not addressed to the caller")

    NotificationService.mark_read(notif)
    return jsonify(notif.to_dict())


@notification_bp.route("/clients/<client_id>/notifications/mark-all-read", methods=["POST"])
def mark_all_read(client_id):
    if not _has_full_access():
        return api_error(E.FORBIDDEN, "Marking all notifications read requires full access")
    count = NotificationService.mark_all_read(client_id)
    return jsonify({"clientId": client_id, "marked_read": count})


# ═══════════════════════════════════════════════════════════════════════════
#  SCHEDULED JOBS
# ═══════════════════════════════════════════════════════════════════════════

@notification_bp.route("/scheduler/jobs", methods=["GET"])
def list_scheduled_jobs():
    """List registered jobs with their stored schedule and last run."""
    jobs = SchedulerService.list_jobs()
    return jsonify({"jobs": jobs, "total": len(jobs)})


@notification_bp.route("/scheduler/jobs/<job_name>/run", methods=["POST"])
def trigger_job(job_name):
    """Manually trigger a scheduled job. ``{"force": true}`` runs a paused job."""
    if not _has_full_access():
        return api_error(E.FORBIDDEN, "Triggering jobs requires full access")
    force = (request.get_json(silent=True) or {}).get("force") is True
    result = SchedulerService.run_job(job_name, force=force)
    if result["status"] == "unknown":
        return api_error(E.NOT_FOUND, result["error"])
    return jsonify(result)


@notification_bp.route("/scheduler/jobs/<job_name>/toggle", methods=["PATCH"])
def toggle_job(job_name):
    """Enable or disable a scheduled job."""
    if not _has_full_access():
        return api_error(E.FORBIDDEN, "Toggling jobs requires full access")
    data = request.get_json(silent=True) or {}
    enabled = data.get("enabled")
    if not isinstance(enabled, bool):
        return api_error(E.VALIDATION_REQUIRED, "enabled (boolean) is required")
    result = SchedulerService.toggle_job(job_name, enabled)
    if result is None:
        return api_error(E.NOT_FOUND, f"Job not found: {job_name}")
    return jsonify(result)
