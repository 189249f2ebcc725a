"""
Data Completion Tracker
Data Completion Blueprint.

Endpoints:
    GET  /api/v1/clients/<client_id>/data-completion?month=&year=
    GET  /api/v1/net-reduction/<client_id>/data-completion
    POST /api/v1/clients/<client_id>/data-completion/broadcast

Visibility comes from ``g.access_context`` (see middleware/access_context.py).
A caller whose context sees nothing still gets 200 with zeroed stats.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import Blueprint, g, jsonify, request

from completion_tracker.core.exceptions import DataStoreError, NotFoundError, ValidationError
from completion_tracker.services.access_filter import Denied, FullAccess
from completion_tracker.services.broadcaster import get_broadcaster
from completion_tracker.services.completion_service import (
    calculate_client_completion,
    calculate_net_reduction_stats,
    empty_net_reduction_stats,
)
from completion_tracker.services.reporting_window import Period
from completion_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)

data_completion_bp = Blueprint("data_completion_bp", __name__, url_prefix="/api/v1")

MIN_YEAR = 2000
MAX_YEAR = 2100


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", details={name: raw})


def _period_from_args() -> Period:
    now = datetime.now(timezone.utc)
    month = _int_arg("month", now.month)
    year = _int_arg("year", now.year)
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12", details={"month": month})
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(f"year must be between {MIN_YEAR} and {MAX_YEAR}", details={"year": year})
    return Period.for_month(year, month)


def _current_access():
    return getattr(g, "access_context", None) or Denied(reason="unauthenticated")


# ═══════════════════════════════════════════════════════════════════════════
#  Emission data completion
# ═══════════════════════════════════════════════════════════════════════════

@data_completion_bp.route("/clients/<client_id>/data-completion", methods=["GET"])
def get_data_completion(client_id):
    """Completion stats for one client and calendar month."""
    try:
        period = _period_from_args()
    except ValidationError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc), details=exc.details)

    try:
        stats = calculate_client_completion(client_id, period=period, access=_current_access())
    except NotFoundError as exc:
        return api_error(E.NOT_FOUND, str(exc))
    except DataStoreError as exc:
        logger.error("Data completion failed: %s", exc, extra={"client_id": client_id})
        return api_error(E.DATABASE, "Failed to fetch data completion stats", error=exc.detail)

    return jsonify({
        "success": True,
        "message": "Data completion stats fetched successfully",
        "data": stats,
    }), 200


# ═══════════════════════════════════════════════════════════════════════════
#  Net reduction completion
# ═══════════════════════════════════════════════════════════════════════════

@data_completion_bp.route("/net-reduction/<client_id>/data-completion", methods=["GET"])
def get_net_reduction_completion(client_id):
    """Per-project net reduction completion for each project's current window."""
    if isinstance(_current_access(), Denied):
        return jsonify({"success": True, "clientId": client_id,
                        "stats": empty_net_reduction_stats(client_id)}), 200
    try:
        stats = calculate_net_reduction_stats(client_id)
    except DataStoreError as exc:
        logger.error("Net reduction completion failed: %s", exc, extra={"client_id": client_id})
        return api_error(E.DATABASE, "Failed to fetch net reduction completion stats", error=exc.detail)

    return jsonify({"success": True, "clientId": client_id, "stats": stats}), 200


# ═══════════════════════════════════════════════════════════════════════════
#  Manual broadcast
# ═══════════════════════════════════════════════════════════════════════════

@data_completion_bp.route("/clients/<client_id>/data-completion/broadcast", methods=["POST"])
def broadcast_completion(client_id):
    """Recompute both stats views and push them to the client's audience."""
    if not isinstance(_current_access(), FullAccess):
        return api_error(E.FORBIDDEN, "Broadcast requires full access")

    broadcaster = get_broadcaster()
    delivered = broadcaster.broadcast_client_update(client_id) if broadcaster else {}
    return jsonify({"success": True, "clientId": client_id, "delivered": delivered}), 200
