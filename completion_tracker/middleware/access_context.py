"""
Access context middleware.

Resolves the caller's visibility for the current request and stores it on
``g.access_context``. Identity arrives from the upstream auth gateway as
request headers:

    X-User-Id     caller id (string)
    X-User-Role   caller role, e.g. client_admin, client_employee_head, employee

Requests without an identity get ``Denied("unauthenticated")``; routes that
read completion data therefore see nothing rather than everything.
"""

import logging

from flask import Flask, g, request

from completion_tracker.services.access_filter import Denied, resolve_access_context

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"


def init_access_context(app: Flask):
    """Register the before_request hook that sets ``g.access_context``."""

    @app.before_request
    def _resolve_access_context():
        g.user_id = request.headers.get(USER_ID_HEADER) or None
        g.user_role = request.headers.get(USER_ROLE_HEADER) or None

        if not request.path.startswith("/api/") or request.path.startswith("/api/v1/health"):
            return None

        if not g.user_role:
            g.access_context = Denied(reason="unauthenticated")
            return None

        client_id = (request.view_args or {}).get("client_id")
        g.access_context = resolve_access_context(g.user_id, g.user_role, client_id)
        return None
