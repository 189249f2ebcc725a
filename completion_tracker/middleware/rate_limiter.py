"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in completion_tracker/__init__.py with no
default limits; this module applies granular limits per route category.

Usage:
    from completion_tracker.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

READ_LIMIT = "200/minute"
WRITE_LIMIT = "30/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP), on both API blueprints:
        - GET:               200/minute
        - POST/PATCH:        30/minute (broadcasts and job triggers recompute stats)
        - Health check:      exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in ("data_completion_bp", "notification_bp"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(READ_LIMIT, methods=["GET"])(bp)
            limiter.limit(WRITE_LIMIT, methods=["POST", "PATCH"])(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: read %s, write %s", READ_LIMIT, WRITE_LIMIT)
