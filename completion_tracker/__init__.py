"""
Data Completion Tracker
Flask Application Factory.

Usage:
    from completion_tracker import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
    app = create_app("production", transport=my_socket_transport)
"""

import logging
import os
from datetime import datetime

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from completion_tracker.config import config
from completion_tracker.models import db
from completion_tracker.middleware.logging_config import configure_logging
from completion_tracker.middleware.timing import init_request_timing
from completion_tracker.middleware.access_context import init_access_context
from completion_tracker.middleware.rate_limiter import init_rate_limits

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit; applied per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


def create_app(config_name=None, transport=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.
        transport: Push channel for real-time completion updates. When
                   omitted, an in-process transport is attached if
                   BROADCAST_ENABLED, otherwise broadcasting is a no-op.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name])

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Caller identity -> g.access_context ──────────────────────────────
    init_access_context(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from completion_tracker.models import client as _client_models            # noqa: F401
    from completion_tracker.models import flowchart as _flowchart_models      # noqa: F401
    from completion_tracker.models import data_entry as _data_entry_models    # noqa: F401
    from completion_tracker.models import reduction as _reduction_models      # noqa: F401
    from completion_tracker.models import notification as _notification_models  # noqa: F401
    from completion_tracker.models import scheduling as _scheduling_models    # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if app.config.get("SQLALCHEMY_DATABASE_URI"):
        os.makedirs(app.instance_path, exist_ok=True)  # default SQLite file lives here
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except Exception as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from completion_tracker.blueprints.data_completion_bp import data_completion_bp
    from completion_tracker.blueprints.notification_bp import notification_bp
    from completion_tracker.blueprints.health_bp import health_bp

    app.register_blueprint(data_completion_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(health_bp)

    # ── Real-time broadcaster (single transport per app) ─────────────────
    from completion_tracker.services.broadcaster import CompletionBroadcaster, InProcessTransport

    if transport is None and app.config.get("BROADCAST_ENABLED", True):
        transport = InProcessTransport()
    CompletionBroadcaster(transport).init_app(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("completion-sweep")
    @click.option("--at", "at", default=None,
                  help="Reference instant (ISO-8601); defaults to now.")
    @click.option("--force", is_flag=True, help="Run even if the sweep job is paused.")
    def completion_sweep_cmd(at, force):
        """Run the missing-data sweep over every client."""
        from completion_tracker.services.scheduled_jobs import SWEEP_JOB_NAME, run_compliance_sweep
        from completion_tracker.services.scheduler_service import SchedulerService

        if not force and not SchedulerService.is_enabled(SWEEP_JOB_NAME):
            click.echo(f"{SWEEP_JOB_NAME} is paused; nothing to do (use --force to override).")
            return
        reference = datetime.fromisoformat(at) if at else None
        results = run_compliance_sweep(reference)
        click.echo(
            f"Processed {results['clients_processed']} clients "
            f"({results['clients_failed']} failed), "
            f"{results['notifications_created']} notifications created."
        )

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith("/api/"):
            return {"success": False, "message": "Not found", "path": request.path}, 404
        return e

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        if request.path.startswith("/api/"):
            return {"success": False, "message": "Internal server error"}, 500
        return e

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"success": False, "message": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"success": False, "message": "Too many requests", "retry_after": e.description}, 429

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── Scheduler initialization (import jobs to register them) ──────────
    import importlib
    importlib.import_module("completion_tracker.services.scheduled_jobs")  # registers @register_job handlers
    from completion_tracker.services.scheduler_service import SchedulerService as _SchedulerSvc
    _SchedulerSvc.init_app(app)
    if app.config.get("SQLALCHEMY_DATABASE_URI"):
        try:
            _SchedulerSvc.ensure_jobs_registered()
        except Exception as e:
            app.logger.warning("Scheduled job registration failed: %s", e)

    return app
