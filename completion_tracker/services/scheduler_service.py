"""
Data Completion Tracker
Scheduler Service.

Registry and runner for background jobs. There is no in-process clock: the
platform cron calls ``flask completion-sweep`` (or an operator hits the
manual run endpoint), and this service resolves the job, honours its
enabled flag, runs it inside an app context and stores the outcome on the
job's ``ScheduledJob`` row.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from flask import Flask

from completion_tracker.models import db
from completion_tracker.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)

_job_registry: dict[str, Callable] = {}


def register_job(name: str):
    """Register ``fn(app)`` as the job called ``name``."""
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def _default_schedule(app: Flask) -> dict:
    hour = int(app.config.get("COMPLETION_SWEEP_HOUR", 6))
    return {"hour": str(hour), "minute": "0", "description": f"Daily at {hour:02d}:00 UTC"}


class SchedulerService:
    """Runs registered jobs against the app it was initialised with."""

    _app: Flask | None = None

    @classmethod
    def init_app(cls, app: Flask) -> None:
        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("Scheduler ready: %s", ", ".join(sorted(_job_registry)) or "no jobs")

    @classmethod
    def ensure_jobs_registered(cls) -> list[ScheduledJob]:
        """Create a ``ScheduledJob`` row for every registered job that lacks one."""
        if not cls._app:
            return []

        created = []
        with cls._app.app_context():
            known = {name for (name,) in db.session.query(ScheduledJob.job_name)}
            for name, fn in _job_registry.items():
                if name in known:
                    continue
                summary = (fn.__doc__ or name).strip().splitlines()[0]
                job = ScheduledJob(
                    job_name=name,
                    description=summary,
                    schedule_type="cron",
                    schedule_config=_default_schedule(cls._app),
                    status="active",
                    is_enabled=True,
                )
                db.session.add(job)
                created.append(job)
            if created:
                db.session.commit()
                logger.info("Registered %d new scheduled job(s)", len(created))
        return created

    @classmethod
    def is_enabled(cls, job_name: str) -> bool:
        """A job without a stored row counts as enabled."""
        record = ScheduledJob.query.filter_by(job_name=job_name).first()
        return record is None or bool(record.is_enabled)

    @classmethod
    def run_job(cls, job_name: str, force: bool = False) -> dict:
        """
        Run one job and record the outcome.

        ``status`` is one of ``success``, ``failed``, ``skipped`` (the job is
        disabled and ``force`` was not given) or ``unknown`` (no such job).
        A job's own exception is captured as ``failed``; it is not re-raised.
        """
        fn = _job_registry.get(job_name)
        if fn is None:
            return {"job_name": job_name, "status": "unknown", "error": f"Unknown job: {job_name}"}
        if cls._app is None:
            raise RuntimeError("SchedulerService.init_app() has not been called")

        with cls._app.app_context():
            enabled = cls.is_enabled(job_name)
        if not enabled and not force:
            logger.info("Job %s is disabled; skipping", job_name, extra={"job_name": job_name})
            return {"job_name": job_name, "status": "skipped", "duration_ms": 0,
                    "result": None, "error": None}

        started = time.monotonic()
        result, error, status = None, None, "success"
        try:
            with cls._app.app_context():
                result = fn(cls._app)
        except Exception as exc:
            status, error = "failed", str(exc)
            logger.exception("Job %s failed", job_name, extra={"job_name": job_name})
        duration_ms = int((time.monotonic() - started) * 1000)

        cls._record(job_name, status, duration_ms, result, error)
        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    @classmethod
    def _record(cls, job_name, status, duration_ms, result, error) -> None:
        # History is best effort; a failed write must not mask the job outcome.
        try:
            with cls._app.app_context():
                record = ScheduledJob.query.filter_by(job_name=job_name).first()
                if record is None:
                    return
                record.record_run(
                    status=status,
                    duration_ms=duration_ms,
                    result=result if isinstance(result, dict) else {"output": str(result)},
                    error=error,
                )
                db.session.commit()
        except Exception:
            logger.exception("Could not store run history for %s", job_name,
                             extra={"job_name": job_name})

    @classmethod
    def list_jobs(cls) -> list[dict]:
        """Registered jobs in name order, merged with their stored rows."""
        records = {r.job_name: r for r in ScheduledJob.query.all()}
        jobs = []
        for name in sorted(_job_registry):
            record = records.get(name)
            entry = record.to_dict() if record else {"job_name": name, "is_enabled": True}
            entry["registered"] = True
            jobs.append(entry)
        return jobs

    @classmethod
    def toggle_job(cls, job_name: str, enabled: bool) -> dict | None:
        record = ScheduledJob.query.filter_by(job_name=job_name).first()
        if record is None:
            return None
        record.is_enabled = enabled
        record.status = "active" if enabled else "paused"
        db.session.commit()
        logger.info("Job %s %s", job_name, "enabled" if enabled else "paused",
                    extra={"job_name": job_name})
        return record.to_dict()
