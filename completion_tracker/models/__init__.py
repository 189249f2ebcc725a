"""
Data Completion Tracker
SQLAlchemy extension instance and shared helpers for all models.
"""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    """Timezone-aware current UTC time (column default helper)."""
    return datetime.now(timezone.utc)


def as_utc(value):
    """Normalise a datetime to timezone-aware UTC.

    SQLite returns naive datetimes for ``DateTime(timezone=True)`` columns;
    every stored timestamp is written as UTC, so naive values are tagged
    rather than converted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value):
    """ISO-8601 string for a datetime column value, or None."""
    value = as_utc(value)
    return value.isoformat() if value else None
