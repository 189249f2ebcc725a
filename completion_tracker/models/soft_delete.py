"""
Soft Delete Mixin

Adds a `deleted_at` timestamp column and query helpers for soft delete.
Clients, flowcharts and reduction projects are never physically removed;
completion checks only consider rows where `deleted_at` is NULL.

Usage:
    class Client(SoftDeleteMixin, db.Model):
        ...

    client.soft_delete()
    db.session.commit()

    Client.query_active().all()
"""

from completion_tracker.models import db, utcnow


class SoftDeleteMixin:
    """Mixin that adds soft delete support to any SQLAlchemy model."""

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None, index=True)

    def soft_delete(self):
        """Mark this record as deleted."""
        self.deleted_at = utcnow()

    def restore(self):
        """Restore a soft-deleted record."""
        self.deleted_at = None

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted records."""
        return cls.query.filter(cls.deleted_at.is_(None))
