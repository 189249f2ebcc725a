"""
Data Completion Tracker
Notification Service.

Central service for creating and querying in-app notifications, including
the system-generated missing-data alerts raised by the compliance sweep.
"""

from flask import current_app

from completion_tracker.models import db, utcnow
from completion_tracker.models.notification import Notification

DEFAULT_TARGET_USER_TYPES = ("client_admin", "client_employee_head")


def _audience_filter(query, user_type=None, user_id=None):
    # JSON containment is not portable across SQLite/PostgreSQL; audience
    # filtering happens in Python after the client-scoped query.
    items = query.all()
    if user_type is None and user_id is None:
        return items
    return [n for n in items if n.is_addressed_to(user_type, user_id)]


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, title, message="", client_id=None, category="system", priority="medium",
               target_user_types=None, target_users=None, entity_type="", entity_key="",
               dedup_key=None):
        """
        Create a single notification record.

        Returns:
            The created Notification instance (already committed).
        """
        notif = Notification(
            client_id=client_id,
            title=title,
            message=message,
            category=category,
            priority=priority,
            status="published",
            target_user_types=list(target_user_types or []),
            target_users=list(target_users or []),
            entity_type=entity_type,
            entity_key=entity_key,
            dedup_key=dedup_key,
            created_by_type="system",
        )
        db.session.add(notif)
        db.session.commit()
        return notif

    @staticmethod
    def exists_for_key(dedup_key):
        return db.session.query(
            Notification.query.filter_by(dedup_key=dedup_key).exists()
        ).scalar()

    @staticmethod
    def create_missing_data(*, client_id, title, message, entity_type, entity_key,
                            window_start, extra_target_users=None):
        """
        Create a high-priority missing-data alert for a client.

        Addressed to the configured default user types plus any explicit
        users. When deduplication is enabled, at most one alert exists per
        (client, entity, window start); a repeat returns None.
        """
        dedup_key = f"missing-data:{client_id}:{entity_type}:{entity_key}:{window_start.isoformat()}"
        dedup_enabled = current_app.config.get("MISSING_DATA_DEDUP_ENABLED", True)
        if dedup_enabled and NotificationService.exists_for_key(dedup_key):
            return None

        target_user_types = current_app.config.get(
            "MISSING_DATA_TARGET_USER_TYPES", DEFAULT_TARGET_USER_TYPES,
        )
        return NotificationService.create(
            title=title,
            message=message,
            client_id=client_id,
            category="missing_data",
            priority="high",
            target_user_types=target_user_types,
            target_users=extra_target_users,
            entity_type=entity_type,
            entity_key=entity_key,
            dedup_key=dedup_key if dedup_enabled else None,
        )

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_client(client_id, *, user_type=None, user_id=None, unread_only=False,
                        limit=50, offset=0):
        """
        Retrieve a client's notifications, newest first.

        Returns:
            (items, total)
        """
        q = Notification.query.filter_by(client_id=client_id, status="published")
        if unread_only:
            q = q.filter_by(is_read=False)
        q = q.order_by(Notification.created_at.desc(), Notification.id.desc())
        items = _audience_filter(q, user_type=user_type, user_id=user_id)
        return items[offset:offset + limit], len(items)

    @staticmethod
    def unread_count(client_id, *, user_type=None, user_id=None):
        """Return count of unread notifications."""
        q = Notification.query.filter_by(client_id=client_id, status="published", is_read=False)
        return len(_audience_filter(q, user_type=user_type, user_id=user_id))

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def get(notification_id):
        return db.session.get(Notification, notification_id)

    @staticmethod
    def mark_read(notif):
        """Mark a single notification as read."""
        notif.mark_read()
        db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(client_id):
        """Mark all of a client's notifications as read."""
        q = Notification.query.filter_by(client_id=client_id, is_read=False)
        count = q.update({"is_read": True, "read_at": utcnow()}, synchronize_session="fetch")
        db.session.commit()
        return count
