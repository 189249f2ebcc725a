"""
Data Completion Tracker
Notification domain model.

Models:
    - Notification: in-app notification addressed to a client's user types
      and/or specific users, with read tracking
"""

from completion_tracker.models import db, isoformat, utcnow


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_CATEGORIES = {"missing_data", "system"}
NOTIFICATION_PRIORITIES = {"low", "medium", "high", "urgent"}
NOTIFICATION_STATUSES = {"draft", "published", "archived"}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per event. Audience is the union of ``target_user_types``
    (roles within ``client_id``) and ``target_users`` (explicit user ids).
    ``dedup_key`` is set for system-generated alerts that must not repeat
    within the same reporting window.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.String(64), nullable=True, index=True)
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    category = db.Column(db.String(30), default="system")
    priority = db.Column(db.String(20), default="medium")
    status = db.Column(db.String(20), default="published")

    target_user_types = db.Column(db.JSON, default=list)
    target_users = db.Column(db.JSON, default=list)

    # Link to source entity
    entity_type = db.Column(db.String(30), default="", comment="scope | reduction_project")
    entity_key = db.Column(db.String(300), default="", comment="nodeId|scopeIdentifier or projectId")
    dedup_key = db.Column(db.String(400), nullable=True, unique=True)

    created_by_type = db.Column(db.String(20), default="system")

    # Read tracking
    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def is_addressed_to(self, user_type=None, user_id=None):
        """True when the role or the user id is in this notification's audience."""
        if user_type and user_type in (self.target_user_types or []):
            return True
        return bool(user_id) and str(user_id) in {str(u) for u in (self.target_users or [])}

    def mark_read(self):
        self.is_read = True
        self.read_at = utcnow()

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "title": self.title,
            "message": self.message,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
            "target_user_types": list(self.target_user_types or []),
            "target_users": list(self.target_users or []),
            "entity_type": self.entity_type,
            "entity_key": self.entity_key,
            "created_by_type": self.created_by_type,
            "is_read": self.is_read,
            "read_at": isoformat(self.read_at),
            "created_at": isoformat(self.created_at),
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
