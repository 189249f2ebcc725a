"""
Data Completion Tracker
Client model.

Models:
    - Client: an organization that submits reporting data
"""

from completion_tracker.models import db, isoformat, utcnow
from completion_tracker.models.soft_delete import SoftDeleteMixin


class Client(SoftDeleteMixin, db.Model):
    """Reporting client. Looked up by its business key ``client_id``."""

    __tablename__ = "clients"

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    client_name = db.Column(db.String(255), default="")

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @classmethod
    def get_by_client_id(cls, client_id):
        return cls.query.filter_by(client_id=client_id).first()

    @property
    def display_name(self):
        return self.client_name or self.client_id

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "deleted_at": isoformat(self.deleted_at),
            "created_at": isoformat(self.created_at),
        }

    def __repr__(self):
        return f"<Client {self.client_id}>"
