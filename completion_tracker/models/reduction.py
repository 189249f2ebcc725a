"""
Data Completion Tracker
Reduction project model.

Models:
    - ReductionProject: an emission-reduction project with its own reporting cadence
"""

from completion_tracker.models import db, isoformat, utcnow
from completion_tracker.models.soft_delete import SoftDeleteMixin


class ReductionProject(SoftDeleteMixin, db.Model):
    """Reduction project; net-reduction entries are expected once per reporting window."""

    __tablename__ = "reduction_projects"
    __table_args__ = (
        db.UniqueConstraint("client_id", "project_id", name="uq_reduction_client_project"),
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.String(64), nullable=False, index=True)
    project_id = db.Column(db.String(100), nullable=False)
    project_name = db.Column(db.String(255), default="")
    reporting_frequency = db.Column(db.String(30), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @classmethod
    def active_for_client(cls, client_id):
        return (
            cls.query_active()
            .filter_by(client_id=client_id)
            .order_by(cls.id)
            .all()
        )

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "project_id": self.project_id,
            "project_name": self.project_name,
            "reporting_frequency": self.reporting_frequency,
            "deleted_at": isoformat(self.deleted_at),
        }

    def __repr__(self):
        return f"<ReductionProject {self.project_id}: {self.project_name}>"
