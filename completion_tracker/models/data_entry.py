"""
Data Completion Tracker
Submitted data point models (append-only, written by ingestion).

The completion engine only reads these tables.

Models:
    - DataEntry:          one emission data point for a (node, scope)
    - NetReductionEntry:  one net-reduction data point for a reduction project
"""

from completion_tracker.models import db, isoformat, utcnow


class DataEntry(db.Model):
    """Emission data point. Summary rows (``is_summary``) are not submissions."""

    __tablename__ = "data_entries"
    __table_args__ = (
        db.Index("ix_data_entries_client_node_scope_ts",
                 "client_id", "node_id", "scope_identifier", "timestamp"),
        db.Index("ix_data_entries_client_ts", "client_id", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.String(64), nullable=False)
    node_id = db.Column(db.String(100), nullable=False)
    scope_identifier = db.Column(db.String(150), nullable=False)
    scope_type = db.Column(db.String(20), nullable=True)
    input_type = db.Column(db.String(20), nullable=False, default="manual", index=True)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False)
    is_summary = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "node_id": self.node_id,
            "scope_identifier": self.scope_identifier,
            "scope_type": self.scope_type,
            "input_type": self.input_type,
            "timestamp": isoformat(self.timestamp),
            "is_summary": self.is_summary,
        }

    def __repr__(self):
        return f"<DataEntry {self.node_id}|{self.scope_identifier} @ {self.timestamp}>"


class NetReductionEntry(db.Model):
    """Net-reduction data point for a reduction project."""

    __tablename__ = "net_reduction_entries"
    __table_args__ = (
        db.Index("ix_net_reduction_client_project_ts", "client_id", "project_id", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.String(64), nullable=False)
    project_id = db.Column(db.String(100), nullable=False)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "project_id": self.project_id,
            "timestamp": isoformat(self.timestamp),
        }

    def __repr__(self):
        return f"<NetReductionEntry {self.project_id} @ {self.timestamp}>"
