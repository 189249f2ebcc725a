"""
Data Completion Tracker
Configuration tree models.

Hierarchy:
    Client → Flowchart (organization | process) → FlowchartNode → ScopeDetail

A client has at most one authoritative tree of each type: the active,
non-deleted organization flowchart and the non-deleted process flowchart.

Models:
    - Flowchart:      one configuration tree for a client
    - FlowchartNode:  a node (site, department, process step) in a tree
    - ScopeDetail:    a reportable scope line owned by a node
"""

from completion_tracker.models import db, isoformat, utcnow
from completion_tracker.models.soft_delete import SoftDeleteMixin


# ── Constants ────────────────────────────────────────────────────────────────

CHART_TYPES = {"organization", "process"}
SCOPE_TYPES = {"Scope 1", "Scope 2", "Scope 3"}
INPUT_TYPES = {"manual", "API", "IOT"}


class Flowchart(SoftDeleteMixin, db.Model):
    """One configuration tree for a client."""

    __tablename__ = "flowcharts"

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.String(64), nullable=False, index=True)
    chart_type = db.Column(
        db.String(20), nullable=False, default="organization",
        comment="organization | process",
    )
    is_active = db.Column(db.Boolean, default=True,
                          comment="Only meaningful for organization charts")

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    nodes = db.relationship(
        "FlowchartNode", backref="flowchart",
        order_by="FlowchartNode.position",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_nodes=False):
        d = {
            "id": self.id,
            "client_id": self.client_id,
            "chart_type": self.chart_type,
            "is_active": self.is_active,
            "deleted_at": isoformat(self.deleted_at),
            "updated_at": isoformat(self.updated_at),
        }
        if include_nodes:
            d["nodes"] = [n.to_dict() for n in self.nodes]
        return d

    def __repr__(self):
        return f"<Flowchart {self.client_id}:{self.chart_type}>"


class FlowchartNode(db.Model):
    """A node in a configuration tree; owns zero or more scopes."""

    __tablename__ = "flowchart_nodes"
    __table_args__ = (
        db.UniqueConstraint("flowchart_id", "node_id", name="uq_flowchart_node"),
    )

    id = db.Column(db.Integer, primary_key=True)
    flowchart_id = db.Column(
        db.Integer, db.ForeignKey("flowcharts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    node_id = db.Column(db.String(100), nullable=False, comment="Business node id from the chart editor")
    label = db.Column(db.String(255), default="")
    department = db.Column(db.String(255), default="")
    location = db.Column(db.String(255), default="")
    employee_head_id = db.Column(db.String(100), nullable=True, index=True)
    position = db.Column(db.Integer, default=0)

    scope_details = db.relationship(
        "ScopeDetail", backref="node",
        order_by="ScopeDetail.position",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "node_id": self.node_id,
            "label": self.label,
            "department": self.department,
            "location": self.location,
            "employee_head_id": self.employee_head_id,
            "scope_details": [s.to_dict() for s in self.scope_details],
        }

    def __repr__(self):
        return f"<FlowchartNode {self.node_id}: {self.label}>"


class ScopeDetail(db.Model):
    """
    A reportable scope line.

    ``scope_identifier`` is unique within its node; ``collection_frequency``
    drives the reporting window used for completion and missing-data checks.
    """

    __tablename__ = "scope_details"

    id = db.Column(db.Integer, primary_key=True)
    node_pk = db.Column(
        db.Integer, db.ForeignKey("flowchart_nodes.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    scope_identifier = db.Column(db.String(150), nullable=True)
    scope_type = db.Column(db.String(20), nullable=True, comment="Scope 1 | Scope 2 | Scope 3")
    input_type = db.Column(db.String(20), nullable=True, comment="manual | API | IOT")
    collection_frequency = db.Column(db.String(30), nullable=True)
    category_name = db.Column(db.String(255), default="")
    activity = db.Column(db.String(255), default="")
    assigned_employees = db.Column(db.JSON, default=list)
    is_deleted = db.Column(db.Boolean, default=False)
    position = db.Column(db.Integer, default=0)

    def to_dict(self):
        return {
            "id": self.id,
            "scope_identifier": self.scope_identifier,
            "scope_type": self.scope_type,
            "input_type": self.input_type,
            "collection_frequency": self.collection_frequency,
            "category_name": self.category_name,
            "activity": self.activity,
            "assigned_employees": list(self.assigned_employees or []),
            "is_deleted": self.is_deleted,
        }

    def __repr__(self):
        return f"<ScopeDetail {self.scope_identifier}>"
