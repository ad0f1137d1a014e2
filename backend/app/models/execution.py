"""Execution model definition."""

from __future__ import annotations

from ..extensions import db
from ..utils.timestamps import utcnow

EXECUTION_STATUSES = ("running", "success", "failed", "cancelled")


class Execution(db.Model):
    """One run of a workflow together with its step and log trail."""

    __tablename__ = "executions"

    id = db.Column(db.Integer, primary_key=True)
    workflow_id = db.Column(
        db.Integer, db.ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = db.Column(db.String(20), nullable=False, default="running")
    started_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)
    duration = db.Column(db.Integer, nullable=True)
    triggered_by = db.Column(db.String(40), nullable=False, default="manual")
    test_mode = db.Column(db.Boolean, nullable=False, default=False)
    input_data = db.Column(db.JSON, nullable=True)
    output_data = db.Column(db.JSON, nullable=True)
    steps = db.Column(db.JSON, nullable=False, default=list)
    logs = db.Column(db.JSON, nullable=False, default=list)
    metrics = db.Column(db.JSON, nullable=False, default=dict)
    error = db.Column(db.JSON, nullable=True)
    steps_completed = db.Column(db.Integer, nullable=False, default=0)
    total_steps = db.Column(db.Integer, nullable=False, default=0)

    workflow = db.relationship("Workflow", back_populates="executions")

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<Execution {self.id} {self.status}>"
