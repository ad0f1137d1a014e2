"""Workflow model definition."""

from __future__ import annotations

from ..extensions import db
from ..utils.timestamps import utcnow

WORKFLOW_STATUSES = ("active", "inactive", "error")


class Workflow(db.Model):
    """Represents an automation graph owned by a user."""

    __tablename__ = "workflows"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    status = db.Column(db.String(20), nullable=False, default="inactive")
    category = db.Column(db.String(120), nullable=False, default="General")
    tags = db.Column(db.JSON, nullable=False, default=list)
    is_public = db.Column(db.Boolean, nullable=False, default=False)
    nodes = db.Column(db.JSON, nullable=False, default=list)
    edges = db.Column(db.JSON, nullable=False, default=list)
    trigger = db.Column(db.JSON, nullable=True)
    schedule = db.Column(db.JSON, nullable=True)
    runs = db.Column(db.Integer, nullable=False, default=0)
    success_rate = db.Column(db.Float, nullable=False, default=0.0)
    version = db.Column(db.String(20), nullable=False, default="1.0.0")
    last_error = db.Column(db.JSON, nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    last_modified = db.Column(db.DateTime, default=utcnow, nullable=False)

    owner = db.relationship("User", back_populates="workflows")
    executions = db.relationship(
        "Execution",
        back_populates="workflow",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<Workflow {self.name!r}>"
