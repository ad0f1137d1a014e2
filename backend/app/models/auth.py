"""Authentication related database models."""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..utils.timestamps import utcnow


class User(db.Model):
    """Dashboard account owning workflows."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=True)
    image = db.Column(db.String(512), nullable=True)
    role = db.Column(db.String(20), nullable=False, default="user")
    subscription = db.Column(db.String(20), nullable=False, default="free")
    provider = db.Column(db.String(20), nullable=False, default="credentials")
    preferences = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    workflows = db.relationship(
        "Workflow", back_populates="owner", cascade="all, delete-orphan", lazy="select"
    )

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<User {self.email!r}>"


class AuthSession(db.Model):
    """Opaque bearer session issued at sign-in."""

    __tablename__ = "auth_sessions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), unique=True, nullable=False)
    provider = db.Column(db.String(20), nullable=False, default="credentials")
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)
    revoked_at = db.Column(db.DateTime, nullable=True)

    def is_active(self, now: datetime | None = None) -> bool:
        """Return whether the session is neither revoked nor expired."""

        if self.revoked_at is not None:
            return False
        return self.expires_at > (now or utcnow())
