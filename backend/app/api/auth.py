"""REST endpoints for registration, sign-in and sessions."""

from __future__ import annotations

from datetime import timedelta
from http import HTTPStatus
from typing import Any

from flask import Blueprint, current_app, g, request

from ..extensions import limiter
from ..models.auth import AuthSession, User
from ..store import get_store
from ..utils.auth import require_session
from ..utils.responses import ErrorCode, error_response, handle_errors, success_response
from ..utils.security import verify_password
from ..utils.timestamps import serialize_timestamp

bp = Blueprint("auth", __name__)

OAUTH_PROVIDERS = {"google", "github"}
DEMO_AVATAR = "https://images.pexels.com/photos/614810/pexels-photo-614810.jpeg"


def serialize_user(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "image": user.image,
        "role": user.role,
        "subscription": user.subscription,
    }


def _serialize_session(session: AuthSession, user: User) -> dict[str, Any]:
    return {
        "user": serialize_user(user),
        "expires": serialize_timestamp(session.expires_at),
    }


def _session_ttl() -> timedelta:
    return timedelta(days=int(current_app.config.get("SESSION_TTL_DAYS", 30)))


def _issue_session(user: User, provider: str) -> tuple[object, int]:
    token, session = get_store().open_session(user, provider=provider, ttl=_session_ttl())
    payload = {"token": token, "session": _serialize_session(session, user)}
    return success_response(payload, message="Signed in successfully")


def _demo_oauth_user(provider: str) -> User:
    """Return the demo account used for OAuth sign-ins, creating it on first use."""

    store = get_store()
    email = f"demo@{provider}.com"
    user = store.find_user_by_email(email)
    if user is None:
        user = store.create_user(
            email,
            name=f"Demo {provider.capitalize()} User",
            provider=provider,
            image=DEMO_AVATAR,
        )
    return user


@bp.post("/auth/register")
@handle_errors(ErrorCode.CREATE_ERROR, "Registration failed")
def register() -> tuple[object, int]:
    payload = request.get_json(force=True, silent=True) or {}
    if not isinstance(payload, dict):
        payload = {}

    name = payload.get("name")
    email = payload.get("email")
    password = payload.get("password")
    confirm = payload.get("confirmPassword")

    if (
        not isinstance(email, str)
        or not email.strip()
        or not isinstance(password, str)
        or not password
        or password != confirm
    ):
        return error_response(
            "Validation error", ErrorCode.VALIDATION_ERROR, HTTPStatus.BAD_REQUEST
        )
    if name is not None and not isinstance(name, str):
        return error_response(
            "name must be a string", ErrorCode.VALIDATION_ERROR, HTTPStatus.BAD_REQUEST
        )

    store = get_store()
    email = email.strip().lower()
    if store.find_user_by_email(email) is not None:
        return error_response("Email already in use", ErrorCode.EMAIL_IN_USE, HTTPStatus.CONFLICT)

    user = store.create_user(email, name=name, password=password)
    current_app.logger.info("Registered user %s", user.id)
    return success_response(serialize_user(user), HTTPStatus.CREATED, message="Account created")


@bp.post("/auth/signin")
@limiter.limit(lambda: current_app.config.get("SIGNIN_RATE_LIMIT", "10 per minute"))
@handle_errors(ErrorCode.INTERNAL_ERROR, "Authentication failed")
def signin() -> tuple[object, int]:
    payload = request.get_json(force=True, silent=True) or {}
    if not isinstance(payload, dict):
        payload = {}
    provider = payload.get("provider") or "credentials"

    if provider in OAUTH_PROVIDERS:
        return _issue_session(_demo_oauth_user(provider), provider)

    if provider != "credentials":
        return error_response(
            "Provider not supported", ErrorCode.UNSUPPORTED_PROVIDER, HTTPStatus.BAD_REQUEST
        )

    email = payload.get("email")
    password = payload.get("password")
    if not isinstance(email, str) or not email or not isinstance(password, str) or not password:
        return error_response(
            "Missing credentials", ErrorCode.MISSING_FIELDS, HTTPStatus.BAD_REQUEST
        )

    user = get_store().find_user_by_email(email.strip())
    if user is None or not verify_password(user.password_hash, password):
        current_app.logger.warning("Rejected sign-in for %s", email)
        return error_response(
            "Invalid credentials", ErrorCode.INVALID_CREDENTIALS, HTTPStatus.UNAUTHORIZED
        )

    return _issue_session(user, "credentials")


@bp.post("/auth/signout")
@require_session
def signout() -> tuple[object, int]:
    get_store().revoke_session(g.auth_session)
    return success_response(message="Signed out")


@bp.get("/auth/session")
@require_session
def current_session() -> tuple[object, int]:
    return success_response(_serialize_session(g.auth_session, g.current_user))
