"""Profile endpoints for the signed-in user."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, g, request

from ..models.auth import User
from ..store import get_store
from ..utils.auth import require_session
from ..utils.responses import ErrorCode, error_response, handle_errors, success_response
from ..utils.timestamps import serialize_timestamp

bp = Blueprint("profile", __name__)

MIN_NAME_LENGTH = 2


def _serialize_profile(user: User) -> dict[str, Any]:
    stats = get_store().user_stats(user)
    stats["joinedAt"] = serialize_timestamp(user.created_at)
    stats["lastLogin"] = serialize_timestamp(user.last_login_at)
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "avatar": user.image,
        "role": user.role,
        "subscription": user.subscription,
        "preferences": user.preferences or {},
        "stats": stats,
        "updatedAt": serialize_timestamp(user.updated_at),
    }


@bp.get("/user/profile")
@require_session
@handle_errors(ErrorCode.FETCH_ERROR, "Failed to fetch user profile")
def get_profile() -> tuple[object, int]:
    return success_response(_serialize_profile(g.current_user))


@bp.put("/user/profile")
@require_session
@handle_errors(ErrorCode.UPDATE_ERROR, "Failed to update profile")
def update_profile() -> tuple[object, int]:
    payload = request.get_json(force=True, silent=True) or {}
    if not isinstance(payload, dict):
        return error_response(
            "payload must be an object", ErrorCode.VALIDATION_ERROR, HTTPStatus.BAD_REQUEST
        )

    name = payload.get("name")
    preferences = payload.get("preferences")

    if name is not None:
        if not isinstance(name, str) or len(name.strip()) < MIN_NAME_LENGTH:
            return error_response(
                "Name must be at least 2 characters",
                ErrorCode.VALIDATION_ERROR,
                HTTPStatus.BAD_REQUEST,
            )
        name = name.strip()
    if preferences is not None and not isinstance(preferences, dict):
        return error_response(
            "preferences must be an object", ErrorCode.VALIDATION_ERROR, HTTPStatus.BAD_REQUEST
        )

    user = get_store().update_profile(g.current_user, name=name, preferences=preferences)
    return success_response(_serialize_profile(user), message="Profile updated successfully")
