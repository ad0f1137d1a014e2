"""Helper utilities for bearer session authentication."""

from __future__ import annotations

import functools
from collections.abc import Callable
from http import HTTPStatus
from typing import Any, TypeVar, cast

from flask import g, request

from ..store import get_store
from .responses import ErrorCode, error_response

TCallable = TypeVar("TCallable", bound=Callable[..., Any])


def extract_bearer_token() -> str | None:
    authorization = request.headers.get("Authorization")
    if not authorization:
        return None
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def _unauthorized(message: str):
    response, status = error_response(message, ErrorCode.UNAUTHORIZED, HTTPStatus.UNAUTHORIZED)
    response.headers["WWW-Authenticate"] = "Bearer"
    return response, status


def require_session(func: TCallable) -> TCallable:
    """Decorator resolving the bearer session into ``g.current_user``."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        token_value = extract_bearer_token()
        if not token_value:
            return _unauthorized("Authentication required")

        store = get_store()
        session = store.resolve_session(token_value)
        if session is None:
            return _unauthorized("Unauthorized")

        user = store.get_user(session.user_id)
        if user is None:
            return error_response("User not found", ErrorCode.USER_NOT_FOUND, HTTPStatus.NOT_FOUND)

        g.auth_session = session
        g.current_user = user
        return func(*args, **kwargs)

    return cast(TCallable, wrapper)
