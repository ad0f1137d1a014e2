"""JSON envelopes shared by every endpoint."""

from __future__ import annotations

import functools
from collections.abc import Callable
from http import HTTPStatus
from typing import Any, TypeVar, cast

from flask import current_app, jsonify

from ..extensions import db

TCallable = TypeVar("TCallable", bound=Callable[..., Any])


class ErrorCode:
    """String codes attached to error payloads."""

    UNAUTHORIZED = "UNAUTHORIZED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_FIELDS = "MISSING_FIELDS"
    WORKFLOW_ACTIVE = "WORKFLOW_ACTIVE"
    EXECUTION_RUNNING = "EXECUTION_RUNNING"
    WORKFLOW_ERROR_STATE = "WORKFLOW_ERROR_STATE"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    FETCH_ERROR = "FETCH_ERROR"
    CREATE_ERROR = "CREATE_ERROR"
    UPDATE_ERROR = "UPDATE_ERROR"
    DELETE_ERROR = "DELETE_ERROR"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    EMAIL_IN_USE = "EMAIL_IN_USE"
    UNSUPPORTED_PROVIDER = "UNSUPPORTED_PROVIDER"
    RATE_LIMITED = "RATE_LIMITED"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def success_response(
    data: Any = None,
    status: HTTPStatus = HTTPStatus.OK,
    message: str | None = None,
) -> tuple[object, int]:
    payload: dict[str, Any] = {"success": True}
    if data is not None:
        payload["data"] = data
    if message:
        payload["message"] = message
    return jsonify(payload), status


def error_response(
    message: str,
    code: str,
    status: HTTPStatus = HTTPStatus.BAD_REQUEST,
    details: dict[str, Any] | None = None,
) -> tuple[object, int]:
    payload: dict[str, Any] = {"success": False, "error": message, "code": code}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def handle_errors(code: str, message: str) -> Callable[[TCallable], TCallable]:
    """Convert unexpected exceptions raised by a handler into a 500 envelope."""

    def decorator(func: TCallable) -> TCallable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            try:
                return func(*args, **kwargs)
            except Exception:
                current_app.logger.exception("%s failed", func.__name__)
                db.session.rollback()
                return error_response(message, code, HTTPStatus.INTERNAL_SERVER_ERROR)

        return cast(TCallable, wrapper)

    return decorator
