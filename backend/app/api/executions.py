"""API endpoints exposing workflow executions."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, current_app, g, request

from ..models.execution import EXECUTION_STATUSES, Execution
from ..store import EXECUTION_SORT_FIELDS, ExecutionQuery, get_store
from ..utils.auth import require_session
from ..utils.pagination import normalize_page_args
from ..utils.responses import ErrorCode, error_response, handle_errors, success_response
from ..utils.timestamps import serialize_timestamp

bp = Blueprint("executions", __name__)


def serialize_execution_summary(execution: Execution) -> dict[str, Any]:
    return {
        "id": execution.id,
        "workflowId": execution.workflow_id,
        "workflowName": execution.workflow.name,
        "status": execution.status,
        "startedAt": serialize_timestamp(execution.started_at),
        "completedAt": serialize_timestamp(execution.completed_at),
        "duration": execution.duration,
        "triggeredBy": execution.triggered_by,
        "testMode": execution.test_mode,
        "inputData": execution.input_data,
        "outputData": execution.output_data,
        "stepsCompleted": execution.steps_completed,
        "totalSteps": execution.total_steps,
        "error": execution.error,
    }


def serialize_execution_detail(execution: Execution) -> dict[str, Any]:
    payload = serialize_execution_summary(execution)
    payload["steps"] = execution.steps or []
    payload["logs"] = execution.logs or []
    payload["metrics"] = execution.metrics or {}
    return payload


def _execution_not_found() -> tuple[object, int]:
    return error_response("Execution not found", ErrorCode.NOT_FOUND, HTTPStatus.NOT_FOUND)


@bp.get("/executions")
@require_session
@handle_errors(ErrorCode.FETCH_ERROR, "Failed to fetch executions")
def list_executions() -> tuple[object, int]:
    page, limit = normalize_page_args(
        request.args.get("page", type=int),
        request.args.get("limit", type=int),
        default_limit=20,
        max_limit=current_app.config.get("MAX_PAGE_SIZE", 100),
    )
    status = request.args.get("status") or "all"
    if status != "all" and status not in EXECUTION_STATUSES:
        return error_response(
            f"status must be 'all' or one of {', '.join(EXECUTION_STATUSES)}",
            ErrorCode.VALIDATION_ERROR,
            HTTPStatus.BAD_REQUEST,
        )

    workflow_id = None
    raw_workflow_id = request.args.get("workflowId")
    if raw_workflow_id:
        try:
            workflow_id = int(raw_workflow_id)
        except ValueError:
            return error_response(
                "workflowId must be an integer", ErrorCode.VALIDATION_ERROR, HTTPStatus.BAD_REQUEST
            )

    sort_by = request.args.get("sortBy", "startedAt")
    query = ExecutionQuery(
        page=page,
        limit=limit,
        status=status,
        workflow_id=workflow_id,
        sort_by=sort_by if sort_by in EXECUTION_SORT_FIELDS else "startedAt",
        sort_order="asc" if request.args.get("sortOrder") == "asc" else "desc",
    )

    listing = get_store().list_executions(g.current_user, query)
    return success_response(
        {
            "executions": [serialize_execution_summary(item) for item in listing.executions],
            "pagination": listing.pagination.to_dict(),
            "stats": listing.stats,
        }
    )


@bp.get("/executions/<int:execution_id>")
@require_session
@handle_errors(ErrorCode.FETCH_ERROR, "Failed to fetch execution details")
def get_execution(execution_id: int) -> tuple[object, int]:
    execution = get_store().get_execution(g.current_user, execution_id)
    if execution is None:
        return _execution_not_found()
    return success_response(serialize_execution_detail(execution))


@bp.delete("/executions/<int:execution_id>")
@require_session
@handle_errors(ErrorCode.DELETE_ERROR, "Failed to delete execution")
def delete_execution(execution_id: int) -> tuple[object, int]:
    store = get_store()
    execution = store.get_execution(g.current_user, execution_id)
    if execution is None:
        return _execution_not_found()

    if execution.status == "running":
        return error_response(
            "Cannot delete running execution", ErrorCode.EXECUTION_RUNNING, HTTPStatus.CONFLICT
        )

    store.delete_execution(execution)
    return success_response(message="Execution deleted successfully")
