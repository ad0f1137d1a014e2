"""REST API endpoints for managing and executing workflows."""

from __future__ import annotations

import random
from http import HTTPStatus
from typing import Any

from flask import Blueprint, current_app, g, request

from ..extensions import db, limiter
from ..models.execution import Execution
from ..models.workflow import WORKFLOW_STATUSES, Workflow
from ..store import WORKFLOW_SORT_FIELDS, WorkflowQuery, get_store
from ..utils.auth import require_session
from ..utils.pagination import normalize_page_args
from ..utils.responses import ErrorCode, error_response, handle_errors, success_response
from ..utils.timestamps import serialize_timestamp
from ..workflow.runner import SimulationSettings, WorkflowExecutionError, run_workflow
from .executions import serialize_execution_detail

bp = Blueprint("workflows", __name__)

MIN_NAME_LENGTH = 3

# request key -> (model attribute, accepted types, allow null)
_EDITABLE_FIELDS: dict[str, tuple[str, tuple[type, ...], bool]] = {
    "description": ("description", (str,), False),
    "category": ("category", (str,), False),
    "tags": ("tags", (list,), False),
    "isPublic": ("is_public", (bool,), False),
    "status": ("status", (str,), False),
    "nodes": ("nodes", (list,), False),
    "edges": ("edges", (list,), False),
    "trigger": ("trigger", (dict,), True),
    "schedule": ("schedule", (dict,), True),
}


def _serialize_workflow(workflow: Workflow) -> dict[str, Any]:
    """Return a JSON serialisable representation of a workflow."""

    owner = workflow.owner
    return {
        "id": workflow.id,
        "name": workflow.name,
        "description": workflow.description or "",
        "status": workflow.status,
        "lastModified": serialize_timestamp(workflow.last_modified),
        "createdAt": serialize_timestamp(workflow.created_at),
        "runs": workflow.runs,
        "successRate": workflow.success_rate,
        "nodes": workflow.nodes or [],
        "category": workflow.category,
        "tags": workflow.tags or [],
        "owner": {
            "id": owner.id,
            "name": owner.name or "",
            "email": owner.email,
        },
        "trigger": workflow.trigger,
        "schedule": workflow.schedule,
        "isPublic": workflow.is_public,
        "version": workflow.version,
        "lastError": workflow.last_error,
    }


def _serialize_recent_execution(execution: Execution) -> dict[str, Any]:
    return {
        "id": execution.id,
        "status": execution.status,
        "startedAt": serialize_timestamp(execution.started_at),
        "completedAt": serialize_timestamp(execution.completed_at),
        "duration": execution.duration,
        "triggeredBy": execution.triggered_by,
        "error": execution.error,
    }


def _serialize_workflow_detail(workflow: Workflow) -> dict[str, Any]:
    recent = get_store().recent_executions(
        workflow, current_app.config.get("RECENT_EXECUTIONS_LIMIT", 10)
    )
    payload = _serialize_workflow(workflow)
    payload["workflow"] = {
        "nodes": workflow.nodes or [],
        "edges": workflow.edges or [],
    }
    payload["executions"] = {
        "recent": [_serialize_recent_execution(execution) for execution in recent]
    }
    return payload


def _json_payload() -> dict[str, Any] | None:
    payload = request.get_json(silent=True, force=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        return None
    return payload


def _validate_fields(payload: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Validate the optional editable fields present in ``payload``."""

    changes: dict[str, Any] = {}
    errors: list[str] = []

    for key, (attribute, types, nullable) in _EDITABLE_FIELDS.items():
        if key not in payload:
            continue
        value = payload[key]
        if value is None and nullable:
            changes[attribute] = None
            continue
        if not isinstance(value, types):
            errors.append(f"{key} has an invalid type")
            continue
        changes[attribute] = value

    tags = changes.get("tags")
    if tags is not None and not all(isinstance(tag, str) for tag in tags):
        errors.append("tags must be a list of strings")

    status = changes.get("status")
    if status is not None and status not in WORKFLOW_STATUSES:
        errors.append(f"status must be one of {', '.join(WORKFLOW_STATUSES)}")

    return changes, errors


def _workflow_not_found() -> tuple[object, int]:
    return error_response("Workflow not found", ErrorCode.NOT_FOUND, HTTPStatus.NOT_FOUND)


def _validation_error(message: str) -> tuple[object, int]:
    return error_response(message, ErrorCode.VALIDATION_ERROR, HTTPStatus.BAD_REQUEST)


@bp.get("/workflows")
@require_session
@handle_errors(ErrorCode.FETCH_ERROR, "Failed to fetch workflows")
def list_workflows() -> tuple[object, int]:
    page, limit = normalize_page_args(
        request.args.get("page", type=int),
        request.args.get("limit", type=int),
        default_limit=10,
        max_limit=current_app.config.get("MAX_PAGE_SIZE", 100),
    )
    sort_by = request.args.get("sortBy", "lastModified")
    query = WorkflowQuery(
        page=page,
        limit=limit,
        search=request.args.get("search", ""),
        status=request.args.get("status") or "all",
        category=request.args.get("category") or "all",
        sort_by=sort_by if sort_by in WORKFLOW_SORT_FIELDS else "lastModified",
        sort_order="asc" if request.args.get("sortOrder") == "asc" else "desc",
    )

    listing = get_store().list_workflows(g.current_user, query)
    return success_response(
        {
            "workflows": [_serialize_workflow(workflow) for workflow in listing.workflows],
            "pagination": listing.pagination.to_dict(),
            "stats": listing.stats,
            "filters": {
                "categories": listing.categories,
                "statuses": list(WORKFLOW_STATUSES),
            },
        }
    )


@bp.post("/workflows")
@require_session
@handle_errors(ErrorCode.CREATE_ERROR, "Failed to create workflow")
def create_workflow() -> tuple[object, int]:
    payload = _json_payload()
    if payload is None:
        return _validation_error("payload must be an object")

    name = payload.get("name")
    description = payload.get("description")
    if not name or not description:
        return error_response(
            "Name and description are required", ErrorCode.MISSING_FIELDS, HTTPStatus.BAD_REQUEST
        )
    if not isinstance(name, str) or not isinstance(description, str):
        return _validation_error("name and description must be strings")

    name = name.strip()
    if len(name) < MIN_NAME_LENGTH:
        return _validation_error("Workflow name must be at least 3 characters")

    # New workflows always start inactive.
    fields, errors = _validate_fields(
        {key: value for key, value in payload.items() if key != "status"}
    )
    if errors:
        return error_response(
            "Invalid workflow payload",
            ErrorCode.VALIDATION_ERROR,
            HTTPStatus.BAD_REQUEST,
            details={"errors": errors},
        )

    fields.setdefault("category", "General")
    workflow = get_store().create_workflow(g.current_user, name=name, **fields)
    current_app.logger.info("Workflow %s created by user %s", workflow.id, g.current_user.id)
    return success_response(
        _serialize_workflow(workflow),
        HTTPStatus.CREATED,
        message="Workflow created successfully",
    )


@bp.get("/workflows/<int:workflow_id>")
@require_session
@handle_errors(ErrorCode.FETCH_ERROR, "Failed to fetch workflow")
def get_workflow(workflow_id: int) -> tuple[object, int]:
    workflow = get_store().get_workflow(g.current_user, workflow_id)
    if workflow is None:
        return _workflow_not_found()
    return success_response(_serialize_workflow_detail(workflow))


@bp.put("/workflows/<int:workflow_id>")
@require_session
@handle_errors(ErrorCode.UPDATE_ERROR, "Failed to update workflow")
def update_workflow(workflow_id: int) -> tuple[object, int]:
    store = get_store()
    workflow = store.get_workflow(g.current_user, workflow_id)
    if workflow is None:
        return _workflow_not_found()

    payload = _json_payload()
    if payload is None:
        return _validation_error("payload must be an object")

    changes, errors = _validate_fields(payload)
    if "name" in payload:
        name = payload["name"]
        if not isinstance(name, str) or len(name.strip()) < MIN_NAME_LENGTH:
            return _validation_error("Workflow name must be at least 3 characters")
        changes["name"] = name.strip()
    if errors:
        return error_response(
            "Invalid workflow payload",
            ErrorCode.VALIDATION_ERROR,
            HTTPStatus.BAD_REQUEST,
            details={"errors": errors},
        )

    store.update_workflow(workflow, changes)
    return success_response(_serialize_workflow(workflow), message="Workflow updated successfully")


@bp.delete("/workflows/<int:workflow_id>")
@require_session
@handle_errors(ErrorCode.DELETE_ERROR, "Failed to delete workflow")
def delete_workflow(workflow_id: int) -> tuple[object, int]:
    store = get_store()
    workflow = store.get_workflow(g.current_user, workflow_id)
    if workflow is None:
        return _workflow_not_found()

    if workflow.status == "active":
        return error_response(
            "Cannot delete active workflow. Please deactivate first.",
            ErrorCode.WORKFLOW_ACTIVE,
            HTTPStatus.CONFLICT,
        )

    store.delete_workflow(workflow)
    current_app.logger.info("Workflow %s deleted by user %s", workflow_id, g.current_user.id)
    return success_response(message="Workflow deleted successfully")


@bp.post("/workflows/<int:workflow_id>/execute")
@require_session
@limiter.limit(lambda: current_app.config.get("EXECUTE_RATE_LIMIT", "30 per minute"))
def execute_workflow(workflow_id: int) -> tuple[object, int]:
    store = get_store()
    workflow = store.get_workflow(g.current_user, workflow_id)
    if workflow is None:
        return _workflow_not_found()

    payload = _json_payload()
    if payload is None:
        return _validation_error("payload must be an object")

    input_data = payload.get("inputData")
    if input_data is None:
        input_data = {}
    test_mode = payload.get("testMode", False)
    if not isinstance(input_data, dict):
        return _validation_error("inputData must be an object")
    if not isinstance(test_mode, bool):
        return _validation_error("testMode must be a boolean")

    if workflow.status == "error" and not test_mode:
        return error_response(
            "Cannot execute workflow in error state. Please fix the issues first.",
            ErrorCode.WORKFLOW_ERROR_STATE,
            HTTPStatus.BAD_REQUEST,
        )

    rng = random.Random(current_app.config.get("EXECUTION_RANDOM_SEED"))
    try:
        execution = run_workflow(
            store,
            workflow,
            input_data,
            test_mode=test_mode,
            settings=SimulationSettings.from_config(current_app.config),
            rng=rng,
        )
    except Exception as exc:
        current_app.logger.exception("Workflow %s execution failed", workflow_id)
        db.session.rollback()
        node_id = exc.node_id if isinstance(exc, WorkflowExecutionError) else None
        try:
            store.fail_running_execution(
                workflow_id,
                message=str(exc) or "Unknown error",
                code=ErrorCode.EXECUTION_FAILED,
                node_id=node_id,
            )
        except Exception:
            current_app.logger.exception(
                "Could not mark execution of workflow %s as failed", workflow_id
            )
            db.session.rollback()
        return error_response(
            "Workflow execution failed",
            ErrorCode.EXECUTION_ERROR,
            HTTPStatus.INTERNAL_SERVER_ERROR,
            details={"message": str(exc) or "Unknown error occurred"},
        )

    message = (
        "Test execution completed successfully"
        if test_mode
        else "Workflow execution completed successfully"
    )
    return success_response(serialize_execution_detail(execution), message=message)
