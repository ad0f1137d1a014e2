"""Record store shared by the request handlers.

One :class:`WorkflowStore` is built by the application factory and kept in
``app.extensions``; handlers obtain it through :func:`get_store` instead of
querying the models themselves. Listing operations load the caller's full
result set and filter, aggregate and slice it in memory.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from flask import Flask, current_app
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import func

from .models.auth import AuthSession, User
from .models.execution import Execution
from .models.workflow import WORKFLOW_STATUSES, Workflow
from .utils.pagination import Pagination, paginate
from .utils.security import generate_token, hash_password, hash_token
from .utils.timestamps import serialize_timestamp, utcnow

_EXTENSION_KEY = "workflow_store"

WORKFLOW_SORT_FIELDS = ("name", "runs", "successRate", "lastModified")
EXECUTION_SORT_FIELDS = ("startedAt", "duration", "workflowName")


@dataclass(frozen=True)
class WorkflowQuery:
    page: int = 1
    limit: int = 10
    search: str = ""
    status: str = "all"
    category: str = "all"
    sort_by: str = "lastModified"
    sort_order: str = "desc"


@dataclass(frozen=True)
class ExecutionQuery:
    page: int = 1
    limit: int = 20
    status: str = "all"
    workflow_id: int | None = None
    sort_by: str = "startedAt"
    sort_order: str = "desc"


@dataclass
class WorkflowListing:
    workflows: list[Workflow]
    pagination: Pagination
    stats: dict[str, Any]
    categories: list[str] = field(default_factory=list)


@dataclass
class ExecutionListing:
    executions: list[Execution]
    pagination: Pagination
    stats: dict[str, Any]


def _matches_search(workflow: Workflow, needle: str) -> bool:
    if needle in (workflow.name or "").lower():
        return True
    if needle in (workflow.description or "").lower():
        return True
    return any(needle in str(tag).lower() for tag in workflow.tags or [])


def _workflow_stats(workflows: list[Workflow]) -> dict[str, Any]:
    total = len(workflows)
    counts = {status: 0 for status in WORKFLOW_STATUSES}
    for workflow in workflows:
        if workflow.status in counts:
            counts[workflow.status] += 1
    return {
        "total": total,
        "active": counts["active"],
        "inactive": counts["inactive"],
        "error": counts["error"],
        "totalRuns": sum(workflow.runs for workflow in workflows),
        "avgSuccessRate": (
            sum(workflow.success_rate for workflow in workflows) / total if total else 0
        ),
    }


def _execution_stats(executions: list[Execution]) -> dict[str, Any]:
    durations = [execution.duration for execution in executions if execution.duration]
    return {
        "total": len(executions),
        "success": sum(1 for execution in executions if execution.status == "success"),
        "failed": sum(1 for execution in executions if execution.status == "failed"),
        "running": sum(1 for execution in executions if execution.status == "running"),
        "avgDuration": sum(durations) / len(durations) if durations else 0,
    }


def _merge_preferences(current: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(current or {})
    for key, value in changes.items():
        existing = merged.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            merged[key] = {**existing, **value}
        else:
            merged[key] = value
    return merged


class WorkflowStore:
    """Owns every read and write of users, sessions, workflows and executions."""

    def __init__(self, db: SQLAlchemy) -> None:
        self.db = db
        # Held for the whole of a request; see ``create_app``.
        self.lock = threading.Lock()

    def _commit(self) -> None:
        self.db.session.commit()

    def is_empty(self) -> bool:
        return User.query.first() is None

    # Users

    def get_user(self, user_id: int) -> User | None:
        return self.db.session.get(User, user_id)

    def find_user_by_email(self, email: str) -> User | None:
        return User.query.filter(func.lower(User.email) == email.lower()).first()

    def create_user(
        self,
        email: str,
        *,
        name: str | None = None,
        password: str | None = None,
        provider: str = "credentials",
        role: str = "user",
        subscription: str = "free",
        image: str | None = None,
        preferences: dict[str, Any] | None = None,
    ) -> User:
        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password) if password else None,
            provider=provider,
            role=role,
            subscription=subscription,
            image=image,
            preferences=copy.deepcopy(preferences or {}),
        )
        self.db.session.add(user)
        self._commit()
        return user

    def update_profile(
        self,
        user: User,
        *,
        name: str | None = None,
        preferences: dict[str, Any] | None = None,
    ) -> User:
        if name is not None:
            user.name = name
        if preferences is not None:
            user.preferences = _merge_preferences(user.preferences, preferences)
        user.updated_at = utcnow()
        self._commit()
        return user

    def user_stats(self, user: User) -> dict[str, Any]:
        workflows = Workflow.query.filter_by(user_id=user.id).all()
        total_executions = (
            Execution.query.join(Workflow).filter(Workflow.user_id == user.id).count()
        )
        return {
            "workflowsCreated": len(workflows),
            "totalExecutions": total_executions,
            "successRate": _workflow_stats(workflows)["avgSuccessRate"],
        }

    # Sessions

    def open_session(self, user: User, *, provider: str, ttl: timedelta) -> tuple[str, AuthSession]:
        """Issue a session for ``user``; the plaintext token is only returned here."""

        token = generate_token()
        now = utcnow()
        session = AuthSession(
            user_id=user.id,
            token_hash=hash_token(token),
            provider=provider,
            created_at=now,
            expires_at=now + ttl,
        )
        user.last_login_at = now
        self.db.session.add(session)
        self._commit()
        return token, session

    def resolve_session(self, token: str, now: datetime | None = None) -> AuthSession | None:
        token_hash = hash_token(token)
        session = AuthSession.query.filter_by(token_hash=token_hash).first()
        if session is None or not session.is_active(now):
            return None
        return session

    def revoke_session(self, session: AuthSession) -> None:
        if session.revoked_at is None:
            session.revoked_at = utcnow()
            self._commit()

    # Workflows

    def list_workflows(self, owner: User, query: WorkflowQuery) -> WorkflowListing:
        columns = {
            "name": func.lower(Workflow.name),
            "runs": Workflow.runs,
            "successRate": Workflow.success_rate,
            "lastModified": Workflow.last_modified,
        }
        column = columns.get(query.sort_by, Workflow.last_modified)
        ordering = column.asc() if query.sort_order == "asc" else column.desc()

        base = Workflow.query.filter(Workflow.user_id == owner.id)
        filtered = base
        if query.status != "all":
            filtered = filtered.filter(Workflow.status == query.status)
        if query.category != "all":
            filtered = filtered.filter(Workflow.category == query.category)

        workflows = filtered.order_by(ordering, Workflow.id.asc()).all()
        needle = query.search.strip().lower()
        if needle:
            workflows = [workflow for workflow in workflows if _matches_search(workflow, needle)]

        page_items, pagination = paginate(workflows, query.page, query.limit)
        categories = sorted(
            {category for (category,) in base.with_entities(Workflow.category).distinct()}
        )
        return WorkflowListing(
            workflows=page_items,
            pagination=pagination,
            stats=_workflow_stats(workflows),
            categories=categories,
        )

    def get_workflow(self, owner: User, workflow_id: int) -> Workflow | None:
        return Workflow.query.filter_by(id=workflow_id, user_id=owner.id).first()

    def create_workflow(self, owner: User, **fields: Any) -> Workflow:
        now = utcnow()
        workflow = Workflow(
            user_id=owner.id,
            status="inactive",
            runs=0,
            success_rate=0.0,
            version="1.0.0",
            created_at=now,
            updated_at=now,
            last_modified=now,
        )
        for name, value in fields.items():
            setattr(workflow, name, copy.deepcopy(value))
        self.db.session.add(workflow)
        self._commit()
        return workflow

    def update_workflow(self, workflow: Workflow, changes: dict[str, Any]) -> Workflow:
        for name, value in changes.items():
            setattr(workflow, name, copy.deepcopy(value))
        workflow.last_modified = utcnow()
        self._commit()
        return workflow

    def delete_workflow(self, workflow: Workflow) -> None:
        self.db.session.delete(workflow)
        self._commit()

    def update_run_stats(self, workflow: Workflow, *, runs: int, success_rate: float) -> None:
        workflow.runs = runs
        workflow.success_rate = success_rate
        workflow.last_modified = utcnow()
        self._commit()

    def recent_executions(self, workflow: Workflow, limit: int) -> list[Execution]:
        return (
            Execution.query.filter_by(workflow_id=workflow.id)
            .order_by(Execution.started_at.desc(), Execution.id.desc())
            .limit(limit)
            .all()
        )

    # Executions

    def add_execution(self, workflow: Workflow, **fields: Any) -> Execution:
        execution = Execution(workflow_id=workflow.id)
        for name, value in fields.items():
            setattr(execution, name, copy.deepcopy(value))
        self.db.session.add(execution)
        self._commit()
        return execution

    def start_execution(
        self,
        workflow: Workflow,
        *,
        input_data: dict[str, Any],
        test_mode: bool,
        total_steps: int,
        started_at: datetime,
        logs: list[dict[str, Any]],
    ) -> Execution:
        return self.add_execution(
            workflow,
            status="running",
            started_at=started_at,
            triggered_by="manual_test" if test_mode else "manual",
            test_mode=test_mode,
            input_data=input_data,
            steps=[],
            logs=logs,
            metrics={},
            steps_completed=0,
            total_steps=total_steps,
        )

    def record_progress(
        self, execution: Execution, steps: list[dict[str, Any]], logs: list[dict[str, Any]]
    ) -> None:
        # JSON columns only notice reassignment, never in-place mutation.
        execution.steps = copy.deepcopy(steps)
        execution.logs = copy.deepcopy(logs)
        execution.steps_completed = len(steps)
        self._commit()

    def complete_execution(
        self,
        execution: Execution,
        *,
        completed_at: datetime,
        duration: int,
        output_data: dict[str, Any],
        steps: list[dict[str, Any]],
        logs: list[dict[str, Any]],
        metrics: dict[str, Any],
    ) -> Execution:
        execution.status = "success"
        execution.completed_at = completed_at
        execution.duration = duration
        execution.output_data = copy.deepcopy(output_data)
        execution.steps = copy.deepcopy(steps)
        execution.logs = copy.deepcopy(logs)
        execution.metrics = copy.deepcopy(metrics)
        execution.steps_completed = len(steps)
        self._commit()
        return execution

    def fail_running_execution(
        self, workflow_id: int, *, message: str, code: str, node_id: str | None = None
    ) -> Execution | None:
        """Mark the newest running execution of a workflow as failed, if there is one."""

        execution = (
            Execution.query.filter_by(workflow_id=workflow_id, status="running")
            .order_by(Execution.started_at.desc(), Execution.id.desc())
            .first()
        )
        if execution is None:
            return None

        now = utcnow()
        error: dict[str, Any] = {
            "message": message,
            "code": code,
            "timestamp": serialize_timestamp(now),
        }
        if node_id is not None:
            error["nodeId"] = node_id
        execution.status = "failed"
        execution.completed_at = now
        execution.error = error
        self._commit()
        return execution

    def list_executions(self, owner: User, query: ExecutionQuery) -> ExecutionListing:
        columns = {
            "startedAt": Execution.started_at,
            "duration": func.coalesce(Execution.duration, 0),
            "workflowName": func.lower(Workflow.name),
        }
        column = columns.get(query.sort_by, Execution.started_at)
        ordering = column.asc() if query.sort_order == "asc" else column.desc()

        filtered = Execution.query.join(Workflow).filter(Workflow.user_id == owner.id)
        if query.status != "all":
            filtered = filtered.filter(Execution.status == query.status)
        if query.workflow_id is not None:
            filtered = filtered.filter(Execution.workflow_id == query.workflow_id)

        executions = filtered.order_by(ordering, Execution.id.asc()).all()
        page_items, pagination = paginate(executions, query.page, query.limit)
        return ExecutionListing(
            executions=page_items,
            pagination=pagination,
            stats=_execution_stats(executions),
        )

    def get_execution(self, owner: User, execution_id: int) -> Execution | None:
        return (
            Execution.query.join(Workflow)
            .filter(Execution.id == execution_id, Workflow.user_id == owner.id)
            .first()
        )

    def delete_execution(self, execution: Execution) -> None:
        self.db.session.delete(execution)
        self._commit()


def init_store(app: Flask, db: SQLAlchemy) -> WorkflowStore:
    store = WorkflowStore(db)
    app.extensions[_EXTENSION_KEY] = store
    return store


def get_store() -> WorkflowStore:
    """Return the store registered on the current application."""

    return current_app.extensions[_EXTENSION_KEY]
