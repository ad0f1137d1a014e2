"""Demo account, workflows and executions loaded into an empty store."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from .models.auth import User
from .models.workflow import Workflow
from .store import WorkflowStore
from .utils.timestamps import serialize_timestamp, utcnow

DEMO_EMAIL = "john@example.com"
DEMO_PASSWORD = "password"
DEMO_AVATAR = "https://images.pexels.com/photos/614810/pexels-photo-614810.jpeg"


def _chain(*labels: tuple[str, str]) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Build a linear node graph from ``(type, label)`` pairs."""

    nodes = [
        {"id": str(index), "type": node_type, "data": {"label": label}}
        for index, (node_type, label) in enumerate(labels, start=1)
    ]
    edges = [
        {"id": f"e{index}-{index + 1}", "source": str(index), "target": str(index + 1)}
        for index in range(1, len(labels))
    ]
    return nodes, edges


def _workflow_fixtures(now: datetime) -> list[dict[str, Any]]:
    onboarding_nodes, onboarding_edges = _chain(
        ("trigger", "New Customer"),
        ("email", "Welcome Email"),
        ("delay", "Wait 24 Hours"),
        ("email", "Follow-up Email"),
    )
    social_nodes, _ = _chain(
        ("schedule", "Daily Trigger"),
        ("content", "Generate Content"),
        ("social", "Post to Twitter"),
        ("social", "Post to LinkedIn"),
    )
    social_edges = [
        {"id": "e1-2", "source": "1", "target": "2"},
        {"id": "e2-3", "source": "2", "target": "3"},
        {"id": "e2-4", "source": "2", "target": "4"},
    ]
    lead_nodes, lead_edges = _chain(
        ("webhook", "Lead Webhook"),
        ("database", "Check Existing"),
        ("function", "Score Lead"),
        ("condition", "High Score?"),
    )
    invoice_nodes, invoice_edges = _chain(
        ("email", "Email Trigger"),
        ("file", "Extract PDF"),
        ("function", "Validate Data"),
    )
    backup_nodes, backup_edges = _chain(
        ("schedule", "Daily 2 AM"),
        ("database", "Export Data"),
        ("file", "Compress Files"),
        ("storage", "Upload to Cloud"),
    )

    return [
        {
            "name": "Customer Onboarding",
            "description": "Automated workflow for new customer onboarding process",
            "status": "active",
            "category": "Customer Management",
            "tags": ["onboarding", "email", "automation"],
            "nodes": onboarding_nodes,
            "edges": onboarding_edges,
            "trigger": {"type": "webhook", "url": "/webhook/customer"},
            "runs": 45,
            "success_rate": 96.8,
            "created_at": now - timedelta(days=7),
            "last_modified": now - timedelta(hours=2),
        },
        {
            "name": "Social Media Posting",
            "description": "Automatically post content to social media platforms",
            "status": "active",
            "category": "Marketing",
            "tags": ["social", "content", "automation"],
            "nodes": social_nodes,
            "edges": social_edges,
            "schedule": {"type": "daily", "time": "09:00"},
            "version": "1.2.0",
            "runs": 128,
            "success_rate": 94.5,
            "created_at": now - timedelta(days=14),
            "last_modified": now - timedelta(days=1),
        },
        {
            "name": "Lead Qualification",
            "description": "Qualify and score incoming leads automatically",
            "status": "error",
            "category": "Sales",
            "tags": ["leads", "scoring", "crm"],
            "nodes": lead_nodes,
            "edges": lead_edges,
            "trigger": {"type": "webhook", "url": "/webhook/lead"},
            "runs": 23,
            "success_rate": 78.3,
            "last_error": {
                "message": "Database connection timeout",
                "code": "DB_TIMEOUT",
                "timestamp": serialize_timestamp(now),
            },
            "created_at": now - timedelta(days=3),
            "last_modified": now - timedelta(minutes=30),
        },
        {
            "name": "Invoice Processing",
            "description": "Process and validate incoming invoices",
            "status": "inactive",
            "category": "Finance",
            "tags": ["invoice", "processing", "validation"],
            "nodes": invoice_nodes,
            "edges": invoice_edges,
            "trigger": {"type": "email", "address": "invoices@company.com"},
            "created_at": now - timedelta(days=1),
            "last_modified": now - timedelta(days=1),
        },
        {
            "name": "Data Backup",
            "description": "Automated daily backup of critical data",
            "status": "active",
            "category": "Operations",
            "tags": ["backup", "data", "maintenance"],
            "nodes": backup_nodes,
            "edges": backup_edges,
            "schedule": {"type": "daily", "time": "02:00"},
            "version": "2.1.0",
            "runs": 89,
            "success_rate": 98.9,
            "created_at": now - timedelta(days=30),
            "last_modified": now - timedelta(hours=6),
        },
    ]


def _finished_steps(
    workflow: Workflow, started_at: datetime, durations: list[int]
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    steps: list[dict[str, Any]] = []
    logs: list[dict[str, Any]] = []
    cursor = started_at
    for index, (node, duration) in enumerate(zip(workflow.nodes, durations)):
        finished = cursor + timedelta(milliseconds=duration)
        steps.append(
            {
                "id": f"step-{index + 1}",
                "nodeId": node["id"],
                "nodeName": node["data"]["label"],
                "nodeType": node["type"],
                "status": "completed",
                "startedAt": serialize_timestamp(cursor),
                "completedAt": serialize_timestamp(finished),
                "duration": duration,
            }
        )
        logs.append(
            {
                "id": f"log-{index + 1}",
                "timestamp": serialize_timestamp(finished),
                "level": "info",
                "message": f"Completed: {node['data']['label']}",
                "nodeId": node["id"],
            }
        )
        cursor = finished
    return steps, logs


def _add_finished_execution(
    store: WorkflowStore,
    workflow: Workflow,
    *,
    started_at: datetime,
    durations: list[int],
    triggered_by: str,
    input_data: dict[str, Any],
    output_data: dict[str, Any],
) -> None:
    steps, logs = _finished_steps(workflow, started_at, durations)
    duration = sum(durations)
    store.add_execution(
        workflow,
        status="success",
        started_at=started_at,
        completed_at=started_at + timedelta(milliseconds=duration),
        duration=duration,
        triggered_by=triggered_by,
        input_data=input_data,
        output_data=output_data,
        steps=steps,
        logs=logs,
        metrics={
            "totalNodes": len(workflow.nodes),
            "successfulNodes": len(steps),
            "failedNodes": 0,
            "skippedNodes": 0,
            "retries": 0,
        },
        steps_completed=len(steps),
        total_steps=len(workflow.nodes),
    )


def load_sample_data(store: WorkflowStore) -> User:
    """Populate the store with the demo account and return it."""

    now = utcnow()
    user = store.create_user(
        DEMO_EMAIL,
        name="John Doe",
        password=DEMO_PASSWORD,
        image=DEMO_AVATAR,
        preferences={"theme": "light", "notifications": {"email": True, "browser": True}},
    )
    onboarding, social, leads, _invoices, backup = [
        store.create_workflow(user, **fields) for fields in _workflow_fixtures(now)
    ]

    _add_finished_execution(
        store,
        onboarding,
        started_at=now - timedelta(hours=2),
        durations=[1000, 45000, 30000, 29000],
        triggered_by="webhook",
        input_data={"customerEmail": "john@example.com", "customerName": "John Doe"},
        output_data={"emailsSent": 2, "success": True},
    )
    _add_finished_execution(
        store,
        social,
        started_at=now - timedelta(days=1),
        durations=[800, 12000, 3200, 4000],
        triggered_by="schedule",
        input_data={"topic": "Product update"},
        output_data={"postsPublished": 2, "success": True},
    )

    failed_at = now - timedelta(minutes=30)
    failed_steps, failed_logs = _finished_steps(leads, failed_at, [900])
    store.add_execution(
        leads,
        status="failed",
        started_at=failed_at,
        completed_at=failed_at + timedelta(seconds=31),
        duration=31000,
        triggered_by="webhook",
        input_data={"leadEmail": "jane@acme.io", "source": "website"},
        steps=failed_steps,
        logs=failed_logs
        + [
            {
                "id": "log-2",
                "timestamp": serialize_timestamp(failed_at + timedelta(seconds=31)),
                "level": "error",
                "message": "Database connection timeout",
                "nodeId": "2",
            }
        ],
        error={
            "message": "Database connection timeout",
            "code": "DB_TIMEOUT",
            "nodeId": "2",
            "timestamp": serialize_timestamp(failed_at + timedelta(seconds=31)),
        },
        steps_completed=1,
        total_steps=len(leads.nodes),
    )

    running_at = now - timedelta(minutes=5)
    running_steps, running_logs = _finished_steps(backup, running_at, [600, 95000])
    store.add_execution(
        backup,
        status="running",
        started_at=running_at,
        triggered_by="schedule",
        input_data={"target": "s3://backups/daily"},
        steps=running_steps,
        logs=running_logs,
        steps_completed=len(running_steps),
        total_steps=len(backup.nodes),
    )

    _add_finished_execution(
        store,
        backup,
        started_at=now - timedelta(days=1, hours=6),
        durations=[500, 180000, 42000, 63000],
        triggered_by="schedule",
        input_data={"target": "s3://backups/daily"},
        output_data={"archivedBytes": 734003200, "success": True},
    )

    return user
