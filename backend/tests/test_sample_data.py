"""Scenario tests against the demo data loaded at start-up."""

from __future__ import annotations

import pytest

from app import Config, create_app
from backend.app.extensions import db


class SeededConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite+pysqlite:///:memory:"
    SEED_SAMPLE_DATA = True
    SIMULATE_STEP_DELAY = False
    RATELIMIT_ENABLED = False


@pytest.fixture(scope="module")
def app():
    app = create_app(SeededConfig)
    ctx = app.app_context()
    ctx.push()
    yield app
    db.session.remove()
    ctx.pop()


@pytest.fixture(autouse=True)
def cleanup_records():
    yield


@pytest.fixture()
def demo_headers(client):
    response = client.post(
        "/api/auth/signin", json={"email": "john@example.com", "password": "password"}
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.get_json()['data']['token']}"}


def test_demo_workflows_are_listed(client, demo_headers):
    data = client.get("/api/workflows", headers=demo_headers).get_json()["data"]

    assert data["pagination"]["total"] == 5
    assert data["stats"]["active"] == 3
    assert data["stats"]["inactive"] == 1
    assert data["stats"]["error"] == 1
    assert data["stats"]["totalRuns"] == 45 + 128 + 23 + 89
    # Lead Qualification was modified most recently
    assert data["workflows"][0]["name"] == "Lead Qualification"
    assert data["workflows"][0]["lastError"]["code"] == "DB_TIMEOUT"


def test_active_demo_workflow_cannot_be_deleted(client, demo_headers):
    response = client.delete("/api/workflows/1", headers=demo_headers)

    assert response.status_code == 409
    assert response.get_json()["code"] == "WORKFLOW_ACTIVE"


def test_demo_executions_cover_every_outcome(client, demo_headers):
    data = client.get("/api/executions", headers=demo_headers).get_json()["data"]

    assert data["stats"]["total"] == 5
    assert data["stats"]["success"] == 3
    assert data["stats"]["failed"] == 1
    assert data["stats"]["running"] == 1

    running = next(item for item in data["executions"] if item["status"] == "running")
    response = client.delete(f"/api/executions/{running['id']}", headers=demo_headers)
    assert response.status_code == 409


def test_demo_workflow_detail_lists_recent_runs(client, demo_headers):
    detail = client.get("/api/workflows/1", headers=demo_headers).get_json()["data"]

    assert detail["name"] == "Customer Onboarding"
    assert len(detail["workflow"]["nodes"]) == 4
    assert len(detail["workflow"]["edges"]) == 3
    assert detail["executions"]["recent"][0]["triggeredBy"] == "webhook"
