"""Tests for the workflow REST API."""

from __future__ import annotations

import pytest


def _create(client, headers, **overrides):
    payload = {"name": "Pipeline", "description": "Moves data around"}
    payload.update(overrides)
    return client.post("/api/workflows", json=payload, headers=headers)


def test_workflow_roundtrip(client, auth_headers, user):
    create_response = _create(client, auth_headers, tags=["etl"], status="active")
    assert create_response.status_code == 201
    body = create_response.get_json()
    assert body["message"] == "Workflow created successfully"
    created = body["data"]
    assert created["name"] == "Pipeline"
    assert created["status"] == "inactive"
    assert created["runs"] == 0
    assert created["successRate"] == 0
    assert created["category"] == "General"
    assert created["version"] == "1.0.0"
    assert created["owner"] == {"id": user.id, "name": "Owner", "email": "owner@example.com"}

    detail_response = client.get(f"/api/workflows/{created['id']}", headers=auth_headers)
    assert detail_response.status_code == 200
    detail = detail_response.get_json()["data"]
    assert detail["workflow"] == {"nodes": [], "edges": []}
    assert detail["executions"] == {"recent": []}

    nodes = [{"id": "1", "type": "trigger", "data": {"label": "Start"}}]
    edges = [{"id": "e1-1", "source": "1", "target": "1"}]
    update_response = client.put(
        f"/api/workflows/{created['id']}",
        json={"nodes": nodes, "edges": edges, "status": "active", "trigger": None},
        headers=auth_headers,
    )
    assert update_response.status_code == 200
    updated = update_response.get_json()["data"]
    assert updated["nodes"] == nodes
    assert updated["status"] == "active"
    assert updated["lastModified"] >= created["lastModified"]

    refreshed = client.get(f"/api/workflows/{created['id']}", headers=auth_headers)
    assert refreshed.get_json()["data"]["workflow"]["edges"] == edges


def test_create_requires_name_and_description(client, auth_headers):
    response = client.post("/api/workflows", json={"name": "Only name"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.get_json()["code"] == "MISSING_FIELDS"


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "ab"},
        {"name": "  ab  "},
        {"tags": "not-a-list"},
        {"tags": [1, 2]},
        {"nodes": {"id": "1"}},
        {"isPublic": "yes"},
    ],
)
def test_create_rejects_invalid_fields(client, auth_headers, overrides):
    response = _create(client, auth_headers, **overrides)
    assert response.status_code == 400
    assert response.get_json()["code"] == "VALIDATION_ERROR"


def test_update_validates_name_and_status(client, auth_headers, user, workflow_factory):
    workflow = workflow_factory(user)

    short = client.put(f"/api/workflows/{workflow.id}", json={"name": "x"}, headers=auth_headers)
    assert short.status_code == 400
    assert short.get_json()["code"] == "VALIDATION_ERROR"

    bad_status = client.put(
        f"/api/workflows/{workflow.id}", json={"status": "paused"}, headers=auth_headers
    )
    assert bad_status.status_code == 400
    assert bad_status.get_json()["details"]["errors"]


def test_workflows_are_scoped_to_their_owner(
    client, auth_headers, user_factory, workflow_factory
):
    other = user_factory(email="other@example.com")
    foreign = workflow_factory(other, name="Not yours")

    assert client.get(f"/api/workflows/{foreign.id}", headers=auth_headers).status_code == 404
    assert (
        client.put(f"/api/workflows/{foreign.id}", json={"name": "Mine now"}, headers=auth_headers)
        .get_json()["code"]
        == "NOT_FOUND"
    )
    assert client.delete(f"/api/workflows/{foreign.id}", headers=auth_headers).status_code == 404

    listing = client.get("/api/workflows", headers=auth_headers).get_json()["data"]
    assert listing["workflows"] == []
    assert listing["pagination"]["total"] == 0


def test_delete_refuses_active_workflows(client, auth_headers, user, workflow_factory):
    workflow_id = workflow_factory(user, status="active").id

    response = client.delete(f"/api/workflows/{workflow_id}", headers=auth_headers)
    assert response.status_code == 409
    assert response.get_json()["code"] == "WORKFLOW_ACTIVE"

    client.put(f"/api/workflows/{workflow_id}", json={"status": "inactive"}, headers=auth_headers)
    deleted = client.delete(f"/api/workflows/{workflow_id}", headers=auth_headers)
    assert deleted.status_code == 200
    assert client.get(f"/api/workflows/{workflow_id}", headers=auth_headers).status_code == 404


def test_deleting_a_workflow_removes_its_executions(
    client, auth_headers, user, workflow_factory
):
    workflow = workflow_factory(user, nodes=[{"id": "1", "type": "trigger"}])
    run = client.post(f"/api/workflows/{workflow.id}/execute", json={}, headers=auth_headers)
    execution_id = run.get_json()["data"]["id"]

    assert client.delete(f"/api/workflows/{workflow.id}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/executions/{execution_id}", headers=auth_headers).status_code == 404


@pytest.fixture()
def catalogue(user, workflow_factory):
    return [
        workflow_factory(
            user,
            name="Customer Onboarding",
            description="Welcome new customers",
            status="active",
            category="Customer Management",
            tags=["onboarding", "email"],
            runs=45,
            success_rate=96.8,
        ),
        workflow_factory(
            user,
            name="Lead Qualification",
            description="Score incoming leads",
            status="error",
            category="Sales",
            tags=["crm"],
            runs=23,
            success_rate=78.3,
        ),
        workflow_factory(
            user,
            name="Invoice Processing",
            description="Validate invoices by email",
            category="Finance",
            tags=["invoice"],
        ),
    ]


def test_list_filters_search_and_stats(client, auth_headers, catalogue):
    response = client.get("/api/workflows?search=EMAIL", headers=auth_headers)
    assert response.status_code == 200
    data = response.get_json()["data"]
    names = sorted(workflow["name"] for workflow in data["workflows"])
    assert names == ["Customer Onboarding", "Invoice Processing"]
    assert data["stats"]["total"] == 2
    assert data["stats"]["active"] == 1
    assert data["stats"]["inactive"] == 1
    assert data["stats"]["totalRuns"] == 45
    assert data["stats"]["avgSuccessRate"] == pytest.approx(48.4)
    assert data["filters"]["categories"] == ["Customer Management", "Finance", "Sales"]
    assert data["filters"]["statuses"] == ["active", "inactive", "error"]

    by_status = client.get("/api/workflows?status=error", headers=auth_headers).get_json()["data"]
    assert [workflow["name"] for workflow in by_status["workflows"]] == ["Lead Qualification"]

    by_category = client.get(
        "/api/workflows?category=Finance", headers=auth_headers
    ).get_json()["data"]
    assert [workflow["name"] for workflow in by_category["workflows"]] == ["Invoice Processing"]


def test_list_sorts_and_paginates(client, auth_headers, catalogue):
    response = client.get(
        "/api/workflows?sortBy=runs&sortOrder=asc&limit=2&page=1", headers=auth_headers
    )
    data = response.get_json()["data"]
    assert [workflow["runs"] for workflow in data["workflows"]] == [0, 23]
    assert data["pagination"] == {
        "page": 1,
        "limit": 2,
        "total": 3,
        "totalPages": 2,
        "hasNext": True,
        "hasPrev": False,
    }

    second = client.get(
        "/api/workflows?sortBy=runs&sortOrder=asc&limit=2&page=2", headers=auth_headers
    ).get_json()["data"]
    assert [workflow["runs"] for workflow in second["workflows"]] == [45]
    assert second["pagination"]["hasNext"] is False
    assert second["pagination"]["hasPrev"] is True

    by_name = client.get("/api/workflows?sortBy=name&sortOrder=asc", headers=auth_headers)
    assert [workflow["name"] for workflow in by_name.get_json()["data"]["workflows"]] == [
        "Customer Onboarding",
        "Invoice Processing",
        "Lead Qualification",
    ]


def test_list_clamps_page_arguments(client, auth_headers, catalogue):
    data = client.get(
        "/api/workflows?page=0&limit=1000&sortBy=bogus", headers=auth_headers
    ).get_json()["data"]
    assert data["pagination"]["page"] == 1
    assert data["pagination"]["limit"] == 100
    assert len(data["workflows"]) == 3


def test_repeated_reads_are_identical(client, auth_headers, user, workflow_factory):
    workflow = workflow_factory(user, nodes=[{"id": "1", "type": "trigger"}])
    client.post(f"/api/workflows/{workflow.id}/execute", json={}, headers=auth_headers)

    first = client.get(f"/api/workflows/{workflow.id}", headers=auth_headers)
    second = client.get(f"/api/workflows/{workflow.id}", headers=auth_headers)
    assert first.get_json()["data"] == second.get_json()["data"]
