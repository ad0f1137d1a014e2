"""Tests for the user profile endpoints."""

from __future__ import annotations

import pytest


def test_profile_reports_identity_and_stats(client, store, auth_headers, user, workflow_factory):
    store.update_profile(user, preferences={"theme": "dark"})
    first = workflow_factory(user, success_rate=90.0, runs=10)
    workflow_factory(user, success_rate=70.0, runs=5)
    store.add_execution(first, status="success")

    response = client.get("/api/user/profile", headers=auth_headers)
    assert response.status_code == 200
    profile = response.get_json()["data"]
    assert profile["email"] == "owner@example.com"
    assert profile["name"] == "Owner"
    assert profile["role"] == "user"
    assert profile["subscription"] == "free"
    assert profile["preferences"] == {"theme": "dark"}
    assert profile["stats"]["workflowsCreated"] == 2
    assert profile["stats"]["totalExecutions"] == 1
    assert profile["stats"]["successRate"] == pytest.approx(80.0)
    assert profile["stats"]["joinedAt"].endswith("Z")
    assert profile["stats"]["lastLogin"] is not None


def test_profile_update_merges_preferences(client, store, auth_headers, user):
    store.update_profile(user, preferences={"notifications": {"email": True, "browser": True}})

    response = client.put(
        "/api/user/profile",
        json={
            "name": "  Renamed  ",
            "preferences": {"notifications": {"email": False}, "theme": "dark"},
        },
        headers=auth_headers,
    )
    assert response.status_code == 200
    profile = response.get_json()["data"]
    assert profile["name"] == "Renamed"
    assert profile["preferences"] == {
        "notifications": {"email": False, "browser": True},
        "theme": "dark",
    }


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "A"},
        {"name": 42},
        {"preferences": ["dark"]},
    ],
)
def test_profile_update_validates_input(client, auth_headers, payload):
    response = client.put("/api/user/profile", json=payload, headers=auth_headers)
    assert response.status_code == 400
    assert response.get_json()["code"] == "VALIDATION_ERROR"
