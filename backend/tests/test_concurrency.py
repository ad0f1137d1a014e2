"""Concurrent requests against the shared in-memory store."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from app import Config, create_app
from backend.app.extensions import db

NODES = [
    {"id": "1", "type": "trigger", "data": {"label": "Start"}},
    {"id": "2", "type": "email", "data": {"label": "Notify"}},
    {"id": "3", "type": "delay"},
]
WORKERS = 4
ROUNDS = 5


class ThreadedConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite+pysqlite:///:memory:"
    SEED_SAMPLE_DATA = False
    SIMULATE_STEP_DELAY = True
    STEP_DURATION_MIN_MS = 1
    STEP_DURATION_MAX_MS = 3
    RATELIMIT_ENABLED = False


@pytest.fixture(scope="module")
def app():
    app = create_app(ThreadedConfig)
    ctx = app.app_context()
    ctx.push()
    yield app
    db.session.remove()
    ctx.pop()


def test_parallel_executes_and_reads_leave_no_running_executions(
    app, user, auth_headers, workflow_factory
):
    workflow_id = workflow_factory(user, nodes=NODES).id
    headers = dict(auth_headers)
    # Worker threads push their own app contexts; keep this one off the connection.
    db.session.close()

    def execute_many():
        client = app.test_client()
        return [
            client.post(
                f"/api/workflows/{workflow_id}/execute", json={"testMode": True}, headers=headers
            )
            for _ in range(ROUNDS)
        ]

    def read_many():
        client = app.test_client()
        return [client.get("/api/executions", headers=headers) for _ in range(ROUNDS)]

    with ThreadPoolExecutor(max_workers=WORKERS * 2) as pool:
        runs = [pool.submit(execute_many) for _ in range(WORKERS)]
        reads = [pool.submit(read_many) for _ in range(WORKERS)]
        executed = [response for future in runs for response in future.result()]
        listed = [response for future in reads for response in future.result()]

    assert [response.status_code for response in listed] == [200] * len(listed)
    assert [response.status_code for response in executed] == [200] * len(executed)
    for response in executed:
        execution = response.get_json()["data"]
        assert execution["status"] == "success"
        assert len(execution["steps"]) == len(NODES)
        assert execution["stepsCompleted"] == len(NODES)

    client = app.test_client()
    data = client.get("/api/executions", headers=headers).get_json()["data"]
    assert data["stats"]["total"] == WORKERS * ROUNDS
    assert data["stats"]["running"] == 0
    assert data["stats"]["success"] == WORKERS * ROUNDS
