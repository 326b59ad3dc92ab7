"""Tests for pipeline endpoints."""

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

def test_health(client):
    response = client.get("/health")
    assert response.json() == {"status": "healthy", "service": "dockhand-api", "pipelines": 2}

def test_list_pipelines(client):
    response = client.get("/api/pipelines")

    assert response.status_code == 200
    assert response.json() == [
        {"name": "backend", "events": ["push", "manual"], "branches": ["main"], "steps": ["Build"]},
        {"name": "frontend", "events": ["push"], "branches": ["main"], "steps": ["Build"]},
    ]

def test_dispatch(client, queued):
    response = client.post(
        "/api/pipelines/backend/dispatch",
        json={"ref": "release-1", "commit_sha": "abc123", "triggered_by": "octocat"},
    )

    assert response.status_code == 202
    assert response.json() == {"status": "queued", "pipeline": "backend", "run_id": "run-backend", "steps": 1}

    event = queued.await_args.args[2]
    assert event.kind.value == "manual"
    assert event.ref == "release-1"
    assert event.actor == "octocat"

def test_dispatch_unknown_pipeline(client, queued):
    response = client.post("/api/pipelines/nope/dispatch", json={})
    assert response.status_code == 404

def test_dispatch_without_manual_trigger(client, queued):
    response = client.post("/api/pipelines/frontend/dispatch", json={})

    assert response.status_code == 409
    queued.assert_not_awaited()

def test_run_not_found(client, db):
    result = MagicMock()
    result.scalar_one_or_none.return_value = None
    db.execute = AsyncMock(return_value=result)

    response = client.get("/api/pipelines/runs/3f1c2b9e-0000-4000-8000-000000000001")
    assert response.status_code == 404

def test_list_repositories(client, db):
    repository = SimpleNamespace(
        id=uuid.uuid4(), name="app", full_name="example/app",
        clone_url="https://github.com/example/app.git", created_at=None,
    )
    result = MagicMock()
    result.scalars.return_value.all.return_value = [repository]
    db.execute = AsyncMock(return_value=result)

    response = client.get("/api/pipelines/repositories")

    assert response.status_code == 200
    assert [r["full_name"] for r in response.json()] == ["example/app"]

def test_stats(client, db):
    by_status, by_pipeline, repositories = MagicMock(), MagicMock(), MagicMock()
    by_status.all.return_value = [("succeeded", 2), ("failed", 1)]
    by_pipeline.all.return_value = [("backend", 3)]
    repositories.scalar.return_value = 1
    db.execute = AsyncMock(side_effect=[by_status, by_pipeline, repositories])

    response = client.get("/api/pipelines/stats")

    assert response.json() == {
        "repositories": 1,
        "runs": {"succeeded": 2, "failed": 1},
        "pipelines": {"backend": 3},
        "total_runs": 3,
    }
