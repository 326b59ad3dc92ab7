"""Shared fixtures for API tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from api.src.db.database import get_db
from api.src.main import app
from controller.src.services.pipeline_parser import parse_pipeline_dict

@pytest.fixture
def pipelines():
    backend = parse_pipeline_dict({
        "name": "backend",
        "on": {"push": {"branches": ["main"], "paths": ["backend/**"]}, "manual": None},
        "steps": [{"name": "Build", "run": "mvn -B package"}],
    })
    frontend = parse_pipeline_dict({
        "name": "frontend",
        "on": {"push": {"branches": ["main"], "paths": ["frontend/**"]}},
        "steps": [{"name": "Build", "run": "npm ci && npm run build"}],
    })
    return {"backend": backend, "frontend": frontend}

@pytest.fixture
def db():
    return MagicMock()

@pytest.fixture
def client(pipelines, db):
    async def override_get_db():
        yield db

    app.state.pipelines = pipelines
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def queued(monkeypatch):
    """Replace run creation and queueing; returns the mock."""
    async def fake_queue_run(db, definition, event, repository=None):
        return {"pipeline": definition.name, "run_id": f"run-{definition.name}", "steps": len(definition.steps)}

    mock = AsyncMock(side_effect=fake_queue_run)
    monkeypatch.setattr("api.src.routes.webhooks.queue_run", mock)
    monkeypatch.setattr("api.src.routes.pipelines.queue_run", mock)
    monkeypatch.setattr("api.src.routes.webhooks.get_or_create_repository", AsyncMock(return_value=None))
    return mock
