"""Shared fixtures for controller tests."""

from unittest.mock import MagicMock

import pytest

from controller.src.models.context import Credentials, RunContext
from controller.src.models.pipeline import Event, EventKind
from controller.src.services.pipeline_parser import parse_pipeline_dict

@pytest.fixture
def credentials():
    return Credentials(registry="ghcr.io", username="octocat", token="s3cr3t")

@pytest.fixture
def push_event():
    return Event(
        kind=EventKind.PUSH,
        ref="refs/heads/main",
        sha="abc123",
        actor="octocat",
        changed_paths=("backend/pom.xml",),
    )

@pytest.fixture
def make_definition():
    def _make(steps, on=None, env=None, name="test"):
        return parse_pipeline_dict({
            "name": name,
            "on": on or {"push": {"branches": ["main"]}, "manual": None},
            "env": env or {},
            "steps": steps,
        })
    return _make

@pytest.fixture
def make_context(tmp_path, credentials, push_event):
    def _make(definition, event=None):
        return RunContext(
            definition=definition,
            event=event or push_event,
            credentials=credentials,
            workspace=str(tmp_path),
        )
    return _make

@pytest.fixture
def docker_client():
    """A Docker client double that builds and pushes successfully."""
    client = MagicMock()
    image = MagicMock(id="sha256:image")
    client.images.build.return_value = (image, [{"stream": "Successfully built image\n"}])
    client.images.push.side_effect = lambda repository, tag, stream, decode: iter([
        {"status": "Pushing"},
        {"aux": {"Tag": tag, "Digest": "sha256:digest", "Size": 1}},
    ])
    return client
