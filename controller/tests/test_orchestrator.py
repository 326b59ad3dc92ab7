"""End-to-end tests for pipeline runs."""

import asyncio
import os
from unittest.mock import MagicMock

import pytest
from docker.errors import APIError

from controller.src.config import Settings
from controller.src.models.pipeline import Event, EventKind
from controller.src.models.step import RunStatus
from controller.src.services import orchestrator
from controller.src.services.orchestrator import execute_pipeline, run_pipeline

SHA = "abc123"

STEPS = [
    {"name": "Checkout", "uses": "checkout"},
    {
        "name": "Build with Maven",
        "uses": "build-artifact",
        "with": {
            "runtime": "java",
            "working-directory": "backend",
            "command": "mkdir -p target && echo jar > target/app-0.1.jar",
        },
    },
    {
        "name": "Log in to registry",
        "uses": "registry-login",
        "with": {"username": "${{ event.actor }}", "password": "${{ secrets.REGISTRY_TOKEN }}"},
    },
    {"name": "Extract image metadata", "id": "meta", "uses": "image-metadata", "with": {"image": "${{ IMAGE }}"}},
    {
        "name": "Build and push image",
        "id": "push",
        "uses": "build-push",
        "with": {"context": "backend", "runtime": "java", "tags": "${{ steps.meta.tags }}"},
    },
]

class RecordingReporter:
    def __init__(self):
        self.calls = []

    def run_started(self, context, started_at):
        self.calls.append(("run_started", None))

    def step_started(self, context, step_order, started_at):
        self.calls.append(("step_started", step_order))

    def step_finished(self, context, result):
        self.calls.append(("step_finished", result.step_order))

    def run_finished(self, context, finished_at):
        self.calls.append(("run_finished", context.status.value))

    def run_ended(self, run_id, status, finished_at):
        self.calls.append(("run_ended", status.value))

@pytest.fixture
def backend(make_definition):
    return make_definition(
        STEPS,
        on={"push": {"branches": ["main"], "paths": ["backend/**"]}, "manual": None},
        env={"IMAGE": "ghcr.io/Example/App-Backend"},
        name="backend",
    )

@pytest.fixture
def source_tree(tmp_path):
    (tmp_path / "backend").mkdir()
    return tmp_path

@pytest.fixture(autouse=True)
def fake_docker(monkeypatch, docker_client):
    monkeypatch.setattr("controller.src.runners.client.create_client", lambda base_url=None: docker_client)
    return docker_client

def _push(ref="refs/heads/main", paths=("backend/pom.xml",)):
    return Event(kind=EventKind.PUSH, ref=ref, sha=SHA, actor="octocat", changed_paths=paths)

def test_push_to_main_builds_and_publishes(backend, credentials, source_tree, fake_docker):
    outcome = run_pipeline(backend, _push(), credentials, workspace=str(source_tree))

    assert outcome.succeeded
    assert outcome.failed_step is None
    assert len(outcome.results) == len(STEPS)
    assert outcome.artifact.path == str(source_tree / "backend" / "target" / "app-0.1.jar")
    assert outcome.artifact.tag == SHA

    pushed = [c.args[0] + ":" + c.kwargs["tag"] for c in fake_docker.images.push.call_args_list]
    assert pushed == [
        "ghcr.io/example/app-backend:abc123",
        "ghcr.io/example/app-backend:latest",
    ]
    fake_docker.login.assert_called_once_with(username="octocat", password="s3cr3t", registry="ghcr.io")
    fake_docker.close.assert_called_once()

def test_feature_branch_is_not_triggered(backend, credentials, source_tree, fake_docker):
    reporter = RecordingReporter()

    outcome = run_pipeline(backend, _push(ref="refs/heads/feature-x"), credentials, workspace=str(source_tree), reporter=reporter)

    assert outcome is None
    assert reporter.calls == []
    fake_docker.images.build.assert_not_called()

def test_rejected_login_stops_before_build(backend, credentials, source_tree, fake_docker):
    fake_docker.login.side_effect = APIError("unauthorized")

    outcome = run_pipeline(backend, _push(), credentials, workspace=str(source_tree))

    assert outcome.status == RunStatus.FAILED
    assert len(outcome.results) == 3
    assert outcome.failed_step.name == "Log in to registry"
    assert outcome.failed_step.error_kind == "AuthError"
    fake_docker.images.build.assert_not_called()
    fake_docker.images.push.assert_not_called()

def test_build_failure_skips_publish(make_definition, credentials, source_tree, fake_docker):
    steps = [dict(step) for step in STEPS]
    steps[1] = {**steps[1], "with": {**steps[1]["with"], "command": "echo 'BUILD FAILURE' && exit 1"}}
    definition = make_definition(steps, env={"IMAGE": "ghcr.io/example/app"})

    outcome = run_pipeline(definition, _push(), credentials, workspace=str(source_tree))

    assert not outcome.succeeded
    assert outcome.failed_step.error_kind == "BuildError"
    assert "BUILD FAILURE" in outcome.failed_step.output
    assert outcome.artifact is None
    fake_docker.login.assert_not_called()

def test_reporter_sees_every_transition(backend, credentials, source_tree):
    reporter = RecordingReporter()

    run_pipeline(backend, _push(), credentials, workspace=str(source_tree), reporter=reporter)

    assert reporter.calls[0] == ("run_started", None)
    assert reporter.calls[1:3] == [("step_started", 0), ("step_finished", 0)]
    assert reporter.calls[-1] == ("run_finished", "succeeded")

def test_concurrent_runs_have_separate_contexts(backend, credentials, tmp_path):
    first, second = tmp_path / "one", tmp_path / "two"
    for workspace in (first, second):
        (workspace / "backend").mkdir(parents=True)

    a = run_pipeline(backend, _push(), credentials, workspace=str(first))
    b = run_pipeline(backend, _push(), credentials, workspace=str(second))

    assert a.run_id != b.run_id
    assert a.artifact.path.startswith(str(first))
    assert b.artifact.path.startswith(str(second))

def test_queued_job_runs_and_cleans_up(backend, tmp_path, monkeypatch):
    settings = Settings(workspace_root=str(tmp_path), registry_token="s3cr3t", registry_actor="octocat")
    monkeypatch.setattr(orchestrator, "get_settings", lambda: settings)
    run_id = "3f1c2b9e-0000-4000-8000-000000000001"

    def fake_checkout(url, ref, dest):
        os.makedirs(os.path.join(dest, "backend"), exist_ok=True)

    monkeypatch.setattr("controller.src.services.actions.clone_repository", fake_checkout)

    event = _push().model_copy(update={"repository": "https://github.com/example/app.git"})
    job = {
        "run_id": run_id,
        "pipeline": "backend",
        "event": event.model_dump(mode="json"),
        "queued_at": "2024-01-01T00:00:00+00:00",
    }

    outcome = asyncio.run(execute_pipeline(job, {"backend": backend}))

    assert outcome.succeeded
    assert outcome.run_id == run_id
    assert not os.path.exists(os.path.join(str(tmp_path), run_id))

def test_queued_job_for_unknown_pipeline(backend):
    job = {"run_id": "x", "pipeline": "nope", "event": {"kind": "push", "ref": "main"}, "queued_at": ""}

    with pytest.raises(KeyError):
        asyncio.run(execute_pipeline(job, {"backend": backend}))

def test_reporter_failure_still_finishes_run(backend, credentials, source_tree):
    class BrokenReporter(RecordingReporter):
        def step_finished(self, context, result):
            super().step_finished(context, result)
            raise RuntimeError("db down")

    reporter = BrokenReporter()

    outcome = run_pipeline(backend, _push(), credentials, workspace=str(source_tree), reporter=reporter)

    assert outcome.succeeded
    assert len(outcome.results) == len(STEPS)
    assert reporter.calls[-1] == ("run_finished", "succeeded")

def test_unexpected_error_marks_run_failed(backend, credentials, source_tree, monkeypatch):
    reporter = RecordingReporter()

    def explode(steps, context, reporter):
        raise RuntimeError("worker thread died")

    monkeypatch.setattr(orchestrator, "execute_steps", explode)

    with pytest.raises(RuntimeError):
        run_pipeline(backend, _push(), credentials, workspace=str(source_tree), reporter=reporter)

    assert reporter.calls[-1] == ("run_finished", "failed")

def test_queued_run_that_does_not_match_is_closed(backend, credentials, source_tree):
    reporter = RecordingReporter()

    outcome = run_pipeline(
        backend, _push(ref="refs/heads/feature-x"), credentials,
        workspace=str(source_tree), run_id="queued-run", reporter=reporter,
    )

    assert outcome is None
    assert reporter.calls == [("run_ended", "skipped")]

def test_rerun_pushes_same_tags_again(backend, credentials, source_tree, fake_docker):
    images = [MagicMock(id="sha256:first"), MagicMock(id="sha256:second")]
    fake_docker.images.build.side_effect = [(image, []) for image in images]

    first = run_pipeline(backend, _push(), credentials, workspace=str(source_tree))
    second = run_pipeline(backend, _push(), credentials, workspace=str(source_tree))

    assert first.succeeded and second.succeeded
    pushed = [c.args[0] + ":" + c.kwargs["tag"] for c in fake_docker.images.push.call_args_list]
    tags = ["ghcr.io/example/app-backend:abc123", "ghcr.io/example/app-backend:latest"]
    assert pushed == tags + tags

    built_tags = [c.kwargs["tag"] for c in fake_docker.images.build.call_args_list]
    assert built_tags == ["ghcr.io/example/app-backend:abc123"] * 2
    for image in images:
        image.tag.assert_called_once_with("ghcr.io/example/app-backend", tag="latest")
