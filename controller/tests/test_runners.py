"""Tests for local and container step runners."""

from unittest.mock import MagicMock

import pytest
import requests
from docker.errors import DockerException, ImageNotFound

from controller.src.errors import StepError
from controller.src.runners import client as client_module
from controller.src.runners.container import build_container_name, container_path, run_in_container
from controller.src.runners.local import run_command, tail_output

def test_run_command_captures_combined_output(tmp_path):
    result = run_command("echo out && echo err >&2", cwd=str(tmp_path))
    assert result.exit_code == 0
    assert result.output.splitlines() == ["out", "err"]

def test_run_command_returns_nonzero_exit(tmp_path):
    result = run_command("exit 7", cwd=str(tmp_path))
    assert result.exit_code == 7

def test_run_command_stops_at_first_failing_line(tmp_path):
    result = run_command("false\necho unreachable", cwd=str(tmp_path))
    assert result.exit_code == 1
    assert "unreachable" not in result.output

def test_run_command_timeout(tmp_path):
    with pytest.raises(StepError, match="timed out") as exc:
        run_command("sleep 2", cwd=str(tmp_path), timeout=1)
    assert exc.value.exit_code == 124

def test_tail_output():
    output = "\n".join(str(i) for i in range(10))
    assert tail_output(output, lines=3).splitlines() == ["... (7 lines omitted) ...", "7", "8", "9"]
    assert tail_output("short", lines=3) == "short"

def test_container_name_is_docker_safe():
    name = build_container_name("run-1", 2, "Build & Test_Backend!")
    assert name.startswith("dh-")
    assert name.endswith("-2-build--test-backend")

def test_container_path():
    assert container_path("/tmp/ws", "/tmp/ws") == "/workspace"
    assert container_path("/tmp/ws", "/tmp/ws/backend") == "/workspace/backend"

def _container(status=0, logs=b"ok\n"):
    container = MagicMock()
    container.wait.return_value = {"StatusCode": status}
    container.logs.return_value = logs
    return container

def test_run_in_container():
    client = MagicMock()
    container = _container(status=0, logs=b"BUILD SUCCESS\n")
    client.containers.run.return_value = container

    result = run_in_container(
        client, "run-1", 0, "Test", "maven:3", "mvn test", "/tmp/ws",
        working_dir="/workspace/backend", env={"A": "1"}, timeout=30,
    )

    assert result.exit_code == 0
    assert result.output == "BUILD SUCCESS\n"
    args, kwargs = client.containers.run.call_args
    assert args == ("maven:3",)
    assert kwargs["command"] == ["/bin/sh", "-e", "-c", "mvn test"]
    assert kwargs["volumes"] == {"/tmp/ws": {"bind": "/workspace", "mode": "rw"}}
    assert kwargs["detach"] is True
    container.wait.assert_called_once_with(timeout=30)
    container.remove.assert_called_once_with(force=True)

def test_run_in_container_nonzero_exit():
    client = MagicMock()
    client.containers.run.return_value = _container(status=2, logs=b"FAIL\n")

    result = run_in_container(client, "run-1", 0, "Test", "maven:3", "mvn test", "/tmp/ws")
    assert result.exit_code == 2

def test_run_in_container_timeout_kills_container():
    client = MagicMock()
    container = _container()
    container.wait.side_effect = requests.exceptions.ReadTimeout()
    client.containers.run.return_value = container

    with pytest.raises(StepError, match="timed out") as exc:
        run_in_container(client, "run-1", 0, "Test", "maven:3", "mvn test", "/tmp/ws", timeout=1)

    assert exc.value.exit_code == 124
    container.kill.assert_called_once()
    container.remove.assert_called_once_with(force=True)

def test_run_in_container_missing_image():
    client = MagicMock()
    client.containers.run.side_effect = ImageNotFound("no such image")

    with pytest.raises(StepError, match="Image not found") as exc:
        run_in_container(client, "run-1", 0, "Test", "nope:1", "true", "/tmp/ws")
    assert exc.value.exit_code == 125

def test_client_is_created_once_per_run(make_definition, make_context, monkeypatch):
    created = []

    def fake_create(base_url=None):
        created.append(MagicMock())
        return created[-1]

    monkeypatch.setattr(client_module, "create_client", fake_create)
    context = make_context(make_definition([{"name": "Build", "run": "make"}]))

    first = client_module.client_for(context)
    assert client_module.client_for(context) is first
    assert len(created) == 1

    client_module.close_client(context)
    first.close.assert_called_once()
    assert context.docker is None

def test_unreachable_daemon(monkeypatch):
    monkeypatch.setattr(client_module.docker, "from_env", MagicMock(side_effect=DockerException("connection refused")))

    with pytest.raises(StepError, match="Docker daemon unavailable"):
        client_module.create_client()
