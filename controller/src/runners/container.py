"""
Run shell steps inside an ephemeral container.

The run's workspace is bind-mounted at /workspace so container steps see
the same checkout (and leave their outputs in it) as local steps.
"""

import hashlib
import logging
from typing import Dict, Optional

import requests
from docker.errors import APIError, ImageNotFound

from controller.src.errors import StepError
from controller.src.runners.local import ProcessResult, shell_command, tail_output

logger = logging.getLogger(__name__)

CONTAINER_WORKSPACE = "/workspace"
_MEMORY_LIMIT = "2g"

def build_container_name(run_id: str, step_order: int, step_name: str) -> str:
    """Generate a unique, docker-safe container name."""
    safe_name = step_name.lower().replace(" ", "-").replace("_", "-")
    safe_name = "".join(c for c in safe_name if c.isalnum() or c == "-")
    safe_name = safe_name[:20]

    run_hash = hashlib.md5(run_id.encode()).hexdigest()[:8]

    return f"dh-{run_hash}-{step_order}-{safe_name}"

def container_path(workspace: str, host_path: str) -> str:
    """Translate a path under the host workspace to its in-container path."""
    relative = host_path[len(workspace):].lstrip("/")
    return f"{CONTAINER_WORKSPACE}/{relative}" if relative else CONTAINER_WORKSPACE

def run_in_container(
    client,
    run_id: str,
    step_order: int,
    step_name: str,
    image: str,
    command: str,
    workspace: str,
    working_dir: str = CONTAINER_WORKSPACE,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[int] = None,
) -> ProcessResult:
    """Run `command` in `image` and return its exit code and logs."""
    name = build_container_name(run_id, step_order, step_name)
    logger.info(f"Starting container {name} from {image}")

    try:
        container = client.containers.run(
            image,
            command=shell_command(command),
            name=name,
            working_dir=working_dir,
            environment=env or {},
            volumes={workspace: {"bind": CONTAINER_WORKSPACE, "mode": "rw"}},
            labels={
                "app": "dockhand",
                "run-id": run_id,
                "step-order": str(step_order),
            },
            mem_limit=_MEMORY_LIMIT,
            detach=True,
        )
    except ImageNotFound:
        raise StepError(f"Image not found: {image}", exit_code=125)
    except APIError as e:
        raise StepError(f"Failed to start container: {e.explanation or e}", exit_code=125)

    try:
        try:
            status = container.wait(timeout=timeout)
        except (requests.exceptions.ReadTimeout, requests.exceptions.ConnectionError):
            container.kill()
            logs = container.logs(stdout=True, stderr=True).decode("utf-8", errors="replace")
            raise StepError(
                f"Container {name} timed out after {timeout}s",
                exit_code=124,
                output=tail_output(logs),
            )

        logs = container.logs(stdout=True, stderr=True).decode("utf-8", errors="replace")
        return ProcessResult(
            exit_code=status.get("StatusCode", 1),
            output=tail_output(logs),
        )
    finally:
        try:
            container.remove(force=True)
        except APIError as e:
            logger.warning(f"Failed to remove container {name}: {e}")
