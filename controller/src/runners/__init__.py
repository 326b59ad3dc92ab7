from controller.src.runners.client import (
    create_client,
    client_for,
    close_client,
)
from controller.src.runners.container import (
    CONTAINER_WORKSPACE,
    build_container_name,
    container_path,
    run_in_container,
)
from controller.src.runners.local import (
    ProcessResult,
    run_command,
    tail_output,
)

__all__ = [
    "create_client",
    "client_for",
    "close_client",
    "CONTAINER_WORKSPACE",
    "build_container_name",
    "container_path",
    "run_in_container",
    "ProcessResult",
    "run_command",
    "tail_output",
]
