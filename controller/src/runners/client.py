"""
Docker client initialization.
"""

import logging
from typing import Optional

import docker
from docker.errors import DockerException

from controller.src.config import get_settings
from controller.src.models.context import RunContext
from controller.src.errors import StepError

logger = logging.getLogger(__name__)

def create_client(base_url: Optional[str] = None) -> docker.DockerClient:
    """Connect to the Docker daemon and check it answers."""
    try:
        if base_url:
            client = docker.DockerClient(base_url=base_url)
            logger.info(f"Connected to Docker daemon at {base_url}")
        else:
            client = docker.from_env()
            logger.info("Connected to Docker daemon from environment")

        client.ping()
        return client
    except DockerException as e:
        raise StepError(f"Docker daemon unavailable: {e}")

def client_for(context: RunContext) -> docker.DockerClient:
    """Get the run's own Docker client, creating it on first use."""
    if context.docker is None:
        context.docker = create_client(get_settings().docker_base_url)
    return context.docker

def close_client(context: RunContext):
    if context.docker is None:
        return
    try:
        context.docker.close()
    except DockerException as e:
        logger.warning(f"Failed to close Docker client for run {context.run_id}: {e}")
    context.docker = None
