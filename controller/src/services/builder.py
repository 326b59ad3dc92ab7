"""
Artifact builder - runs a language build tool and locates its output.
"""

import glob
import logging
import os
from typing import Dict, Optional, Tuple

from controller.src.models.step import Artifact
from controller.src.errors import BuildError, StepError
from controller.src.runners.local import run_command

logger = logging.getLogger(__name__)

# Build tools leave these next to the real artifact
IGNORED_SUFFIXES = (".original", "-sources.jar", "-javadoc.jar", "-tests.jar")

def locate_artifact(source_dir: str, pattern: str) -> str:
    """Resolve the artifact glob to exactly one path under source_dir."""
    matches = sorted(
        path for path in glob.glob(os.path.join(source_dir, pattern))
        if not path.endswith(IGNORED_SUFFIXES)
    )

    if not matches:
        raise BuildError(f"Build produced no artifact matching '{pattern}'")

    if len(matches) > 1:
        names = ", ".join(os.path.relpath(m, source_dir) for m in matches)
        raise BuildError(f"Artifact pattern '{pattern}' is ambiguous: {names}")

    return matches[0]

def build_artifact(
    source_dir: str,
    command: str,
    artifact_pattern: str,
    tag: str = "",
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[int] = None,
) -> Tuple[Artifact, str]:
    """
    Run the build command in source_dir.
    Returns the artifact and the build output; raises BuildError when the
    tool fails or produces nothing usable.
    """
    if not os.path.isdir(source_dir):
        raise BuildError(f"Source directory not found: {source_dir}")

    logger.info(f"Building artifact in {source_dir}: {command}")

    try:
        result = run_command(command, cwd=source_dir, env=env, timeout=timeout)
    except StepError as e:
        raise BuildError(str(e), exit_code=e.exit_code, output=e.output)

    if result.exit_code != 0:
        raise BuildError(
            f"Build command exited with status {result.exit_code}",
            exit_code=result.exit_code,
            output=result.output,
        )

    try:
        path = locate_artifact(source_dir, artifact_pattern)
    except BuildError as e:
        e.output = result.output
        raise

    artifact = Artifact(path=path, tag=tag or "latest")
    logger.info(f"Built artifact {path}")

    return artifact, result.output
