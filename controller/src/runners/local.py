"""
Local process execution for shell steps.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Dict, Optional

from controller.src.errors import StepError

logger = logging.getLogger(__name__)

MAX_OUTPUT_LINES = 1000  # Limit captured output per step

@dataclass
class ProcessResult:
    exit_code: int
    output: str

def tail_output(output: str, lines: int = MAX_OUTPUT_LINES) -> str:
    """Keep only the last `lines` lines of output."""
    all_lines = output.splitlines()
    if len(all_lines) <= lines:
        return output
    omitted = len(all_lines) - lines
    return "\n".join([f"... ({omitted} lines omitted) ..."] + all_lines[-lines:])

def shell_command(command: str) -> list:
    # -e so a multi-line script fails fast on the first failing line
    return ["/bin/sh", "-e", "-c", command]

def run_command(
    command: str,
    cwd: str,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[int] = None,
) -> ProcessResult:
    """
    Run a shell command and capture combined stdout/stderr.
    A non-zero exit is returned, not raised; timeouts and spawn
    failures raise StepError.
    """
    full_env = os.environ.copy()
    if env:
        full_env.update(env)

    logger.debug(f"Executing in {cwd}: {command}")

    try:
        result = subprocess.run(
            shell_command(command),
            cwd=cwd,
            env=full_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        output = e.stdout or ""
        if isinstance(output, bytes):
            output = output.decode("utf-8", errors="replace")
        raise StepError(
            f"Command timed out after {timeout}s",
            exit_code=124,
            output=tail_output(output),
        )
    except OSError as e:
        raise StepError(f"Failed to start command: {e}", exit_code=127)

    return ProcessResult(exit_code=result.returncode, output=tail_output(result.stdout or ""))
