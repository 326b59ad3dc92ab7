"""
Git checkout of the triggering commit into a run workspace.
"""

import logging
import os
import shutil
import subprocess

from controller.src.errors import StepError

logger = logging.getLogger(__name__)

def _git(args, cwd, timeout):
    return subprocess.run(
        ["git"] + args,
        cwd=cwd,
        check=True,
        capture_output=True,
        timeout=timeout
    )

def clone_repository(clone_url: str, ref: str, dest: str) -> str:
    """
    Fetch `ref` (commit SHA or branch, default HEAD) of a repository into
    `dest` and check it out. `dest` may already exist and hold files.
    Returns the checkout path.
    """
    os.makedirs(dest, exist_ok=True)

    try:
        _git(["init", "-q"], dest, 30)
        _git(["remote", "add", "origin", clone_url], dest, 30)
        _git(["fetch", "--depth", "1", "origin", ref or "HEAD"], dest, 120)
        _git(["checkout", "-q", "--force", "FETCH_HEAD"], dest, 60)

        return dest
    except subprocess.TimeoutExpired:
        raise StepError("Repository clone timed out", exit_code=124)
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode(errors="replace") if e.stderr else ""
        raise StepError(f"Failed to clone repository: {stderr.strip()}", exit_code=e.returncode, output=stderr)

def prepare_workspace(path: str) -> str:
    path = os.path.abspath(path)
    os.makedirs(path, exist_ok=True)
    return path

def cleanup_workspace(path: str):
    """Remove a run workspace."""
    if path and os.path.exists(path):
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning(f"Failed to remove workspace {path}: {e}")
