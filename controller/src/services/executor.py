"""
Step executor - runs a pipeline's steps in order against one RunContext.

This is the only place sequencing and failure short-circuiting are
decided: under the abort policy the first failed step ends the run, under
the continue policy the failure is recorded and the next step runs.
"""

import logging
import os
import re
from datetime import datetime, timezone
from typing import Dict, Optional, Sequence, Tuple

from controller.src.config import get_settings
from controller.src.runners.client import client_for
from controller.src.runners.container import container_path, run_in_container
from controller.src.models.context import RunContext
from controller.src.models.pipeline import FailurePolicy, StepConfig, StepKind
from controller.src.models.step import RunStatus, StepResult, StepStatus
from controller.src.services.actions import ACTIONS, workspace_path
from controller.src.errors import StepError
from controller.src.runners.local import run_command
from controller.src.services.status_reporter import RunReporter

logger = logging.getLogger(__name__)

EXPRESSION = re.compile(r"\$\{\{\s*([A-Za-z0-9_.\-]+)\s*\}\}")
EVENT_FIELDS = ("kind", "ref", "branch", "sha", "actor", "repository")

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def notify(reporter: Optional[RunReporter], event: str, *args):
    """Call a reporter hook. Reporting failures are logged, never raised."""
    if reporter is None:
        return
    try:
        getattr(reporter, event)(*args)
    except Exception:
        logger.exception(f"Status reporter failed on {event}")

def resolve_value(value: str, context: RunContext) -> str:
    """Substitute ${{ name }} expressions. Unknown names become ''."""
    def replace(match):
        name = match.group(1)
        if name.startswith("secrets."):
            return context.secrets.get(name[len("secrets."):], "")
        if name.startswith("env."):
            return context.env.get(name[len("env."):], "")
        if name.startswith("event."):
            field = name[len("event."):]
            if field not in EVENT_FIELDS:
                return ""
            value = getattr(context.event, field)
            return value.value if field == "kind" else str(value)
        return context.env.get(name, "")

    return EXPRESSION.sub(replace, value)

def resolve_inputs(inputs: Dict[str, str], context: RunContext) -> Dict[str, str]:
    return {key: resolve_value(value, context) for key, value in inputs.items()}

def parse_outputs(path: str) -> Dict[str, str]:
    """Read key=value lines a shell step appended to $DOCKHAND_OUTPUT."""
    outputs = {}
    if not os.path.exists(path):
        return outputs

    with open(path, "r") as f:
        for line in f:
            key, sep, value = line.rstrip("\n").partition("=")
            if sep and key.strip():
                outputs[key.strip()] = value

    return outputs

def run_shell_step(step_order: int, step: StepConfig, context: RunContext) -> Tuple[int, str, Dict[str, str]]:
    """Run a `run:` step locally or in its container image."""
    settings = get_settings()
    timeout = step.timeout or settings.step_timeout

    workdir = workspace_path(context, step.working_directory or ".")
    outputs_dir = os.path.join(context.workspace, ".dockhand")
    os.makedirs(outputs_dir, exist_ok=True)
    outputs_file = os.path.join(outputs_dir, f"step-{step_order}.out")
    open(outputs_file, "w").close()

    env = context.process_env()
    env.update(resolve_inputs(step.env, context))
    command = resolve_value(step.run, context)

    if step.image:
        env["DOCKHAND_OUTPUT"] = container_path(context.workspace, outputs_file)
        env["DOCKHAND_WORKSPACE"] = container_path(context.workspace, context.workspace)
        result = run_in_container(
            client_for(context),
            run_id=context.run_id,
            step_order=step_order,
            step_name=step.name,
            image=step.image,
            command=command,
            workspace=context.workspace,
            working_dir=container_path(context.workspace, workdir),
            env=env,
            timeout=timeout,
        )
    else:
        if not os.path.isdir(workdir):
            raise StepError(f"Working directory not found: {step.working_directory}")
        env["DOCKHAND_OUTPUT"] = outputs_file
        result = run_command(command, cwd=workdir, env=env, timeout=timeout)

    return result.exit_code, result.output, parse_outputs(outputs_file)

def run_action_step(step: StepConfig, context: RunContext) -> Tuple[int, str, Dict[str, str]]:
    """Delegate a `uses:` step to its registered action."""
    action = ACTIONS.get(step.uses)
    if action is None:
        raise StepError(f"Unknown action '{step.uses}'")

    context.step_timeout = step.timeout or get_settings().step_timeout
    try:
        result = action(resolve_inputs(step.inputs, context), context)
    finally:
        context.step_timeout = None
    return 0, result.output, result.outputs

def execute_step(step_order: int, step: StepConfig, context: RunContext) -> StepResult:
    """
    Execute a single pipeline step.
    Never raises: every failure ends up in the returned StepResult.
    """
    started_at = utcnow()
    error = None
    error_kind = None
    outputs: Dict[str, str] = {}

    try:
        if step.kind == StepKind.SHELL:
            exit_code, output, outputs = run_shell_step(step_order, step, context)
        else:
            exit_code, output, outputs = run_action_step(step, context)

        if exit_code != 0:
            error = f"Step exited with status {exit_code}"
            error_kind = StepError.__name__
    except StepError as e:
        exit_code, output = e.exit_code or 1, e.output
        error, error_kind = str(e), type(e).__name__
    except Exception as e:
        logger.exception(f"Step {step_order} ({step.name}) failed with exception")
        exit_code, output = 1, ""
        error, error_kind = str(e), StepError.__name__

    if exit_code == 0:
        context.merge_outputs(outputs, step.id)

    return StepResult(
        step_order=step_order,
        name=step.name,
        status=StepStatus.SUCCEEDED if exit_code == 0 else StepStatus.FAILED,
        exit_code=exit_code,
        output=context.mask(output or ""),
        started_at=started_at,
        finished_at=utcnow(),
        error=context.mask(error) if error else None,
        error_kind=error_kind,
    )

def execute_steps(
    steps: Sequence[StepConfig],
    context: RunContext,
    reporter: Optional[RunReporter] = None,
) -> bool:
    """
    Execute steps in declared order.
    Returns True if the run succeeded, False otherwise.
    """
    for i, step in enumerate(steps):
        logger.info(f"Executing step {i}: {step.name}")

        notify(reporter, "step_started", context, i, utcnow())

        result = execute_step(i, step, context)
        context.record(result)

        notify(reporter, "step_finished", context, result)

        if result.succeeded:
            logger.info(f"Step {i} ({step.name}) succeeded")
            continue

        if step.policy == FailurePolicy.CONTINUE:
            logger.warning(f"Step {i} ({step.name}) failed, continuing: {result.error}")
            continue

        logger.error(f"Step {i} ({step.name}) failed: {result.error}")
        context.status = RunStatus.FAILED
        return False  # Stop on first failure

    context.status = RunStatus.SUCCEEDED
    return True
