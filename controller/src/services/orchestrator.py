"""
Pipeline orchestrator - trigger check, run context, step execution, status.
"""

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from controller.src.config import Settings, get_settings
from controller.src.runners.client import close_client
from controller.src.models.context import Credentials, RunContext
from controller.src.models.pipeline import Event, PipelineDefinition
from controller.src.models.step import Artifact, PipelineJob, RunStatus, StepResult
from controller.src.services.checkout import cleanup_workspace, prepare_workspace
from controller.src.services.executor import execute_steps, notify, utcnow
from controller.src.services.status_reporter import RunReporter
from controller.src.services.trigger import should_run

logger = logging.getLogger(__name__)

@dataclass
class RunOutcome:
    run_id: str
    pipeline: str
    status: RunStatus
    results: List[StepResult]
    artifact: Optional[Artifact] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    @property
    def failed_step(self) -> Optional[StepResult]:
        for result in self.results:
            if not result.succeeded:
                return result
        return None

def credentials_from_settings(settings: Settings) -> Credentials:
    return Credentials(
        registry=settings.registry_host,
        username=settings.registry_actor,
        token=settings.registry_token,
    )

def run_pipeline(
    definition: PipelineDefinition,
    event: Event,
    credentials: Credentials,
    workspace: Optional[str] = None,
    run_id: Optional[str] = None,
    reporter: Optional[RunReporter] = None,
) -> Optional[RunOutcome]:
    """
    Run a pipeline for an event.
    Returns None when the event does not match the pipeline's trigger.
    """
    if not should_run(definition, event):
        logger.info(
            f"Event {event.kind.value} on '{event.branch}' does not trigger pipeline '{definition.name}'"
        )
        if run_id:
            # A queued run was already recorded; close it out
            notify(reporter, "run_ended", run_id, RunStatus.SKIPPED, utcnow())
        return None

    run_id = run_id or str(uuid.uuid4())
    workspace = prepare_workspace(workspace or os.path.join(get_settings().workspace_root, run_id))

    context = RunContext(
        definition=definition,
        event=event,
        credentials=credentials,
        workspace=workspace,
        run_id=run_id,
    )

    logger.info(
        f"Starting pipeline '{definition.name}' run {context.run_id} "
        f"with {len(definition.steps)} steps"
    )

    notify(reporter, "run_started", context, utcnow())

    try:
        execute_steps(definition.steps, context, reporter)
    finally:
        close_client(context)
        if context.status == RunStatus.RUNNING:
            context.status = RunStatus.FAILED
        notify(reporter, "run_finished", context, utcnow())

    logger.info(f"Pipeline run {context.run_id} finished with status: {context.status.value}")

    return RunOutcome(
        run_id=context.run_id,
        pipeline=definition.name,
        status=context.status,
        results=context.results,
        artifact=context.artifact,
    )

async def execute_pipeline(
    job_data: Dict[str, Any],
    pipelines: Dict[str, PipelineDefinition],
    reporter: Optional[RunReporter] = None,
) -> Optional[RunOutcome]:
    """
    Execute a queued pipeline run in a worker thread.
    The run's workspace is removed afterwards.
    """
    settings = get_settings()
    job = PipelineJob.model_validate(job_data)

    definition = pipelines.get(job.pipeline)
    if definition is None:
        raise KeyError(f"Unknown pipeline '{job.pipeline}'")

    workspace = os.path.join(settings.workspace_root, job.run_id)
    try:
        return await asyncio.to_thread(
            run_pipeline,
            definition,
            Event.model_validate(job.event),
            credentials_from_settings(settings),
            workspace,
            job.run_id,
            reporter,
        )
    finally:
        cleanup_workspace(workspace)
