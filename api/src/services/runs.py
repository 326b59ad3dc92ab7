"""
Creating and queueing runs for triggered pipelines.
"""

import logging
from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession

from api.src.models.pipeline import PipelineRun, PipelineStep, Repository
from api.src.services.queue import enqueue_pipeline_run
from controller.src.models.pipeline import Event, PipelineDefinition, StepKind

logger = logging.getLogger(__name__)

def step_command(step) -> str:
    return step.run if step.kind == StepKind.SHELL else step.uses

async def create_run(
    db: AsyncSession,
    definition: PipelineDefinition,
    event: Event,
    repository: Optional[Repository] = None,
) -> PipelineRun:
    """Persist a queued run and one pending row per step."""
    pipeline_run = PipelineRun(
        repository_id=repository.id if repository else None,
        pipeline=definition.name,
        event_kind=event.kind.value,
        commit_sha=event.sha,
        branch=event.branch,
        status="queued",
        triggered_by=event.actor,
        event=event.model_dump(mode="json"),
    )
    db.add(pipeline_run)
    await db.flush()

    for i, step in enumerate(definition.steps):
        db.add(PipelineStep(
            run_id=pipeline_run.id,
            name=step.name,
            kind=step.kind.value,
            command=step_command(step),
            status="pending",
            step_order=i,
        ))

    return pipeline_run

async def queue_run(
    db: AsyncSession,
    definition: PipelineDefinition,
    event: Event,
    repository: Optional[Repository] = None,
) -> Dict[str, Any]:
    """Create the run rows, commit, then hand the run to the controller."""
    pipeline_run = await create_run(db, definition, event, repository)
    run_id = str(pipeline_run.id)
    await db.commit()

    await enqueue_pipeline_run(run_id=run_id, pipeline=definition.name, event=event)

    logger.info(f"Pipeline '{definition.name}' run {run_id} created and queued")

    return {
        "pipeline": definition.name,
        "run_id": run_id,
        "steps": len(definition.steps),
    }
