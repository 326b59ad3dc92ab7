from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from typing import Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel

from api.src.db.database import get_db
from api.src.models.pipeline import PipelineRun, PipelineStep, Repository
from api.src.models.run import PipelineRunResponse, RepositoryResponse, PipelineSummary
from api.src.routes.deps import get_pipelines
from api.src.services.queue import get_run_status
from api.src.services.runs import queue_run
from controller.src.models.pipeline import Event, EventKind, PipelineDefinition
from controller.src.services.trigger import should_run

router = APIRouter(prefix="/pipelines", tags=["pipelines"])

class ManualTriggerRequest(BaseModel):
    ref: str = "main"
    commit_sha: str = ""
    repository_url: str = ""
    triggered_by: str = ""

@router.get("", response_model=List[PipelineSummary])
async def list_pipelines(pipelines: Dict[str, PipelineDefinition] = Depends(get_pipelines)):
    """List the pipeline definitions loaded at startup."""
    return [
        PipelineSummary(
            name=definition.name,
            events=[f.kind.value for f in definition.trigger.filters],
            branches=sorted({b for f in definition.trigger.filters for b in f.branches}),
            steps=[step.name for step in definition.steps],
        )
        for definition in sorted(pipelines.values(), key=lambda d: d.name)
    ]

@router.post("/{name}/dispatch", status_code=202)
async def dispatch_pipeline(
    name: str,
    request: ManualTriggerRequest,
    db: AsyncSession = Depends(get_db),
    pipelines: Dict[str, PipelineDefinition] = Depends(get_pipelines),
):
    """Manually trigger a pipeline run."""
    definition = pipelines.get(name)
    if definition is None:
        raise HTTPException(status_code=404, detail=f"Pipeline '{name}' not found")

    event = Event(
        kind=EventKind.MANUAL,
        ref=request.ref,
        sha=request.commit_sha,
        actor=request.triggered_by,
        repository=request.repository_url,
    )

    if not should_run(definition, event):
        raise HTTPException(
            status_code=409,
            detail=f"Pipeline '{name}' does not accept manual runs on '{event.branch}'",
        )

    result = await queue_run(db, definition, event)
    return {"status": "queued", **result}

@router.get("/runs", response_model=List[PipelineRunResponse])
async def list_runs(
    limit: int = 20,
    offset: int = 0,
    status: Optional[str] = None,
    pipeline: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    """List all pipeline runs."""
    query = (
        select(PipelineRun)
        .options(selectinload(PipelineRun.steps))
        .order_by(PipelineRun.created_at.desc())
    )

    if status:
        query = query.where(PipelineRun.status == status)
    if pipeline:
        query = query.where(PipelineRun.pipeline == pipeline)

    query = query.limit(limit).offset(offset)

    result = await db.execute(query)
    return result.scalars().all()

async def load_run(db: AsyncSession, run_id: UUID) -> PipelineRun:
    query = (
        select(PipelineRun)
        .options(selectinload(PipelineRun.steps))
        .where(PipelineRun.id == run_id)
    )
    result = await db.execute(query)
    run = result.scalar_one_or_none()

    if not run:
        raise HTTPException(status_code=404, detail="Pipeline run not found")

    return run

@router.get("/runs/{run_id}", response_model=PipelineRunResponse)
async def get_run(run_id: UUID, db: AsyncSession = Depends(get_db)):
    """Get a specific pipeline run."""
    return await load_run(db, run_id)

@router.get("/runs/{run_id}/status")
async def get_run_status_endpoint(run_id: UUID, db: AsyncSession = Depends(get_db)):
    """Get real-time status of a pipeline run."""
    run = await load_run(db, run_id)

    # Live status from Redis, written by the controller
    redis_status = await get_run_status(str(run_id))

    return {
        "run_id": str(run_id),
        "pipeline": run.pipeline,
        "db_status": run.status,
        "live_status": redis_status,
        "steps": [
            {
                "name": step.name,
                "status": step.status,
                "order": step.step_order,
                "exit_code": step.exit_code,
            }
            for step in sorted(run.steps, key=lambda s: s.step_order)
        ]
    }

@router.get("/runs/{run_id}/logs")
async def get_run_logs(run_id: UUID, db: AsyncSession = Depends(get_db)):
    """Get logs for all steps in a pipeline run."""
    query = (
        select(PipelineStep)
        .where(PipelineStep.run_id == run_id)
        .order_by(PipelineStep.step_order)
    )
    result = await db.execute(query)
    steps = result.scalars().all()

    if not steps:
        raise HTTPException(status_code=404, detail="Pipeline run not found")

    return {
        "run_id": str(run_id),
        "steps": [
            {
                "name": step.name,
                "status": step.status,
                "exit_code": step.exit_code,
                "error_kind": step.error_kind,
                "logs": step.logs,
                "started_at": step.started_at,
                "finished_at": step.finished_at,
            }
            for step in steps
        ]
    }

@router.get("/repositories", response_model=List[RepositoryResponse])
async def list_repositories(db: AsyncSession = Depends(get_db)):
    """List all registered repositories."""
    query = select(Repository).order_by(Repository.created_at.desc())
    result = await db.execute(query)
    return result.scalars().all()

@router.get("/stats")
async def get_pipeline_stats(db: AsyncSession = Depends(get_db)):
    """Get pipeline statistics."""
    status_query = (
        select(PipelineRun.status, func.count(PipelineRun.id))
        .group_by(PipelineRun.status)
    )
    result = await db.execute(status_query)
    status_counts = {row[0]: row[1] for row in result.all()}

    pipeline_query = (
        select(PipelineRun.pipeline, func.count(PipelineRun.id))
        .group_by(PipelineRun.pipeline)
    )
    result = await db.execute(pipeline_query)
    pipeline_counts = {row[0]: row[1] for row in result.all()}

    repo_count_query = select(func.count(Repository.id))
    result = await db.execute(repo_count_query)
    repo_count = result.scalar()

    return {
        "repositories": repo_count,
        "runs": status_counts,
        "pipelines": pipeline_counts,
        "total_runs": sum(status_counts.values()),
    }
