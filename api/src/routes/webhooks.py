"""
GitHub webhook endpoints.
"""

from fastapi import APIRouter, Request, HTTPException, Header, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, Dict
import logging

from api.src.config import get_settings
from api.src.db.database import get_db
from api.src.models.pipeline import Repository
from api.src.routes.deps import get_pipelines
from api.src.services.github import (
    verify_signature,
    parse_webhook_payload,
    event_from_webhook,
)
from api.src.services.runs import queue_run
from controller.src.models.pipeline import PipelineDefinition
from controller.src.services.trigger import should_run

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

async def get_or_create_repository(db: AsyncSession, webhook_data: dict) -> Optional[Repository]:
    if not webhook_data["repo_full_name"]:
        return None

    repo_query = select(Repository).where(
        Repository.full_name == webhook_data["repo_full_name"]
    )
    result = await db.execute(repo_query)
    repository = result.scalar_one_or_none()

    if not repository:
        repository = Repository(
            name=webhook_data["repo_name"],
            full_name=webhook_data["repo_full_name"],
            clone_url=webhook_data["clone_url"],
        )
        db.add(repository)
        await db.flush()

    return repository

async def process_push_event(
    payload: dict,
    db: AsyncSession,
    pipelines: Dict[str, PipelineDefinition],
):
    """Process GitHub push event and queue a run per triggered pipeline."""

    webhook_data = parse_webhook_payload(payload)

    if webhook_data["deleted"]:
        return {"status": "skipped", "reason": "Branch deleted"}

    if not webhook_data["commit_sha"]:
        logger.warning("No commit SHA in webhook payload")
        return {"status": "skipped", "reason": "No commit SHA"}

    event = event_from_webhook(webhook_data)

    triggered = [d for d in pipelines.values() if should_run(d, event)]
    skipped = sorted(d.name for d in pipelines.values() if d not in triggered)

    if not triggered:
        logger.info(f"Push to '{event.branch}' triggers no pipeline")
        return {"status": "skipped", "reason": "No pipeline triggered", "skipped": skipped}

    repository = await get_or_create_repository(db, webhook_data)

    runs = []
    for definition in triggered:
        runs.append(await queue_run(db, definition, event, repository))

    return {"status": "queued", "runs": runs, "skipped": skipped}

@router.post("/github")
async def github_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    pipelines: Dict[str, PipelineDefinition] = Depends(get_pipelines),
    x_hub_signature_256: Optional[str] = Header(None),
    x_github_event: Optional[str] = Header(None),
):
    """
    Receive GitHub webhook events.
    """
    # Get raw body for signature verification
    body = await request.body()

    if not verify_signature(body, x_hub_signature_256, get_settings().github_webhook_secret):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    if x_github_event == "ping":
        return {"status": "pong", "message": "Webhook configured successfully"}

    if x_github_event == "push":
        return await process_push_event(payload, db, pipelines)

    # Ignore other events
    return {
        "status": "ignored",
        "event": x_github_event,
        "message": f"Event type '{x_github_event}' not handled"
    }
