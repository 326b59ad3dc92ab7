"""
Redis queue service for pipeline jobs.
"""

import redis.asyncio as redis
import json
from typing import Optional
from datetime import datetime, timezone

from api.src.config import get_settings
from controller.src.models.pipeline import Event

settings = get_settings()

PIPELINE_QUEUE = "dockhand:jobs"
PIPELINE_STATUS = "dockhand:status"

async def get_redis_client() -> redis.Redis:
    """Get async Redis client."""
    return redis.from_url(settings.redis_url, decode_responses=True)

async def enqueue_pipeline_run(run_id: str, pipeline: str, event: Event):
    """Add pipeline run to processing queue."""
    client = await get_redis_client()

    job = {
        "run_id": run_id,
        "pipeline": pipeline,
        "event": event.model_dump(mode="json"),
        "queued_at": datetime.now(timezone.utc).isoformat(),
    }

    try:
        await client.lpush(PIPELINE_QUEUE, json.dumps(job))
        await client.hset(PIPELINE_STATUS, run_id, "queued")
    finally:
        await client.close()

async def get_run_status(run_id: str) -> Optional[str]:
    """Get live pipeline run status from Redis."""
    client = await get_redis_client()

    try:
        return await client.hget(PIPELINE_STATUS, run_id)
    finally:
        await client.close()

async def get_queue_length() -> int:
    """Get number of jobs in queue."""
    client = await get_redis_client()

    try:
        return await client.llen(PIPELINE_QUEUE)
    finally:
        await client.close()
