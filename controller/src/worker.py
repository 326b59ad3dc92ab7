"""
Queue worker - pulls jobs from Redis and executes them.

Up to `worker_concurrency` runs execute at once, each in its own thread
with its own RunContext.
"""

import asyncio
import logging
import redis.asyncio as redis
import json
from typing import Optional, Dict, Any

from controller.src.config import get_settings
from controller.src.models.pipeline import PipelineDefinition
from controller.src.models.step import RunStatus
from controller.src.services.executor import notify, utcnow
from controller.src.services.orchestrator import execute_pipeline
from controller.src.services.status_reporter import RunReporter

logger = logging.getLogger(__name__)
settings = get_settings()

PIPELINE_QUEUE = "dockhand:jobs"
PIPELINE_STATUS = "dockhand:status"

async def get_next_job(client: redis.Redis) -> Optional[Dict[str, Any]]:
    """Pull next job from Redis queue."""
    result = await client.brpop(PIPELINE_QUEUE, timeout=5)
    if result:
        _, job_data = result
        return json.loads(job_data)
    return None

async def run_job(
    client: redis.Redis,
    job: Dict[str, Any],
    pipelines: Dict[str, PipelineDefinition],
    reporter: Optional[RunReporter],
) -> Optional[str]:
    """Execute one job and publish its live status. Returns the final status."""
    run_id = job.get("run_id", "unknown")
    status = RunStatus.FAILED.value

    try:
        await client.hset(PIPELINE_STATUS, run_id, "running")
        outcome = await execute_pipeline(job, pipelines, reporter)
        status = outcome.status.value if outcome else RunStatus.SKIPPED.value
    except Exception as e:
        logger.exception(f"Failed to execute pipeline {run_id}: {e}")
        # The run never reached run_finished; close out its rows
        await asyncio.to_thread(notify, reporter, "run_ended", run_id, RunStatus.FAILED, utcnow())
    finally:
        await client.hset(PIPELINE_STATUS, run_id, status)

    return status

async def worker_loop(
    pipelines: Dict[str, PipelineDefinition],
    reporter: Optional[RunReporter] = None,
    concurrency: Optional[int] = None,
):
    """Main worker loop."""
    concurrency = concurrency or settings.worker_concurrency
    slots = asyncio.Semaphore(concurrency)
    running = set()

    client = redis.from_url(settings.redis_url, decode_responses=True)
    logger.info(f"Worker started ({concurrency} slots), waiting for jobs...")

    async def guarded(job: Dict[str, Any]):
        try:
            await run_job(client, job, pipelines, reporter)
        finally:
            slots.release()

    try:
        while True:
            await slots.acquire()
            try:
                job = await get_next_job(client)
            except Exception as e:
                slots.release()
                logger.exception(f"Worker error: {e}")
                await asyncio.sleep(5)
                continue

            if not job:
                slots.release()
                continue

            logger.info(f"Received job for run {job.get('run_id', 'unknown')}")
            task = asyncio.create_task(guarded(job))
            running.add(task)
            task.add_done_callback(running.discard)
    finally:
        if running:
            await asyncio.gather(*running, return_exceptions=True)
        await client.close()

def run_worker(pipelines: Dict[str, PipelineDefinition], reporter: Optional[RunReporter] = None):
    """Entry point for worker."""
    try:
        asyncio.run(worker_loop(pipelines, reporter))
    except KeyboardInterrupt:
        logger.info("Worker shutting down...")
