"""
Queue worker - pulls release triggers from Redis and runs them one at a time.
"""

import asyncio
import logging
import json
from typing import Optional, Dict, Any

import redis.asyncio as redis
from redis.exceptions import RedisError
from pydantic import ValidationError

from controller.src.config import get_settings
from controller.src.models.stage import PipelineJob
from controller.src.services.scheduler import PipelineScheduler

logger = logging.getLogger(__name__)
settings = get_settings()

TRIGGER_QUEUE = "releasetrain:triggers"
RUN_STATUS = "releasetrain:status"

async def get_next_job(client: redis.Redis) -> Optional[Dict[str, Any]]:
    """Pull next job from Redis queue."""
    result = await client.brpop(TRIGGER_QUEUE, timeout=5)
    if result:
        _, job_data = result
        return json.loads(job_data)
    return None

async def process_job(client: redis.Redis, scheduler: PipelineScheduler, job_data: Dict[str, Any]):
    """Run one queued trigger to completion, mirroring its status into Redis."""
    job = PipelineJob(**job_data)
    logger.info(f"Received job for run {job.run_id}")

    await client.hset(RUN_STATUS, job.run_id, "running")
    try:
        result = await scheduler.run(job.trigger, run_id=job.run_id)
    except Exception:
        await client.hset(RUN_STATUS, job.run_id, "failed")
        raise

    await client.hset(RUN_STATUS, job.run_id, result.status.value)
    if result.failed_stage:
        logger.error(
            f"Run {job.run_id} stalled at {result.failed_stage.value}: {result.error}"
        )
    return result

async def worker_loop(scheduler: PipelineScheduler):
    """Main worker loop. Runs are awaited one by one, so they never interleave."""
    logger.info("Worker started, waiting for triggers...")
    client = redis.from_url(settings.redis_url, decode_responses=True)

    try:
        while True:
            try:
                job_data = await get_next_job(client)
                if not job_data:
                    continue

                try:
                    await process_job(client, scheduler, job_data)
                except ValidationError as e:
                    logger.error(f"Discarding malformed job: {e}")
                except Exception as e:
                    logger.exception(f"Failed to execute run {job_data.get('run_id', 'unknown')}: {e}")

            except RedisError as e:
                logger.exception(f"Worker error: {e}")
                await asyncio.sleep(5)
    finally:
        await client.aclose()
