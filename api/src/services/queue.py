"""
Redis queue service for release triggers.
"""

import redis.asyncio as redis
import json
from typing import Dict, Any, Optional
from datetime import datetime

from api.src.config import get_settings

settings = get_settings()

TRIGGER_QUEUE = "releasetrain:triggers"
RUN_STATUS = "releasetrain:status"

async def get_redis_client() -> redis.Redis:
    """Get async Redis client."""
    return redis.from_url(settings.redis_url, decode_responses=True)

async def enqueue_trigger(run_id: str, trigger: Dict[str, Any]):
    """Add a release trigger to the controller's queue."""
    client = await get_redis_client()

    job = {
        "run_id": run_id,
        "trigger": trigger,
        "queued_at": datetime.utcnow().isoformat(),
    }

    try:
        await client.lpush(TRIGGER_QUEUE, json.dumps(job))
        await client.hset(RUN_STATUS, run_id, "queued")
    finally:
        await client.aclose()

async def get_run_status(run_id: str) -> Optional[str]:
    """Get live pipeline run status from Redis."""
    client = await get_redis_client()

    try:
        return await client.hget(RUN_STATUS, run_id)
    finally:
        await client.aclose()

async def get_queue_length() -> int:
    """Get number of triggers waiting for the controller."""
    client = await get_redis_client()

    try:
        return await client.llen(TRIGGER_QUEUE)
    finally:
        await client.aclose()
