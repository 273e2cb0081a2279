"""
Redis queue service for pipeline jobs.
"""

import redis.asyncio as redis
import json
from typing import Dict, Any, List, Optional
from datetime import datetime

from gateway.src.config import get_settings

settings = get_settings()

# Shared with the deployer worker and status reporter
PIPELINE_QUEUE = "deployx:jobs"
PIPELINE_STATUS = "deployx:status"
PIPELINE_EVENTS = "deployx:events:{run_id}"

async def get_redis_client() -> redis.Redis:
    """Get async Redis client."""
    return redis.from_url(settings.redis_url, decode_responses=True)

async def enqueue_pipeline_run(run_id: str, config: Dict[str, Any]):
    """Add pipeline run to processing queue."""
    client = await get_redis_client()

    job = {
        "run_id": run_id,
        "config": config,
        "queued_at": datetime.utcnow().isoformat(),
    }

    try:
        await client.lpush(PIPELINE_QUEUE, json.dumps(job))
        await client.hset(PIPELINE_STATUS, run_id, "queued")
    finally:
        await client.aclose()

async def get_run_status(run_id: str) -> Optional[str]:
    """Get pipeline run status from Redis."""
    client = await get_redis_client()

    try:
        return await client.hget(PIPELINE_STATUS, run_id)
    finally:
        await client.aclose()

async def get_run_events(run_id: str) -> List[Dict[str, Any]]:
    """Get the stage transition events published for a run."""
    client = await get_redis_client()

    try:
        raw = await client.lrange(PIPELINE_EVENTS.format(run_id=run_id), 0, -1)
        return [json.loads(item) for item in raw]
    finally:
        await client.aclose()

async def get_queue_length() -> int:
    """Get number of jobs in queue."""
    client = await get_redis_client()

    try:
        return await client.llen(PIPELINE_QUEUE)
    finally:
        await client.aclose()
