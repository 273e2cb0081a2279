from fastapi import APIRouter
import redis.asyncio as redis

from gateway.src.config import get_settings
from gateway.src.services.queue import get_queue_length

settings = get_settings()

router = APIRouter(tags=["health"])

@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "deployx-gateway"}

@router.get("/health/redis")
async def redis_health_check():
    try:
        client = redis.from_url(settings.redis_url)
        await client.ping()
        await client.aclose()
        return {"status": "healthy", "redis": "connected"}
    except redis.RedisError as e:
        return {"status": "unhealthy", "redis": str(e)}

@router.get("/health/queue")
async def queue_health_check():
    try:
        queue_length = await get_queue_length()
        return {
            "status": "healthy",
            "queue_length": queue_length,
        }
    except redis.RedisError as e:
        return {"status": "unhealthy", "error": str(e)}
