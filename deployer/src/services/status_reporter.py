"""
Report pipeline run and stage transitions.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import redis

from deployer.src.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

RUN_STATUS = "deployx:status"
RUN_EVENTS = "deployx:events:{run_id}"
EVENTS_TTL = 7 * 24 * 3600

def build_event(
    run_id: str,
    event: str,
    status: str,
    stage: Optional[str] = None,
    error_kind: Optional[str] = None,
    error: Optional[str] = None,
) -> Dict[str, Any]:
    payload = {
        "run_id": run_id,
        "event": event,
        "status": status,
        "timestamp": datetime.utcnow().isoformat(),
    }
    if stage is not None:
        payload["stage"] = stage
    if error_kind is not None:
        payload["error_kind"] = error_kind
        payload["error"] = error
    return payload

class StatusReporter:
    def emit(self, event: Dict[str, Any]):
        raise NotImplementedError

class LoggingReporter(StatusReporter):
    def emit(self, event: Dict[str, Any]):
        level = logging.ERROR if event["status"] == "failed" else logging.INFO
        logger.log(level, json.dumps(event, sort_keys=True))

class RedisReporter(StatusReporter):
    """Publishes run status to a Redis hash and events to a per-run list."""

    def __init__(self, client: Optional[redis.Redis] = None):
        self.client = client or redis.from_url(settings.redis_url, decode_responses=True)

    def emit(self, event: Dict[str, Any]):
        run_id = event["run_id"]
        key = RUN_EVENTS.format(run_id=run_id)
        try:
            if event["event"] in ("run_started", "run_finished"):
                self.client.hset(RUN_STATUS, run_id, event["status"])
            self.client.rpush(key, json.dumps(event))
            self.client.expire(key, EVENTS_TTL)
        except redis.RedisError as e:
            logger.error(f"Failed to publish event for run {run_id}: {e}")

class MultiReporter(StatusReporter):
    def __init__(self, reporters: List[StatusReporter]):
        self.reporters = reporters

    def emit(self, event: Dict[str, Any]):
        for reporter in self.reporters:
            reporter.emit(event)
