"""
Queue worker - pulls pipeline jobs from Redis and executes them.
"""

import json
import logging
import time
from typing import Optional, Dict, Any

import redis

from deployer.src.config import get_settings
from deployer.src.errors import ConfigurationError
from deployer.src.models.run import PipelineJob, PipelineRun
from deployer.src.services.executor import execute_pipeline
from deployer.src.services.pipeline_parser import parse_pipeline_dict
from deployer.src.services.status_reporter import (
    LoggingReporter,
    MultiReporter,
    RedisReporter,
    RUN_STATUS,
)

logger = logging.getLogger(__name__)
settings = get_settings()

PIPELINE_QUEUE = "deployx:jobs"

def get_next_job(client: redis.Redis, timeout: int = 5) -> Optional[PipelineJob]:
    """Pull next job from Redis queue."""
    result = client.brpop(PIPELINE_QUEUE, timeout=timeout)
    if not result:
        return None
    _, job_data = result
    return PipelineJob(**json.loads(job_data))

def handle_job(job: PipelineJob, client: redis.Redis) -> Optional[PipelineRun]:
    """Run one job. Invalid configuration marks the run failed without running anything."""
    reporter = MultiReporter([LoggingReporter(), RedisReporter(client)])
    try:
        config = parse_pipeline_dict(job.config)
        return execute_pipeline(config, reporter=reporter, run_id=job.run_id)
    except ConfigurationError as e:
        logger.error(f"Run {job.run_id} has invalid configuration: {e}")
        client.hset(RUN_STATUS, job.run_id, "failed")
        return None

def worker_loop(client: Optional[redis.Redis] = None, max_jobs: Optional[int] = None):
    """Main worker loop."""
    client = client or redis.from_url(settings.redis_url, decode_responses=True)
    logger.info("Worker started, waiting for jobs...")
    handled = 0

    while max_jobs is None or handled < max_jobs:
        try:
            job = get_next_job(client)

            if job:
                logger.info(f"Received job for run {job.run_id}")
                handled += 1

                try:
                    handle_job(job, client)
                except Exception as e:
                    logger.exception(f"Failed to execute pipeline {job.run_id}: {e}")

        except KeyboardInterrupt:
            logger.info("Worker shutting down...")
            break
        except redis.RedisError as e:
            logger.exception(f"Worker error: {e}")
            time.sleep(5)

def run_worker():
    """Entry point for worker."""
    worker_loop()
