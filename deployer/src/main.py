"""
DeployX worker - Main entry point.
"""

import logging
import sys

import redis

from deployer.src.cli import configure_logging
from deployer.src.config import get_settings
from deployer.src.worker import run_worker

logger = logging.getLogger(__name__)

def main():
    """Main entry point."""
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("Starting DeployX worker")
    logger.info(f"Redis URL: {settings.redis_url}")

    # Fail early if the queue is unreachable
    try:
        redis.from_url(settings.redis_url).ping()
    except redis.RedisError as e:
        logger.error(f"Failed to reach Redis: {e}")
        sys.exit(1)

    logger.info("Starting worker...")
    run_worker()

if __name__ == "__main__":
    main()
