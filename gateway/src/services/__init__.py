from gateway.src.services.queue import (
    enqueue_pipeline_run,
    get_run_status,
    get_run_events,
    get_queue_length,
)

__all__ = [
    "enqueue_pipeline_run",
    "get_run_status",
    "get_run_events",
    "get_queue_length",
]
