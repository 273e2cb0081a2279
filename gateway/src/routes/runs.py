from fastapi import APIRouter, HTTPException
from typing import Any, Dict, Optional
from pydantic import BaseModel
import uuid

from deployer.src.errors import ConfigurationError
from deployer.src.services.pipeline_parser import parse_pipeline_config, parse_pipeline_dict
from gateway.src.services.queue import (
    enqueue_pipeline_run,
    get_run_status,
    get_run_events,
)

router = APIRouter(prefix="/runs", tags=["runs"])

class TriggerRequest(BaseModel):
    config: Optional[Dict[str, Any]] = None
    yaml: Optional[str] = None

@router.post("", status_code=202)
async def trigger_run(request: TriggerRequest):
    """Validate a pipeline and queue it for the worker."""
    if request.config is None and request.yaml is None:
        raise HTTPException(status_code=400, detail="Provide either 'config' or 'yaml'")

    try:
        if request.yaml is not None:
            config = parse_pipeline_config(request.yaml)
        else:
            config = parse_pipeline_dict(request.config)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid pipeline config: {e}")

    run_id = uuid.uuid4().hex
    await enqueue_pipeline_run(run_id, config)

    return {
        "run_id": run_id,
        "status": "queued",
        "stages": config["stages"],
    }

@router.get("/{run_id}")
async def get_run(run_id: str):
    """Get live status and stage events of a pipeline run."""
    status = await get_run_status(run_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Pipeline run not found")

    events = await get_run_events(run_id)
    stages: Dict[str, str] = {}
    for event in events:
        if "stage" in event and event["event"] == "stage_transition":
            stages[event["stage"]] = event["status"]

    failed = next((e for e in events if e["event"] == "run_finished" and e.get("stage")), None)

    return {
        "run_id": run_id,
        "status": status,
        "stages": stages,
        "failed_stage": failed["stage"] if failed else None,
        "events": events,
    }
