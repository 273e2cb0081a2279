"""
Pipeline executor - assembles a configured pipeline and runs it.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from deployer.src.config import get_settings
from deployer.src.deadline import Deadline
from deployer.src.models.credential import credential_scope
from deployer.src.models.run import PipelineRun
from deployer.src.services.orchestrator import PipelineOrchestrator
from deployer.src.services.status_reporter import StatusReporter
from deployer.src.services.wiring import assemble_pipeline

logger = logging.getLogger(__name__)
settings = get_settings()

def execute_pipeline(
    config: Dict[str, Any],
    base_dir: str = ".",
    reporter: Optional[StatusReporter] = None,
    run_id: Optional[str] = None,
    timeout: Optional[int] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PipelineRun:
    """
    Execute a validated pipeline configuration.
    Credentials live only for the duration of the run and are released on every exit path.
    """
    plan = assemble_pipeline(config, base_dir=base_dir, environ=environ)
    deadline = Deadline(timeout or settings.run_timeout)

    logger.info(f"Executing pipeline '{plan.name}' ({', '.join(s.name for s in plan.stages)})")
    with credential_scope(*plan.credentials):
        orchestrator = PipelineOrchestrator(reporter=reporter, deadline=deadline)
        return orchestrator.run(plan.stages, run_id=run_id)
