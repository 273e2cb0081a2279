"""
Pipeline orchestrator - sequences stages and owns the run state.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from deployer.src.deadline import Deadline
from deployer.src.errors import ConfigurationError, PipelineError, StageFailed
from deployer.src.models.run import PipelineRun, RunStatus, StageStatus
from deployer.src.services.status_reporter import LoggingReporter, StatusReporter, build_event

logger = logging.getLogger(__name__)

class StageContext:
    """What a stage can see: inputs produced so far, the run id and the run deadline."""

    def __init__(self, run_id: str, inputs: Dict[str, Any], deadline: Optional[Deadline] = None):
        self.run_id = run_id
        self.inputs = inputs
        self.deadline = deadline

    def get(self, name: str) -> Any:
        if name not in self.inputs:
            raise ConfigurationError(f"Input '{name}' is not available")
        return self.inputs[name]

class Stage:
    """
    A named pipeline phase.
    Subclasses declare `requires`/`provides` and return their outputs from `execute`.
    """
    name: str = "stage"
    requires: Tuple[str, ...] = ()
    provides: Tuple[str, ...] = ()

    def execute(self, context: StageContext) -> Dict[str, Any]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

class PipelineOrchestrator:
    def __init__(self, reporter: Optional[StatusReporter] = None, deadline: Optional[Deadline] = None):
        self.reporter = reporter or LoggingReporter()
        self.deadline = deadline

    def validate(self, stages: Sequence[Stage], inputs: Dict[str, Any]):
        """Check stage wiring before anything runs."""
        if not stages:
            raise ConfigurationError("Pipeline must have at least one stage")

        seen = set()
        available = set(inputs)
        for i, stage in enumerate(stages):
            if stage.name in seen:
                raise ConfigurationError(f"Duplicate stage name '{stage.name}'")
            seen.add(stage.name)

            missing = [name for name in stage.requires if name not in available]
            if missing:
                raise ConfigurationError(
                    f"Stage {i} ({stage.name}) requires {', '.join(missing)} "
                    "which no earlier stage provides"
                )
            available.update(stage.provides)

    def run(
        self,
        stages: Sequence[Stage],
        inputs: Optional[Dict[str, Any]] = None,
        run_id: Optional[str] = None,
    ) -> PipelineRun:
        """
        Execute stages strictly in order, halting at the first failure.
        Returns the finished PipelineRun; wiring errors raise ConfigurationError before any stage runs.
        """
        available: Dict[str, Any] = dict(inputs or {})
        self.validate(stages, available)

        run = PipelineRun.for_stages([s.name for s in stages], run_id=run_id)
        run.status = RunStatus.RUNNING
        run.started_at = datetime.utcnow()
        logger.info(f"Starting pipeline run {run.run_id} with {len(stages)} stages")
        self._emit(run, "run_started", run.status.value)

        for stage in stages:
            name = stage.name
            run.mark(name, StageStatus.RUNNING)
            self._emit(run, "stage_transition", StageStatus.RUNNING.value, stage=name)

            failure = None
            try:
                if self.deadline is not None:
                    self.deadline.check(f"stage {name}")

                missing = [r for r in stage.requires if r not in available]
                if missing:
                    raise ConfigurationError(f"Stage '{name}' input unavailable: {', '.join(missing)}")

                context = StageContext(run.run_id, dict(available), self.deadline)
                outputs = stage.execute(context) or {}

                undelivered = [p for p in stage.provides if p not in outputs]
                if undelivered:
                    raise ConfigurationError(f"Stage '{name}' did not produce {', '.join(undelivered)}")
                available.update(outputs)
            except PipelineError as e:
                failure = StageFailed(name, e)
            except Exception as e:
                logger.exception(f"Stage {name} failed with unexpected exception")
                failure = StageFailed(name, e)

            if failure is None:
                run.mark(name, StageStatus.SUCCEEDED)
                for key in stage.provides:
                    run.outputs[key] = str(available[key])
                logger.info(f"Stage {name} succeeded")
                self._emit(run, "stage_transition", StageStatus.SUCCEEDED.value, stage=name)
                continue

            run.mark(name, StageStatus.FAILED, error_kind=failure.error_kind, error=str(failure.cause))
            run.failed_stage = name
            logger.error(str(failure))
            self._emit(
                run, "stage_transition", StageStatus.FAILED.value, stage=name,
                error_kind=failure.error_kind, error=str(failure.cause),
            )
            break  # Stop on first failure

        for result in run.stages:
            if result.status == StageStatus.PENDING:
                run.mark(result.name, StageStatus.SKIPPED)
                self._emit(run, "stage_transition", StageStatus.SKIPPED.value, stage=result.name)

        run.status = RunStatus.FAILED if run.failed_stage else RunStatus.SUCCEEDED
        run.finished_at = datetime.utcnow()
        self._emit(run, "run_finished", run.status.value, stage=run.failed_stage)

        logger.info(f"Pipeline run {run.run_id} finished with status: {run.status.value}")
        return run

    def _emit(self, run: PipelineRun, event: str, status: str, **kwargs):
        self.reporter.emit(build_event(run.run_id, event, status, **kwargs))

def summarize(run: PipelineRun) -> List[str]:
    lines = []
    for result in run.stages:
        line = f"{result.order}. {result.name}: {result.status.value}"
        if result.error_kind:
            line += f" [{result.error_kind}] {result.error}"
        lines.append(line)
    return lines
