"""
Pipeline run state models.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum
import uuid

from deployer.src.errors import IllegalTransition

class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

# Stage status only ever moves forward
ALLOWED_TRANSITIONS = {
    StageStatus.PENDING: {StageStatus.RUNNING, StageStatus.SKIPPED},
    StageStatus.RUNNING: {StageStatus.SUCCEEDED, StageStatus.FAILED},
    StageStatus.SUCCEEDED: set(),
    StageStatus.FAILED: set(),
    StageStatus.SKIPPED: set(),
}

class StageResult(BaseModel):
    order: int
    name: str
    status: StageStatus = StageStatus.PENDING
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.status in (StageStatus.SUCCEEDED, StageStatus.FAILED, StageStatus.SKIPPED)

class PipelineRun(BaseModel):
    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    status: RunStatus = RunStatus.PENDING
    stages: List[StageResult] = []
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    failed_stage: Optional[str] = None
    outputs: Dict[str, str] = {}

    @classmethod
    def for_stages(cls, names: List[str], run_id: Optional[str] = None) -> "PipelineRun":
        stages = [StageResult(order=i, name=name) for i, name in enumerate(names)]
        if run_id:
            return cls(run_id=run_id, stages=stages)
        return cls(stages=stages)

    def stage(self, name: str) -> StageResult:
        for result in self.stages:
            if result.name == name:
                return result
        raise KeyError(name)

    def mark(
        self,
        name: str,
        status: StageStatus,
        error_kind: Optional[str] = None,
        error: Optional[str] = None,
    ) -> StageResult:
        """Move a stage forward, refusing any transition that re-enters a resolved state."""
        result = self.stage(name)
        if status not in ALLOWED_TRANSITIONS[result.status]:
            raise IllegalTransition(
                f"Stage '{name}' cannot go from {result.status.value} to {status.value}"
            )

        now = datetime.utcnow()
        result.status = status
        if status == StageStatus.RUNNING:
            result.started_at = now
        elif status in (StageStatus.SUCCEEDED, StageStatus.FAILED):
            result.finished_at = now
        if error_kind:
            result.error_kind = error_kind
            result.error = error
        return result

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    @property
    def terminal(self) -> bool:
        if self.status == RunStatus.FAILED:
            return True
        return bool(self.stages) and all(s.resolved for s in self.stages)

    @property
    def error_kind(self) -> Optional[str]:
        if self.failed_stage is None:
            return None
        return self.stage(self.failed_stage).error_kind

class PipelineJob(BaseModel):
    run_id: str
    config: Dict[str, Any]
    queued_at: str
