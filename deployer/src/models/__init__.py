from deployer.src.models.run import (
    StageStatus,
    RunStatus,
    StageResult,
    PipelineRun,
    PipelineJob,
)
from deployer.src.models.target import (
    ImageReference,
    PortBinding,
    HostKeyPolicy,
    RemoteTarget,
    CommandOutput,
    ContainerState,
)
from deployer.src.models.credential import Credential, credential_scope

__all__ = [
    "StageStatus",
    "RunStatus",
    "StageResult",
    "PipelineRun",
    "PipelineJob",
    "ImageReference",
    "PortBinding",
    "HostKeyPolicy",
    "RemoteTarget",
    "CommandOutput",
    "ContainerState",
    "Credential",
    "credential_scope",
]
