from deployer.src.services.executor import execute_pipeline
from deployer.src.services.orchestrator import PipelineOrchestrator, Stage, StageContext
from deployer.src.services.stages import TestStage, BuildStage, DeployStage
from deployer.src.services.builder import ArtifactBuilder, BuildContext
from deployer.src.services.registry import RegistryClient
from deployer.src.services.remote import RemoteExecutor, Session
from deployer.src.services.lifecycle import ContainerLifecycleManager, TransitionReport
from deployer.src.services.pipeline_parser import (
    parse_pipeline_config,
    parse_pipeline_dict,
    parse_pipeline_file,
)

__all__ = [
    "execute_pipeline",
    "PipelineOrchestrator",
    "Stage",
    "StageContext",
    "TestStage",
    "BuildStage",
    "DeployStage",
    "ArtifactBuilder",
    "BuildContext",
    "RegistryClient",
    "RemoteExecutor",
    "Session",
    "ContainerLifecycleManager",
    "TransitionReport",
    "parse_pipeline_config",
    "parse_pipeline_dict",
    "parse_pipeline_file",
]
