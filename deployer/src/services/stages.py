"""
Built-in stages: test, build and deploy.
"""

import logging
from typing import Any, Dict, List, Optional

from deployer.src.errors import TestFailed
from deployer.src.models.credential import Credential
from deployer.src.models.target import ImageReference, PortBinding, RemoteTarget
from deployer.src.services.builder import ArtifactBuilder, BuildContext
from deployer.src.services.lifecycle import ContainerLifecycleManager
from deployer.src.services.orchestrator import Stage, StageContext
from deployer.src.services.registry import RegistryClient
from deployer.src.services.remote import RemoteExecutor
from deployer.src.services.runner import LocalRunner

logger = logging.getLogger(__name__)

class TestStage(Stage):
    """Runs shell commands in order; the first non-zero exit fails the stage."""

    __test__ = False

    name = "test"

    def __init__(self, commands: List[str], workdir: Optional[str] = None, runner: Optional[LocalRunner] = None):
        self.commands = commands
        self.runner = runner or LocalRunner(cwd=workdir)

    def execute(self, context: StageContext) -> Dict[str, Any]:
        for command in self.commands:
            logger.info(f"[test] $ {command}")
            output = self.runner.shell(command, deadline=context.deadline)
            if not output.ok:
                logger.error(output.stderr.strip() or output.stdout.strip())
                raise TestFailed(command, output.exit_code)
        return {}

class BuildStage(Stage):
    name = "build"
    provides = ("image",)

    def __init__(
        self,
        builder: ArtifactBuilder,
        registry: RegistryClient,
        context: BuildContext,
        image: ImageReference,
        credential: Optional[Credential] = None,
        username: Optional[str] = None,
    ):
        self.builder = builder
        self.registry = registry
        self.context = context
        self.image = image
        self.credential = credential
        self.username = username

    def execute(self, context: StageContext) -> Dict[str, Any]:
        if self.credential is not None:
            self.registry.authenticate(self.credential, self.username, deadline=context.deadline)
        image = self.builder.build(self.context, self.image, deadline=context.deadline)
        self.registry.push(image, deadline=context.deadline)
        return {"image": image}

class DeployStage(Stage):
    name = "deploy"
    requires = ("image",)
    provides = ("container_id",)

    def __init__(
        self,
        executor: RemoteExecutor,
        lifecycle: ContainerLifecycleManager,
        target: RemoteTarget,
        credential: Credential,
        port: PortBinding,
        registry_credential: Optional[Credential] = None,
        registry_username: Optional[str] = None,
        registry_server: str = "",
    ):
        self.executor = executor
        self.lifecycle = lifecycle
        self.target = target
        self.credential = credential
        self.port = port
        self.registry_credential = registry_credential
        self.registry_username = registry_username
        self.registry_server = registry_server

    def execute(self, context: StageContext) -> Dict[str, Any]:
        image: ImageReference = context.get("image")

        with self.executor.connect(self.target, self.credential, deadline=context.deadline) as session:
            registry = RegistryClient(session, registry=self.registry_server)
            if self.registry_credential is not None:
                registry.authenticate(self.registry_credential, self.registry_username, deadline=context.deadline)
            report = self.lifecycle.transition(
                session, image, self.port, deadline=context.deadline, registry=registry,
            )
        return {"container_id": report.container_id}
