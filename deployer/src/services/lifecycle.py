"""
Container lifecycle on the deploy host.

Replaces whatever is running with a fresh container from the target image:
list -> stop -> remove -> pull -> launch. Stopping or removing a container
that is already gone counts as done; every other failure aborts the
transition and names the step. Completed steps are not rolled back.
"""

import logging
import shlex
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel

from deployer.src.config import get_settings
from deployer.src.deadline import Deadline
from deployer.src.errors import AuthError, DeployError, RegistryError
from deployer.src.models.target import ContainerState, ImageReference, PortBinding
from deployer.src.services.registry import RegistryClient
from deployer.src.services.remote import Session

logger = logging.getLogger(__name__)
settings = get_settings()

ALREADY_STOPPED = ("no such container", "is not running")
ALREADY_REMOVED = ("no such container", "already in progress")

class TransitionReport(BaseModel):
    host: str
    image: str
    removed: List[str] = []
    container_id: str

def _already_satisfied(stderr: str, markers) -> bool:
    text = stderr.lower()
    return any(marker in text for marker in markers)

class ContainerLifecycleManager:
    def __init__(
        self,
        registry_factory: Optional[Callable[[Session], RegistryClient]] = None,
        container_name: Optional[str] = None,
        docker: Optional[str] = None,
    ):
        self.registry_factory = registry_factory or RegistryClient
        self.container_name = container_name
        self.docker = docker or settings.docker_binary

    def observe(self, session: Session, deadline: Optional[Deadline] = None) -> ContainerState:
        """All container ids on the host, running or stopped. Empty is fine."""
        output = session.run([self.docker, "ps", "-aq"], deadline=deadline)
        if not output.ok:
            raise DeployError("list", output.stderr.strip() or f"exit code {output.exit_code}")

        ids = [line.strip() for line in output.stdout.splitlines() if line.strip()]
        return ContainerState(host=session.target.host, container_ids=ids, observed_at=datetime.utcnow())

    def transition(
        self,
        session: Session,
        target: ImageReference,
        port: PortBinding,
        deadline: Optional[Deadline] = None,
        registry: Optional[RegistryClient] = None,
    ) -> TransitionReport:
        host = session.target.host

        state = self.observe(session, deadline)
        logger.info(f"[{host}] found {len(state.container_ids)} existing container(s)")

        for container_id in state.container_ids:
            self._retire(session, "stop", container_id, ALREADY_STOPPED, deadline)
        for container_id in state.container_ids:
            self._retire(session, "rm", container_id, ALREADY_REMOVED, deadline)

        registry = registry or self.registry_factory(session)
        try:
            registry.pull(target, deadline=deadline)
        except (AuthError, RegistryError) as e:
            raise DeployError("pull", str(e)) from e

        container_id = self._launch(session, target, port, deadline)
        logger.info(f"[{host}] launched {target} as {container_id[:12]} on port {port}")

        return TransitionReport(
            host=host,
            image=str(target),
            removed=state.container_ids,
            container_id=container_id,
        )

    def _retire(self, session: Session, action: str, container_id: str, markers, deadline):
        step = "stop" if action == "stop" else "remove"
        output = session.run([self.docker, action, container_id], deadline=deadline)
        if output.ok:
            logger.info(f"[{session.target.host}] {step} {container_id}")
            return
        if _already_satisfied(output.stderr, markers):
            logger.info(f"[{session.target.host}] {step} {container_id}: already done")
            return
        raise DeployError(step, f"{container_id}: {output.stderr.strip() or f'exit code {output.exit_code}'}")

    def _launch(self, session: Session, target: ImageReference, port: PortBinding, deadline) -> str:
        argv = [self.docker, "run", "-d", "-p", str(port)]
        if self.container_name:
            argv += ["--name", self.container_name]
        argv.append(str(target))

        output = session.run(argv, deadline=deadline)
        if not output.ok:
            raise DeployError("launch", f"{shlex.join(argv)}: {output.stderr.strip() or output.exit_code}")

        lines = [line.strip() for line in output.stdout.splitlines() if line.strip()]
        if not lines:
            raise DeployError("launch", "docker run did not report a container id")
        return lines[-1]
