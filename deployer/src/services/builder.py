"""
Image builder - turns a build context into a tagged image.
"""

import logging
import os
from typing import Dict, Optional

from pydantic import BaseModel

from deployer.src.config import get_settings
from deployer.src.deadline import Deadline
from deployer.src.errors import BackendFailed, MissingDescriptor
from deployer.src.models.target import ImageReference
from deployer.src.services.runner import CommandRunner, LocalRunner

logger = logging.getLogger(__name__)
settings = get_settings()

class BuildContext(BaseModel):
    path: str
    descriptor: str = "Dockerfile"
    build_args: Dict[str, str] = {}

    @property
    def descriptor_path(self) -> str:
        return os.path.join(self.path, self.descriptor)

class ArtifactBuilder:
    def __init__(self, runner: Optional[CommandRunner] = None, docker: Optional[str] = None):
        self.runner = runner or LocalRunner()
        self.docker = docker or settings.docker_binary

    def build(
        self,
        context: BuildContext,
        ref: ImageReference,
        deadline: Optional[Deadline] = None,
    ) -> ImageReference:
        """
        Build `ref` from `context`.
        Build failures are deterministic, so nothing here retries.
        """
        if not os.path.isdir(context.path) or not os.path.isfile(context.descriptor_path):
            raise MissingDescriptor(context.descriptor_path)

        argv = [self.docker, "build", "-t", str(ref), "-f", context.descriptor_path]
        for key, value in context.build_args.items():
            argv += ["--build-arg", f"{key}={value}"]
        argv.append(context.path)

        logger.info(f"Building image {ref} from {context.path}")
        output = self.runner.run(argv, deadline=deadline)

        if not output.ok:
            detail = output.stderr.strip().splitlines()[-1] if output.stderr.strip() else ""
            logger.error(f"Build of {ref} failed with exit code {output.exit_code}")
            raise BackendFailed(output.exit_code, detail)

        logger.info(f"Built image {ref}")
        return ref
