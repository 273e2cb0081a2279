"""
Turn a validated pipeline configuration into runnable stages.
"""

import os
from typing import Any, Dict, List, Mapping, Optional

from deployer.src.models.credential import Credential
from deployer.src.models.target import HostKeyPolicy, ImageReference, PortBinding, RemoteTarget
from deployer.src.services.builder import ArtifactBuilder, BuildContext
from deployer.src.services.lifecycle import ContainerLifecycleManager
from deployer.src.services.orchestrator import Stage
from deployer.src.services.registry import RegistryClient
from deployer.src.services.remote import RemoteExecutor
from deployer.src.services.runner import LocalRunner
from deployer.src.services.stages import BuildStage, DeployStage, TestStage

class PipelinePlan:
    """Stages ready to hand to the orchestrator, plus the credentials they hold."""

    def __init__(self, name: str, stages: List[Stage], credentials: List[Credential]):
        self.name = name
        self.stages = stages
        self.credentials = credentials

def assemble_pipeline(
    config: Dict[str, Any],
    base_dir: str = ".",
    environ: Optional[Mapping[str, str]] = None,
    runner: Optional[LocalRunner] = None,
    executor: Optional[RemoteExecutor] = None,
) -> PipelinePlan:
    """
    Build stages from a config produced by the pipeline parser.
    Credentials are resolved here; if resolution fails, anything already acquired is released.
    """
    credentials: List[Credential] = []
    try:
        registry_conf = config["registry"]
        registry_credential = None
        if registry_conf["password_env"]:
            registry_credential = Credential.from_env(registry_conf["password_env"], environ)
            credentials.append(registry_credential)

        ssh_credential = None
        deploy = config.get("deploy")
        if deploy is not None:
            if deploy["key_env"]:
                ssh_credential = Credential.from_env(deploy["key_env"], environ)
            else:
                ssh_credential = Credential.from_file(deploy["key_file"])
            credentials.append(ssh_credential)
    except BaseException:
        for credential in credentials:
            credential.release()
        raise

    image = ImageReference.parse(config["image"])
    runner = runner or LocalRunner()
    stages: List[Stage] = []

    for stage_name in config["stages"]:
        if stage_name == "test":
            test = config["test"]
            stages.append(TestStage(
                test["commands"],
                runner=LocalRunner(cwd=os.path.join(base_dir, test["workdir"]), timeout=runner.timeout),
            ))
        elif stage_name == "build":
            build = config["build"]
            stages.append(BuildStage(
                builder=ArtifactBuilder(runner),
                registry=RegistryClient(runner, registry=registry_conf["server"]),
                context=BuildContext(
                    path=os.path.join(base_dir, build["context"]),
                    descriptor=build["dockerfile"],
                    build_args=build["build_args"],
                ),
                image=image,
                credential=registry_credential,
                username=registry_conf["username"],
            ))
        elif stage_name == "deploy":
            target = RemoteTarget(
                host=deploy["host"],
                user=deploy["user"],
                port=deploy["ssh_port"],
                credential=ssh_credential.label,
                host_key_policy=HostKeyPolicy(deploy["host_key_policy"]),
            )
            stages.append(DeployStage(
                executor=executor or RemoteExecutor(runner),
                lifecycle=ContainerLifecycleManager(container_name=deploy["container_name"]),
                target=target,
                credential=ssh_credential,
                port=PortBinding.parse(deploy["port"]),
                registry_credential=registry_credential,
                registry_username=registry_conf["username"],
                registry_server=registry_conf["server"],
            ))

    return PipelinePlan(config["name"], stages, credentials)
