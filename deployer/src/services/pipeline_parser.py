"""
Pipeline YAML parser and validator.
"""

import yaml
from typing import List, Dict, Any, Optional

from deployer.src.errors import ConfigurationError
from deployer.src.models.target import HostKeyPolicy, ImageReference, PortBinding

KNOWN_STAGES = ("test", "build", "deploy")

def parse_pipeline_config(yaml_content: str) -> Dict[str, Any]:
    """Parse pipeline YAML configuration from string."""
    try:
        config = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML: {e}")

    return validate_config(config)

def parse_pipeline_file(path: str) -> Dict[str, Any]:
    """Parse pipeline YAML configuration from a file."""
    try:
        with open(path, "r") as f:
            content = f.read()
    except OSError as e:
        raise ConfigurationError(f"Cannot read pipeline file '{path}': {e.strerror}")
    return parse_pipeline_config(content)

def parse_pipeline_dict(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate pipeline configuration from dict."""
    return validate_config(config)

def validate_config(config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate pipeline configuration structure."""
    if not config:
        raise ConfigurationError("Empty pipeline configuration")

    if not isinstance(config, dict):
        raise ConfigurationError("Pipeline configuration must be a dictionary")

    name = config.get("name", "Unnamed Pipeline")
    if not isinstance(name, str):
        raise ConfigurationError("Pipeline 'name' must be a string")

    if "image" not in config:
        raise ConfigurationError("Pipeline must have 'image' defined")
    image = _validate_image(config["image"])

    stages = _validate_stage_order(config)

    validated = {
        "name": name,
        "image": image,
        "stages": stages,
        "registry": validate_registry(config.get("registry")),
    }
    if "test" in stages:
        validated["test"] = validate_test(config["test"])
    if "build" in stages:
        validated["build"] = validate_build(config["build"])
    if "deploy" in stages:
        validated["deploy"] = validate_deploy(config["deploy"])
        # The deployed image only exists once a build stage has pushed it
        if "build" not in stages[:stages.index("deploy")]:
            raise ConfigurationError("Stage 'deploy' needs a 'build' stage before it")
    return validated

def _validate_image(value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigurationError("Pipeline 'image' must be a string")
    try:
        return str(ImageReference.parse(value))
    except ValueError:
        raise ConfigurationError(f"Pipeline 'image' is not a valid image reference: {value!r}")

def _validate_stage_order(config: Dict[str, Any]) -> List[str]:
    if "stages" not in config:
        stages = [name for name in KNOWN_STAGES if name in config]
        if not stages:
            raise ConfigurationError("Pipeline must define at least one of 'test', 'build' or 'deploy'")
        return stages

    stages = config["stages"]
    if not isinstance(stages, list) or len(stages) == 0:
        raise ConfigurationError("Pipeline 'stages' must be a non-empty list")

    for i, stage in enumerate(stages):
        if stage not in KNOWN_STAGES:
            raise ConfigurationError(f"Stage {i} '{stage}' is not one of {', '.join(KNOWN_STAGES)}")
        if stage not in config:
            raise ConfigurationError(f"Stage '{stage}' is listed but has no '{stage}' section")
    if len(set(stages)) != len(stages):
        raise ConfigurationError("Pipeline 'stages' must not repeat a stage")
    return list(stages)

def validate_test(section: Any) -> Dict[str, Any]:
    if not isinstance(section, dict):
        raise ConfigurationError("'test' must be a dictionary")

    if "commands" not in section:
        raise ConfigurationError("'test' missing 'commands'")

    commands = section["commands"]
    if not isinstance(commands, list) or len(commands) == 0:
        raise ConfigurationError("'test' 'commands' must be a non-empty list")

    for j, cmd in enumerate(commands):
        if not isinstance(cmd, str):
            raise ConfigurationError(f"'test' command {j} must be a string")

    return {
        "commands": commands,
        "workdir": _optional_str(section, "workdir", "test", "."),
    }

def validate_build(section: Any) -> Dict[str, Any]:
    if section is None:
        section = {}
    if not isinstance(section, dict):
        raise ConfigurationError("'build' must be a dictionary")

    build_args = section.get("build_args", {})
    if not isinstance(build_args, dict):
        raise ConfigurationError("'build' 'build_args' must be a dictionary")

    return {
        "context": _optional_str(section, "context", "build", "."),
        "dockerfile": _optional_str(section, "dockerfile", "build", "Dockerfile"),
        "build_args": {str(k): str(v) for k, v in build_args.items()},
    }

def validate_registry(section: Any) -> Dict[str, Any]:
    if section is None:
        return {"server": "", "username": None, "password_env": None}
    if not isinstance(section, dict):
        raise ConfigurationError("'registry' must be a dictionary")

    password_env = section.get("password_env")
    username = section.get("username")
    if password_env is not None and not isinstance(password_env, str):
        raise ConfigurationError("'registry' 'password_env' must be a string")
    if password_env and not isinstance(username, str):
        raise ConfigurationError("'registry' needs 'username' when 'password_env' is set")

    return {
        "server": _optional_str(section, "server", "registry", ""),
        "username": username,
        "password_env": password_env,
    }

def validate_deploy(section: Any) -> Dict[str, Any]:
    if not isinstance(section, dict):
        raise ConfigurationError("'deploy' must be a dictionary")

    for field in ("host", "port"):
        if field not in section:
            raise ConfigurationError(f"'deploy' missing '{field}'")

    if not isinstance(section["host"], str) or not section["host"]:
        raise ConfigurationError("'deploy' 'host' must be a string")

    key_env = _nullable_str(section, "key_env", "deploy")
    key_file = _nullable_str(section, "key_file", "deploy")
    if not key_env and not key_file:
        raise ConfigurationError("'deploy' needs 'key_env' or 'key_file'")

    try:
        port = str(PortBinding.parse(section["port"]))
    except ValueError as e:
        raise ConfigurationError(f"'deploy' 'port' is invalid: {e}")

    ssh_port = section.get("ssh_port", 22)
    if not isinstance(ssh_port, int) or isinstance(ssh_port, bool):
        raise ConfigurationError("'deploy' 'ssh_port' must be an integer")
    if not 1 <= ssh_port <= 65535:
        raise ConfigurationError(f"'deploy' 'ssh_port' {ssh_port} out of range")

    policy = section.get("host_key_policy", HostKeyPolicy.STRICT.value)
    try:
        policy = HostKeyPolicy(policy).value
    except ValueError:
        allowed = ", ".join(p.value for p in HostKeyPolicy)
        raise ConfigurationError(f"'deploy' 'host_key_policy' must be one of {allowed}")

    return {
        "host": section["host"],
        "user": _optional_str(section, "user", "deploy", "ubuntu"),
        "ssh_port": ssh_port,
        "key_env": key_env,
        "key_file": key_file,
        "host_key_policy": policy,
        "port": port,
        "container_name": _nullable_str(section, "container_name", "deploy"),
    }

def _optional_str(section: Dict[str, Any], key: str, where: str, default: str) -> str:
    value = section.get(key, default)
    if not isinstance(value, str):
        raise ConfigurationError(f"'{where}' '{key}' must be a string")
    return value

def _nullable_str(section: Dict[str, Any], key: str, where: str) -> Optional[str]:
    value = section.get(key)
    if value is not None and not isinstance(value, str):
        raise ConfigurationError(f"'{where}' '{key}' must be a string")
    return value
