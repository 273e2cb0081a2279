"""
Deployment target models: images, ports and remote hosts.
"""

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from typing import List, Optional, Union
from datetime import datetime
from enum import Enum

class ImageReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    repository: str
    tag: str = "latest"

    @field_validator("repository", "tag")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        if any(c.isspace() for c in value):
            raise ValueError("must not contain whitespace")
        return value

    @classmethod
    def parse(cls, value: str) -> "ImageReference":
        """Parse `repo[:tag]`; a colon before the last slash belongs to a registry host."""
        value = value.strip()
        slash = value.rfind("/")
        colon = value.rfind(":")
        if colon > slash:
            return cls(repository=value[:colon], tag=value[colon + 1:])
        return cls(repository=value)

    def __str__(self) -> str:
        return f"{self.repository}:{self.tag}"

class PortBinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    host_port: int
    container_port: Optional[int] = None

    @field_validator("host_port", "container_port")
    @classmethod
    def valid_port(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not 1 <= value <= 65535:
            raise ValueError(f"port {value} out of range")
        return value

    @model_validator(mode="before")
    @classmethod
    def default_container_port(cls, data):
        if isinstance(data, dict) and data.get("container_port") is None:
            data = {**data, "container_port": data.get("host_port")}
        return data

    @classmethod
    def parse(cls, value: Union[int, str]) -> "PortBinding":
        if isinstance(value, int):
            return cls(host_port=value)
        host, _, container = str(value).strip().partition(":")
        try:
            if container:
                return cls(host_port=int(host), container_port=int(container))
            return cls(host_port=int(host))
        except ValueError:
            raise ValueError(f"Invalid port binding: {value!r}")

    def __str__(self) -> str:
        return f"{self.host_port}:{self.container_port}"

class HostKeyPolicy(str, Enum):
    STRICT = "strict"
    ACCEPT_NEW = "accept-new"
    # Known insecure: disables host verification. Only for throwaway hosts.
    SKIP = "skip"

class RemoteTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str
    user: str = "ubuntu"
    port: int = 22
    credential: str
    host_key_policy: HostKeyPolicy = HostKeyPolicy.STRICT

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}"

class CommandOutput(BaseModel):
    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

class ContainerState(BaseModel):
    """Snapshot of containers on a host. Observed only, never cached."""
    host: str
    container_ids: List[str] = []
    observed_at: datetime
