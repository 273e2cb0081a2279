from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    redis_url: str = "redis://localhost:6379/0"
    log_level: str = "INFO"

    # Run settings
    run_timeout: int = 1800  # 30 minutes for a whole pipeline run
    command_timeout: int = 600  # Per local/remote command when no run deadline

    # Registry settings
    registry_max_retries: int = 3
    registry_backoff: float = 1.0

    # Tooling
    docker_binary: str = "docker"
    ssh_binary: str = "ssh"
    ssh_connect_timeout: int = 10
    default_host_key_policy: str = "strict"

    class Config:
        env_file = ".env"
        env_prefix = "DEPLOYX_"

@lru_cache()
def get_settings() -> Settings:
    return Settings()
