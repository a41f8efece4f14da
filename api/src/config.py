from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional

from runner.src.services.command_runner import SAFE_ENVIRONMENT

class Settings(BaseSettings):
    pipeline_name: str = "default"
    trigger_secret: str = ""
    git_repo_url: str = ""
    deployment_environment: str = "production"

    # TLS is mandatory for the listening socket
    tls_certificate: str = ""
    tls_key: str = ""

    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # YAML step definitions; the built-in build/deploy pipeline when empty
    pipeline_file: str = ""
    step_timeout: Optional[float] = None
    inherit_environment: List[str] = list(SAFE_ENVIRONMENT)

    # Seconds uvicorn waits for an in-flight run before cancelling it on shutdown
    shutdown_grace_period: int = 30

    log_level: str = "INFO"

    class Config:
        env_file = ".env"

@lru_cache()
def get_settings() -> Settings:
    return Settings()
