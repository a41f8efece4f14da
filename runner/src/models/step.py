"""
Step execution models.
"""

from pydantic import BaseModel
from typing import List, Optional, Dict
from datetime import datetime
from enum import Enum

class StepStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"

class ExecutorState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

class PipelineStep(BaseModel):
    name: str
    command: str
    environment_variables: Dict[str, str] = {}
    shell: bool = False
    timeout: Optional[float] = None
    working_directory: Optional[str] = None

    class Config:
        frozen = True

class StepResult(BaseModel):
    step_name: str
    exit_code: int
    stdout: bytes = b""
    stderr: bytes = b""
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def status(self) -> StepStatus:
        return StepStatus.SUCCEEDED if self.exit_code == 0 else StepStatus.FAILED

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

class StepFailure(BaseModel):
    step_name: str
    exit_code: Optional[int] = None
    message: str

class PipelineRunResult(BaseModel):
    succeeded: bool
    completed_steps: List[StepResult] = []
    failure: Optional[StepFailure] = None
