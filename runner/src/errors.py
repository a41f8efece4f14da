"""
Errors raised while running pipeline steps.
"""

from typing import Optional

from runner.src.models.step import StepResult


class PipelineError(Exception):
    """Base class for pipeline execution errors."""
    pass


class ExecutionInProgress(PipelineError):
    """Raised when a run is requested while another run is active."""

    def __init__(self, message: str = "Pipeline already running"):
        super().__init__(message)


class ProcessSpawnError(PipelineError):
    """Raised when a step's process cannot be launched at all."""

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to start '{command}': {reason}")


class StepExitFailure(PipelineError):
    """A step process exited with a non-zero status."""

    def __init__(self, step_name: str, exit_code: int):
        self.step_name = step_name
        self.exit_code = exit_code
        super().__init__(f"Step '{step_name}' failed with exit code {exit_code}")


class StepTimeoutError(PipelineError):
    """
    A step ran past its time limit and was terminated.
    Carries the partial result collected before termination.
    """

    def __init__(self, step_name: str, timeout: float, result: Optional[StepResult] = None):
        self.step_name = step_name
        self.timeout = timeout
        self.result = result
        super().__init__(f"Step '{step_name}' timed out after {timeout:g} seconds")
