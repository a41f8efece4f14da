from runner.src.models.step import (
    StepStatus,
    ExecutorState,
    PipelineStep,
    StepResult,
    StepFailure,
    PipelineRunResult,
)

__all__ = [
    "StepStatus",
    "ExecutorState",
    "PipelineStep",
    "StepResult",
    "StepFailure",
    "PipelineRunResult",
]
