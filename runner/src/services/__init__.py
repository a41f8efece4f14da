from runner.src.services.command_runner import (
    CommandRunner,
    build_base_environment,
    SAFE_ENVIRONMENT,
)
from runner.src.services.executor import PipelineExecutor
from runner.src.services.log_collector import log_output, stream_logs

__all__ = [
    "CommandRunner",
    "build_base_environment",
    "SAFE_ENVIRONMENT",
    "PipelineExecutor",
    "log_output",
    "stream_logs",
]
