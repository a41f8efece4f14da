"""
Pipeline executor - runs pipeline steps one after another as local processes.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from runner.src.errors import (
    ExecutionInProgress,
    ProcessSpawnError,
    StepExitFailure,
    StepTimeoutError,
)
from runner.src.models.step import (
    ExecutorState,
    PipelineRunResult,
    PipelineStep,
    StepFailure,
    StepResult,
)
from runner.src.services.command_runner import CommandRunner, build_base_environment

logger = logging.getLogger(__name__)

class PipelineExecutor:
    """
    Owns the ordered step list and runs it, at most one run at a time.

    A run request that arrives while another run is active is rejected
    with ExecutionInProgress instead of waiting.
    """

    def __init__(
        self,
        steps: Optional[Iterable[PipelineStep]] = None,
        runner: Optional[CommandRunner] = None,
        base_environment: Optional[Mapping[str, str]] = None,
        default_timeout: Optional[float] = None,
    ):
        self._steps: List[PipelineStep] = list(steps or [])
        self._runner = runner or CommandRunner()
        if base_environment is None:
            base_environment = build_base_environment()
        self._base_environment: Dict[str, str] = dict(base_environment)
        self._default_timeout = default_timeout
        
        self._lock = asyncio.Lock()
        self._state = ExecutorState.IDLE
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ExecutorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def steps(self) -> Tuple[PipelineStep, ...]:
        return tuple(self._steps)

    def add_pipeline_step(self, step: PipelineStep):
        """Append a step. Not allowed while a run is in progress."""
        if self.is_running:
            raise ExecutionInProgress("Cannot add steps while the pipeline is running")
        self._steps.append(step)

    async def run(self) -> PipelineRunResult:
        """
        Execute every step in order.
        Returns the run result; raises ExecutionInProgress if a run is active.
        """
        # No await between the check and the acquire, so this cannot race
        if self._lock.locked():
            raise ExecutionInProgress()
        
        async with self._lock:
            self._state = ExecutorState.RUNNING
            self._task = asyncio.current_task()
            try:
                result = await self._run_steps(list(self._steps))
                self._state = (
                    ExecutorState.SUCCEEDED if result.succeeded else ExecutorState.FAILED
                )
                logger.info(f"Pipeline run finished with status: {self._state.value}")
                return result
            finally:
                self._task = None
                self._state = ExecutorState.IDLE

    async def cancel(self) -> bool:
        """
        Abort the active run, if any, and wait for it to unwind.
        The child process is terminated before the run lock is released.
        """
        task = self._task
        if task is None or task.done():
            return False
        
        # Already being cancelled (e.g. by the server): just wait for it
        if not task.cancelling():
            logger.warning("Cancelling active pipeline run")
            task.cancel()
        await asyncio.wait({task})
        return True

    async def _run_steps(self, steps: List[PipelineStep]) -> PipelineRunResult:
        logger.info(f"Starting pipeline run with {len(steps)} steps")
        completed: List[StepResult] = []
        
        for i, step in enumerate(steps):
            logger.info(f"Executing step {i}: {step.name}")
            timeout = step.timeout if step.timeout is not None else self._default_timeout
            
            try:
                result = await self._runner.execute(
                    step.command,
                    step.environment_variables,
                    self._base_environment,
                    step_name=step.name,
                    shell=step.shell,
                    timeout=timeout,
                    cwd=step.working_directory,
                )
                completed.append(result)
                if result.exit_code != 0:
                    raise StepExitFailure(step.name, result.exit_code)
            except ProcessSpawnError as e:
                logger.error(f"Step {i} ({step.name}) could not be started: {e.reason}")
                return self._failed(
                    completed,
                    StepFailure(
                        step_name=step.name,
                        message=f"Step '{step.name}' could not be started: {e.reason}",
                    ),
                )
            except StepTimeoutError as e:
                logger.error(f"Step {i} ({step.name}) timed out")
                if e.result is not None:
                    completed.append(e.result)
                return self._failed(
                    completed,
                    StepFailure(
                        step_name=step.name,
                        exit_code=e.result.exit_code if e.result is not None else None,
                        message=str(e),
                    ),
                )
            except StepExitFailure as e:
                logger.error(f"Step {i} ({step.name}) failed with exit code {e.exit_code}")
                return self._failed(
                    completed,
                    StepFailure(
                        step_name=e.step_name,
                        exit_code=e.exit_code,
                        message=str(e),
                    ),
                )
            
            logger.info(f"Step {i} ({step.name}) succeeded")
        
        return PipelineRunResult(succeeded=True, completed_steps=completed)

    @staticmethod
    def _failed(completed: List[StepResult], failure: StepFailure) -> PipelineRunResult:
        return PipelineRunResult(
            succeeded=False,
            completed_steps=completed,
            failure=failure,
        )
