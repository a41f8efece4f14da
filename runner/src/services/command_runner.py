"""
Run a single step command as a local child process.
"""

import asyncio
import logging
import os
import shlex
import signal
from datetime import datetime
from typing import Dict, Iterable, Mapping, Optional

from runner.src.errors import ProcessSpawnError, StepTimeoutError
from runner.src.models.step import StepResult
from runner.src.services.log_collector import OutputSink, log_output, stream_logs

logger = logging.getLogger(__name__)

# Parent variables a step inherits unless told otherwise
SAFE_ENVIRONMENT = (
    "PATH",
    "HOME",
    "USER",
    "LOGNAME",
    "SHELL",
    "LANG",
    "LC_ALL",
    "TZ",
    "TMPDIR",
)

TERMINATE_GRACE_PERIOD = 10.0

def build_base_environment(
    names: Iterable[str] = SAFE_ENVIRONMENT,
    source: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Pick the allowed variables out of the parent environment."""
    source = os.environ if source is None else source
    return {name: source[name] for name in names if name in source}

class CommandRunner:
    """
    Spawns one process per call and waits for it to finish.

    Output is streamed to the sink while it is produced and also buffered
    into the returned StepResult. The child is never left running once
    execute() returns or raises.
    """

    def __init__(
        self,
        output_sink: Optional[OutputSink] = None,
        terminate_grace_period: float = TERMINATE_GRACE_PERIOD,
    ):
        self._sink = output_sink or log_output
        self._grace_period = terminate_grace_period

    async def execute(
        self,
        command: str,
        env: Mapping[str, str],
        base_env: Mapping[str, str],
        *,
        step_name: Optional[str] = None,
        shell: bool = False,
        timeout: Optional[float] = None,
        cwd: Optional[str] = None,
    ) -> StepResult:
        """
        Run `command` with `env` merged over `base_env`.

        Raises ProcessSpawnError if the process cannot be started and
        StepTimeoutError if it outlives `timeout`. A non-zero exit is not
        an error here; it is reported through the result.
        """
        step_name = step_name or command
        environment = {**base_env, **env}
        
        process = await self._spawn(command, environment, shell, cwd)
        started_at = datetime.utcnow()
        logger.debug(f"Started process {process.pid} for step {step_name}")
        
        stdout = bytearray()
        stderr = bytearray()
        readers = [
            asyncio.ensure_future(stream_logs(process.stdout, stdout, step_name, "stdout", self._sink)),
            asyncio.ensure_future(stream_logs(process.stderr, stderr, step_name, "stderr", self._sink)),
        ]
        
        async def communicate() -> int:
            await asyncio.gather(*readers)
            # Exit is observed only after both streams are drained
            return await process.wait()
        
        try:
            exit_code = await asyncio.wait_for(communicate(), timeout)
        except asyncio.TimeoutError:
            logger.error(f"Step {step_name} timed out after {timeout}s")
            await self.terminate(process)
            result = StepResult(
                step_name=step_name,
                exit_code=process.returncode,
                stdout=bytes(stdout),
                stderr=bytes(stderr),
                started_at=started_at,
                finished_at=datetime.utcnow(),
            )
            raise StepTimeoutError(step_name, timeout, result)
        except BaseException:
            # Cancellation, a failing sink or anything else: the child goes first
            if process.returncode is None:
                logger.warning(f"Step {step_name} aborted, terminating process {process.pid}")
            await self.terminate(process)
            raise
        finally:
            for reader in readers:
                reader.cancel()
        
        return StepResult(
            step_name=step_name,
            exit_code=exit_code,
            stdout=bytes(stdout),
            stderr=bytes(stderr),
            started_at=started_at,
            finished_at=datetime.utcnow(),
        )

    async def _spawn(
        self,
        command: str,
        environment: Dict[str, str],
        shell: bool,
        cwd: Optional[str],
    ) -> asyncio.subprocess.Process:
        options = dict(
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=environment,
            cwd=cwd,
            # Own process group so termination reaches grandchildren too
            start_new_session=True,
        )
        
        try:
            if shell:
                return await asyncio.create_subprocess_shell(command, **options)
            
            argv = shlex.split(command)
            if not argv:
                raise ProcessSpawnError(command, "empty command")
            return await asyncio.create_subprocess_exec(*argv, **options)
        except ValueError as e:
            # shlex: unbalanced quotes and the like
            raise ProcessSpawnError(command, str(e)) from e
        except OSError as e:
            raise ProcessSpawnError(command, e.strerror or str(e)) from e

    async def terminate(self, process: asyncio.subprocess.Process):
        """
        SIGTERM the process group, escalate to SIGKILL, and reap the child.

        A cancellation arriving meanwhile does not cut this short; it is
        re-raised once the child has been reaped.
        """
        if process.returncode is not None:
            return
        
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._grace_period
        killed = False
        cancelled = None
        
        self._signal_group(process, signal.SIGTERM)
        while process.returncode is None:
            remaining = None if killed else max(deadline - loop.time(), 0)
            try:
                await asyncio.wait_for(asyncio.shield(process.wait()), remaining)
            except asyncio.TimeoutError:
                logger.warning(f"Process {process.pid} ignored SIGTERM, killing")
                self._signal_group(process, signal.SIGKILL)
                killed = True
            except asyncio.CancelledError as e:
                cancelled = e
        
        if cancelled is not None:
            raise cancelled

    @staticmethod
    def _signal_group(process: asyncio.subprocess.Process, sig: int):
        try:
            os.killpg(process.pid, sig)
        except ProcessLookupError:
            pass
