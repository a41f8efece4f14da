"""
Pipeline controller - authenticates trigger requests and starts runs.
"""

import logging
from typing import Optional

from api.src.config import Settings
from api.src.models.pipeline import PipelineConfig
from api.src.models.trigger import TriggerPayload, TriggerResponse, PipelineStatusResponse
from api.src.services.auth import AuthenticationFailure, TriggerAuthenticator
from api.src.services.pipeline_parser import default_pipeline_steps, load_pipeline_file
from runner.src.errors import ExecutionInProgress
from runner.src.services.command_runner import build_base_environment
from runner.src.services.executor import PipelineExecutor

logger = logging.getLogger(__name__)

UNAUTHORIZED = TriggerResponse(status_code=401, body="Unauthorized")
ALREADY_RUNNING = TriggerResponse(status_code=409, body="Pipeline already running")
SUCCEEDED = TriggerResponse(status_code=200, body="Pipeline executed successfully")

class PipelineController:
    """
    Request -> authenticate -> execute -> respond.
    Holds no state of its own beyond the collaborators it is given.
    """

    def __init__(
        self,
        config: PipelineConfig,
        executor: PipelineExecutor,
        authenticator: Optional[TriggerAuthenticator] = None,
    ):
        self.config = config
        self.executor = executor
        self.authenticator = authenticator or TriggerAuthenticator()

    async def handle_trigger(
        self,
        payload: Optional[TriggerPayload],
        presented_token: Optional[str],
    ) -> TriggerResponse:
        trigger = payload.trigger if payload is not None else None
        
        try:
            self._authenticate(trigger, presented_token)
        except AuthenticationFailure as e:
            logger.warning(f"Rejected trigger for pipeline {self.config.pipeline_name}: {e}")
            return UNAUTHORIZED
        
        try:
            result = await self.executor.run()
        except ExecutionInProgress:
            logger.info(f"Pipeline {self.config.pipeline_name} already running, trigger rejected")
            return ALREADY_RUNNING
        except Exception as e:
            logger.exception(f"Pipeline {self.config.pipeline_name} aborted unexpectedly")
            return TriggerResponse(status_code=500, body=f"Error executing pipeline: {e}")
        
        if result.succeeded:
            return SUCCEEDED
        
        return TriggerResponse(
            status_code=500,
            body=f"Error executing pipeline: {result.failure.message}",
        )

    def _authenticate(self, trigger: Optional[str], presented_token: Optional[str]):
        # A request without a trigger never reaches the authenticator
        if not trigger:
            raise AuthenticationFailure("missing trigger")
        
        verified = self.authenticator.verify(
            self.config.pipeline_name,
            self.config.secret,
            trigger,
            presented_token,
        )
        if not verified:
            raise AuthenticationFailure("invalid trigger token")

    def status(self) -> PipelineStatusResponse:
        return PipelineStatusResponse(
            pipeline=self.config.pipeline_name,
            state="running" if self.executor.is_running else "idle",
            steps=[step.name for step in self.executor.steps],
        )

    async def shutdown(self):
        """Cancel any in-flight run; its child process is terminated first."""
        if await self.executor.cancel():
            logger.info(f"Cancelled in-flight run of pipeline {self.config.pipeline_name}")

def build_controller(settings: Settings) -> PipelineController:
    """Assemble a controller and its step list from settings."""
    variables = {
        "PIPELINE_NAME": settings.pipeline_name,
        "DEPLOYMENT_ENVIRONMENT": settings.deployment_environment,
        "GIT_REPO_URL": settings.git_repo_url,
    }
    
    if settings.pipeline_file:
        steps = load_pipeline_file(settings.pipeline_file, variables)
        logger.info(f"Loaded {len(steps)} steps from {settings.pipeline_file}")
    else:
        steps = default_pipeline_steps(variables)
        logger.info("No pipeline file configured, using built-in build/deploy steps")
    
    executor = PipelineExecutor(
        base_environment=build_base_environment(settings.inherit_environment),
        default_timeout=settings.step_timeout,
    )
    for step in steps:
        executor.add_pipeline_step(step)
    
    return PipelineController(PipelineConfig.from_settings(settings), executor)
