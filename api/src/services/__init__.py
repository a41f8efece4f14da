from api.src.services.auth import (
    AuthenticationFailure,
    TriggerAuthenticator,
    compute_trigger_token,
)
from api.src.services.controller import PipelineController, build_controller
from api.src.services.pipeline_parser import (
    parse_pipeline_config,
    parse_pipeline_dict,
    load_pipeline_file,
    default_pipeline_steps,
    PipelineConfigError,
)

__all__ = [
    "AuthenticationFailure",
    "TriggerAuthenticator",
    "compute_trigger_token",
    "PipelineController",
    "build_controller",
    "parse_pipeline_config",
    "parse_pipeline_dict",
    "load_pipeline_file",
    "default_pipeline_steps",
    "PipelineConfigError",
]
