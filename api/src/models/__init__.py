from api.src.models.pipeline import PipelineConfig
from api.src.models.trigger import (
    TriggerPayload,
    TriggerResponse,
    PipelineStatusResponse,
)

__all__ = [
    "PipelineConfig",
    "TriggerPayload",
    "TriggerResponse",
    "PipelineStatusResponse",
]
