from pydantic import BaseModel, Field

from api.src.config import Settings

class PipelineConfig(BaseModel):
    pipeline_name: str
    secret: bytes = Field(repr=False)

    class Config:
        frozen = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            pipeline_name=settings.pipeline_name,
            secret=settings.trigger_secret.encode(),
        )
