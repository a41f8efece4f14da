from pydantic import BaseModel
from typing import Optional, List

class TriggerPayload(BaseModel):
    trigger: Optional[str] = None

class TriggerResponse(BaseModel):
    status_code: int
    body: str

class PipelineStatusResponse(BaseModel):
    pipeline: str
    state: str
    steps: List[str] = []
