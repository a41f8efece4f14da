"""
Pipeline trigger endpoint.
"""

from fastapi import APIRouter, Request, Header, Depends
from fastapi.responses import PlainTextResponse
from typing import Optional
import logging

from api.src.models.trigger import TriggerPayload, PipelineStatusResponse
from api.src.services.controller import PipelineController

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pipeline", tags=["pipeline"])

def get_controller(request: Request) -> PipelineController:
    return request.app.state.controller

async def read_trigger_payload(request: Request) -> TriggerPayload:
    """Pull the trigger value out of the JSON body; anything malformed counts as absent."""
    try:
        body = await request.json()
    except ValueError:
        logger.debug("Trigger request body is not valid JSON")
        return TriggerPayload()
    
    trigger = body.get("trigger") if isinstance(body, dict) else None
    if not isinstance(trigger, str):
        return TriggerPayload()
    return TriggerPayload(trigger=trigger)

@router.post("", response_class=PlainTextResponse)
async def trigger_pipeline(
    payload: TriggerPayload = Depends(read_trigger_payload),
    controller: PipelineController = Depends(get_controller),
    x_trigger_token: Optional[str] = Header(None),
):
    """
    Run the pipeline if the trigger token is valid.
    Blocks until the run finishes and reports its outcome.
    """
    response = await controller.handle_trigger(payload, x_trigger_token)
    return PlainTextResponse(response.body, status_code=response.status_code)

@router.get("/status", response_model=PipelineStatusResponse)
async def pipeline_status(controller: PipelineController = Depends(get_controller)):
    return controller.status()
