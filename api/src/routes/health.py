from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])

@router.get("/health")
async def health_check(request: Request):
    controller = request.app.state.controller
    return {
        "status": "healthy",
        "service": "pipeline-runner",
        "pipeline": controller.config.pipeline_name,
    }
