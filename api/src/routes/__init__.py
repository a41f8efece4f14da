from api.src.routes.health import router as health_router
from api.src.routes.pipeline import router as pipeline_router

__all__ = ["health_router", "pipeline_router"]
