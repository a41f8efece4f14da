"""
Pipeline runner API - HTTPS entry point.
"""

import argparse
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional, List

import uvicorn
from fastapi import FastAPI

from api.src.config import Settings, get_settings
from api.src.routes import health_router, pipeline_router
from api.src.services.controller import PipelineController, build_controller
from api.src.services.pipeline_parser import PipelineConfigError

logger = logging.getLogger(__name__)

def create_app(controller: Optional[PipelineController] = None) -> FastAPI:
    """
    Build the FastAPI app around a controller.
    Without one, the controller is assembled from settings at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        if getattr(app.state, "controller", None) is None:
            app.state.controller = build_controller(get_settings())
        logger.info(f"Starting pipeline runner for '{app.state.controller.config.pipeline_name}'")
        yield
        # Shutdown
        await app.state.controller.shutdown()
        logger.info("Shutting down pipeline runner")

    app = FastAPI(
        title="Pipeline Runner",
        description="Webhook-triggered deployment pipeline runner",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.controller = controller

    # Include routers
    app.include_router(health_router)
    app.include_router(pipeline_router)

    return app

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the deployment pipeline trigger server")
    parser.add_argument("--pipeline-name", dest="pipeline_name")
    parser.add_argument("--git-repo-url", dest="git_repo_url")
    parser.add_argument("--deployment-environment", dest="deployment_environment")
    parser.add_argument("--tls-certificate", dest="tls_certificate")
    parser.add_argument("--tls-key", dest="tls_key")
    parser.add_argument("--pipeline-file", dest="pipeline_file")
    parser.add_argument("--host", dest="api_host")
    parser.add_argument("--port", dest="api_port", type=int)
    return parser.parse_args(argv)

def load_settings(args: argparse.Namespace) -> Settings:
    """Settings from the environment, overridden by command-line flags."""
    overrides = {key: value for key, value in vars(args).items() if value is not None}
    return get_settings().model_copy(update=overrides)

def check_settings(settings: Settings) -> List[str]:
    """Return a list of reasons the server cannot start."""
    problems = []
    if not settings.trigger_secret:
        problems.append("TRIGGER_SECRET is not set")
    if not settings.tls_certificate or not settings.tls_key:
        problems.append("TLS certificate and key are required")
    else:
        for path in (settings.tls_certificate, settings.tls_key):
            if not os.path.isfile(path):
                problems.append(f"TLS file not found: {path}")
    return problems

def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    settings = load_settings(parse_args(argv))
    
    # Configure logging
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    
    problems = check_settings(settings)
    if problems:
        for problem in problems:
            logger.error(problem)
        sys.exit(1)
    
    try:
        controller = build_controller(settings)
    except PipelineConfigError as e:
        logger.error(f"Invalid pipeline configuration: {e}")
        sys.exit(1)
    
    logger.info(
        f"Secure pipeline controller '{settings.pipeline_name}' "
        f"listening on {settings.api_host}:{settings.api_port}"
    )
    uvicorn.run(
        create_app(controller),
        host=settings.api_host,
        port=settings.api_port,
        ssl_certfile=settings.tls_certificate,
        ssl_keyfile=settings.tls_key,
        timeout_graceful_shutdown=settings.shutdown_grace_period,
        log_config=None,
    )

if __name__ == "__main__":
    main()
