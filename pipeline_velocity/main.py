"""
FastAPI application entry point for the Pipeline Velocity API.

Configures logging and CORS, registers the velocity router, and starts the
ASGI server when run directly.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pipeline_velocity import __version__
from pipeline_velocity.api.velocity import router as velocity_router
from pipeline_velocity.core.config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.

    On startup:
        - Log whether a generation provider is configured

    On shutdown:
        - Log shutdown message
    """
    settings = get_settings()
    logger.info("Pipeline Velocity API starting")
    if settings.generation_enabled:
        logger.info(
            f"Generation provider: {settings.generation_provider.value} ({settings.generation_model})"
        )
    else:
        logger.info("No generation provider configured; only deterministic insights are available")

    yield

    logger.info("Pipeline Velocity API shutting down")


app = FastAPI(
    title="Pipeline Velocity API",
    version=__version__,
    description=(
        "Grounded recruiting velocity analytics. Provides decay curves, "
        "fast vs slow hire cohorts, workload analysis, a redacted fact pack "
        "and citation-validated insights."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(velocity_router, tags=["velocity"])  # Has its own /velocity prefix


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    """
    Root endpoint providing API information.

    Returns:
        Dict with API name and version
    """
    return {
        "name": "Pipeline Velocity API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pipeline_velocity.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
