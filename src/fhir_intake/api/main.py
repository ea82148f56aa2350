"""Main FastAPI application for FHIR-Intake.

This module sets up the FastAPI application with its routes, middleware and
the lifespan that runs the startup phase.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fhir_intake.api.middleware import setup_middleware
from fhir_intake.api.routes import fhir, health
from fhir_intake.infrastructure.context import build_context
from fhir_intake.infrastructure.logging_config import setup_logging
from fhir_intake.infrastructure.settings import settings
from fhir_intake.main import create_pipeline

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the startup phase once and tear the forwarder down on shutdown.

    An ArtifactLoadError propagates and stops the server before any request
    is served.
    """
    setup_logging(use_json=settings.json_logs, log_level=settings.log_level, service=settings.app_name)
    logger.info(f"{settings.app_name} API starting up...")

    context = build_context(settings)
    pipeline = create_pipeline(context)
    app.state.context = context
    app.state.pipeline = pipeline
    logger.info(f"Forwarding to {settings.downstream.base_url}")
    logger.info("API documentation available at /api/docs")
    yield

    logger.info(f"{settings.app_name} API shutting down...")
    close = getattr(pipeline.forwarder, "close", None)
    if callable(close):
        close()


# Create FastAPI application
app = FastAPI(
    title="FHIR-Intake API",
    description="Validates FHIR Patient and DocumentReference resources and forwards them downstream",
    version=settings.app_version,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

setup_middleware(app)

app.include_router(health.router)
app.include_router(fhir.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "FHIR-Intake API",
        "version": settings.app_version,
        "docs": "/api/docs",
        "health": "/api/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "fhir_intake.api.main:app",
        host=settings.host,
        port=settings.port,
        log_level="info"
    )
