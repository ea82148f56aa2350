"""Dependency injection for the intake API.

The startup context and the pipeline are built once by the application
lifespan and kept on ``app.state``; these providers hand them to the
routes. Tests replace them through ``app.dependency_overrides``.
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from fhir_intake.adapters.parsers import JSONResourceParser
from fhir_intake.domain.services import IntakePipeline
from fhir_intake.infrastructure.context import IntakeContext

logger = logging.getLogger(__name__)


def get_context(request: Request) -> IntakeContext:
    """Return the startup context built by the lifespan.

    Raises:
        HTTPException: 503 if the startup phase has not completed
    """
    context = getattr(request.app.state, "context", None)
    if context is None:
        logger.error("Request received before startup completed")
        raise HTTPException(status_code=503, detail="Service is starting up")
    return context


def get_pipeline(request: Request) -> IntakePipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        logger.error("Request received before the pipeline was created")
        raise HTTPException(status_code=503, detail="Service is starting up")
    return pipeline


@lru_cache()
def get_parser() -> JSONResourceParser:
    """Get the inbound resource parser (cached; it is stateless)."""
    return JSONResourceParser()


# Type aliases for dependency injection
ContextDep = Annotated[IntakeContext, Depends(get_context)]
PipelineDep = Annotated[IntakePipeline, Depends(get_pipeline)]
ParserDep = Annotated[JSONResourceParser, Depends(get_parser)]
