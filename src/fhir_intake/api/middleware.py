"""Middleware configuration for the intake API.

Request logging and a last-resort error handler that answers with an
OperationOutcome instead of a bare stack trace.
"""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from fhir_intake.domain.outcome import Messages, Outcome, OutcomeCode, OutcomeSeverity

logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request/response logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log method, path, status and processing time.

        Returns:
            Response: HTTP response with X-Process-Time header
        """
        start_time = time.time()
        logger.info(
            f"{request.method} {request.url.path} - "
            f"Client: {request.client.host if request.client else 'unknown'}"
        )

        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.3f}s"
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turns unhandled exceptions into a 500 OperationOutcome."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error on {request.method} {request.url.path}: {type(e).__name__}", exc_info=True)
            outcome = Outcome(OutcomeSeverity.ERROR, OutcomeCode.EXCEPTION, Messages.INTERNAL_SERVER_ERROR)
            return JSONResponse(
                status_code=500,
                content=outcome.to_operation_outcome(),
                media_type=FHIR_JSON,
            )


def setup_middleware(app) -> None:
    """Setup application middleware.

    Middleware Order:
        1. ErrorHandlingMiddleware - innermost, catches route errors
        2. LoggingMiddleware - outermost, logs every response including errors
    """
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(LoggingMiddleware)
