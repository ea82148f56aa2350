"""Health check endpoint for the intake API."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from fhir_intake.api.dependencies import ContextDep
from fhir_intake.api.models.health import ArtifactSummary, HealthResponse, TerminologySummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(context: ContextDep) -> HealthResponse:
    """Health check endpoint.

    Reports the loaded validation artifacts. Artifacts are loaded before the
    first request is served, so a reachable service is healthy; the
    downstream API is not probed.

    Security Impact:
        - Exposes artifact URLs and counts only; the API token is never included
    """
    summary = context.describe()
    artifacts = ArtifactSummary(
        source=summary["source"],
        profiles=summary["profiles"],
        code_systems=[
            TerminologySummary(url=cs["url"], version=cs["version"], size=cs["concepts"])
            for cs in summary["code_systems"]
        ],
        value_sets=[
            TerminologySummary(url=vs["url"], version=vs["version"], size=vs["codes"])
            for vs in summary["value_sets"]
        ],
    )
    return HealthResponse(
        timestamp=datetime.now(timezone.utc),
        version=context.settings.app_version,
        downstream=context.settings.downstream.base_url,
        artifacts=artifacts,
    )
