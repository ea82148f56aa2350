"""Health check models for the intake API."""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field


class TerminologySummary(BaseModel):
    """One loaded code system or value set.

    Attributes:
        url: Canonical URL
        version: Business version, if declared
        size: Number of concepts (code system) or expansion codes (value set)
    """
    url: str
    version: Optional[str] = None
    size: int = Field(..., ge=0, description="Concept or code count")


class ArtifactSummary(BaseModel):
    """Validation artifacts loaded at startup."""
    source: str
    profiles: list[str]
    code_systems: list[TerminologySummary]
    value_sets: list[TerminologySummary]


class HealthResponse(BaseModel):
    """Health check response model.

    Attributes:
        status: Always healthy; startup fails before serving otherwise
        timestamp: Current timestamp
        version: Application version
        downstream: Configured downstream base URL
        artifacts: Loaded validation artifacts
    """
    status: Literal["healthy"] = "healthy"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Current UTC timestamp")
    version: str
    downstream: Optional[str] = Field(None, description="Downstream API base URL")
    artifacts: Optional[ArtifactSummary] = None
