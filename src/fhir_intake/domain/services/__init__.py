"""Domain Services.

This package contains the domain services of the intake pipeline:
shape checks, resource validators, the transformer and the pipeline itself.
"""

from fhir_intake.domain.services.pipeline import IntakePipeline
from fhir_intake.domain.services.resource_validator import (
    DocumentReferenceValidator,
    PatientValidator,
    ResourceValidator,
)
from fhir_intake.domain.services.transformer import ResourceTransformer

__all__ = [
    "IntakePipeline",
    "ResourceValidator",
    "PatientValidator",
    "DocumentReferenceValidator",
    "ResourceTransformer",
]
