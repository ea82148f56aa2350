"""Domain layer for FHIR-Intake.

This module contains the resource models, canonical record schemas, outcome
types and the ports the infrastructure implements. Domain models are pure
Python with no external dependencies beyond Pydantic.
"""

from .canonical_records import CanonicalDocumentRecord, CanonicalPersonRecord
from .resources import DocumentReferenceResource, PatientResource

__all__ = [
    "PatientResource",
    "DocumentReferenceResource",
    "CanonicalPersonRecord",
    "CanonicalDocumentRecord",
]
