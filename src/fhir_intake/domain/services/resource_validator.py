"""Resource Validators.

Orchestrates validation for each supported resource kind:

1. Shape check (cheap presence gate, see ``shape_checks``)
2. Structural validation against the kind's profile (ProfileValidatorPort)
3. Extraction, which for documents includes the terminology check on the
   type code (ResourceTransformer)

Security Impact:
    - Rejected resources are logged with kind and stage only
    - Engine diagnostics reference element paths, not element values

Architecture:
    - Pure domain services; structural validation and terminology are ports
    - One validator instance per resource kind, shared across requests
      (validators hold no per-request state)
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from fhir_intake.domain.canonical_records import (
    CanonicalDocumentRecord,
    CanonicalPersonRecord,
    CanonicalRecord,
)
from fhir_intake.domain.ports import ProfileValidatorPort, ResourceValidationError
from fhir_intake.domain.resources import DocumentReferenceResource, PatientResource, to_fhir_dict
from fhir_intake.domain.services.shape_checks import check_document_shape, check_patient_shape
from fhir_intake.domain.services.transformer import ResourceTransformer
from fhir_intake.domain.validation import ValidationResult

logger = logging.getLogger(__name__)


class ResourceValidator(ABC):
    """Base validator for one resource kind.

    Parameters:
        profile_validator: Structural validation engine
        profile_id: Canonical URL of the profile resources of this kind must conform to
        transformer: Transformer producing the canonical record
    """

    resource_type: str = ""

    def __init__(
        self,
        profile_validator: ProfileValidatorPort,
        profile_id: str,
        transformer: ResourceTransformer
    ):
        self.profile_validator = profile_validator
        self.profile_id = profile_id
        self.transformer = transformer

    @abstractmethod
    def shape_error(self, resource: Any) -> Optional[str]:
        """Return why the resource fails the shape check, or None."""
        pass

    def is_valid(self, resource: Any) -> bool:
        """Cheap shape check.

        Returns:
            bool: True if the resource has every element extraction needs
        """
        reason = self.shape_error(resource)
        if reason is not None:
            logger.warning(f"{self.resource_type} failed shape check: {reason}")
            return False
        return True

    def validate_profile(self, resource: Any) -> ValidationResult:
        """Validate the resource against this kind's profile.

        Returns:
            ValidationResult: The engine's result when it has no error issues

        Raises:
            ResourceValidationError: If the engine reports any error issue
        """
        result = self.profile_validator.validate(to_fhir_dict(resource), self.profile_id)
        if not result.ok:
            logger.warning(
                f"{self.resource_type} failed profile validation against {self.profile_id}: "
                f"{len(result.errors)} error(s), {len(result.warnings)} warning(s)"
            )
            raise ResourceValidationError(
                f"FHIR validation failed against StructureDefinition {self.profile_id}:\n{result.diagnostics()}",
                stage="profile",
                resource_type=self.resource_type,
                issues=result.issues,
            )
        if result.warnings:
            logger.info(
                f"{self.resource_type} passed profile validation with {len(result.warnings)} warning(s)"
            )
        return result

    def process(self, resource: Any) -> CanonicalRecord:
        """Run shape check, profile validation and extraction.

        Returns:
            CanonicalRecord: The normalized record

        Raises:
            ResourceValidationError: Shape, profile, terminology or extraction failure
            FormatError: Malformed date reaching extraction
        """
        reason = self.shape_error(resource)
        if reason is not None:
            logger.warning(f"{self.resource_type} failed shape check: {reason}")
            raise ResourceValidationError(reason, stage="shape", resource_type=self.resource_type)

        self.validate_profile(resource)
        return self.transformer.extract(resource)


class PatientValidator(ResourceValidator):
    """Validator for Patient resources."""

    resource_type = "Patient"

    def shape_error(self, resource: Any) -> Optional[str]:
        if resource is not None and not isinstance(resource, PatientResource):
            return f"Expected a Patient resource, got {type(resource).__name__}"
        return check_patient_shape(resource)

    def process(self, resource: Any) -> CanonicalPersonRecord:
        return super().process(resource)


class DocumentReferenceValidator(ResourceValidator):
    """Validator for DocumentReference resources."""

    resource_type = "DocumentReference"

    def shape_error(self, resource: Any) -> Optional[str]:
        if resource is not None and not isinstance(resource, DocumentReferenceResource):
            return f"Expected a DocumentReference resource, got {type(resource).__name__}"
        return check_document_shape(resource)

    def process(self, resource: Any) -> CanonicalDocumentRecord:
        return super().process(resource)
