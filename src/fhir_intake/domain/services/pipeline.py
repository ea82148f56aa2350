"""Intake Pipeline.

Runs one inbound resource through validation, extraction and forwarding and
recovers every failure into one of three outcomes:

- created: validated, extracted and accepted downstream
- bad request: shape, profile or terminology validation failed
- internal error: malformed date at extraction, extraction precondition
  violated, downstream failure, or any unexpected exception

Security Impact:
    - Logs carry resource kind and failing stage, never names, dates or content
    - Unexpected exceptions are reduced to a fixed caller-facing message

Architecture:
    - The pipeline performs no internal parallelism and no retries
    - On validation failure neither the transformer nor the forwarder runs
"""

import logging
from typing import Union

from fhir_intake.domain.outcome import Messages, OutcomeBuilder, ProcessingOutcome
from fhir_intake.domain.ports import (
    ExtractionPreconditionError,
    ForwarderPort,
    FormatError,
    ResourceValidationError,
)
from fhir_intake.domain.resources import DocumentReferenceResource, PatientResource
from fhir_intake.domain.services.resource_validator import (
    DocumentReferenceValidator,
    PatientValidator,
    ResourceValidator,
)

logger = logging.getLogger(__name__)


class IntakePipeline:
    """Validation-and-transformation pipeline for one resource per call.

    Parameters:
        patient_validator: Validator for Patient resources
        document_validator: Validator for DocumentReference resources
        forwarder: Downstream forwarder
        patient_path: Downstream path for person records
        document_path: Downstream path for document records
    """

    def __init__(
        self,
        patient_validator: PatientValidator,
        document_validator: DocumentReferenceValidator,
        forwarder: ForwarderPort,
        patient_path: str,
        document_path: str
    ):
        self.patient_validator = patient_validator
        self.document_validator = document_validator
        self.forwarder = forwarder
        self.patient_path = patient_path
        self.document_path = document_path

    def submit(self, resource: Union[PatientResource, DocumentReferenceResource]) -> ProcessingOutcome:
        """Dispatch a resource to the matching submission path."""
        if isinstance(resource, PatientResource):
            return self.submit_patient(resource)
        if isinstance(resource, DocumentReferenceResource):
            return self.submit_document_reference(resource)
        logger.warning(f"Unsupported resource submitted: {type(resource).__name__}")
        return OutcomeBuilder.validation_failure(
            f"Unsupported resource type: {type(resource).__name__}"
        )

    def submit_patient(self, resource: PatientResource) -> ProcessingOutcome:
        return self._run(
            resource,
            validator=self.patient_validator,
            target_path=self.patient_path,
            success_message=Messages.PATIENT_CREATED,
        )

    def submit_document_reference(self, resource: DocumentReferenceResource) -> ProcessingOutcome:
        return self._run(
            resource,
            validator=self.document_validator,
            target_path=self.document_path,
            success_message=Messages.DOCUMENT_CREATED,
        )

    def _run(
        self,
        resource,
        validator: ResourceValidator,
        target_path: str,
        success_message: str
    ) -> ProcessingOutcome:
        kind = validator.resource_type
        logger.info(f"Processing {kind} submission")

        try:
            record = validator.process(resource)
        except ResourceValidationError as e:
            logger.warning(f"{kind} rejected at stage '{e.stage}'")
            return OutcomeBuilder.validation_failure(str(e))
        except FormatError as e:
            logger.error(f"{kind} extraction failed: malformed {e.field or 'date'}")
            return OutcomeBuilder.internal_failure(str(e))
        except ExtractionPreconditionError as e:
            logger.error(f"{kind} extraction precondition violated", exc_info=True)
            return OutcomeBuilder.internal_failure(str(e))
        except Exception:
            logger.error(f"Unexpected error while processing {kind} (stage: validation)", exc_info=True)
            return OutcomeBuilder.internal_failure(Messages.INTERNAL_SERVER_ERROR)

        try:
            forwarded = self.forwarder.forward(record, target_path)
        except Exception:
            logger.error(f"Unexpected error while forwarding {kind} (stage: forwarding)", exc_info=True)
            forwarded = False

        if not forwarded:
            logger.warning(f"Failed to forward {kind} to downstream path {target_path}")
            return OutcomeBuilder.internal_failure(Messages.DOWNSTREAM_FAILURE)

        logger.info(f"{kind} forwarded to downstream path {target_path}")
        return OutcomeBuilder.success(success_message)
