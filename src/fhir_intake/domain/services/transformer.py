"""Resource Transformer.

Extracts and normalizes the minimal field set required downstream from a
validated resource into a canonical record.

Security Impact:
    - Extracted values (names, dates, content) are never logged; only the
      resource kind and the extraction step are
    - Extraction refuses resources that fail the shape check instead of
      producing half-filled records

Architecture:
    - Pure domain service; the terminology check runs through TerminologyPort
    - The module-level helpers are pure functions and usable on their own
"""

import base64
import logging
import re
from typing import Any, Dict, Optional, Type, Union

from pydantic import ValidationError as PydanticValidationError

from fhir_intake.domain.canonical_records import (
    CanonicalDocumentRecord,
    CanonicalPersonRecord,
    CanonicalRecord,
)
from fhir_intake.domain.ports import (
    ExtractionPreconditionError,
    FormatError,
    ResourceValidationError,
    TerminologyError,
    TerminologyPort,
)
from fhir_intake.domain.resources import CodeableConcept, DocumentReferenceResource, PatientResource
from fhir_intake.domain.services.shape_checks import check_document_shape, check_patient_shape

logger = logging.getLogger(__name__)

# YYYY-MM-DD, optionally followed by a time component (discarded)
SOURCE_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(T.*)?$")

# Source element of each canonical record field
PERSON_SOURCE_ELEMENTS = {
    "first_name": "Patient.name[0].given",
    "last_name": "Patient.name[0].family",
    "birth_date": "Patient.birthDate",
}
DOCUMENT_SOURCE_ELEMENTS = {
    "type_code": "DocumentReference.type.coding.code",
    "subject_id": "DocumentReference.subject.reference",
    "encounter_id": "DocumentReference.context.encounter[0].reference",
    "created_date": "DocumentReference.content[0].attachment.creation",
    "content_base64": "DocumentReference.content[0].attachment.data",
}


# ============================================================================
# Field helpers
# ============================================================================

def convert_date(value: Optional[str], field: Optional[str] = None) -> str:
    """Convert ``YYYY-MM-DD[Thh:mm:ss...]`` to ``DD.MM.YYYY``.

    Only the shape is checked; there is no calendar validation, so
    ``2020-13-01`` converts to ``01.13.2020``.

    Parameters:
        value: Source date or dateTime string
        field: Name of the field being converted (for the error message)

    Returns:
        Date in ``DD.MM.YYYY`` form

    Raises:
        FormatError: If the value does not start with ``YYYY-MM-DD``
    """
    if value is None:
        raise FormatError("Date is missing. Expected format: YYYY-MM-DD", field=field)
    match = SOURCE_DATE_PATTERN.match(value)
    if match is None:
        raise FormatError("Invalid date format. Expected format: YYYY-MM-DD", field=field)
    year, month, day = value.split("T", 1)[0].split("-")
    return f"{day}.{month}.{year}"


def extract_id(reference: str) -> str:
    """Return the part after the last ``/`` of a reference, or the reference itself.

    ``extract_id("Patient/123") == "123"``; ``extract_id("123") == "123"``.
    """
    if "/" in reference:
        return reference[reference.rindex("/") + 1:]
    return reference


def encode_content(data: Optional[bytes]) -> str:
    """Base64-encode attachment bytes; an absent or empty payload yields ``""``."""
    if not data:
        return ""
    return base64.b64encode(data).decode("ascii")


def extract_type_code(document_type: Optional[CodeableConcept], system_url: str) -> str:
    """Return the code of the first coding whose system equals ``system_url``.

    Later matching codings are ignored.

    Raises:
        TerminologyError: If no coding with that system (and a code) exists
    """
    codings = document_type.coding if document_type is not None else []
    for coding in codings:
        if coding.system == system_url and coding.code:
            return coding.code
    raise TerminologyError(
        f"No coding from code system '{system_url}' found in DocumentReference.type",
        code=None,
        artifact="coding",
        resource_type="DocumentReference",
    )


def build_record(
    record_type: Type[CanonicalRecord],
    resource_type: str,
    source_elements: Dict[str, str],
    **fields: Any
) -> CanonicalRecord:
    """Build a canonical record, reporting invariant violations by source element.

    Blank names or reference ids pass the shape check (the elements are
    present) but violate the record invariants; they are the submitter's
    fault and surface as validation failures.

    Raises:
        ResourceValidationError: stage "extraction", naming the offending
            source elements (never their values)
    """
    try:
        return record_type(**fields)
    except PydanticValidationError as e:
        aliases = {field.alias: name for name, field in record_type.model_fields.items()}
        elements = []
        for error in e.errors():
            name = str(error["loc"][0]) if error["loc"] else ""
            element = source_elements.get(aliases.get(name, name), resource_type)
            if element not in elements:
                elements.append(element)
        raise ResourceValidationError(
            f"{resource_type} has blank or malformed elements: {', '.join(elements)}",
            stage="extraction",
            resource_type=resource_type,
        ) from None


# ============================================================================
# Transformer
# ============================================================================

class ResourceTransformer:
    """Builds canonical records from validated resources.

    ``extract`` may only be called on resources that pass the shape check;
    anything else raises ExtractionPreconditionError.

    Parameters:
        terminology: Terminology port used to check the document type code
        code_system_url: Canonical URL of the document type code system (KDL)
        value_set_url: Canonical URL of the value set the type code must belong to
    """

    def __init__(self, terminology: TerminologyPort, code_system_url: str, value_set_url: str):
        self.terminology = terminology
        self.code_system_url = code_system_url
        self.value_set_url = value_set_url

    def extract(self, resource: Union[PatientResource, DocumentReferenceResource]) -> CanonicalRecord:
        if isinstance(resource, PatientResource):
            return self.extract_person(resource)
        if isinstance(resource, DocumentReferenceResource):
            return self.extract_document(resource)
        raise ExtractionPreconditionError(
            f"Cannot extract a canonical record from {type(resource).__name__}"
        )

    def extract_person(self, patient: PatientResource) -> CanonicalPersonRecord:
        """Extract names and birth date from a Patient.

        Raises:
            ExtractionPreconditionError: If the patient fails the shape check
            ResourceValidationError: If a name part is blank
            FormatError: If the birth date is not ``YYYY-MM-DD``
        """
        reason = check_patient_shape(patient)
        if reason is not None:
            raise ExtractionPreconditionError(f"Patient extraction called on invalid resource: {reason}")

        first_entry = patient.name[0]
        record = build_record(
            CanonicalPersonRecord,
            "Patient",
            PERSON_SOURCE_ELEMENTS,
            first_name=" ".join(first_entry.given),
            last_name=first_entry.family,
            birth_date=convert_date(patient.birth_date, field="Patient.birthDate"),
        )
        logger.debug("Extracted canonical person record")
        return record

    def extract_document(self, document: DocumentReferenceResource) -> CanonicalDocumentRecord:
        """Extract type code, ids, creation date and content from a DocumentReference.

        The type code is checked against the code system and the value set
        before anything else is extracted.

        Raises:
            ExtractionPreconditionError: If the document fails the shape check
            TerminologyError: If no KDL coding exists or the code is rejected
            ResourceValidationError: If a reference has no id part
            FormatError: If the creation date is not ``YYYY-MM-DD[T...]``
        """
        reason = check_document_shape(document)
        if reason is not None:
            raise ExtractionPreconditionError(f"DocumentReference extraction called on invalid resource: {reason}")

        type_code = extract_type_code(document.document_type, self.code_system_url)
        self.terminology.ensure_code_valid(self.code_system_url, self.value_set_url, type_code)

        attachment = document.content[0].attachment
        record = build_record(
            CanonicalDocumentRecord,
            "DocumentReference",
            DOCUMENT_SOURCE_ELEMENTS,
            type_code=type_code,
            subject_id=extract_id(document.subject.reference),
            encounter_id=extract_id(document.context.encounter[0].reference),
            created_date=convert_date(attachment.creation, field="DocumentReference.content.attachment.creation"),
            content_base64=encode_content(attachment.data),
        )
        logger.debug(f"Extracted canonical document record (type code {type_code})")
        return record
