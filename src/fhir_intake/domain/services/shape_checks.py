"""Shape Checks - Cheap Presence Gates.

Resource-kind-specific presence checks run before any structural or
terminology validation, so obviously malformed input is rejected without
invoking the costlier engines. They are intentionally minimal and not a
conformance check.

Each check returns the reason the resource was rejected, or None when the
resource has every element the transformer needs.
"""

from typing import Optional

from fhir_intake.domain.resources import DocumentReferenceResource, PatientResource


def check_patient_shape(patient: Optional[PatientResource]) -> Optional[str]:
    """Return why a Patient lacks required elements, or None if it passes."""
    if patient is None:
        return "Patient resource is missing"
    if not patient.name:
        return "Patient name is missing"
    first_name = patient.name[0]
    if not first_name.given:
        return "Patient given name is missing"
    if not first_name.family:
        return "Patient family name is missing"
    if patient.birth_date is None:
        return "Patient birth date is missing"
    return None


def check_document_shape(document: Optional[DocumentReferenceResource]) -> Optional[str]:
    """Return why a DocumentReference lacks required elements, or None if it passes.

    Attachment data may be absent (an empty payload forwards as an empty
    string); the creation timestamp may not, since it becomes the record's
    creation date.
    """
    if document is None:
        return "DocumentReference resource is missing"
    if document.document_type is None or not document.document_type.coding:
        return "DocumentReference type is missing (no coding entries)"
    if document.subject is None or not document.subject.reference:
        return "DocumentReference subject reference (patient id) is missing"
    if (
        document.context is None
        or not document.context.encounter
        or not document.context.encounter[0].reference
    ):
        return "DocumentReference encounter reference (visit number) is missing"
    if not document.content:
        return "DocumentReference content is missing"
    attachment = document.content[0].attachment
    if attachment is None:
        return "DocumentReference content attachment is missing"
    if attachment.data is None and attachment.creation is None:
        return "DocumentReference attachment data and creation date are missing"
    if attachment.creation is None:
        return "DocumentReference attachment creation date is missing"
    return None
