"""Clinical Resource Models.

This module defines the in-memory representation of the FHIR R4 resources the
intake pipeline accepts: Patient and DocumentReference. Only the elements the
validators and the transformer look at are modelled explicitly; every other
element is preserved as an extra field so the structural validator still sees
the complete resource.

Security Impact:
    - Models are frozen: a parsed resource cannot be modified while it moves
      through validation and extraction
    - Attachment data is base64-decoded at parse time; malformed base64 is
      rejected before any validation runs
    - ``__repr__`` of the resource models is left to pydantic, so callers must
      never log resource objects directly

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Wire names (camelCase) are kept as aliases; Python code uses snake_case
    - ``ClinicalResource`` is a discriminated union over ``resourceType``
"""

import base64
import binascii
from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_serializer, field_validator


class FhirElement(BaseModel):
    """Base class for all FHIR element models.

    Unknown elements are kept (``extra="allow"``) so that the wire dictionary
    rebuilt from the model is equivalent to the submitted document.
    """

    model_config = ConfigDict(
        extra="allow",
        frozen=True,
        populate_by_name=True,
    )


# ============================================================================
# Data types
# ============================================================================

class Coding(FhirElement):
    """FHIR Coding: a code from a code system."""

    system: Optional[str] = Field(None, description="Code system URL")
    version: Optional[str] = Field(None, description="Code system version")
    code: Optional[str] = Field(None, description="Symbol in syntax defined by the system")
    display: Optional[str] = Field(None, description="Representation defined by the system")


class CodeableConcept(FhirElement):
    """FHIR CodeableConcept: a concept with one or more codings."""

    coding: list[Coding] = Field(default_factory=list, description="Codings for the concept")
    text: Optional[str] = Field(None, description="Plain text representation")


class Reference(FhirElement):
    """FHIR Reference to another resource."""

    reference: Optional[str] = Field(None, description="Literal reference, e.g. Patient/123")
    display: Optional[str] = Field(None, description="Text alternative for the resource")


class HumanName(FhirElement):
    """FHIR HumanName (PII)."""

    use: Optional[str] = Field(None, description="usual | official | temp | nickname | anonymous | old | maiden")
    text: Optional[str] = Field(None, description="Text representation of the full name")
    family: Optional[str] = Field(None, description="Family name (PII)")
    given: list[str] = Field(default_factory=list, description="Given names (PII)")
    prefix: list[str] = Field(default_factory=list, description="Name prefixes")
    suffix: list[str] = Field(default_factory=list, description="Name suffixes")


class Attachment(FhirElement):
    """FHIR Attachment holding the document payload.

    ``data`` is stored as raw bytes. The wire format carries it base64-encoded;
    decoding happens on validation and encoding on serialization.
    """

    content_type: Optional[str] = Field(None, alias="contentType", description="Mime type of the content")
    language: Optional[str] = Field(None, description="Human language of the content")
    data: Optional[bytes] = Field(None, description="Raw document bytes (base64 on the wire)")
    url: Optional[str] = Field(None, description="Uri where the data can be found")
    title: Optional[str] = Field(None, description="Label to display in place of the data")
    creation: Optional[str] = Field(None, description="Date attachment was first created (dateTime)")

    @field_validator("data", mode="before")
    @classmethod
    def decode_base64_data(cls, v: Any) -> Optional[bytes]:
        """Decode base64 wire content into raw bytes.

        Raises:
            ValueError: If the value is not valid base64
        """
        if v is None or isinstance(v, bytes):
            return v
        if isinstance(v, str):
            try:
                return base64.b64decode(v, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ValueError(f"Attachment.data is not valid base64: {e}") from e
        raise ValueError("Attachment.data must be a base64 string")

    @field_serializer("data")
    def encode_base64_data(self, v: Optional[bytes]) -> Optional[str]:
        if v is None:
            return None
        return base64.b64encode(v).decode("ascii")


class DocumentReferenceContent(FhirElement):
    """DocumentReference.content backbone element."""

    attachment: Optional[Attachment] = Field(None, description="Where to access the document")
    format: Optional[Coding] = Field(None, description="Format/content rules for the document")


class DocumentReferenceContext(FhirElement):
    """DocumentReference.context backbone element."""

    encounter: list[Reference] = Field(default_factory=list, description="Context of the document content")


# ============================================================================
# Resources
# ============================================================================

class PatientResource(FhirElement):
    """FHIR R4 Patient resource (demographics subset).

    Security Impact: ``name`` and ``birth_date`` are PII and must never be logged.

    Parameters:
        id: Logical id of the resource
        name: Names associated with the patient; only the first entry is used downstream
        gender: Administrative gender code
        birth_date: Date of birth as submitted (FHIR date string, kept unparsed)
    """

    resource_type: Literal["Patient"] = Field("Patient", alias="resourceType")
    id: Optional[str] = Field(None, description="Logical id of the resource")
    name: list[HumanName] = Field(default_factory=list, description="Patient names (PII)")
    gender: Optional[str] = Field(None, description="male | female | other | unknown")
    birth_date: Optional[str] = Field(None, alias="birthDate", description="Date of birth (PII)")


class DocumentReferenceResource(FhirElement):
    """FHIR R4 DocumentReference resource (document metadata subset).

    Security Impact: ``content`` carries the clinical document itself and must
    never be logged.

    Parameters:
        id: Logical id of the resource
        status: current | superseded | entered-in-error
        document_type: Kind of document (KDL coding expected)
        subject: Who the document is about (Patient reference)
        context: Clinical context, including the encounter reference
        content: Document payload(s); only the first attachment is used downstream
    """

    resource_type: Literal["DocumentReference"] = Field("DocumentReference", alias="resourceType")
    id: Optional[str] = Field(None, description="Logical id of the resource")
    status: Optional[str] = Field(None, description="current | superseded | entered-in-error")
    document_type: Optional[CodeableConcept] = Field(None, alias="type", description="Kind of document")
    subject: Optional[Reference] = Field(None, description="Who/what the document is about")
    context: Optional[DocumentReferenceContext] = Field(None, description="Clinical context of document")
    content: list[DocumentReferenceContent] = Field(default_factory=list, description="Document referenced")


ClinicalResource = Annotated[
    Union[PatientResource, DocumentReferenceResource],
    Field(discriminator="resource_type"),
]

SUPPORTED_RESOURCE_TYPES = ("Patient", "DocumentReference")

_clinical_resource_adapter: TypeAdapter[ClinicalResource] = TypeAdapter(ClinicalResource)


def parse_resource(data: Mapping[str, Any]) -> Union[PatientResource, DocumentReferenceResource]:
    """Validate a wire dictionary into a clinical resource model.

    Parameters:
        data: Resource in its FHIR JSON dictionary form

    Returns:
        PatientResource or DocumentReferenceResource

    Raises:
        pydantic.ValidationError: If the dictionary is not a valid supported resource
    """
    return _clinical_resource_adapter.validate_python(data)


def to_fhir_dict(resource: FhirElement) -> dict:
    """Rebuild the wire dictionary of a resource.

    Aliases are used and elements that were not submitted are dropped, so the
    result has the same shape as the submitted FHIR JSON (attachment data
    base64-encoded).
    """
    return resource.model_dump(mode="json", by_alias=True, exclude_unset=True, exclude_none=True)
