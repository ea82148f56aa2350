"""Canonical Record Schema Definitions.

This module defines the normalized records sent to the downstream system of
record. They represent the minimal field set the downstream contract needs,
after validation and extraction.

Security Impact:
    - Records hold PII (names, birth date) and document content; ``repr`` and
      ``str`` are overridden to never expose field values
    - Schema validation prevents half-filled records from being forwarded

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Field aliases are the downstream JSON names; Python code uses snake_case
"""

import re
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DOWNSTREAM_DATE_PATTERN = re.compile(r"^\d{2}\.\d{2}\.\d{4}$")


class _CanonicalBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=False)

    def to_downstream_payload(self) -> dict:
        """Return the JSON body expected by the downstream system."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def json_schema(cls) -> dict:
        """Return the downstream JSON schema of this record."""
        return cls.model_json_schema(by_alias=True)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(fields={list(type(self).model_fields)})"

    __str__ = __repr__


class CanonicalPersonRecord(_CanonicalBase):
    """Normalized patient record (downstream "Person").

    Security Impact: All fields are PII.

    Parameters:
        first_name: All given names of the first name entry, space-joined
        last_name: Family name of the first name entry
        birth_date: Birth date as ``DD.MM.YYYY``
    """

    first_name: str = Field(..., alias="PersonFirstName", description="Given names (PII)")
    last_name: str = Field(..., alias="PersonLastName", description="Family name (PII)")
    birth_date: str = Field(..., alias="PersonDOB", description="Date of birth, DD.MM.YYYY (PII)")

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be a non-empty string")
        return v

    @field_validator("birth_date")
    @classmethod
    def validate_birth_date_format(cls, v: str) -> str:
        if not DOWNSTREAM_DATE_PATTERN.match(v):
            raise ValueError("must match DD.MM.YYYY")
        return v


class CanonicalDocumentRecord(_CanonicalBase):
    """Normalized document metadata record.

    Parameters:
        type_code: KDL code of the document type (present in code system and value set)
        subject_id: Patient id taken from the subject reference
        encounter_id: Visit number taken from the encounter reference
        created_date: Attachment creation date as ``DD.MM.YYYY``
        content_base64: Base64 document content; empty string for an empty payload
    """

    type_code: str = Field(..., alias="kdlCode", description="KDL document type code")
    subject_id: str = Field(..., alias="patientId", description="Patient identifier")
    encounter_id: str = Field(..., alias="visitNumber", description="Encounter/visit identifier")
    created_date: str = Field(..., alias="dateCreated", description="Creation date, DD.MM.YYYY")
    content_base64: str = Field("", alias="contentB64", description="Base64 document content (sensitive)")

    @field_validator("type_code", "subject_id", "encounter_id")
    @classmethod
    def validate_non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be a non-empty string")
        return v

    @field_validator("created_date")
    @classmethod
    def validate_created_date_format(cls, v: str) -> str:
        if not DOWNSTREAM_DATE_PATTERN.match(v):
            raise ValueError("must match DD.MM.YYYY")
        return v

    @field_validator("content_base64", mode="before")
    @classmethod
    def validate_content_not_null(cls, v):
        return "" if v is None else v


CanonicalRecord = Union[CanonicalPersonRecord, CanonicalDocumentRecord]
