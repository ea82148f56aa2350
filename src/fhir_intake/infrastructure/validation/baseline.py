"""Baseline Profile Support.

Base-resource knowledge the profile engine falls back to for every profile:

- JSON Schemas (Draft 2020-12) for the data types and primitive formats of
  the supported base resources
- Base element definitions (cardinality and bindings of the FHIR R4
  base resources) that differential-only profiles are overlaid onto

Thread Safety:
    Compiled validators and element tables are built once and never mutated.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft202012Validator

from fhir_intake.domain.validation import IssueSeverity, ValidationIssue

logger = logging.getLogger(__name__)

# ==============================================================================
# PRIMITIVE AND DATA TYPE SCHEMAS
# ==============================================================================

_DATE = {
    "title": "FHIR date",
    "type": "string",
    "pattern": r"^([0-9]([0-9]([0-9][1-9]|[1-9]0)|[1-9]00)|[1-9]000)(-(0[1-9]|1[0-2])(-(0[1-9]|[1-2][0-9]|3[0-1]))?)?$",
}

_DATE_TIME = {
    "title": "FHIR dateTime",
    "type": "string",
    "pattern": (
        r"^([0-9]([0-9]([0-9][1-9]|[1-9]0)|[1-9]00)|[1-9]000)"
        r"(-(0[1-9]|1[0-2])(-(0[1-9]|[1-2][0-9]|3[0-1])"
        r"(T([01][0-9]|2[0-3]):[0-5][0-9]:([0-5][0-9]|60)(\.[0-9]+)?"
        r"(Z|(\+|-)((0[0-9]|1[0-3]):[0-5][0-9]|14:00)))?)?)?$"
    ),
}

_CODE = {"title": "FHIR code", "type": "string", "pattern": r"^[^\s]+(\s[^\s]+)*$"}

_ID = {"title": "FHIR id", "type": "string", "pattern": r"^[A-Za-z0-9\-\.]{1,64}$"}

_STRING = {"title": "FHIR string", "type": "string", "minLength": 1}

_URI = {"title": "FHIR uri", "type": "string", "pattern": r"^\S*$"}

_BASE64 = {"title": "FHIR base64Binary", "type": "string", "pattern": r"^(\s*([0-9a-zA-Z\+/=]){4}\s*)+$"}

_DEFS: Dict[str, Any] = {
    "date": _DATE,
    "dateTime": _DATE_TIME,
    "code": _CODE,
    "id": _ID,
    "string": _STRING,
    "uri": _URI,
    "base64Binary": _BASE64,
    "Coding": {
        "type": "object",
        "properties": {
            "system": {"$ref": "#/$defs/uri"},
            "version": {"$ref": "#/$defs/string"},
            "code": {"$ref": "#/$defs/code"},
            "display": {"$ref": "#/$defs/string"},
            "userSelected": {"type": "boolean"},
        },
    },
    "CodeableConcept": {
        "type": "object",
        "properties": {
            "coding": {"type": "array", "items": {"$ref": "#/$defs/Coding"}},
            "text": {"$ref": "#/$defs/string"},
        },
    },
    "Reference": {
        "type": "object",
        "properties": {
            "reference": {"$ref": "#/$defs/string"},
            "type": {"$ref": "#/$defs/uri"},
            "display": {"$ref": "#/$defs/string"},
        },
    },
    "HumanName": {
        "type": "object",
        "properties": {
            "use": {"enum": ["usual", "official", "temp", "nickname", "anonymous", "old", "maiden"]},
            "text": {"$ref": "#/$defs/string"},
            "family": {"$ref": "#/$defs/string"},
            "given": {"type": "array", "items": {"$ref": "#/$defs/string"}},
            "prefix": {"type": "array", "items": {"$ref": "#/$defs/string"}},
            "suffix": {"type": "array", "items": {"$ref": "#/$defs/string"}},
        },
    },
    "Attachment": {
        "type": "object",
        "properties": {
            "contentType": {"$ref": "#/$defs/code"},
            "language": {"$ref": "#/$defs/code"},
            "data": {"$ref": "#/$defs/base64Binary"},
            "url": {"$ref": "#/$defs/uri"},
            "size": {"type": "integer", "minimum": 0},
            "title": {"$ref": "#/$defs/string"},
            "creation": {"$ref": "#/$defs/dateTime"},
        },
    },
}

# ==============================================================================
# BASE RESOURCE SCHEMAS
# ==============================================================================

BASE_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "Patient": {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "$id": "http://hl7.org/fhir/StructureDefinition/Patient",
        "type": "object",
        "required": ["resourceType"],
        "properties": {
            "resourceType": {"const": "Patient"},
            "id": {"$ref": "#/$defs/id"},
            "active": {"type": "boolean"},
            "name": {"type": "array", "items": {"$ref": "#/$defs/HumanName"}},
            "gender": {"$ref": "#/$defs/code"},
            "birthDate": {"$ref": "#/$defs/date"},
            "deceasedBoolean": {"type": "boolean"},
            "deceasedDateTime": {"$ref": "#/$defs/dateTime"},
        },
        "$defs": _DEFS,
    },
    "DocumentReference": {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "$id": "http://hl7.org/fhir/StructureDefinition/DocumentReference",
        "type": "object",
        "required": ["resourceType"],
        "properties": {
            "resourceType": {"const": "DocumentReference"},
            "id": {"$ref": "#/$defs/id"},
            "status": {"$ref": "#/$defs/code"},
            "docStatus": {"$ref": "#/$defs/code"},
            "type": {"$ref": "#/$defs/CodeableConcept"},
            "category": {"type": "array", "items": {"$ref": "#/$defs/CodeableConcept"}},
            "subject": {"$ref": "#/$defs/Reference"},
            "date": {"type": "string"},
            "description": {"$ref": "#/$defs/string"},
            "content": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "attachment": {"$ref": "#/$defs/Attachment"},
                        "format": {"$ref": "#/$defs/Coding"},
                    },
                },
            },
            "context": {
                "type": "object",
                "properties": {
                    "encounter": {"type": "array", "items": {"$ref": "#/$defs/Reference"}},
                },
            },
        },
        "$defs": _DEFS,
    },
}

# ==============================================================================
# BASE ELEMENT DEFINITIONS
# ==============================================================================

_GENDER_VS = "http://hl7.org/fhir/ValueSet/administrative-gender|4.0.1"
_DOC_STATUS_VS = "http://hl7.org/fhir/ValueSet/document-reference-status|4.0.1"
_COMPOSITION_STATUS_VS = "http://hl7.org/fhir/ValueSet/composition-status|4.0.1"
_DOC_TYPE_VS = "http://hl7.org/fhir/ValueSet/c80-doc-typecodes"


def _element(path: str, min_: int, max_: str, binding: Optional[Tuple[str, str]] = None) -> Dict[str, Any]:
    element: Dict[str, Any] = {"id": path, "path": path, "min": min_, "max": max_}
    if binding is not None:
        element["binding"] = {"strength": binding[0], "valueSet": binding[1]}
    return element


BASE_ELEMENTS: Dict[str, List[Dict[str, Any]]] = {
    "Patient": [
        _element("Patient", 0, "*"),
        _element("Patient.id", 0, "1"),
        _element("Patient.identifier", 0, "*"),
        _element("Patient.active", 0, "1"),
        _element("Patient.name", 0, "*"),
        _element("Patient.name.use", 0, "1"),
        _element("Patient.name.text", 0, "1"),
        _element("Patient.name.family", 0, "1"),
        _element("Patient.name.given", 0, "*"),
        _element("Patient.name.prefix", 0, "*"),
        _element("Patient.name.suffix", 0, "*"),
        _element("Patient.telecom", 0, "*"),
        _element("Patient.gender", 0, "1", ("required", _GENDER_VS)),
        _element("Patient.birthDate", 0, "1"),
        _element("Patient.deceased[x]", 0, "1"),
        _element("Patient.address", 0, "*"),
    ],
    "DocumentReference": [
        _element("DocumentReference", 0, "*"),
        _element("DocumentReference.id", 0, "1"),
        _element("DocumentReference.masterIdentifier", 0, "1"),
        _element("DocumentReference.identifier", 0, "*"),
        _element("DocumentReference.status", 1, "1", ("required", _DOC_STATUS_VS)),
        _element("DocumentReference.docStatus", 0, "1", ("required", _COMPOSITION_STATUS_VS)),
        _element("DocumentReference.type", 0, "1", ("preferred", _DOC_TYPE_VS)),
        _element("DocumentReference.category", 0, "*"),
        _element("DocumentReference.subject", 0, "1"),
        _element("DocumentReference.date", 0, "1"),
        _element("DocumentReference.author", 0, "*"),
        _element("DocumentReference.description", 0, "1"),
        _element("DocumentReference.content", 1, "*"),
        _element("DocumentReference.content.attachment", 1, "1"),
        _element("DocumentReference.content.format", 0, "1"),
        _element("DocumentReference.context", 0, "1"),
        _element("DocumentReference.context.encounter", 0, "*"),
        _element("DocumentReference.context.period", 0, "1"),
    ],
}


def _render_path(resource_type: str, path) -> str:
    location = resource_type
    for part in path:
        if isinstance(part, int):
            location += f"[{part}]"
        else:
            location += f".{part}"
    return location


class BaselineSupport:
    """Base resource schemas and element definitions for supported types.

    Example:
        >>> baseline = BaselineSupport()
        >>> baseline.elements_for("Patient")[0]["path"]
        'Patient'
    """

    def __init__(self):
        self._validators = {
            resource_type: Draft202012Validator(schema)
            for resource_type, schema in BASE_SCHEMAS.items()
        }

    def supports(self, resource_type: str) -> bool:
        return resource_type in self._validators

    def elements_for(self, resource_type: str) -> List[Dict[str, Any]]:
        """Return copies of the base element definitions of a resource type."""
        return [dict(element) for element in BASE_ELEMENTS.get(resource_type, [])]

    def validate_schema(self, resource: Dict[str, Any], resource_type: str) -> List[ValidationIssue]:
        """Check data types and primitive formats against the base schema.

        Returns:
            List of error issues, ordered by location
        """
        validator = self._validators.get(resource_type)
        if validator is None:
            return [ValidationIssue(
                IssueSeverity.ERROR,
                resource_type,
                f"No base definition available for resource type {resource_type}",
            )]

        issues = []
        errors = sorted(validator.iter_errors(resource), key=lambda e: [str(p) for p in e.absolute_path])
        for error in errors:
            location = _render_path(resource_type, error.absolute_path)
            if error.validator == "pattern" and isinstance(error.schema, dict):
                message = f"The value is not a valid {error.schema.get('title', 'value')}"
            else:
                message = error.message
            issues.append(ValidationIssue(IssueSeverity.ERROR, location, message))
        return issues
