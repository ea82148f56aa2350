"""JSON Resource Parser Adapter.

Turns a client-submitted FHIR JSON document into a clinical resource model.
This is the one place untrusted bytes enter the system; every failure is
returned as a ``Result`` failure instead of being raised.

Security Impact:
    - Oversized documents are rejected before JSON decoding
    - Failure details carry element locations and error kinds, never values
    - Malformed base64 attachment data is rejected here, before validation

Architecture:
    - Inbound adapter; depends only on domain models and the Result type
    - The pipeline receives parsed models, never raw bytes
"""

import json
import logging
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from fhir_intake.domain.ports import ResourceParseError, Result, UnsupportedResourceError
from fhir_intake.domain.resources import ClinicalResource, SUPPORTED_RESOURCE_TYPES, parse_resource

logger = logging.getLogger(__name__)

RawDocument = Union[str, bytes, bytearray, Mapping[str, Any]]


class JSONResourceParser:
    """Parser for inbound FHIR JSON documents.

    Parameters:
        max_document_size: Maximum accepted document size in bytes (default: 20MB)

    Example Usage:
        ```python
        parser = JSONResourceParser()
        result = parser.parse(request_body, expected_type="Patient")
        if result.is_failure():
            return bad_request(result.error)
        ```
    """

    def __init__(self, max_document_size: int = 20 * 1024 * 1024):
        self.max_document_size = max_document_size

    def parse(self, raw: RawDocument, expected_type: Optional[str] = None) -> Result[ClinicalResource]:
        """Parse one document into a PatientResource or DocumentReferenceResource.

        Parameters:
            raw: JSON text, UTF-8 bytes, or an already decoded mapping
            expected_type: resourceType the caller requires (None accepts any supported type)

        Returns:
            Result: Success with the resource model, or failure with
                error_type ResourceParseError / UnsupportedResourceError
        """
        try:
            return Result.success_result(self._parse(raw, expected_type))
        except ResourceParseError as e:
            return Result.failure_result(str(e), error_type=type(e).__name__, error_details=e.details)

    def _decode(self, raw: RawDocument) -> Any:
        if not isinstance(raw, (str, bytes, bytearray)):
            return raw
        if len(raw) > self.max_document_size:
            raise ResourceParseError(
                f"Document exceeds maximum size of {self.max_document_size} bytes",
                details={"size": len(raw)},
            )
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Rejected inbound document: invalid JSON ({type(e).__name__})")
            raise ResourceParseError(f"Request body is not valid JSON: {e}") from e

    def _parse(self, raw: RawDocument, expected_type: Optional[str]) -> ClinicalResource:
        document = self._decode(raw)
        if not isinstance(document, Mapping):
            raise ResourceParseError(
                "Request body must be a JSON object",
                details={"json_type": type(document).__name__},
            )

        resource_type = document.get("resourceType")
        if resource_type not in SUPPORTED_RESOURCE_TYPES:
            logger.warning(f"Rejected inbound document: unsupported resourceType {resource_type!r}")
            raise UnsupportedResourceError(
                f"Unsupported resourceType {resource_type!r}; expected one of {', '.join(SUPPORTED_RESOURCE_TYPES)}",
                resource_type=resource_type,
                details={"resource_type": resource_type},
            )
        if expected_type is not None and resource_type != expected_type:
            logger.warning(f"Rejected inbound document: expected {expected_type}, got {resource_type}")
            raise UnsupportedResourceError(
                f"Expected a {expected_type} resource, got {resource_type}",
                resource_type=resource_type,
                details={"resource_type": resource_type, "expected_type": expected_type},
            )

        try:
            return parse_resource(document)
        except PydanticValidationError as e:
            locations = [".".join(str(part) for part in error["loc"]) for error in e.errors()]
            logger.warning(f"Rejected inbound {resource_type}: {e.error_count()} parse error(s) at {locations}")
            reasons = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'][1:]) or resource_type}: {error['msg']}"
                for error in e.errors()
            )
            raise ResourceParseError(
                f"Invalid {resource_type} resource: {reasons}",
                details={"resource_type": resource_type, "locations": locations},
            ) from None
