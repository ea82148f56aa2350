"""Tests for the inbound JSON resource parser."""

import json

import pytest

from fhir_intake.adapters.parsers import JSONResourceParser
from fhir_intake.domain.ports import ResourceParseError, UnsupportedResourceError
from fhir_intake.domain.resources import DocumentReferenceResource, PatientResource


@pytest.fixture
def parser():
    return JSONResourceParser()


class TestJSONResourceParser:
    """Test decoding of client-submitted documents."""

    def test_parses_patient_from_text(self, parser, patient_dict):
        result = parser.parse(json.dumps(patient_dict))

        assert result.is_success()
        assert isinstance(result.value, PatientResource)

    def test_parses_document_from_bytes(self, parser, document_dict):
        result = parser.parse(json.dumps(document_dict).encode("utf-8"), expected_type="DocumentReference")

        assert result.is_success()
        assert isinstance(result.value, DocumentReferenceResource)

    def test_accepts_decoded_mapping(self, parser, patient_dict):
        assert parser.parse(patient_dict).is_success()

    def test_invalid_json(self, parser):
        result = parser.parse("{\"resourceType\": ")

        assert result.is_failure()
        assert result.error_type == "ResourceParseError"
        assert "not valid JSON" in result.error

    def test_invalid_utf8(self, parser):
        result = parser.parse(b"\xff\xfe\x00{")

        assert result.is_failure()
        assert result.error_type == "ResourceParseError"

    def test_non_object_document(self, parser):
        result = parser.parse("[1, 2, 3]")

        assert result.is_failure()
        assert result.error_details == {"json_type": "list"}

    def test_unsupported_resource_type(self, parser):
        result = parser.parse({"resourceType": "Observation"})

        assert result.error_type == "UnsupportedResourceError"
        assert "Observation" in result.error

    def test_expected_type_mismatch(self, parser, patient_dict):
        result = parser.parse(patient_dict, expected_type="DocumentReference")

        assert result.is_failure()
        assert result.error == "Expected a DocumentReference resource, got Patient"

    def test_model_errors_name_locations_not_values(self, parser, document_dict):
        document_dict["content"][0]["attachment"]["data"] = "%%%not-base64%%%"
        result = parser.parse(document_dict)

        assert result.is_failure()
        assert result.error.startswith("Invalid DocumentReference resource:")
        assert "content" in result.error
        assert "%%%not-base64%%%" not in result.error

    def test_oversized_document(self, patient_dict):
        parser = JSONResourceParser(max_document_size=16)
        result = parser.parse(json.dumps(patient_dict))

        assert result.is_failure()
        assert "maximum size" in result.error

    def test_failures_carry_exception_kind_and_details(self, parser):
        """Test that unsupported types are reported with their own error kind."""
        result = parser.parse({"resourceType": None})

        assert result.error_type == "UnsupportedResourceError"
        assert result.error_details == {"resource_type": None}


class TestParseErrors:
    """Test the parse exception hierarchy."""

    def test_unsupported_resource_is_parse_error(self):
        error = UnsupportedResourceError("unsupported", resource_type="Observation", details={"x": 1})

        assert isinstance(error, ResourceParseError)
        assert error.resource_type == "Observation"
        assert error.details == {"x": 1}
