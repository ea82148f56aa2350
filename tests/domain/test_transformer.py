"""Tests for the resource transformer and its field helpers.

These tests verify date conversion, reference-id parsing, content encoding,
the first-match type-code policy and canonical record extraction.
"""

from unittest.mock import Mock

import pytest

from fhir_intake.domain.canonical_records import CanonicalDocumentRecord, CanonicalPersonRecord
from fhir_intake.domain.ports import (
    ExtractionPreconditionError,
    FormatError,
    ResourceValidationError,
    TerminologyError,
    TerminologyPort,
)
from fhir_intake.domain.resources import CodeableConcept, Coding, parse_resource
from fhir_intake.domain.services.transformer import (
    ResourceTransformer,
    convert_date,
    encode_content,
    extract_id,
    extract_type_code,
)

KDL = "http://dvmd.de/fhir/CodeSystem/kdl"
KDL_VS = "http://dvmd.de/fhir/ValueSet/kdl"


@pytest.fixture
def terminology():
    mock = Mock(spec=TerminologyPort)
    mock.ensure_code_valid.return_value = None
    return mock


@pytest.fixture
def transformer(terminology):
    return ResourceTransformer(terminology, KDL, KDL_VS)


class TestConvertDate:
    """Test YYYY-MM-DD to DD.MM.YYYY conversion."""

    def test_converts_iso_date(self):
        """Test the basic reordering."""
        assert convert_date("2020-01-02") == "02.01.2020"

    def test_no_calendar_validation(self):
        """Test that a month of 13 converts without complaint."""
        assert convert_date("2020-13-01") == "01.13.2020"

    def test_time_component_is_discarded(self):
        """Test that a dateTime keeps only its date part."""
        assert convert_date("2021-03-04T10:15:00+01:00") == "04.03.2021"

    @pytest.mark.parametrize("value", ["1990", "1990-05", "17.05.1990", "1990/05/17", "", "90-05-17"])
    def test_rejects_other_shapes(self, value):
        """Test that anything but YYYY-MM-DD[T...] is a format error."""
        with pytest.raises(FormatError):
            convert_date(value, field="Patient.birthDate")

    def test_missing_value_is_format_error(self):
        """Test that None is a format error carrying the field name."""
        with pytest.raises(FormatError) as exc_info:
            convert_date(None, field="Patient.birthDate")
        assert exc_info.value.field == "Patient.birthDate"


class TestExtractId:
    """Test reference id extraction."""

    def test_relative_reference(self):
        assert extract_id("Patient/123") == "123"

    def test_plain_id_is_unchanged(self):
        assert extract_id("123") == "123"

    def test_absolute_reference_uses_last_segment(self):
        assert extract_id("https://fhir.example.org/fhir/Encounter/E-42") == "E-42"

    def test_trailing_separator_yields_empty_string(self):
        assert extract_id("Patient/") == ""


class TestEncodeContent:
    """Test attachment content encoding."""

    def test_encodes_bytes(self):
        assert encode_content(b"Hello World") == "SGVsbG8gV29ybGQ="

    def test_empty_payload_is_empty_string(self):
        assert encode_content(b"") == ""

    def test_absent_payload_is_empty_string(self):
        assert encode_content(None) == ""


class TestExtractTypeCode:
    """Test the first-match type code policy."""

    def test_returns_code_of_matching_system(self):
        """Test that codings from other systems are skipped."""
        concept = CodeableConcept(coding=[
            Coding(system="http://loinc.org", code="11488-4"),
            Coding(system=KDL, code="AD010104"),
        ])
        assert extract_type_code(concept, KDL) == "AD010104"

    def test_only_first_match_is_used(self):
        """Test that later matching codings are ignored."""
        concept = CodeableConcept(coding=[
            Coding(system=KDL, code="PT130102"),
            Coding(system=KDL, code="AD010104"),
        ])
        assert extract_type_code(concept, KDL) == "PT130102"

    def test_no_match_raises_terminology_error(self):
        """Test that a type without a KDL coding is rejected."""
        concept = CodeableConcept(coding=[Coding(system="http://loinc.org", code="11488-4")])
        with pytest.raises(TerminologyError) as exc_info:
            extract_type_code(concept, KDL)
        assert exc_info.value.code is None
        assert exc_info.value.artifact == "coding"
        assert exc_info.value.stage == "terminology"

    def test_absent_type_raises_terminology_error(self):
        with pytest.raises(TerminologyError):
            extract_type_code(None, KDL)


class TestResourceTransformerPerson:
    """Test person record extraction."""

    def test_extracts_scenario_patient(self, transformer, patient_dict):
        """Test Jane Doe, born 1990-05-17."""
        record = transformer.extract(parse_resource(patient_dict))

        assert isinstance(record, CanonicalPersonRecord)
        assert record.to_downstream_payload() == {
            "PersonFirstName": "Jane",
            "PersonLastName": "Doe",
            "PersonDOB": "17.05.1990",
        }

    def test_extraction_is_idempotent(self, transformer, patient_dict):
        """Test that extracting twice yields identical records."""
        patient = parse_resource(patient_dict)
        assert transformer.extract(patient) == transformer.extract(patient)

    def test_given_names_are_space_joined(self, transformer, patient_dict):
        """Test that all given names of the first entry are used."""
        patient_dict["name"] = [
            {"family": "Mustermann", "given": ["Erika", "Maria"]},
            {"family": "Gabler", "given": ["Ignored"]},
        ]
        record = transformer.extract_person(parse_resource(patient_dict))

        assert record.first_name == "Erika Maria"
        assert record.last_name == "Mustermann"

    def test_blank_family_names_source_element(self, transformer, patient_dict):
        patient_dict["name"][0]["family"] = "  "
        with pytest.raises(ResourceValidationError) as exc_info:
            transformer.extract_person(parse_resource(patient_dict))

        assert exc_info.value.stage == "extraction"
        assert str(exc_info.value).endswith("Patient.name[0].family")

    def test_partial_birth_date_is_format_error(self, transformer, patient_dict):
        """Test that a year-only birth date cannot be converted."""
        patient_dict["birthDate"] = "1990"
        with pytest.raises(FormatError):
            transformer.extract_person(parse_resource(patient_dict))

    def test_invalid_resource_is_precondition_error(self, transformer, patient_dict):
        """Test that extraction refuses a patient without a family name."""
        patient_dict["name"] = [{"given": ["Jane"]}]
        with pytest.raises(ExtractionPreconditionError):
            transformer.extract_person(parse_resource(patient_dict))

    def test_unsupported_object_is_precondition_error(self, transformer):
        with pytest.raises(ExtractionPreconditionError):
            transformer.extract(object())


class TestResourceTransformerDocument:
    """Test document record extraction."""

    def test_extracts_document_record(self, transformer, terminology, document_dict):
        """Test type code, ids, creation date and content."""
        record = transformer.extract(parse_resource(document_dict))

        assert isinstance(record, CanonicalDocumentRecord)
        assert record.to_downstream_payload() == {
            "kdlCode": "PT130102",
            "patientId": "123",
            "visitNumber": "E-42",
            "dateCreated": "04.03.2021",
            "contentB64": "SGVsbG8gV29ybGQ=",
        }
        terminology.ensure_code_valid.assert_called_once_with(KDL, KDL_VS, "PT130102")

    def test_missing_data_yields_empty_content(self, transformer, document_dict):
        """Test that an absent payload becomes an empty string, not None."""
        del document_dict["content"][0]["attachment"]["data"]
        record = transformer.extract_document(parse_resource(document_dict))

        assert record.content_base64 == ""
        assert record.to_downstream_payload()["contentB64"] == ""

    def test_terminology_rejection_propagates(self, transformer, terminology, document_dict):
        """Test that a rejected code aborts extraction."""
        terminology.ensure_code_valid.side_effect = TerminologyError(
            "Code 'XX' is not contained in ValueSet", code="XX", artifact="value_set"
        )
        with pytest.raises(TerminologyError):
            transformer.extract_document(parse_resource(document_dict))

    def test_invalid_document_is_precondition_error(self, transformer, terminology, document_dict):
        """Test that the terminology check is never reached for an invalid document."""
        document_dict["content"] = []
        with pytest.raises(ExtractionPreconditionError):
            transformer.extract_document(parse_resource(document_dict))
        terminology.ensure_code_valid.assert_not_called()
