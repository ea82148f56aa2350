"""Tests for the intake pipeline.

The pipeline runs over the bundled profiles and terminology; only the
downstream forwarder (and, where stated, the profile validator) is mocked.
"""

from unittest.mock import Mock

import httpx
import pytest

from fhir_intake.adapters.forwarders import HttpForwarder
from fhir_intake.domain.canonical_records import CanonicalDocumentRecord, CanonicalPersonRecord
from fhir_intake.domain.outcome import Messages, ResultStatus
from fhir_intake.domain.ports import ProfileValidatorPort
from fhir_intake.domain.resources import parse_resource
from fhir_intake.domain.services import (
    DocumentReferenceValidator,
    IntakePipeline,
    PatientValidator,
)
from fhir_intake.infrastructure.config_manager import DownstreamConfig
from fhir_intake.main import create_pipeline, create_transformer


class TestPatientSubmission:
    """Test Patient submissions end to end."""

    def test_valid_patient_is_forwarded_and_created(self, pipeline, mock_forwarder, patient_dict):
        """Test Jane Doe is validated, extracted, forwarded and reported as created."""
        outcome = pipeline.submit(parse_resource(patient_dict))

        assert outcome.status is ResultStatus.CREATED
        assert outcome.outcome.diagnostics == Messages.PATIENT_CREATED
        mock_forwarder.forward.assert_called_once()
        record, target_path = mock_forwarder.forward.call_args.args
        assert isinstance(record, CanonicalPersonRecord)
        assert record.to_downstream_payload() == {
            "PersonFirstName": "Jane",
            "PersonLastName": "Doe",
            "PersonDOB": "17.05.1990",
        }
        assert target_path == "/person"

    def test_shape_failure_is_bad_request(self, pipeline, mock_forwarder, patient_dict):
        patient_dict["name"][0].pop("family")
        outcome = pipeline.submit_patient(parse_resource(patient_dict))

        assert outcome.status is ResultStatus.BAD_REQUEST
        assert outcome.outcome.diagnostics == "Patient family name is missing"
        mock_forwarder.forward.assert_not_called()

    def test_profile_failure_is_bad_request_with_diagnostics(self, pipeline, mock_forwarder, patient_dict):
        """Test that an invalid gender code fails the required binding."""
        patient_dict["gender"] = "f"
        outcome = pipeline.submit(parse_resource(patient_dict))

        assert outcome.status is ResultStatus.BAD_REQUEST
        assert outcome.outcome.diagnostics.startswith("FHIR validation failed against StructureDefinition")
        assert "ERROR - Patient.gender" in outcome.outcome.diagnostics
        mock_forwarder.forward.assert_not_called()

    def test_blank_given_name_is_bad_request(self, pipeline, mock_forwarder, patient_dict, caplog):
        """Test that a present but blank given name is reported by element."""
        patient_dict["name"][0]["given"] = [" "]
        outcome = pipeline.submit(parse_resource(patient_dict))

        assert outcome.status is ResultStatus.BAD_REQUEST
        assert outcome.outcome.diagnostics == "Patient has blank or malformed elements: Patient.name[0].given"
        assert "input_value" not in caplog.text
        mock_forwarder.forward.assert_not_called()

    def test_partial_birth_date_is_internal_error(self, pipeline, mock_forwarder, patient_dict):
        """Test that a year-only birth date passes the profile but fails extraction."""
        patient_dict["birthDate"] = "1990"
        outcome = pipeline.submit(parse_resource(patient_dict))

        assert outcome.status is ResultStatus.INTERNAL_ERROR
        assert "Invalid date format" in outcome.outcome.diagnostics
        mock_forwarder.forward.assert_not_called()


class TestDocumentReferenceSubmission:
    """Test DocumentReference submissions end to end."""

    def test_valid_document_is_forwarded(self, pipeline, mock_forwarder, document_dict):
        outcome = pipeline.submit(parse_resource(document_dict))

        assert outcome.status is ResultStatus.CREATED
        assert outcome.outcome.diagnostics == Messages.DOCUMENT_CREATED
        record, target_path = mock_forwarder.forward.call_args.args
        assert isinstance(record, CanonicalDocumentRecord)
        assert record.type_code == "PT130102"
        assert target_path == "/document"

    def test_document_without_type_coding_is_bad_request(self, pipeline, mock_forwarder, document_dict):
        """Test a type with no coding entries never reaches the forwarder."""
        document_dict["type"] = {"coding": []}
        outcome = pipeline.submit(parse_resource(document_dict))

        assert outcome.status is ResultStatus.BAD_REQUEST
        assert "type" in outcome.outcome.diagnostics
        mock_forwarder.forward.assert_not_called()

    def test_code_outside_value_set_is_rejected(self, pipeline, mock_forwarder, document_dict):
        """Test a nested code system concept missing from the value set expansion."""
        document_dict["type"]["coding"][0]["code"] = "AU010102"
        outcome = pipeline.submit(parse_resource(document_dict))

        assert outcome.status is ResultStatus.BAD_REQUEST
        assert "ValueSet" in outcome.outcome.diagnostics
        assert "AU010102" in outcome.outcome.diagnostics
        mock_forwarder.forward.assert_not_called()

    def test_unknown_code_is_rejected_by_code_system(self, pipeline, mock_forwarder, document_dict):
        document_dict["type"]["coding"][0]["code"] = "ZZ999999"
        outcome = pipeline.submit(parse_resource(document_dict))

        assert outcome.status is ResultStatus.BAD_REQUEST
        assert "CodeSystem" in outcome.outcome.diagnostics
        mock_forwarder.forward.assert_not_called()

    def test_reference_without_id_is_bad_request(self, pipeline, mock_forwarder, document_dict):
        document_dict["subject"]["reference"] = "Patient/"
        outcome = pipeline.submit(parse_resource(document_dict))

        assert outcome.status is ResultStatus.BAD_REQUEST
        assert outcome.outcome.diagnostics == (
            "DocumentReference has blank or malformed elements: DocumentReference.subject.reference"
        )
        mock_forwarder.forward.assert_not_called()

    def test_missing_kdl_coding_is_rejected(self, pipeline, mock_forwarder, document_dict):
        document_dict["type"]["coding"] = [{"system": "http://loinc.org", "code": "11488-4"}]
        outcome = pipeline.submit(parse_resource(document_dict))

        assert outcome.status is ResultStatus.BAD_REQUEST
        mock_forwarder.forward.assert_not_called()

    def test_missing_attachment_never_reaches_profile_validator(self, intake_context, mock_forwarder, document_dict):
        """Test that a shape failure short-circuits structural validation and forwarding."""
        profile_validator = Mock(spec=ProfileValidatorPort)
        transformer = create_transformer(intake_context)
        artifacts = intake_context.settings.artifacts
        pipeline = IntakePipeline(
            patient_validator=PatientValidator(profile_validator, artifacts.patient_profile_url, transformer),
            document_validator=DocumentReferenceValidator(
                profile_validator, artifacts.document_profile_url, transformer
            ),
            forwarder=mock_forwarder,
            patient_path="/person",
            document_path="/document",
        )
        document_dict["content"][0].pop("attachment")

        outcome = pipeline.submit(parse_resource(document_dict))

        assert outcome.status is ResultStatus.BAD_REQUEST
        profile_validator.validate.assert_not_called()
        mock_forwarder.forward.assert_not_called()


class TestFailureMapping:
    """Test recovery of non-validation failures."""

    def test_downstream_503_is_internal_error(self, intake_context, patient_dict):
        """Test that a 503 from downstream fails the submission despite valid input."""
        client = httpx.Client(
            base_url="http://downstream.test/api",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )
        forwarder = HttpForwarder(DownstreamConfig(base_url="http://downstream.test/api"), client=client)
        pipeline = create_pipeline(intake_context, forwarder=forwarder)

        outcome = pipeline.submit(parse_resource(patient_dict))

        assert outcome.status is ResultStatus.INTERNAL_ERROR
        assert outcome.outcome.diagnostics == Messages.DOWNSTREAM_FAILURE

    def test_forwarder_exception_is_internal_error(self, pipeline, mock_forwarder, patient_dict):
        mock_forwarder.forward.side_effect = RuntimeError("socket closed")
        outcome = pipeline.submit(parse_resource(patient_dict))

        assert outcome.status is ResultStatus.INTERNAL_ERROR
        assert outcome.outcome.diagnostics == Messages.DOWNSTREAM_FAILURE

    def test_unexpected_exception_is_internal_error(self, intake_context, mock_forwarder, patient_dict):
        """Test that engine crashes are reduced to a fixed message."""
        profile_validator = Mock(spec=ProfileValidatorPort)
        profile_validator.validate.side_effect = RuntimeError("engine crashed with secret detail")
        transformer = create_transformer(intake_context)
        pipeline = IntakePipeline(
            patient_validator=PatientValidator(profile_validator, "urn:profile", transformer),
            document_validator=DocumentReferenceValidator(profile_validator, "urn:profile", transformer),
            forwarder=mock_forwarder,
            patient_path="/person",
            document_path="/document",
        )

        outcome = pipeline.submit(parse_resource(patient_dict))

        assert outcome.status is ResultStatus.INTERNAL_ERROR
        assert outcome.outcome.diagnostics == Messages.INTERNAL_SERVER_ERROR
        assert "secret" not in outcome.outcome.diagnostics

    def test_unsupported_object_is_bad_request(self, pipeline, mock_forwarder):
        outcome = pipeline.submit({"resourceType": "Patient"})

        assert outcome.status is ResultStatus.BAD_REQUEST
        mock_forwarder.forward.assert_not_called()

    @pytest.mark.parametrize("kind", ["patient", "document"])
    def test_no_sensitive_values_in_logs(self, pipeline, patient_dict, document_dict, caplog, kind):
        """Test that names, birth dates and content never reach the logs."""
        caplog.set_level("DEBUG")
        resource = patient_dict if kind == "patient" else document_dict
        pipeline.submit(parse_resource(resource))

        for secret in ("Jane", "Doe", "1990-05-17", "17.05.1990", "SGVsbG8gV29ybGQ="):
            assert secret not in caplog.text
