"""Shared fixtures for FHIR-Intake tests."""

import copy
from unittest.mock import Mock

import pytest

from fhir_intake.domain.ports import ForwarderPort
from fhir_intake.infrastructure.config_manager import KDL_CODE_SYSTEM_URL, ConfigManager
from fhir_intake.infrastructure.context import build_context
from fhir_intake.infrastructure.settings import Settings
from fhir_intake.main import create_pipeline

PATIENT = {
    "resourceType": "Patient",
    "id": "p-1",
    "name": [{"use": "official", "family": "Doe", "given": ["Jane"]}],
    "gender": "female",
    "birthDate": "1990-05-17",
}

DOCUMENT_REFERENCE = {
    "resourceType": "DocumentReference",
    "id": "doc-1",
    "status": "current",
    "type": {
        "coding": [
            {"system": KDL_CODE_SYSTEM_URL, "code": "PT130102", "display": "Molekularpathologiebefund"}
        ]
    },
    "subject": {"reference": "Patient/123"},
    "context": {"encounter": [{"reference": "Encounter/E-42"}]},
    "content": [
        {
            "attachment": {
                "contentType": "application/pdf",
                "data": "SGVsbG8gV29ybGQ=",
                "creation": "2021-03-04T10:15:00+01:00",
            }
        }
    ],
}


@pytest.fixture
def patient_dict():
    """Valid Patient wire dictionary (Jane Doe, born 1990-05-17)."""
    return copy.deepcopy(PATIENT)


@pytest.fixture
def document_dict():
    """Valid DocumentReference wire dictionary (KDL PT130102)."""
    return copy.deepcopy(DOCUMENT_REFERENCE)


@pytest.fixture
def settings():
    """Settings with default downstream and bundled artifacts."""
    return Settings(config_manager=ConfigManager({}))


@pytest.fixture(scope="session")
def intake_context():
    """Startup context over the bundled artifacts (built once per session)."""
    return build_context(Settings(config_manager=ConfigManager({})))


@pytest.fixture
def mock_forwarder():
    """Forwarder that accepts every record."""
    forwarder = Mock(spec=ForwarderPort)
    forwarder.forward.return_value = True
    return forwarder


@pytest.fixture
def pipeline(intake_context, mock_forwarder):
    """Pipeline over the bundled artifacts with a mocked forwarder."""
    return create_pipeline(intake_context, forwarder=mock_forwarder)
