"""Tests for the downstream HTTP forwarder, using httpx.MockTransport."""

import json

import httpx
import pytest
from pydantic import SecretStr

from fhir_intake.adapters.forwarders import HttpForwarder
from fhir_intake.domain.canonical_records import CanonicalDocumentRecord, CanonicalPersonRecord
from fhir_intake.infrastructure.config_manager import DownstreamConfig

BASE_URL = "http://downstream.test/api"


@pytest.fixture
def person():
    return CanonicalPersonRecord(first_name="Jane", last_name="Doe", birth_date="17.05.1990")


def _forwarder(handler, **config):
    downstream = DownstreamConfig(base_url=BASE_URL, **config)
    client = httpx.Client(base_url=downstream.base_url, transport=httpx.MockTransport(handler))
    return HttpForwarder(downstream, client=client), client


class TestHttpForwarder:
    """Test request construction and status mapping."""

    def test_posts_payload_to_target_path(self, person):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(201)

        forwarder, _ = _forwarder(handler)

        assert forwarder.forward(person, "/person") is True
        request = captured[0]
        assert request.method == "POST"
        assert request.url.path == "/api/person"
        assert json.loads(request.content) == {
            "PersonFirstName": "Jane",
            "PersonLastName": "Doe",
            "PersonDOB": "17.05.1990",
        }

    def test_document_payload(self):
        captured = []

        def handler(request):
            captured.append(json.loads(request.content))
            return httpx.Response(200)

        forwarder, _ = _forwarder(handler)
        record = CanonicalDocumentRecord(
            type_code="PT130102",
            subject_id="123",
            encounter_id="E-42",
            created_date="04.03.2021",
            content_base64="SGVsbG8gV29ybGQ=",
        )

        assert forwarder.forward(record, "/document") is True
        assert captured[0]["kdlCode"] == "PT130102"
        assert captured[0]["visitNumber"] == "E-42"

    def test_bearer_token_header(self, person):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(200)

        forwarder, _ = _forwarder(handler, api_token=SecretStr("t0ken"))
        forwarder.forward(person, "/person")

        assert captured[0].headers["Authorization"] == "Bearer t0ken"

    def test_no_authorization_without_token(self, person):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(200)

        forwarder, _ = _forwarder(handler)
        forwarder.forward(person, "/person")

        assert "Authorization" not in captured[0].headers

    @pytest.mark.parametrize("status", [202, 204, 400, 404, 500, 503])
    def test_other_statuses_are_failures(self, person, status):
        forwarder, _ = _forwarder(lambda request: httpx.Response(status))
        assert forwarder.forward(person, "/person") is False

    @pytest.mark.parametrize("error", [
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("read timed out"),
    ])
    def test_transport_errors_are_failures(self, person, error):
        def handler(request):
            raise error

        forwarder, _ = _forwarder(handler)
        assert forwarder.forward(person, "/person") is False

    def test_logs_never_contain_payload(self, person, caplog):
        caplog.set_level("DEBUG")
        forwarder, _ = _forwarder(lambda request: httpx.Response(500))
        forwarder.forward(person, "/person")

        assert "Jane" not in caplog.text
        assert "/person" in caplog.text

    def test_injected_client_is_not_closed(self, person):
        forwarder, client = _forwarder(lambda request: httpx.Response(200))
        with forwarder:
            forwarder.forward(person, "/person")

        assert not client.is_closed

    def test_owned_client_is_closed(self):
        forwarder = HttpForwarder(DownstreamConfig(base_url=BASE_URL))
        forwarder.close()

        assert forwarder._client.is_closed

    def test_owned_client_sends_headers_and_timeout_per_request(self, person, monkeypatch):
        """Test that an owned client gets the same headers as an injected one."""
        forwarder = HttpForwarder(DownstreamConfig(base_url=BASE_URL, api_token=SecretStr("t0ken"), timeout_seconds=3))
        captured = {}

        def fake_post(url, **kwargs):
            captured.update(kwargs, url=url)
            return httpx.Response(201)

        monkeypatch.setattr(forwarder._client, "post", fake_post)

        assert forwarder.forward(person, "/person") is True
        assert captured["headers"]["Authorization"] == "Bearer t0ken"
        assert captured["timeout"] == 3
        assert "Authorization" not in forwarder._client.headers
        forwarder.close()
