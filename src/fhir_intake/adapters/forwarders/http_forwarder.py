"""HTTP Forwarder Adapter.

Implements ForwarderPort with httpx: one POST per canonical record to the
downstream system of record. Any outcome other than 200/201 is reported as
False; the pipeline does not distinguish failure causes, so they are
distinguished here, in the logs.

Security Impact:
    - The bearer token is read from SecretStr only when building headers
    - Logs carry the target path and status or error class, never the body

Architecture:
    - Outbound adapter implementing ForwarderPort
    - A single attempt per record (no retries, no backoff)
    - Accepts an injected httpx.Client (e.g. with MockTransport in tests)
"""

import logging
from typing import Optional

import httpx

from fhir_intake.domain.canonical_records import CanonicalRecord
from fhir_intake.domain.ports import ForwarderPort
from fhir_intake.infrastructure.config_manager import DownstreamConfig

logger = logging.getLogger(__name__)

SUCCESS_STATUS_CODES = frozenset({200, 201})


class HttpForwarder(ForwarderPort):
    """Forwards canonical records to the downstream HTTP API.

    Parameters:
        config: Downstream configuration (base URL, timeout, token)
        client: Optional pre-built httpx.Client; when given, the forwarder
            does not own it and will not close it

    Example Usage:
        ```python
        with HttpForwarder(settings.downstream) as forwarder:
            accepted = forwarder.forward(record, "/person")
        ```
    """

    def __init__(self, config: DownstreamConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=config.base_url)

    def _headers(self) -> dict:
        # Headers and timeout are set per request so injected clients get them too
        headers = {"Accept": "application/json"}
        if self.config.api_token is not None:
            headers["Authorization"] = f"Bearer {self.config.api_token.get_secret_value()}"
        return headers

    def forward(self, record: CanonicalRecord, target_path: str) -> bool:
        """POST the record's downstream payload to ``target_path``.

        Returns:
            bool: True iff the downstream API answered 200 or 201
        """
        record_kind = type(record).__name__
        try:
            response = self._client.post(
                target_path,
                json=record.to_downstream_payload(),
                headers=self._headers(),
                timeout=self.config.timeout_seconds,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Forwarding {record_kind} to {target_path} timed out ({type(e).__name__})")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Forwarding {record_kind} to {target_path} failed: {type(e).__name__}")
            return False

        if response.status_code in SUCCESS_STATUS_CODES:
            logger.info(f"Forwarded {record_kind} to {target_path}: HTTP {response.status_code}")
            return True

        logger.error(f"Downstream rejected {record_kind} at {target_path}: HTTP {response.status_code}")
        return False

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> 'HttpForwarder':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
