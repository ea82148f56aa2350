"""Outcome Builder.

Standardized success/error payloads returned to the caller, each paired with a
result status. The payload renders as a FHIR OperationOutcome with exactly one
issue.

Security Impact:
    - Diagnostics carry validation messages only, never resource content
    - Internal failures expose a fixed message; exception details stay in the logs
"""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class OutcomeSeverity(str, Enum):
    INFORMATION = "information"
    ERROR = "error"


class OutcomeCode(str, Enum):
    INFORMATIONAL = "informational"
    EXCEPTION = "exception"


class ResultStatus(Enum):
    """Caller-facing result status with its HTTP status code."""
    CREATED = 201
    BAD_REQUEST = 400
    INTERNAL_ERROR = 500

    @property
    def http_status(self) -> int:
        return self.value


class Messages:
    """Fixed caller-facing messages."""
    PATIENT_CREATED = "Patient was created successfully."
    DOCUMENT_CREATED = "DocumentReference was created successfully."
    DOWNSTREAM_FAILURE = "Failed to send data to the downstream API."
    INTERNAL_SERVER_ERROR = "An internal server error occurred."
    INVALID_PATIENT_RESOURCE = "The submitted Patient resource is invalid."
    INVALID_DOCUMENT_RESOURCE = "The submitted DocumentReference resource is invalid."


@dataclass(frozen=True)
class Outcome:
    """Standardized outcome payload.

    Attributes:
        severity: information | error
        code: informational | exception
        diagnostics: Human-readable detail
    """
    severity: OutcomeSeverity
    code: OutcomeCode
    diagnostics: str

    def to_operation_outcome(self) -> dict:
        """Render as a FHIR OperationOutcome resource dictionary."""
        return {
            "resourceType": "OperationOutcome",
            "issue": [
                {
                    "severity": self.severity.value,
                    "code": self.code.value,
                    "diagnostics": self.diagnostics,
                }
            ],
        }


@dataclass(frozen=True)
class ProcessingOutcome:
    """An outcome paired with the result status it maps to."""
    outcome: Outcome
    status: ResultStatus

    @property
    def http_status(self) -> int:
        return self.status.http_status

    def is_success(self) -> bool:
        return self.status is ResultStatus.CREATED


class OutcomeBuilder:
    """Builds the three outcome kinds.

    All builders are pure data constructions; the only side effect is logging
    of the triggering condition.
    """

    @staticmethod
    def success(message: str) -> ProcessingOutcome:
        """Informational outcome mapped to "created"."""
        logger.info(f"Outcome created (201): {message}")
        return ProcessingOutcome(
            outcome=Outcome(OutcomeSeverity.INFORMATION, OutcomeCode.INFORMATIONAL, message),
            status=ResultStatus.CREATED,
        )

    @staticmethod
    def validation_failure(message: str) -> ProcessingOutcome:
        """Error outcome mapped to "bad request"."""
        logger.warning(f"Validation failed (400): {message}")
        return ProcessingOutcome(
            outcome=Outcome(OutcomeSeverity.ERROR, OutcomeCode.EXCEPTION, message),
            status=ResultStatus.BAD_REQUEST,
        )

    @staticmethod
    def internal_failure(message: str) -> ProcessingOutcome:
        """Error outcome mapped to "internal error"."""
        logger.error(f"Internal failure (500): {message}")
        return ProcessingOutcome(
            outcome=Outcome(OutcomeSeverity.ERROR, OutcomeCode.EXCEPTION, message),
            status=ResultStatus.INTERNAL_ERROR,
        )
