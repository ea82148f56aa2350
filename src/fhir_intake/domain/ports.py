"""Domain Ports - Abstract Contracts for Resource Intake.

This module defines the Port interfaces (abstract contracts) that infrastructure
and adapters must implement, plus the Result type and the exception hierarchy
shared by the whole intake pipeline.

Security Impact:
    - Exceptions carry resource kind and failing stage, never payload content
    - Ports keep terminology, structural validation and forwarding swappable
      so tests never need the real downstream system

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Infrastructure (terminology store, profile engine) and adapters
      (HTTP forwarder) implement these ports
    - Domain Core is isolated from transport and artifact specifics
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Optional, Sequence, TypeVar, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from fhir_intake.domain.canonical_records import CanonicalRecord
    from fhir_intake.domain.validation import ValidationIssue, ValidationResult

# Type variable for Result generic
T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Adapters that face untrusted input (the inbound resource parser) return
    Result objects instead of raising, so callers can map failures to an
    outcome without try/except around every call.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error information (only present if success=False)
        error_type: Type of error (ResourceParseError, UnsupportedResourceError, etc.)
        error_details: Additional error context (expected type, location, etc.)

    Example:
        ```python
        result = parser.parse(body, expected_type="Patient")
        if result.is_success():
            pipeline.submit(result.value)
        else:
            log_error(result.error, result.error_details)
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result.

        Parameters:
            value: The successful result value

        Returns:
            Result: Success result with the value
        """
        return cls(
            success=True,
            value=value,
            error=None,
            error_type=None,
            error_details=None
        )

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error (e.g., "ResourceParseError")
            error_details: Additional context

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class IntakeError(Exception):
    """Base exception for all intake-related errors."""
    pass


class ResourceValidationError(IntakeError):
    """Raised when a resource fails shape, profile or terminology validation.

    This is the only error class that is surfaced to the caller as a
    "bad request": the submitted resource itself is at fault.

    Attributes:
        stage: Validation stage that rejected the resource
            ("shape", "profile", "terminology", "extraction")
        resource_type: Kind of resource being validated (Patient, DocumentReference)
        issues: Engine-reported issues (profile stage only)
    """

    def __init__(
        self,
        message: str,
        stage: str,
        resource_type: Optional[str] = None,
        issues: Optional[Sequence['ValidationIssue']] = None
    ):
        super().__init__(message)
        self.stage = stage
        self.resource_type = resource_type
        self.issues = tuple(issues or ())


class TerminologyError(ResourceValidationError):
    """Raised when a code is absent from the code system or the value set.

    Attributes:
        code: The rejected code (None when no code could be found at all)
        artifact: Which artifact rejected the code ("code_system", "value_set", "coding")
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        artifact: Optional[str] = None,
        resource_type: Optional[str] = None
    ):
        super().__init__(message, stage="terminology", resource_type=resource_type)
        self.code = code
        self.artifact = artifact


class FormatError(IntakeError):
    """Raised when a date reaching the transformer has an unexpected shape.

    Shape and profile checks are expected to guarantee well-formed dates, so
    this indicates an internal inconsistency and is escalated as an internal
    error rather than a validation failure.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ExtractionPreconditionError(IntakeError):
    """Raised when the transformer is invoked on a resource that failed the shape check.

    This is a programming error in the caller, not a user input problem.
    """
    pass


class ArtifactLoadError(IntakeError):
    """Raised when a static definition artifact cannot be read or parsed.

    Artifacts are loaded once at startup; this error is fatal for the process.

    Attributes:
        artifact_path: Logical path of the artifact that failed to load
    """

    def __init__(self, message: str, artifact_path: Optional[str] = None):
        super().__init__(message)
        self.artifact_path = artifact_path


class ResourceParseError(IntakeError):
    """Raised when an inbound document is not valid JSON or not a valid resource.

    The inbound parser catches it and returns a failed Result.

    Attributes:
        details: Failure context (sizes, JSON type, element locations; never values)
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details


class UnsupportedResourceError(ResourceParseError):
    """Raised when an inbound document has an unsupported or unexpected resourceType.

    Attributes:
        resource_type: The resourceType found in the document (may be None)
    """

    def __init__(self, message: str, resource_type: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details=details)
        self.resource_type = resource_type


# ============================================================================
# Ports
# ============================================================================

class TerminologyPort(ABC):
    """Abstract contract for code-membership queries.

    Implementations answer whether a code is present in a code system's
    concept tree and in a value set's expansion. The backing index is built
    once and is read-only, so implementations must be safe for concurrent reads.
    """

    @abstractmethod
    def is_code_valid(self, code_system_id: str, value_set_id: str, code: str) -> bool:
        """Check whether a code is in both the code system and the value set.

        Parameters:
            code_system_id: Canonical URL of the code system
            value_set_id: Canonical URL of the value set
            code: Code to check

        Returns:
            bool: True only if the code is in both artifacts
        """
        pass

    @abstractmethod
    def ensure_code_valid(self, code_system_id: str, value_set_id: str, code: str) -> None:
        """Check a code and raise if either artifact rejects it.

        Raises:
            TerminologyError: With a message naming the rejecting artifact
        """
        pass

    def has_value_set(self, value_set_id: str) -> bool:
        """Check whether a value set is loaded (default: no value sets)."""
        return False

    def contains_in_value_set(self, value_set_id: str, code: str) -> bool:
        """Check value set membership only (default: never contained)."""
        return False


class ProfileValidatorPort(ABC):
    """Abstract contract for structural validation against a named profile.

    Each call must construct its own validation context; implementations may
    only share read-only state (loaded definitions, terminology index).
    """

    @abstractmethod
    def validate(self, resource: dict, profile_id: str) -> 'ValidationResult':
        """Validate a resource (wire-shaped dictionary) against a profile.

        Parameters:
            resource: Resource in its wire dictionary form
            profile_id: Canonical URL (or id) of the StructureDefinition

        Returns:
            ValidationResult: All issues reported, in detection order
        """
        pass


class ForwarderPort(ABC):
    """Abstract contract for sending a canonical record to the downstream system.

    The pipeline treats any non-success outcome uniformly as False. Distinguishing
    timeouts from transport errors or bad statuses is the forwarder's own
    logging concern.
    """

    @abstractmethod
    def forward(self, record: 'CanonicalRecord', target_path: str) -> bool:
        """Send a canonical record to the downstream system.

        Parameters:
            record: Canonical record to send
            target_path: Downstream path (distinguishes patient vs. document)

        Returns:
            bool: True if the downstream system accepted the record (200/201)
        """
        pass
