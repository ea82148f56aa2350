"""Validation Result Types.

Issues reported by the structural profile engine and the result aggregate
returned to the resource validators.

Architecture:
    - Pure domain value objects (immutable dataclasses)
    - ``ValidationResult.ok`` is derived from the issues, so the
      "ok iff no error-severity issue" invariant cannot be violated
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable


class IssueSeverity(str, Enum):
    """Severity of a single validation issue."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ValidationIssue:
    """A single issue reported while validating a resource.

    Attributes:
        severity: Issue severity (info, warning, error)
        location: Element path the issue refers to (e.g. ``Patient.name[0].family``)
        message: Human-readable description of the problem
    """
    severity: IssueSeverity
    location: str
    message: str

    def render(self) -> str:
        """Render the issue as ``SEVERITY - location : message``."""
        return f"{self.severity.value.upper()} - {self.location} : {self.message}"


@dataclass(frozen=True)
class ValidationResult:
    """Ordered collection of validation issues.

    Issues keep detection order. ``ok`` is True iff no issue has
    severity ``error``.
    """
    issues: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @classmethod
    def from_issues(cls, issues: Iterable[ValidationIssue]) -> 'ValidationResult':
        return cls(issues=tuple(issues))

    @property
    def ok(self) -> bool:
        return not any(issue.severity is IssueSeverity.ERROR for issue in self.issues)

    @property
    def errors(self) -> tuple[ValidationIssue, ...]:
        return tuple(issue for issue in self.issues if issue.severity is IssueSeverity.ERROR)

    @property
    def warnings(self) -> tuple[ValidationIssue, ...]:
        return tuple(issue for issue in self.issues if issue.severity is IssueSeverity.WARNING)

    def diagnostics(self) -> str:
        """Aggregate all issues into one diagnostics string, one issue per line."""
        return "\n".join(issue.render() for issue in self.issues)
