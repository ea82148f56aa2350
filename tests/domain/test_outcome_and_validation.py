"""Tests for validation result types and the outcome builder."""

import pytest

from fhir_intake.domain.outcome import (
    Messages,
    OutcomeBuilder,
    OutcomeCode,
    OutcomeSeverity,
    ResultStatus,
)
from fhir_intake.domain.validation import IssueSeverity, ValidationIssue, ValidationResult


class TestValidationResult:
    """Test the ok-iff-no-error invariant and diagnostics rendering."""

    def test_empty_result_is_ok(self):
        assert ValidationResult().ok is True

    def test_warnings_and_info_keep_result_ok(self):
        result = ValidationResult.from_issues([
            ValidationIssue(IssueSeverity.WARNING, "DocumentReference.type", "extensible binding"),
            ValidationIssue(IssueSeverity.INFO, "DocumentReference.type", "not checked"),
        ])
        assert result.ok is True
        assert len(result.warnings) == 1
        assert result.errors == ()

    def test_any_error_makes_result_not_ok(self):
        result = ValidationResult.from_issues([
            ValidationIssue(IssueSeverity.WARNING, "Patient", "w"),
            ValidationIssue(IssueSeverity.ERROR, "Patient.name[0]", "e"),
        ])
        assert result.ok is False
        assert [issue.message for issue in result.errors] == ["e"]

    def test_issues_keep_detection_order(self):
        issues = [ValidationIssue(IssueSeverity.ERROR, f"Patient.loc{i}", str(i)) for i in range(5)]
        assert list(ValidationResult.from_issues(issues).issues) == issues

    def test_issue_render_format(self):
        issue = ValidationIssue(IssueSeverity.ERROR, "Patient.name[0]", "family missing")
        assert issue.render() == "ERROR - Patient.name[0] : family missing"

    def test_diagnostics_one_line_per_issue(self):
        result = ValidationResult.from_issues([
            ValidationIssue(IssueSeverity.ERROR, "Patient", "a"),
            ValidationIssue(IssueSeverity.WARNING, "Patient.gender", "b"),
        ])
        assert result.diagnostics() == "ERROR - Patient : a\nWARNING - Patient.gender : b"


class TestOutcomeBuilder:
    """Test the three outcome kinds and their status mapping."""

    def test_success(self):
        result = OutcomeBuilder.success(Messages.PATIENT_CREATED)

        assert result.status is ResultStatus.CREATED
        assert result.http_status == 201
        assert result.is_success()
        assert result.outcome.severity is OutcomeSeverity.INFORMATION
        assert result.outcome.code is OutcomeCode.INFORMATIONAL
        assert result.outcome.diagnostics == "Patient was created successfully."

    def test_validation_failure(self):
        result = OutcomeBuilder.validation_failure("Patient name is missing")

        assert result.http_status == 400
        assert not result.is_success()
        assert result.outcome.severity is OutcomeSeverity.ERROR
        assert result.outcome.code is OutcomeCode.EXCEPTION

    def test_internal_failure(self):
        result = OutcomeBuilder.internal_failure(Messages.DOWNSTREAM_FAILURE)

        assert result.http_status == 500
        assert result.outcome.severity is OutcomeSeverity.ERROR
        assert result.outcome.diagnostics == "Failed to send data to the downstream API."

    @pytest.mark.parametrize("build,severity,code", [
        (OutcomeBuilder.success, "information", "informational"),
        (OutcomeBuilder.validation_failure, "error", "exception"),
        (OutcomeBuilder.internal_failure, "error", "exception"),
    ])
    def test_operation_outcome_rendering(self, build, severity, code):
        rendered = build("message").outcome.to_operation_outcome()

        assert rendered == {
            "resourceType": "OperationOutcome",
            "issue": [{"severity": severity, "code": code, "diagnostics": "message"}],
        }
