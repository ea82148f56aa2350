"""FHIR-Intake: validate, normalize and forward FHIR Patient and DocumentReference resources."""

__version__ = "1.0.0"
