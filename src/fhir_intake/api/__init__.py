"""HTTP API for FHIR-Intake."""
