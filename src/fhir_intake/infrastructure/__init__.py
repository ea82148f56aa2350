"""Infrastructure layer for FHIR-Intake.

Settings and configuration, logging setup, artifact loading, the terminology
store, the structural profile engine and the startup context.
"""
