"""Adapters layer for FHIR-Intake.

Inbound and outbound adapters: the JSON resource parser that turns request
bodies into resource models, and the HTTP forwarder that implements
ForwarderPort against the downstream system of record.
"""
