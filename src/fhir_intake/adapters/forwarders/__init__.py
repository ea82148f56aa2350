"""Outbound forwarders to the downstream system of record."""

from fhir_intake.adapters.forwarders.http_forwarder import HttpForwarder

__all__ = ["HttpForwarder"]
